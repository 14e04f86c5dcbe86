import os


def get_settings_module() -> str:
    # Select the settings module from APP_ENV, 'development' by default
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "queuematic.config.production"

    if env in {"test", "testing"}:
        return "queuematic.config.testing"

    return "queuematic.config.development"


def parse_origins(value: str) -> list[str]:
    return [o.strip() for o in value.split(",") if o.strip()]
