from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .branches.mysql_branch_repository import MySQLBranchRepository
from .branches.repository import BranchRepository
from .branches.service import BranchService
from .core.constants import DEFAULT_SERVICE_SECONDS
from .counters.mysql_counter_repository import MySQLCounterRepository, MySQLCounterSessionRepository
from .counters.repository import CounterRepository, CounterSessionRepository
from .counters.service import CounterService, CounterSessionService
from .database.connection import DBConfig, DatabaseConnection
from .status.mysql_status_repository import MySQLStatusRepository
from .status.repository import StatusRepository
from .status.service import StatusService
from .tickets.mysql_ticket_repository import MySQLTicketRepository
from .tickets.repository import TicketRepository
from .tickets.service import TicketService
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    branches_repo: BranchRepository
    counters_repo: CounterRepository
    sessions_repo: CounterSessionRepository
    tickets_repo: TicketRepository
    status_repo: StatusRepository

    auth_service: AuthService
    user_service: UserService
    branch_service: BranchService
    counter_service: CounterService
    counter_session_service: CounterSessionService
    ticket_service: TicketService
    status_service: StatusService


def wire_services(
    *,
    users_repo: UserRepository,
    branches_repo: BranchRepository,
    counters_repo: CounterRepository,
    sessions_repo: CounterSessionRepository,
    tickets_repo: TicketRepository,
    status_repo: StatusRepository,
    conn: Optional[DatabaseConnection] = None,
    default_service_seconds: int = DEFAULT_SERVICE_SECONDS,
) -> Container:
    return Container(
        conn=conn,
        users_repo=users_repo,
        branches_repo=branches_repo,
        counters_repo=counters_repo,
        sessions_repo=sessions_repo,
        tickets_repo=tickets_repo,
        status_repo=status_repo,
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo, branches_repo),
        branch_service=BranchService(branches_repo),
        counter_service=CounterService(counters_repo, sessions_repo, branches_repo),
        counter_session_service=CounterSessionService(counters_repo, sessions_repo),
        ticket_service=TicketService(tickets_repo, branches_repo, counters_repo, sessions_repo),
        status_service=StatusService(status_repo, branches_repo, default_service_seconds=default_service_seconds),
    )


def build_container(*, db_config: dict, default_service_seconds: int = DEFAULT_SERVICE_SECONDS) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire_services(
        conn=conn,
        users_repo=MySQLUserRepository(conn),
        branches_repo=MySQLBranchRepository(conn),
        counters_repo=MySQLCounterRepository(conn),
        sessions_repo=MySQLCounterSessionRepository(conn),
        tickets_repo=MySQLTicketRepository(conn),
        status_repo=MySQLStatusRepository(conn),
        default_service_seconds=default_service_seconds,
    )
