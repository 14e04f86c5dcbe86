"""Queuematic package.

Multi-branch queue management backend, organized by feature modules
(branches, users, counters, tickets, status) with a thin Flask controller
layer over service/repository layers.
"""
