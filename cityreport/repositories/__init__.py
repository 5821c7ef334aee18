"""
Repository Layer Package.

Local-first data access over ``LocalStore``.  Each entity kind owns one
storage key; services never touch the store for entity collections
directly.

Usage:
    from cityreport.repositories import ReportRepository, AccountRepository
"""

from cityreport.repositories.account_repository import AccountRepository
from cityreport.repositories.alert_repository import AlertRepository
from cityreport.repositories.base_repository import EntityRepository
from cityreport.repositories.contact_repository import ContactRepository
from cityreport.repositories.report_repository import ReportRepository

__all__ = [
    "AccountRepository",
    "AlertRepository",
    "ContactRepository",
    "EntityRepository",
    "ReportRepository",
]
