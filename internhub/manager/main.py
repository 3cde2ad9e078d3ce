"""
Internship Management Core
Wires the lifecycle components around one store and one notification hub
"""

from typing import Optional

import structlog

from ..config import Settings, get_settings
from ..db.store import InternshipStore
from ..log_setup import configure_logging
from ..notifications import NotificationHub
from .accounts import AccountService
from .agreements import AgreementGate
from .applications import ApplicationLifecycle
from .companies import CompanyRegistry
from .placement import PlacementAssignment
from .reports import ReportFinalization
from .tasks import TaskEngine
from .views import LifecycleViews
from .weekly import WeeklyUpdateTrack

logger = structlog.get_logger(__name__)


class InternshipManager:
    """
    Facade over the lifecycle components.

    Every component receives the same store, hub and settings; there is no
    module-level state, so several managers (e.g. one per test) can live
    side by side.
    """

    def __init__(self, store: Optional[InternshipStore] = None, hub: Optional[NotificationHub] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store or InternshipStore(self.settings.database_path)
        self.hub = hub or NotificationHub(self.settings.notification_history_size)

        components = (self.store, self.hub, self.settings)
        self.accounts = AccountService(*components)
        self.companies = CompanyRegistry(*components)
        self.applications = ApplicationLifecycle(*components)
        self.agreements = AgreementGate(*components)
        self.placement = PlacementAssignment(*components)
        self.tasks = TaskEngine(*components)
        self.weekly = WeeklyUpdateTrack(*components)
        self.reports = ReportFinalization(*components)
        self.views = LifecycleViews(*components)

        logger.info("Internship manager initialized", database=self.store.database_path)

    def close(self):
        self.store.close()


def main():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    manager = InternshipManager(settings=settings)
    logger.info("Database ready", database=settings.database_path,
                students=len(manager.store.list_students()), admins=len(manager.store.list_admins()),
                companies=len(manager.store.list_companies()))
    manager.close()


if __name__ == "__main__":
    main()
