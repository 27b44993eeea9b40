"""
Shared plumbing for the provider façades.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from peewee import Database

from membership_authkit.auth.stores.database import get_or_create_application, open_database
from membership_authkit.auth.stores.schema import utcnow
from membership_authkit.utils.audit import AuditLogger
from membership_authkit.utils.config import ProviderConfig

logger = logging.getLogger(__name__)


class ProviderBase:
    """
    Binds a provider to its configuration, database and application scope.

    Args:
        config: Provider settings (defaults to the environment)
        database: An open peewee Database; when omitted one is opened from
            ``config.DATABASE_URL``
        clock: Returns the current naive-UTC time (tests inject a fake one)
        name: Provider name reported on returned objects
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        database: Optional[Database] = None,
        clock: Optional[Callable[[], datetime]] = None,
        name: Optional[str] = None,
    ):
        self.config = config or ProviderConfig()
        self.name = name or type(self).__name__
        self.clock = clock or utcnow

        if database is None:
            database = open_database(self.config.DATABASE_URL, self.config.COMMAND_TIMEOUT)
        self.db = database
        self.application = get_or_create_application(self.db, self.config.APPLICATION_NAME)

        self.audit = AuditLogger(
            enabled=self.config.AUDIT_LOG_ENABLED, application=self.config.APPLICATION_NAME
        )
        logger.debug(f"{self.name} bound to application '{self.config.APPLICATION_NAME}'")

    @property
    def application_name(self) -> str:
        return self.config.APPLICATION_NAME
