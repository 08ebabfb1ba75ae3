"""
Database configuration module.
Reads the PostgreSQL DSN for the jobs/organizations store from DATABASE_URL.
"""

import os
import logging
from urllib.parse import urlparse, unquote

logger = logging.getLogger(__name__)


class DBConfig:
    """Database configuration read from the environment"""

    def __init__(self, database_url: str | None = None):
        self.database_url = database_url if database_url is not None else os.getenv("DATABASE_URL")

        if self.database_url:
            logger.info(f"[db_config] DATABASE_URL configured: {self.masked_url}")
        else:
            logger.warning("[db_config] DATABASE_URL not set - job ingestion is disabled")

    @property
    def is_db_enabled(self) -> bool:
        return bool(self.database_url)

    @property
    def masked_url(self) -> str:
        """DSN with the password replaced, safe for logs and status payloads"""
        if not self.database_url:
            return ""
        try:
            parsed = urlparse(self.database_url)
        except ValueError as e:
            return f"<unparseable DATABASE_URL: {e}>"
        return f"{parsed.scheme}://{parsed.username or ''}:***@{parsed.hostname}:{parsed.port or 5432}{parsed.path}"

    def get_connection_params(self) -> dict | None:
        """
        Get database connection parameters.
        Returns dict with host, port, database, user, password.
        """
        if not self.database_url:
            return None

        try:
            parsed = urlparse(self.database_url)
        except ValueError as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            return None

        if not parsed.hostname:
            return None

        params = {
            "host": parsed.hostname,
            "port": parsed.port or 5432,
            "database": parsed.path.lstrip('/') or 'postgres',
            "user": parsed.username or 'postgres',
        }
        if parsed.password:
            params["password"] = unquote(parsed.password)

        return params


# Global instance
db_config = DBConfig()
