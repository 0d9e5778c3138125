"""Configuration management for the SQL Server MCP Server."""

import os
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass
from dotenv import load_dotenv

from .constants import (
    AUTHENTICATION_MODES,
    CONNECTION_TIMEOUT,
    DEFAULT_MAX_OVERFLOW,
    DEFAULT_ODBC_DRIVER,
    DEFAULT_POOL_SIZE,
    DEFAULT_SQLSERVER_PORT,
)
from .error_handling import ConfigurationError

logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


@dataclass
class ServerConfig:
    """Server configuration settings."""
    log_level: str
    structured_logging: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.log_level = self.log_level.upper()


@dataclass
class DatabaseConfig:
    """SQL Server connection configuration."""
    server: Optional[str] = None
    database: Optional[str] = None
    port: int = DEFAULT_SQLSERVER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    domain: Optional[str] = None
    authentication: Optional[str] = None
    encrypt: bool = False
    trust_server_certificate: bool = False
    driver: str = DEFAULT_ODBC_DRIVER
    connection_timeout: int = CONNECTION_TIMEOUT
    pool_size: int = DEFAULT_POOL_SIZE
    max_overflow: int = DEFAULT_MAX_OVERFLOW

    @property
    def uses_integrated_auth(self) -> bool:
        """No SQL login supplied: fall back to trusted/integrated authentication."""
        return not (self.username and self.password) and not self.authentication

    @property
    def login_name(self) -> Optional[str]:
        """User name as sent to the driver, qualified with the domain if one is set."""
        if not self.username:
            return None
        if self.domain and "\\" not in self.username:
            return f"{self.domain}\\{self.username}"
        return self.username

    @property
    def odbc_authentication(self) -> Optional[str]:
        """ODBC ``Authentication`` keyword for the configured mode, if any."""
        if not self.authentication or self.authentication == "default":
            return None
        return AUTHENTICATION_MODES.get(self.authentication, self.authentication)

    def missing_params(self) -> List[str]:
        """Names of required environment variables that are not set."""
        required_fields = {
            "DB_SERVER": self.server,
            "DB_DATABASE": self.database,
        }
        return [k for k, v in required_fields.items() if not v]

    def describe(self) -> Dict[str, Any]:
        """Connection settings safe to log (no password)."""
        return {
            "server": self.server,
            "database": self.database,
            "port": self.port,
            "username": self.login_name,
            "authentication": self.odbc_authentication or (
                "integrated" if self.uses_integrated_auth else "sql"
            ),
            "encrypt": self.encrypt,
            "trust_server_certificate": self.trust_server_certificate,
            "driver": self.driver,
        }


class ConfigManager:
    """Manages application configuration."""

    def __init__(self):
        """Initialize configuration manager."""
        load_dotenv()
        self._server_config: Optional[ServerConfig] = None
        self._db_config: Optional[DatabaseConfig] = None

    def get_server_config(self) -> ServerConfig:
        """Get server configuration."""
        if self._server_config is None:
            self._server_config = ServerConfig(
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                structured_logging=_env_flag("LOG_STRUCTURED"),
            )
            logger.info("Server configuration loaded")
        return self._server_config

    def get_database_config(self) -> DatabaseConfig:
        """Get database configuration."""
        if self._db_config is None:
            self._db_config = DatabaseConfig(
                server=os.getenv("DB_SERVER"),
                database=os.getenv("DB_DATABASE"),
                port=int(os.getenv("DB_PORT", DEFAULT_SQLSERVER_PORT)),
                username=os.getenv("DB_USER") or None,
                password=os.getenv("DB_PASSWORD") or None,
                domain=os.getenv("DB_DOMAIN") or None,
                authentication=os.getenv("DB_AUTHENTICATION") or None,
                encrypt=_env_flag("DB_ENCRYPT"),
                trust_server_certificate=_env_flag("DB_TRUST_SERVER_CERTIFICATE"),
                driver=os.getenv("DB_DRIVER", DEFAULT_ODBC_DRIVER),
                connection_timeout=int(os.getenv("DB_CONNECTION_TIMEOUT", CONNECTION_TIMEOUT)),
                pool_size=int(os.getenv("DB_POOL_SIZE", DEFAULT_POOL_SIZE)),
                max_overflow=int(os.getenv("DB_MAX_OVERFLOW", DEFAULT_MAX_OVERFLOW)),
            )
            logger.info("Database configuration loaded")
        return self._db_config

    def validate_db_config(self) -> Dict[str, Any]:
        """Validate the database configuration."""
        config = self.get_database_config()
        missing_params = config.missing_params()

        return {
            "valid": len(missing_params) == 0,
            "missing_params": missing_params,
            "config": config.describe()
        }

    def require_database_config(self) -> DatabaseConfig:
        """Return the database configuration or raise if it cannot be used."""
        validation = self.validate_db_config()
        if not validation["valid"]:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(validation['missing_params'])}",
                details="Set DB_SERVER (e.g. localhost or server.database.windows.net) and DB_DATABASE. "
                        "DB_USER/DB_PASSWORD are optional; integrated authentication is used without them."
            )
        return self.get_database_config()


# Global configuration manager instance
config_manager = ConfigManager()
