"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for GridPortal happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Recognized variables (and nothing else):
  DB_HOST, DB_USER, DB_PASS, DB_NAME, DB_PORT  -- MySQL connection
  SESSION_SECRET                               -- signs the session cookie
  PORT                                         -- listen port for main.py
  APP_ENV                                      -- "production" enables secure cookies

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  @model_validator(mode="after"): dev mode generates a session secret with a
      warning; production refuses to start without one.

Layer rule: core/ is the kernel. Apart from core/context.py (which assembles
the stores), core/ does not import from api/, web/, auth/ or sessions/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

logger = logging.getLogger("gridportal.config")

# Static asset tree served under /css, /images and /html. Not configurable.
ASSET_ROOT = Path(__file__).resolve().parent.parent / "static"
HTML_DIR = ASSET_ROOT / "html"
RELEASE_NOTES_DIR = HTML_DIR / "release_notes"

# Sessions live for a fixed 24 hours from login.
SESSION_MAX_AGE = 60 * 60 * 24


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. Field names map to upper-cased
    environment variables (db_host -> DB_HOST).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    db_host: str = "localhost"
    db_user: str = "root"
    db_pass: str = ""
    db_name: str = "gridportal"
    db_port: int = 3306

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev secret or raises, so callers never see "".
    session_secret: str = ""
    port: int = 3000
    app_env: str = "development"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def database_url(self) -> URL:
        """SQLAlchemy URL for the MySQL database (PyMySQL driver).

        URL.create() escapes credentials, so passwords containing '@' or '/'
        need no manual quoting.
        """
        return URL.create(
            "mysql+pymysql",
            username=self.db_user,
            password=self.db_pass or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Enforce the SESSION_SECRET policy.

        Dev mode (APP_ENV != production): auto-generate a random secret with a
            warning. Sessions will not survive a restart.

        Production: refuse to start if SESSION_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.session_secret:
            if self.is_production:
                raise ValueError(
                    "SESSION_SECRET is required in production. "
                    "Set SESSION_SECRET in your environment or .env file."
                )
            self.session_secret = secrets.token_hex(32)
            logger.warning("Using auto-generated SESSION_SECRET. Sessions will not persist across restarts.")
        if len(self.session_secret) < 32:
            raise ValueError("SESSION_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
