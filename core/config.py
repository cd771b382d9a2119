"""
core/config.py -- Stockkeeper settings, read once from the environment.

Every setting the API and the CLI need (signing secret, datastore URL, debug
logging, login rate limit) is declared on Settings below. Other modules ask
get_settings() for values and never read os.environ themselves.

How values resolve:
  Environment variables win, then a .env file in the working directory, then
      the defaults below. Names are case-insensitive upper-case versions of
      the field names (DATABASE_URL, LOGIN_RATE_LIMIT, ...).

  get_settings() is wrapped in lru_cache, so the first caller builds the
      instance and every later caller shares it.

  The SECRET_KEY checks run in a model_validator after all fields load.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued session.

  [M7] A missing SECRET_KEY is a hard startup failure in every mode. There is
       no generated or hardcoded fallback: a guessed key would either be
       forgeable (hardcoded) or silently log everyone out on restart (random).

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or inventory/.
"""

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    The signing secret and the datastore connection string are the only
    deployment-specific values. The remaining fields tune ambient behaviour
    (logging verbosity, login rate limiting) and have safe defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured"; the validator below
    # refuses to build a Settings instance with it.
    secret_key: str = ""
    database_url: str = "sqlite:///stockkeeper.db"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M6] [M7]."""
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file "
                "(at least 32 characters, e.g. the output of `openssl rand -hex 32`)."
            )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
