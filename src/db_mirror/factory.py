"""Connection resolution and adapter factory.

Connection settings are resolved once, from the highest-priority source
that provides them:

1. Explicit ``--url`` / ``--db`` overrides
2. A db.toml profile (explicit name, then ``<prefix>DB_PROFILE`` env var)
3. The database name recorded in the schema document

The resolved ``ConnectionSettings`` value is passed down to adapters;
nothing below this module reads the environment.
"""

import logging
import os
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict
from sqlalchemy.engine import make_url

from db_mirror.adapters.mysql import AsyncMySQLAdapter
from db_mirror.config.loader import load_db_config
from db_mirror.config.models import DatabaseConfig, DatabaseProfile

logger = logging.getLogger(__name__)


# ============================================================================
# Profile Selection
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the ``{env_prefix}DB_PROFILE`` env var.

    Args:
        env_prefix: Prefix for the environment variable, e.g. ``"SHOP_"``
            reads ``SHOP_DB_PROFILE``.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If the env var is unset or empty
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_var}=<name>, pass --profile <name>, or pass --url."
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile is selected or the selected
            profile is not in db.toml
        FileNotFoundError: If *config* is not given and db.toml is missing
    """
    if profile_name is None:
        profile_name = get_active_profile_name(env_prefix)
    if config is None:
        config = load_db_config()

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {available}"
        )

    return profile_name, config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted

    Example:
        >>> p = DatabaseProfile(url="mysql://root:[YOUR-PASSWORD]@db/shop", db_password="p@ss")
        >>> resolve_url(p)
        'mysql://root:p%40ss@db/shop'
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Connection Settings
# ============================================================================


class ConnectionSettings(BaseModel):
    """Resolved connection target for one run."""

    model_config = ConfigDict(frozen=True)

    url: str
    database: str
    profile_name: str | None = None

    @property
    def server_url(self) -> str:
        """The URL without a database, for CREATE DATABASE."""
        return make_url(self.url).set(database=None).render_as_string(hide_password=False)

    @property
    def database_url(self) -> str:
        """The URL pointing at ``database``."""
        return (
            make_url(self.url)
            .set(database=self.database)
            .render_as_string(hide_password=False)
        )


def resolve_connection(
    profile_name: str | None = None,
    url: str | None = None,
    database: str | None = None,
    document_database: str = "",
    env_prefix: str = "",
    config: DatabaseConfig | None = None,
) -> ConnectionSettings:
    """Resolve the connection target from overrides, profile and document.

    Args:
        profile_name: Explicit db.toml profile.
        url: Explicit connection URL; skips profile lookup.
        database: Explicit database name.
        document_database: Database name recorded in a schema document,
            used when neither *database* nor the URL names one.
        env_prefix: Prefix for the ``DB_PROFILE`` env var.
        config: Preloaded config (default: ``load_db_config()``).

    Returns:
        ``ConnectionSettings``

    Raises:
        ProfileNotFoundError: No URL given and no usable profile.
        ValueError: No database name from any source.
    """
    resolved_profile = None
    if not url:
        resolved_profile, profile = get_active_profile(profile_name, env_prefix, config)
        url = resolve_url(profile)

    db_name = database or make_url(url).database or document_database
    if not db_name:
        raise ValueError(
            "No database name: pass --db, include it in the URL, "
            "or set database.name in the document."
        )

    logger.debug("Resolved database '%s' (profile: %s)", db_name, resolved_profile)
    return ConnectionSettings(url=url, database=db_name, profile_name=resolved_profile)


# ============================================================================
# Database Adapter Factory
# ============================================================================


def get_adapter(settings: ConnectionSettings, server_level: bool = False) -> AsyncMySQLAdapter:
    """Create an adapter for the resolved connection.

    Args:
        settings: Resolved connection settings.
        server_level: Connect without selecting a database (needed to
            create a missing one).

    Returns:
        ``AsyncMySQLAdapter``; the caller must ``await adapter.close()``.

    Example:
        adapter = get_adapter(settings)
        try:
            live = await SchemaIntrospector(adapter).snapshot(settings.database)
        finally:
            await adapter.close()
    """
    url = settings.server_url if server_level else settings.database_url
    return AsyncMySQLAdapter(url)
