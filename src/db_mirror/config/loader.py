"""TOML loader for db.toml profiles and document settings."""

import tomllib
from pathlib import Path

from db_mirror.config.models import DatabaseConfig, DatabaseProfile


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ``db.toml`` in the current
            working directory)

    Returns:
        DatabaseConfig with all profiles

    Raises:
        FileNotFoundError: If config file doesn't exist
        tomllib.TOMLDecodeError: If the file is not valid TOML
        pydantic.ValidationError: If a profile is missing its url
    """
    if config_path is None:
        config_path = Path.cwd() / "db.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create db.toml with a [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    document_settings = data.get("document", {})

    return DatabaseConfig(
        profiles=profiles,
        document_file=document_settings.get("file", "schema.json"),
    )
