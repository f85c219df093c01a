"""
Content store configuration.
Values are read from the environment; the functions re-read it so tests can
toggle flags at runtime.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/contentstore.db")

# Authority token every resource address must carry
CONTENT_AUTHORITY = os.getenv("CONTENT_AUTHORITY", "la.il.sample")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Validate inserted records against the pydantic schemas
SCHEMA_VALIDATION_STRICT = os.getenv("SCHEMA_VALIDATION_STRICT", "false").lower() == "true"

# Seconds SQLite waits on a locked database before failing
DB_TIMEOUT_SEC = float(os.getenv("DB_TIMEOUT_SEC", "10"))

# Version string
VERSION = "1.0.0"


def get_db_path():
    """Get the configured database path."""
    return os.getenv("DB_PATH", DB_PATH)


def get_content_authority():
    """Get the configured content authority."""
    return os.getenv("CONTENT_AUTHORITY", CONTENT_AUTHORITY)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def schema_validation_strict():
    """Check if strict schema validation is enabled."""
    return os.getenv("SCHEMA_VALIDATION_STRICT", "false").lower() == "true"


def get_db_timeout():
    """Get the SQLite busy timeout in seconds."""
    return float(os.getenv("DB_TIMEOUT_SEC", str(DB_TIMEOUT_SEC)))


def ensure_db_directory(db_path=None):
    """Ensure the database directory exists."""
    path = db_path or get_db_path()
    if path == ":memory:":
        return
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    authority = get_content_authority()
    if not authority or "/" in authority or "?" in authority:
        issues.append(f"Invalid CONTENT_AUTHORITY: {authority!r}")

    if not get_db_path():
        issues.append("DB_PATH must not be empty")

    try:
        if get_db_timeout() < 0:
            issues.append("DB_TIMEOUT_SEC must be >= 0")
    except ValueError:
        issues.append(f"Invalid DB_TIMEOUT_SEC: {os.getenv('DB_TIMEOUT_SEC')!r}")

    return issues
