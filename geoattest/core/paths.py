"""
Centralized path configuration for geoattest.

Supports:
- Local config: ./config/*.pem
- External overlay: CONFIG_DIR=/path/to/private/config

Usage:
    from geoattest.core.paths import get_config_path, CONFIG_DIR

    # Public key for the verifier (None if absent)
    pubkey_path = get_config_path("pubkey.pem")
"""
import os
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# From geoattest/core/paths.py -> geoattest/core -> geoattest -> repo root
_REPO_ROOT = Path(__file__).parent.parent.parent
_DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"

# Environment-configurable paths
CONFIG_DIR = Path(os.getenv("CONFIG_DIR", str(_DEFAULT_CONFIG_DIR)))


def get_config_path(filename: str) -> Optional[Path]:
    """
    Resolve config file path with fallback logic.

    Resolution order:
    1. CONFIG_DIR / filename
    2. Default config dir / filename (if CONFIG_DIR is overridden)

    Args:
        filename: Config filename (e.g., "pubkey.pem")

    Returns:
        Path to config file, or None if not found
    """
    candidates = [CONFIG_DIR / filename]
    if CONFIG_DIR != _DEFAULT_CONFIG_DIR:
        candidates.append(_DEFAULT_CONFIG_DIR / filename)

    for path in candidates:
        if path.exists():
            logger.debug(f"Config '{filename}' resolved to: {path}")
            return path

    logger.debug(f"Config '{filename}' not found")
    return None
