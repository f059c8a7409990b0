"""Stamp timestamp-derived versions into mobile build metadata.

Typical use from a CI step::

    info = resolve_build_info()
    result = VersionStamper(build_config()).run(info)
"""

from .config import StampConfig, build_config
from .errors import ConfigError, EditorError, StampError
from .stamper import StampResult, VersionStamper, format_summary
from .versioning import BuildInfo, resolve_build_info

__all__ = [
    "BuildInfo",
    "ConfigError",
    "EditorError",
    "StampConfig",
    "StampError",
    "StampResult",
    "VersionStamper",
    "build_config",
    "format_summary",
    "resolve_build_info",
]
