import os, re, datetime
from dataclasses import dataclass

from .errors import ConfigError

VERSION_FORMAT = "%Y.%m.%d-%H%M"
CODE_FORMAT = "%Y%m%d%H%M"


@dataclass(frozen=True)
class BuildInfo:
    version: str  # user-visible, e.g. 2025.01.01-0101
    code: str     # monotonically increasing, e.g. 202501010101


def utc_now():
    return datetime.datetime.now(datetime.timezone.utc)


def build_version(now=None):
    return (now or utc_now()).strftime(VERSION_FORMAT)


def build_code(now=None):
    return (now or utc_now()).strftime(CODE_FORMAT)


def resolve_build_info(version=None, code=None, now=None, environ=None) -> BuildInfo:
    """Return the version pair for this run.

    Explicit arguments win over ``BUILD_VERSION`` / ``BUILD_CODE`` from the
    environment; anything still missing is derived from one UTC instant so the
    two values always describe the same minute. The code ends up in integer
    fields (``versionCode``), so a non-numeric override is rejected here.
    """
    env = os.environ if environ is None else environ
    now = now or utc_now()
    version = version or env.get("BUILD_VERSION") or build_version(now)
    code = code or env.get("BUILD_CODE") or build_code(now)
    if not re.fullmatch(r"[0-9]+", code):
        raise ConfigError(f"BUILD_CODE must be numeric, got {code!r}")
    return BuildInfo(version=version, code=code)
