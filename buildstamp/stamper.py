import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .config import StampConfig
from .editors import StructuredEditor, select_json_editor, select_plist_editor
from .platforms import PlatformResult, stamp_android, stamp_expo, stamp_ios
from .versioning import BuildInfo

BOX_WIDTH = 54


@dataclass
class StampResult:
    info: BuildInfo
    platforms: List[PlatformResult] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return len(self.platforms)

    @property
    def ok(self) -> bool:
        return self.updated > 0

    def exports(self) -> dict:
        """Variables handed to downstream CI steps."""
        return {"AC_BUILD_VERSION": self.info.version, "AC_BUILD_CODE": self.info.code}


class VersionStamper:
    """Stamps one :class:`BuildInfo` into every platform target under ``config.root``.

    Platforms are handled one after another, each at most once. A failure in a
    later platform leaves earlier platforms updated; there is no rollback.
    """

    def __init__(self, config: StampConfig, logger: Optional[logging.Logger] = None,
                 plist_editor: Optional[StructuredEditor] = None,
                 json_editor: Optional[StructuredEditor] = None):
        self.config = config
        self.logger = logger or logging.getLogger("buildstamp")
        self.plist_editor = plist_editor or select_plist_editor(config.plist_editor)
        self.json_editor = json_editor or select_json_editor(config.json_editor)

    def run(self, info: BuildInfo) -> StampResult:
        log = self.logger
        root = self.config.root
        log.info("Project root : %s", root)
        log.info("Build version: %s", info.version)
        log.info("Build code   : %s", info.code)
        log.debug("Editors      : plist=%s json=%s", self.plist_editor.name, self.json_editor.name)
        log.info("─" * BOX_WIDTH)

        result = StampResult(info)
        handlers = (
            lambda: stamp_android(root, info, log),
            lambda: stamp_ios(root, info, self.plist_editor, log,
                              project_name=self.config.ios_project_name),
            lambda: stamp_expo(root, info, self.json_editor, log),
        )
        for handler in handlers:
            platform = handler()
            if platform is not None:
                result.platforms.append(platform)
        return result


def format_summary(result: StampResult) -> str:
    inner = BOX_WIDTH
    rows = [
        ("Version", result.info.version),
        ("Code", result.info.code),
        ("Targets", f"{result.updated} platform(s) updated"),
    ]
    lines = [
        "╔" + "═" * inner + "╗",
        "║" + "VERSION STAMP SUMMARY".center(inner) + "║",
        "╠" + "═" * inner + "╣",
    ]
    for label, value in rows:
        lines.append("║" + f"  {label:<8}: {value}".ljust(inner) + "║")
    lines.append("╚" + "═" * inner + "╝")
    return "\n".join(lines)
