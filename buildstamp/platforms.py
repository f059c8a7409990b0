import os
import plistlib
import re
from dataclasses import dataclass, field
from typing import List, Optional
from xml.parsers.expat import ExpatError

from .utils import atomic_write, grep_lines, path_in, read_text, remove_backup

ANDROID = "android"
IOS = "ios"
EXPO = "expo"

# Groovy: versionName "1.0"   Kotlin DSL: versionName = "1.0"
VERSION_NAME_RX = re.compile(r'(versionName\s*=?\s*")[^"]*(")')
VERSION_CODE_RX = re.compile(r"(versionCode\s*=?\s*)\d+\b")
PLIST_SKIP_DIRS = {"Pods", "build"}


@dataclass
class PlatformResult:
    platform: str
    path: str
    editor: Optional[str] = None
    fields: List[str] = field(default_factory=list)


def find_gradle_file(root) -> Optional[str]:
    for name in ("build.gradle", "build.gradle.kts"):
        candidate = os.path.join(root, "android", "app", name)
        if os.path.isfile(candidate):
            return candidate
    return None


def stamp_android(root, info, logger) -> Optional[PlatformResult]:
    gradle = find_gradle_file(root)
    if not gradle:
        logger.warning(
            "Android build.gradle not found at %s - skipping Android.",
            os.path.join(root, "android", "app", "build.gradle"),
            extra={"platform": ANDROID},
        )
        return None
    logger.info("Found Android build file: %s", gradle, extra={"platform": ANDROID, "path": gradle})
    result = PlatformResult(ANDROID, gradle)

    text = read_text(gradle, newline="")

    text, n = VERSION_NAME_RX.subn(lambda m: f"{m.group(1)}{info.version}{m.group(2)}", text)
    if n:
        result.fields.append("versionName")
        logger.info('versionName → "%s"', info.version,
                    extra={"platform": ANDROID, "field": "versionName", "value": info.version})
    else:
        logger.warning("No versionName field found in build.gradle - skipping.",
                       extra={"platform": ANDROID, "field": "versionName"})

    text, n = VERSION_CODE_RX.subn(lambda m: f"{m.group(1)}{info.code}", text)
    if n:
        result.fields.append("versionCode")
        logger.info("versionCode → %s", info.code,
                    extra={"platform": ANDROID, "field": "versionCode", "value": info.code})

    if result.fields:
        atomic_write(gradle, text)
    remove_backup(gradle)

    logger.info("── Android verification ──")
    for lineno, line in grep_lines(gradle, r"versionName|versionCode"):
        logger.info("%d:%s", lineno, line)
    return result


def find_info_plist(root, project_name=None) -> Optional[str]:
    """Locate the app's Info.plist under ``<root>/ios``.

    The well-known locations are tried first; otherwise the first Info.plist
    found in a sorted walk, ignoring CocoaPods and build output directories.
    """
    ios_dir = os.path.join(root, "ios")
    candidates = []
    if project_name:
        try:
            candidates.append(path_in(ios_dir, project_name, "Info.plist"))
        except ValueError:
            pass
    candidates += [
        os.path.join(ios_dir, "App", "Info.plist"),
        os.path.join(ios_dir, "Info.plist"),
    ]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate

    if not os.path.isdir(ios_dir):
        return None
    for dirpath, dirnames, filenames in os.walk(ios_dir):
        dirnames[:] = sorted(d for d in dirnames if d not in PLIST_SKIP_DIRS)
        if "Info.plist" in filenames:
            return os.path.join(dirpath, "Info.plist")
    return None


def read_plist_keys(path, keys):
    """Read ``keys`` back from a plist, falling back to the raw key/value lines."""
    try:
        with open(path, "rb") as f:
            doc = plistlib.load(f)
    except (plistlib.InvalidFileException, ExpatError, ValueError):
        doc = None
    if isinstance(doc, dict):
        return [(key, doc.get(key)) for key in keys]
    lines = [line.strip() for _, line in grep_lines(path, "|".join(keys), after=1)]
    return list(zip(lines[::2], lines[1::2]))


def stamp_ios(root, info, editor, logger, project_name=None) -> Optional[PlatformResult]:
    plist = find_info_plist(root, project_name)
    if not plist:
        logger.warning("iOS Info.plist not found - skipping iOS.", extra={"platform": IOS})
        return None
    logger.info("Found iOS plist: %s", plist, extra={"platform": IOS, "path": plist})
    if editor.name == "lines":
        logger.warning("Structured plist editing disabled - falling back to line substitution.",
                       extra={"platform": IOS, "editor": editor.name})

    editor.set_values(plist, {
        ("CFBundleShortVersionString",): info.version,
        ("CFBundleVersion",): info.code,
    })
    remove_backup(plist)
    logger.info('CFBundleShortVersionString (Bundle Version String) → "%s"', info.version,
                extra={"platform": IOS, "field": "CFBundleShortVersionString",
                       "value": info.version, "editor": editor.name})
    logger.info('CFBundleVersion → "%s"', info.code,
                extra={"platform": IOS, "field": "CFBundleVersion",
                       "value": info.code, "editor": editor.name})

    logger.info("── iOS verification ──")
    for key, value in read_plist_keys(plist, ("CFBundleShortVersionString", "CFBundleVersion")):
        logger.info("%s = %s", key, value)
    return PlatformResult(IOS, plist, editor.name,
                          ["CFBundleShortVersionString", "CFBundleVersion"])


def stamp_expo(root, info, editor, logger) -> Optional[PlatformResult]:
    app_json = os.path.join(root, "app.json")
    if not os.path.isfile(app_json):
        # Expo is optional; only the native platforms warn when missing
        logger.debug("No Expo app.json at %s.", app_json, extra={"platform": EXPO})
        return None
    logger.info("Found Expo app.json: %s", app_json, extra={"platform": EXPO, "path": app_json})

    editor.set_values(app_json, {
        ("expo", "version"): info.version,
        ("expo", "ios", "buildNumber"): info.code,
        ("expo", "android", "versionCode"): int(info.code),
    })
    logger.info('app.json → version: "%s", buildNumber: "%s", versionCode: %s',
                info.version, info.code, info.code,
                extra={"platform": EXPO, "editor": editor.name})

    logger.info("── Expo verification ──")
    for line in read_text(app_json).splitlines():
        logger.info("%s", line)
    return PlatformResult(EXPO, app_json, editor.name,
                          ["expo.version", "expo.ios.buildNumber", "expo.android.versionCode"])
