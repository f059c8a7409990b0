"""Structured document editors.

Each editor takes a document path and a mapping of key paths (tuples of keys)
to values, applies every assignment, and writes the document back. One
implementation exists per backend; :func:`select_plist_editor` and
:func:`select_json_editor` pick the backend once, at startup.
"""

import json
import os
import plistlib
import re
import shutil
import subprocess
from typing import Any, Dict, Tuple
from xml.parsers.expat import ExpatError
from xml.sax.saxutils import escape

from .errors import ConfigError, EditorError
from .utils import atomic_write, read_text

KeyPath = Tuple[str, ...]


class StructuredEditor:
    name = "base"

    @classmethod
    def available(cls) -> bool:
        return True

    def set_values(self, path: str, values: Dict[KeyPath, Any]) -> None:
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


# -- plist --------------------------------------------------------------------


class PlistBuddyEditor(StructuredEditor):
    """Shells out to Apple's PlistBuddy (macOS runners)."""

    name = "plistbuddy"
    TOOL = "/usr/libexec/PlistBuddy"

    @classmethod
    def available(cls) -> bool:
        return os.access(cls.TOOL, os.X_OK)

    def _run(self, command, path):
        return subprocess.run(
            [self.TOOL, "-c", command, path], capture_output=True, text=True
        )

    def set_values(self, path, values):
        for key_path, value in values.items():
            entry = ":" + ":".join(key_path)
            proc = self._run(f"Set {entry} {value}", path)
            if proc.returncode != 0:
                # Set refuses keys that do not exist yet
                proc = self._run(f"Add {entry} string {value}", path)
            if proc.returncode != 0:
                raise EditorError(path, (proc.stderr or proc.stdout).strip() or "PlistBuddy failed")


class PlistlibEditor(StructuredEditor):
    """Parses the plist, assigns by key path and serializes it in its original format."""

    name = "plistlib"

    def set_values(self, path, values):
        with open(path, "rb") as f:
            raw = f.read()
        fmt = plistlib.FMT_BINARY if raw.startswith(b"bplist00") else plistlib.FMT_XML
        try:
            doc = plistlib.loads(raw)
        except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
            raise EditorError(path, f"not a valid property list ({e})") from e
        if not isinstance(doc, dict):
            raise EditorError(path, "top-level object is not a dictionary")
        for key_path, value in values.items():
            _assign(doc, key_path, value, path)
        atomic_write(path, plistlib.dumps(doc, fmt=fmt, sort_keys=False), mode="wb")


class LinePlistEditor(StructuredEditor):
    """Compatibility mode: rewrite the ``<string>`` on the line after ``<key>``.

    Only top-level keys laid out as a key line followed by a value line are
    matched. Anything else is left alone without an error.
    """

    name = "lines"
    STRING_RX = re.compile(r"<string>[^<]*</string>")

    def set_values(self, path, values):
        lines = read_text(path, newline="").splitlines(keepends=True)
        wanted = {}
        for key_path, value in values.items():
            if len(key_path) != 1:
                raise EditorError(path, "line mode only supports top-level keys")
            wanted[f"<key>{escape(key_path[0])}</key>"] = escape(str(value))
        for i, line in enumerate(lines[:-1]):
            for marker, value in wanted.items():
                if marker in line:
                    lines[i + 1] = self.STRING_RX.sub(
                        lambda _m, v=value: f"<string>{v}</string>", lines[i + 1], count=1
                    )
        atomic_write(path, "".join(lines))


# -- json ---------------------------------------------------------------------


class JqEditor(StructuredEditor):
    name = "jq"
    FILTER = "reduce $ops[] as $op (.; setpath($op[0]; $op[1]))"

    @classmethod
    def available(cls) -> bool:
        return shutil.which("jq") is not None

    def set_values(self, path, values):
        ops = [[list(key_path), value] for key_path, value in values.items()]
        proc = subprocess.run(
            ["jq", "--argjson", "ops", json.dumps(ops), self.FILTER, path],
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            raise EditorError(path, proc.stderr.strip() or "jq failed")
        atomic_write(path, proc.stdout)


class PythonJsonEditor(StructuredEditor):
    name = "python"

    def set_values(self, path, values):
        try:
            doc = json.loads(read_text(path))
        except json.JSONDecodeError as e:
            raise EditorError(path, f"invalid JSON ({e})") from e
        if not isinstance(doc, dict):
            raise EditorError(path, "top-level value is not an object")
        for key_path, value in values.items():
            _assign(doc, key_path, value, path)
        atomic_write(path, json.dumps(doc, indent=2, ensure_ascii=False) + "\n")


def _assign(doc, key_path, value, path):
    node = doc
    for key in key_path[:-1]:
        child = node.get(key)
        if child is None:
            child = node[key] = {}
        elif not isinstance(child, dict):
            raise EditorError(path, f"{'.'.join(key_path)}: {key!r} is not a dictionary")
        node = child
    node[key_path[-1]] = value


PLIST_BACKENDS = {cls.name: cls for cls in (PlistBuddyEditor, PlistlibEditor, LinePlistEditor)}
JSON_BACKENDS = {cls.name: cls for cls in (JqEditor, PythonJsonEditor)}


def _select(backends, name, preferred, fallback):
    if name == "auto":
        cls = backends[preferred]
        return cls() if cls.available() else backends[fallback]()
    try:
        cls = backends[name]
    except KeyError:
        raise ConfigError(f"unknown editor {name!r}") from None
    if not cls.available():
        raise ConfigError(f"editor {name!r} is not available on this machine")
    return cls()


def select_plist_editor(name="auto") -> StructuredEditor:
    return _select(PLIST_BACKENDS, name, "plistbuddy", "plistlib")


def select_json_editor(name="auto") -> StructuredEditor:
    return _select(JSON_BACKENDS, name, "jq", "python")
