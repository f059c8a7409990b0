import logging
import plistlib
import subprocess
import os, sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from buildstamp.editors import LinePlistEditor, PlistBuddyEditor, PlistlibEditor
from buildstamp.errors import EditorError
from buildstamp.platforms import find_info_plist, stamp_ios
from buildstamp.versioning import BuildInfo

INFO = BuildInfo("2025.01.01-0101", "202501010101")
LOG = logging.getLogger("test.ios")

PLIST = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
\t<key>CFBundleDisplayName</key>
\t<string>Demo</string>
\t<key>CFBundleShortVersionString</key>
\t<string>1.0</string>
\t<key>CFBundleVersion</key>
\t<string>1</string>
</dict>
</plist>
"""


def write_plist(path, text=PLIST):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def read_keys(path):
    with open(path, "rb") as f:
        doc = plistlib.load(f)
    return doc["CFBundleShortVersionString"], doc["CFBundleVersion"]


@pytest.mark.parametrize("editor", [PlistlibEditor(), LinePlistEditor()], ids=["plistlib", "lines"])
def test_keys_read_back_as_overrides(tmp_path, editor):
    path = write_plist(tmp_path / "ios" / "Demo" / "Info.plist")
    result = stamp_ios(str(tmp_path), INFO, editor, LOG, project_name="Demo")
    assert read_keys(path) == ("2025.01.01-0101", "202501010101")
    assert result.editor == editor.name
    assert not (path.parent / "Info.plist.bak").exists()


def test_plistlib_keeps_key_order_and_other_keys(tmp_path):
    path = write_plist(tmp_path / "ios" / "Info.plist")
    PlistlibEditor().set_values(str(path), {("CFBundleVersion",): "9"})
    with open(path, "rb") as f:
        doc = plistlib.load(f)
    assert list(doc) == ["CFBundleDisplayName", "CFBundleShortVersionString", "CFBundleVersion"]
    assert doc["CFBundleDisplayName"] == "Demo"


def test_plistlib_handles_reformatted_document(tmp_path):
    # key and value on one line defeat the line editor but not the parser
    text = PLIST.replace("</key>\n\t<string>", "</key><string>")
    path = write_plist(tmp_path / "ios" / "Info.plist", text)
    PlistlibEditor().set_values(str(path), {("CFBundleShortVersionString",): "2.0"})
    assert read_keys(path)[0] == "2.0"


def test_plistlib_preserves_binary_format(tmp_path):
    path = tmp_path / "Info.plist"
    path.write_bytes(plistlib.dumps({"CFBundleVersion": "1"}, fmt=plistlib.FMT_BINARY))
    PlistlibEditor().set_values(str(path), {("CFBundleVersion",): "2"})
    raw = path.read_bytes()
    assert raw.startswith(b"bplist00")
    assert plistlib.loads(raw)["CFBundleVersion"] == "2"


def test_plistlib_adds_missing_key(tmp_path):
    path = write_plist(tmp_path / "Info.plist", PLIST.replace(
        "\t<key>CFBundleVersion</key>\n\t<string>1</string>\n", ""))
    PlistlibEditor().set_values(str(path), {("CFBundleVersion",): "7"})
    assert read_keys(path)[1] == "7"


def test_plistlib_rejects_garbage(tmp_path):
    path = tmp_path / "Info.plist"
    path.write_text("not a plist", encoding="utf-8")
    with pytest.raises(EditorError):
        PlistlibEditor().set_values(str(path), {("CFBundleVersion",): "7"})
    assert path.read_text(encoding="utf-8") == "not a plist"


def test_line_editor_silently_misses_other_layouts(tmp_path):
    text = PLIST.replace("<key>CFBundleShortVersionString</key>\n", "<key>CFBundleShortVersionString</key>\n\n")
    path = write_plist(tmp_path / "Info.plist", text)
    LinePlistEditor().set_values(str(path), {("CFBundleShortVersionString",): "2.0"})
    assert read_keys(path) == ("1.0", "1")


def test_line_editor_escapes_values(tmp_path):
    path = write_plist(tmp_path / "Info.plist")
    LinePlistEditor().set_values(str(path), {("CFBundleShortVersionString",): "1 & 2"})
    assert read_keys(path)[0] == "1 & 2"


def test_plistbuddy_commands(tmp_path, monkeypatch):
    calls = []

    def fake_run(cmd, capture_output, text):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake_run)
    PlistBuddyEditor().set_values("Info.plist", {("CFBundleVersion",): "202501010101"})
    assert calls == [["/usr/libexec/PlistBuddy", "-c", "Set :CFBundleVersion 202501010101", "Info.plist"]]


def test_plistbuddy_adds_when_set_fails(monkeypatch):
    calls = []

    def fake_run(cmd, capture_output, text):
        calls.append(cmd[2])
        code = 1 if cmd[2].startswith("Set") else 0
        return subprocess.CompletedProcess(cmd, code, "", "Does Not Exist")

    monkeypatch.setattr(subprocess, "run", fake_run)
    PlistBuddyEditor().set_values("Info.plist", {("CFBundleVersion",): "5"})
    assert calls == ["Set :CFBundleVersion 5", "Add :CFBundleVersion string 5"]


def test_plistbuddy_failure_raises(monkeypatch):
    monkeypatch.setattr(
        subprocess, "run",
        lambda cmd, capture_output, text: subprocess.CompletedProcess(cmd, 1, "", "Error Reading File"),
    )
    with pytest.raises(EditorError, match="Error Reading File"):
        PlistBuddyEditor().set_values("Info.plist", {("CFBundleVersion",): "5"})


def test_candidate_order(tmp_path):
    ios = tmp_path / "ios"
    fallback = write_plist(ios / "Info.plist")
    assert find_info_plist(str(tmp_path), "Demo") == str(fallback)
    app = write_plist(ios / "App" / "Info.plist")
    assert find_info_plist(str(tmp_path), "Demo") == str(app)
    named = write_plist(ios / "Demo" / "Info.plist")
    assert find_info_plist(str(tmp_path), "Demo") == str(named)


def test_search_skips_pods_and_build(tmp_path):
    ios = tmp_path / "ios"
    write_plist(ios / "Pods" / "Lib" / "Info.plist")
    write_plist(ios / "build" / "Release" / "Info.plist")
    target = write_plist(ios / "Other" / "Sub" / "Info.plist")
    assert find_info_plist(str(tmp_path), "Demo") == str(target)


def test_search_nothing_found(tmp_path):
    write_plist(tmp_path / "ios" / "Pods" / "Info.plist")
    assert find_info_plist(str(tmp_path), "Demo") is None
    assert find_info_plist(str(tmp_path / "missing"), "Demo") is None


def test_project_name_cannot_escape_ios_dir(tmp_path):
    write_plist(tmp_path / "outside" / "Info.plist")
    (tmp_path / "ios").mkdir()
    assert find_info_plist(str(tmp_path), "../outside") is None


def test_missing_plist_is_skipped(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="test.ios"):
        assert stamp_ios(str(tmp_path), INFO, PlistlibEditor(), LOG) is None
    assert "skipping iOS" in caplog.text


def test_line_editor_rejects_binary_plist(tmp_path):
    path = tmp_path / "Info.plist"
    raw = plistlib.dumps({"CFBundleVersion": "1", "Blob": b"\xff\xfe"}, fmt=plistlib.FMT_BINARY)
    path.write_bytes(raw)
    with pytest.raises(EditorError, match="UTF-8"):
        LinePlistEditor().set_values(str(path), {("CFBundleVersion",): "2"})
    assert path.read_bytes() == raw
