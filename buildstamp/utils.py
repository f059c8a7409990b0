import os
import re
import tempfile

from .errors import EditorError


def path_in(folder, *parts):
    """Generate an absolute path for ``parts`` inside ``folder``.

    A ``ValueError`` is raised if the resulting path would escape the target
    ``folder``. Project names come from the environment, so a value like
    ``../../etc`` must not steer the search outside the project tree.
    """

    base = os.path.abspath(folder)
    path = os.path.abspath(os.path.join(base, *parts))
    if not path.startswith(base + os.sep):
        raise ValueError("invalid path")
    return path


def atomic_write(path, data, mode="w"):
    """Replace ``path`` with ``data`` via a temp file in the same directory."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp = tempfile.mkstemp(prefix=".buildstamp-", dir=directory)
    try:
        kwargs = {} if "b" in mode else {"encoding": "utf-8", "newline": ""}
        with os.fdopen(fd, mode, **kwargs) as f:
            f.write(data)
        if os.path.exists(path):
            os.chmod(tmp, os.stat(path).st_mode & 0o7777)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise
    return path


def remove_backup(path, suffix=".bak"):
    """Delete a ``<path>.bak`` artifact left behind by in-place editors."""
    backup = path + suffix
    if os.path.exists(backup):
        os.remove(backup)
        return True
    return False


def read_text(path, newline=None):
    """Read a UTF-8 target, reporting unreadable or undecodable files as ``EditorError``."""
    try:
        with open(path, "r", encoding="utf-8", newline=newline) as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise EditorError(path, f"cannot read as UTF-8 text ({e})") from e


def grep_lines(path, pattern, after=0):
    """Return ``(lineno, line)`` pairs matching ``pattern``, like ``grep -n -A``."""
    rx = re.compile(pattern)
    lines = read_text(path).splitlines()
    out = []
    seen = set()
    for i, line in enumerate(lines):
        if not rx.search(line):
            continue
        for j in range(i, min(i + after + 1, len(lines))):
            if j not in seen:
                seen.add(j)
                out.append((j + 1, lines[j]))
    return out
