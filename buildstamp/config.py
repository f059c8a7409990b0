import os
from dataclasses import dataclass
from typing import Optional

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "buildstamp.yaml"
PLIST_EDITORS = {"auto", "plistbuddy", "plistlib", "lines"}
JSON_EDITORS = {"auto", "jq", "python"}
# Keys accepted in buildstamp.yaml
FILE_KEYS = {"project_name", "plist_editor", "json_editor", "export_file"}


def default_root(package_dir=None, cwd=None):
    """Project root used when neither --root nor the environment names one.

    A copy vendored into the app repo (e.g. scripts/buildstamp/) resolves to
    the directory above scripts/. An installed copy has no relation to the
    project, so the current working directory is used instead.
    """
    package_dir = os.path.abspath(package_dir or os.path.dirname(__file__))
    parts = package_dir.split(os.sep)
    if "site-packages" in parts or "dist-packages" in parts:
        return os.path.abspath(cwd or os.getcwd())
    return os.path.dirname(os.path.dirname(package_dir))


class Config:
    PROJECT_ROOT = os.environ.get("PROJECT_ROOT") or os.environ.get("AC_REPOSITORY_DIR")
    PROJECT_NAME = os.environ.get("PROJECT_NAME")
    # Appcircle exports through AC_ENV_FILE_PATH, GitHub Actions through GITHUB_ENV
    EXPORT_FILE = os.environ.get("AC_ENV_FILE_PATH") or os.environ.get("GITHUB_ENV")
    LOG_FILE = os.environ.get("LOG_FILE")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    DEFAULT_ROOT = default_root()


@dataclass
class StampConfig:
    """Everything one stamping run needs, passed explicitly to the stamper."""

    root: str
    project_name: Optional[str] = None
    plist_editor: str = "auto"
    json_editor: str = "auto"
    export_file: Optional[str] = None

    def __post_init__(self):
        self.root = os.path.abspath(self.root)
        if self.plist_editor not in PLIST_EDITORS:
            raise ConfigError(
                f"plist_editor must be one of {sorted(PLIST_EDITORS)}, got {self.plist_editor!r}"
            )
        if self.json_editor not in JSON_EDITORS:
            raise ConfigError(
                f"json_editor must be one of {sorted(JSON_EDITORS)}, got {self.json_editor!r}"
            )

    @property
    def ios_project_name(self) -> str:
        return self.project_name or os.path.basename(self.root)


def load_config_file(path) -> dict:
    """Read ``buildstamp.yaml``; a missing file yields an empty mapping."""
    if not path or not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    unknown = set(data) - FILE_KEYS
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(sorted(map(str, unknown)))}")
    return data


def build_config(root=None, project_name=None, plist_editor=None, json_editor=None,
                 export_file=None, config_path=None) -> StampConfig:
    """Merge command line > environment > YAML file > defaults."""
    root = root or Config.PROJECT_ROOT or Config.DEFAULT_ROOT
    if config_path and not os.path.isfile(config_path):
        raise ConfigError(f"Config file not found: {config_path}")
    merged = load_config_file(config_path or os.path.join(root, CONFIG_FILENAME))
    env_values = {"project_name": Config.PROJECT_NAME, "export_file": Config.EXPORT_FILE}
    cli_values = {
        "project_name": project_name,
        "plist_editor": plist_editor,
        "json_editor": json_editor,
        "export_file": export_file,
    }
    for source in (env_values, cli_values):
        merged.update({k: v for k, v in source.items() if v})
    return StampConfig(root=root, **merged)
