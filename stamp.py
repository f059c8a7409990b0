"""Stamp a UTC timestamp version into Android, iOS and Expo build metadata.

Run it as a CI step before the build::

    BUILD_VERSION=2025.01.01-0101 BUILD_CODE=202501010101 buildstamp --root .

Exit codes: 0 success, 1 no platform files found, 2 bad configuration,
3 a target could not be updated.
"""

import logging
import sys

import click

from buildstamp.config import Config, JSON_EDITORS, PLIST_EDITORS, build_config
from buildstamp.errors import ConfigError, StampError
from buildstamp.exporting import export_variables
from buildstamp.stamper import VersionStamper, format_summary
from buildstamp.versioning import resolve_build_info
from logger import get_console_logger

EXIT_NO_TARGETS = 1
EXIT_FAILED = 3


@click.command()
@click.option("--root", type=click.Path(file_okay=False), help="Project root (default: $PROJECT_ROOT).")
@click.option("--project-name", help="iOS project directory name (default: $PROJECT_NAME).")
@click.option("--version", "build_version", help="Version string (default: $BUILD_VERSION or UTC now).")
@click.option("--code", "build_code", help="Numeric build code (default: $BUILD_CODE or UTC now).")
@click.option("--plist-editor", type=click.Choice(sorted(PLIST_EDITORS)), help="Info.plist backend.")
@click.option("--json-editor", type=click.Choice(sorted(JSON_EDITORS)), help="app.json backend.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file.")
@click.option("--export-file", type=click.Path(dir_okay=False),
              help="Append AC_BUILD_VERSION/AC_BUILD_CODE here for later steps.")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write JSON log lines here.")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
def main(root, project_name, build_version, build_code, plist_editor, json_editor,
         config_path, export_file, log_file, verbose):
    level = logging.DEBUG if verbose else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    log = get_console_logger(level, log_file or Config.LOG_FILE)

    try:
        config = build_config(
            root=root,
            project_name=project_name,
            plist_editor=plist_editor,
            json_editor=json_editor,
            export_file=export_file,
            config_path=config_path,
        )
        info = resolve_build_info(build_version, build_code)
        stamper = VersionStamper(config, log)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    try:
        result = stamper.run(info)
    except (StampError, OSError) as e:
        log.error("Version stamping failed: %s", e, extra={"error": str(e)})
        sys.exit(EXIT_FAILED)

    click.echo()
    click.echo(format_summary(result))

    if not result.ok:
        log.error("No platform files found to update. Ensure the native projects exist.",
                  extra={"updated": 0})
        log.error("For Expo managed projects, run 'npx expo prebuild' first.")
        sys.exit(EXIT_NO_TARGETS)

    try:
        export_variables(result.exports(), config.export_file)
    except OSError as e:
        log.error("Could not export build variables to %s: %s", config.export_file, e,
                  extra={"path": config.export_file, "error": str(e)})
        sys.exit(EXIT_FAILED)
    log.info("Version stamping complete - build may proceed.", extra={"updated": result.updated})


if __name__ == "__main__":
    main()
