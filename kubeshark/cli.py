"""Command-line entry point: config, license and version commands."""

from __future__ import annotations

import argparse
import csv
import logging
import os
import sys
from collections.abc import Sequence
from datetime import datetime, timezone
from importlib import metadata

import yaml

from .config_struct import ConfigStruct, create_default_config
from .config_structs import PROGRAM, REGENERATE_CONFIG_NAME
from .settings import (
    DEBUG_FLAG,
    SET_COMMAND_NAME,
    ConfigFlagError,
    default_config_file_path,
    load_config_file,
    merge_flag_value,
    merge_set_flag,
    pretty_yaml,
    write_config,
)

log = logging.getLogger(__name__)

SOFTWARE = "Kubeshark"
DESCRIPTION = "Traffic analyzer for Kubernetes"

try:
    VERSION = metadata.version(PROGRAM)
except metadata.PackageNotFoundError:
    VERSION = "0.0.0"
BRANCH = ""
GIT_COMMIT_HASH = ""
BUILD_TIMESTAMP = ""

_TAP_LIKE_COMMANDS = frozenset({"clean", "console", "pro", "proxy", "scripts", "pprof"})
_SILENT_CONFIG_COMMANDS = frozenset({"manifests", "license"})


class _InvalidConfigError(Exception):
    """The config file exists but cannot be loaded."""


def _common_flags() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        f"--{SET_COMMAND_NAME}",
        action="append",
        metavar="KEY=VALUE",
        default=argparse.SUPPRESS,
        help=f"Override values using --{SET_COMMAND_NAME}",
    )
    common.add_argument(
        "-d",
        f"--{DEBUG_FLAG}",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable debug mode",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    """The argument parser with every command and flag."""
    common = _common_flags()
    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description=(
            f"{SOFTWARE}: {DESCRIPTION}\n"
            "An extensible Kubernetes-aware network sniffer and kernel tracer."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[common],
    )
    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    config_cmd = commands.add_parser(
        "config",
        parents=[common],
        help=f"Generate {SOFTWARE} config with default values",
    )
    config_cmd.add_argument(
        "-r",
        f"--{REGENERATE_CONFIG_NAME}",
        action="store_true",
        default=argparse.SUPPRESS,
        help=(
            "Regenerate the config file with default values to path "
            f"{default_config_file_path()}"
        ),
    )
    commands.add_parser("license", parents=[common], help="Print the license loaded string")
    commands.add_parser("version", parents=[common], help="Print version info")
    return parser


def _split_set_values(raw: Sequence[str]) -> list[str]:
    values: list[str] = []
    for item in raw:
        for row in csv.reader([item]):
            values.extend(row)
    return values


def _apply_flags(config: ConfigStruct, args: argparse.Namespace, cmd_name: str) -> None:
    changed: list[tuple[str, str]] = []
    if getattr(args, DEBUG_FLAG, False):
        changed.append((DEBUG_FLAG, "true"))
    if getattr(args, REGENERATE_CONFIG_NAME, False):
        changed.append((REGENERATE_CONFIG_NAME, "true"))

    for name, value in changed:
        flag_path = [cmd_name, *name.split("-")]
        try:
            merge_flag_value(config, flag_path, ".".join(flag_path), value)
        except ConfigFlagError as err:
            log.warning("%s", err)

    if hasattr(args, SET_COMMAND_NAME):
        try:
            merge_set_flag(config, _split_set_values(getattr(args, SET_COMMAND_NAME)))
        except ConfigFlagError as err:
            log.warning("%s", err)


def _init_config(args: argparse.Namespace, debug: bool) -> tuple[ConfigStruct, str]:
    command = args.command
    config = create_default_config()
    config.tap.debug = debug
    if debug:
        config.log_level = "debug"
    cmd_name = "tap" if command in _TAP_LIKE_COMMANDS else command

    config_file_path = default_config_file_path()
    cwd_config = os.path.join(os.getcwd(), f"{PROGRAM}.yaml")
    try:
        config_file_path = load_config_file(
            config, config_file_path, silent=command in _SILENT_CONFIG_COMMANDS
        )
    except FileNotFoundError:
        pass
    except (OSError, yaml.YAMLError, ValueError) as err:
        failing = cwd_config if os.path.exists(cwd_config) else config_file_path
        raise _InvalidConfigError(
            f"invalid config, {err}\n"
            f"you can regenerate the file by removing it ({failing}) "
            f"and using `{PROGRAM} config -r`"
        ) from err

    _apply_flags(config, args, cmd_name)
    log.debug("Init config is finished. config=%s", config)
    return config, config_file_path


def _run_version(debug: bool) -> int:
    if debug:
        try:
            stamp = int(BUILD_TIMESTAMP)
        except ValueError:
            stamp = 0
        build_time = datetime.fromtimestamp(stamp, timezone.utc)
        log.info(
            "version=%s branch=%s commit-hash=%s build-time=%s",
            VERSION,
            BRANCH,
            GIT_COMMIT_HASH,
            build_time.isoformat(),
        )
    else:
        print(VERSION)
    return 0


def _run_config(config: ConfigStruct, config_file_path: str) -> int:
    if config.config.regenerate:
        try:
            write_config(create_default_config(), config_file_path)
        except OSError as err:
            log.error("Failed generating config with defaults. %s", err)
            return 0
        log.info("Template file written to config path. config-path=%s", config_file_path)
    else:
        try:
            template = pretty_yaml(config)
        except yaml.YAMLError as err:
            log.error("Failed converting config with defaults to YAML. %s", err)
            return 0
        log.debug("Printing template config...")
        sys.stdout.write(template)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    args = build_parser().parse_args(argv)
    debug = bool(getattr(args, DEBUG_FLAG, False))
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")
    logging.getLogger(PROGRAM).setLevel(level)

    if args.command == "version":
        return _run_version(debug)

    try:
        config, config_file_path = _init_config(args, debug)
    except _InvalidConfigError as err:
        log.error("%s", err)
        return 1

    if args.command == "config":
        return _run_config(config, config_file_path)
    if args.command == "license":
        print(config.license)
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())