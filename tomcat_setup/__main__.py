"""Entry point: python3 -m tomcat_setup [--version MAJOR] [--uninstall] [--debug]"""

from __future__ import annotations

import argparse
import atexit
import logging
import signal
import sys
from dataclasses import replace
from typing import NoReturn

from config_loader import load_config, log_config_sources, settings_from_config

from . import PrivilegeError, ResolutionError, RunConfig, Settings, VersionSpec
from .install_cmd import SYSTEM_ERRORS, run_install
from .state import check_for_existing_install
from .system import LinuxSystem, SystemOps, current_login, ensure_privileges, start_sudo_keepalive
from .tempfiles import TempFileRegistry
from .ui import print_error, print_header, print_info, print_success, prompt_input
from .uninstall_cmd import run_uninstall
from .versions import get_available_major_versions, get_latest_minor_version, latest_major_version

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tomcat-setup",
        description="Install, configure, or remove Apache Tomcat for LabWare LIMS",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--version", nargs="?", const="", default=None, metavar="MAJOR",
        help="Tomcat major version to install or uninstall (e.g. 10)",
    )
    parser.add_argument("--uninstall", action="store_true", help="Remove the given Tomcat version")
    parser.add_argument(
        "--debug", action="store_true",
        help="Unattended mode: no prompts, an existing install is removed and reinstalled",
    )
    parser.add_argument(
        "--config", action="append", default=None,
        help="Path to TOML config file (can be specified multiple times; overrides default config loading)",
    )
    return parser


def configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.getLogger().setLevel(level)


def _handle_signal(signum: int, frame: object) -> None:
    raise SystemExit(128 + signum)


def _version_hint(settings: Settings) -> str:
    return latest_major_version(get_available_major_versions(settings)) or "10"


def _acquire_system() -> SystemOps:
    """Obtain administrative rights and return the real system adapter."""
    sudo = ensure_privileges()
    if sudo:
        start_sudo_keepalive()
    return LinuxSystem(sudo=sudo)


def _select_major(settings: Settings, automated: bool) -> str:
    """Ask for (or, unattended, pick) a major version from the index."""
    available = get_available_major_versions(settings)
    if not available:
        print_error(f"Could not list Tomcat versions from {settings.index_url}")
        raise SystemExit(1)

    latest = latest_major_version(available)
    print_info("Available Tomcat major versions:")
    for version in available:
        print(f"  - Tomcat {version}")
    print()

    if automated:
        print_info(f"Debug mode: selecting the latest major version ({latest}).")
        return latest

    while True:
        choice = prompt_input(f"Please enter the major version to install (e.g., {latest})").strip()
        if choice in available:
            return choice
        print_error("Invalid version. Please select from the list.")


def _print_arguments(args: argparse.Namespace, argv_given: bool) -> None:
    print_header("Argument Parsing")
    if not argv_given:
        print_info("No command-line arguments detected. Proceeding with interactive setup.")
        return
    print_info("Command-line arguments detected.")
    if args.version:
        print(f"  - Target Version: {args.version}")
    if args.uninstall:
        print("  - Action: Uninstall")
    if args.debug:
        print("  - Mode: Debug enabled")


def main(argv: list[str] | None = None) -> None:
    if argv is None:
        argv = sys.argv[1:]
    args, unknown = build_parser().parse_known_args(argv)

    config = load_config(args.config)
    settings = settings_from_config(config)
    configure_logging(settings.log_level)
    log_config_sources(settings)
    if unknown:
        logger.debug(f"Ignoring unrecognised arguments: {unknown}")

    print_info("Starting the end-to-end Tomcat setup for LabWare LIMS.")
    _print_arguments(args, bool(argv))

    if args.version is not None and (not args.version or args.version.startswith("-")):
        print_error(
            f"The --version argument requires a value (e.g., --version {_version_hint(settings)})."
        )
        raise SystemExit(1)
    if args.version is not None and not args.version.isdigit():
        print_error(f"Invalid Tomcat major version: {args.version!r} (expected a number such as 10).")
        raise SystemExit(1)

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGHUP, _handle_signal)

    with TempFileRegistry() as temp_files:
        atexit.register(temp_files.cleanup)
        try:
            _run(args, settings, temp_files)
        except KeyboardInterrupt:
            print_error("Aborted.")
            raise SystemExit(130)
        except EOFError:
            print_error("No answer available on the terminal (end of input). Use --debug for unattended runs.")
            raise SystemExit(1)


def _run(args: argparse.Namespace, settings: Settings, temp_files: TempFileRegistry) -> None:
    print_header("Determine Target Version")
    major = args.version
    if not args.uninstall and not major:
        major = _select_major(settings, args.debug)

    if major:
        print_info(f"Tomcat major version set to: {major}")
    else:
        print_info("No Tomcat version specified (required for uninstall).")

    cfg = RunConfig(
        version=VersionSpec(major) if major else None,
        uninstall=args.uninstall,
        debug=args.debug,
        current_user=current_login(),
        settings=settings,
    )

    print_header("Select Action")
    if cfg.uninstall:
        print_info("Uninstall action selected.")
        if cfg.version is None:
            print_error("The --version argument is required for uninstalling.")
            raise SystemExit(1)
        system = _privileged_system()
        try:
            run_uninstall(cfg, system)
        except SYSTEM_ERRORS as e:
            _report_system_error("Uninstall", e)
        print_success("Uninstall complete.")
        return

    print_info("Install action selected.")
    try:
        minor = get_latest_minor_version(cfg.major, settings)
    except ResolutionError as e:
        print_error(str(e))
        raise SystemExit(1)
    cfg = replace(cfg, version=cfg.version.with_minor(minor))
    print_info(f"Full version for installation: {minor}")

    print_header("Pre-installation Checks")
    system = _privileged_system()
    try:
        check_for_existing_install(cfg, system)
    except SYSTEM_ERRORS as e:
        _report_system_error("Handling the existing installation", e)

    run_install(cfg, system, temp_files)


def _report_system_error(action: str, error: Exception) -> NoReturn:
    logger.debug(f"{action} failed", exc_info=True)
    print_error(f"{action} failed: {error}")
    print_error("The machine may be left partially changed; rerun once the cause is fixed.")
    raise SystemExit(1)


def _privileged_system() -> SystemOps:
    try:
        return _acquire_system()
    except PrivilegeError as e:
        print_error(str(e))
        raise SystemExit(1)


if __name__ == "__main__":
    main()
