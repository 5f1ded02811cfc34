"""Inspection of an existing installation and the pre-install conflict check."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .ui import print_error, print_info, print_warning, prompt_input

if TYPE_CHECKING:
    from . import RunConfig
    from .system import SystemOps


@dataclass(frozen=True)
class InstallationRecord:
    """What is currently on the machine for one major version."""

    install_exists: bool
    unit_exists: bool
    service_active: bool
    service_enabled: bool
    user_exists: bool
    group_exists: bool
    user_in_group: bool


def inspect_installation(cfg: RunConfig, system: SystemOps) -> InstallationRecord:
    settings = cfg.settings
    return InstallationRecord(
        install_exists=system.path_exists(cfg.install_dir),
        unit_exists=system.path_exists(cfg.unit_path),
        service_active=system.service_active(cfg.service_name),
        service_enabled=system.service_enabled(cfg.service_name),
        user_exists=system.user_exists(settings.service_user),
        group_exists=system.group_exists(settings.service_group),
        user_in_group=bool(cfg.current_user)
        and system.user_in_group(cfg.current_user, settings.service_group),
    )


def check_for_existing_install(cfg: RunConfig, system: SystemOps) -> None:
    """Deal with an install directory left by a previous run.

    Automated mode uninstalls it and returns so the new install proceeds.
    Interactive mode never returns when a directory exists: the user
    either uninstalls or stops the service, and the process exits.
    """
    # Imported here: uninstall_cmd imports this module for inspection.
    from .uninstall_cmd import run_uninstall

    if not system.path_exists(cfg.install_dir):
        return

    print_warning(f"An existing Tomcat installation was found at '{cfg.install_dir}'.")

    if cfg.automated:
        print_warning("Debug mode: the existing installation will be removed and reinstalled.")
        run_uninstall(cfg, system)
        return

    action = prompt_input(
        "Uninstall the existing version, or just stop any running service and exit? (uninstall/stop)"
    ).strip().lower()

    if action == "uninstall":
        run_uninstall(cfg, system)
        print_info("Existing version has been uninstalled. Exiting.")
        raise SystemExit(0)

    if action == "stop":
        if system.service_active(cfg.service_name):
            print_info("Stopping the existing Tomcat service...")
            system.stop_service(cfg.service_name)
        else:
            print_info("Installation directory exists, but the service is not active.")
        print_info("Exiting.")
        raise SystemExit(1)

    print_error("Invalid option. Exiting.")
    raise SystemExit(1)
