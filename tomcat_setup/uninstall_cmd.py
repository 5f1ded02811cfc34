"""Removal of a Tomcat installation, its service, user and group."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .state import InstallationRecord, inspect_installation
from .ui import print_error, print_header, print_info, print_success, print_warning, prompt_yes_no

if TYPE_CHECKING:
    from . import RunConfig
    from .system import SystemOps

logger = logging.getLogger(__name__)


def other_installs(cfg: RunConfig, system: SystemOps) -> list[Path]:
    """Install directories of other major versions under the install root."""
    root = Path(cfg.settings.install_root)
    return [
        root / name for name in system.list_dir(root)
        if name.startswith("tomcat") and name[len("tomcat"):].isdigit()
        and root / name != cfg.install_dir
    ]


def run_uninstall(cfg: RunConfig, system: SystemOps) -> None:
    """Remove the installation of cfg.major.

    The current user leaves the group before the service user and group
    are deleted. Those, and the shared temp area, are kept while another
    major version is still installed.
    """
    settings = cfg.settings
    user, group = settings.service_user, settings.service_group

    print_header(f"Uninstalling Tomcat {cfg.major}")
    if not cfg.automated:
        print_warning("This will permanently delete the Tomcat installation, user, and service.")
        if not prompt_yes_no("Are you sure you want to continue?"):
            print_error("Uninstall cancelled.")
            raise SystemExit(1)

    record = inspect_installation(cfg, system)
    logger.debug(f"Installation state before uninstall: {record}")

    # Service
    if record.service_active:
        print_info(f"Stopping {cfg.service_name}...")
        system.stop_service(cfg.service_name)
    if record.service_enabled:
        print_info(f"Disabling {cfg.service_name}...")
        system.disable_service(cfg.service_name)
    if record.unit_exists:
        system.remove_file(cfg.unit_path)
        system.daemon_reload()
    else:
        print_info("Service file not found.")

    # The service user, group and temp area are shared by every major version
    remaining = other_installs(cfg, system)
    still_used_by = ", ".join(str(p) for p in remaining)

    if remaining:
        print_warning(f"Keeping user and group {user}:{group}: still used by {still_used_by}")
    else:
        _remove_user_and_group(cfg, system, record)

    # Directories
    if record.install_exists:
        print_info(f"Deleting installation directory {cfg.install_dir}...")
        system.remove_tree(cfg.install_dir)
    else:
        print_info(f"Installation directory {cfg.install_dir} not found.")

    shared = settings.shared_temp_dir
    if system.path_exists(shared):
        if remaining:
            print_warning(f"Keeping {shared}: still used by {still_used_by}")
        else:
            print_info(f"Deleting shared temp directory {shared}...")
            system.remove_tree(shared)

    print_success(f"Tomcat {cfg.major} has been uninstalled.")


def _remove_user_and_group(cfg: RunConfig, system: SystemOps, record: InstallationRecord) -> None:
    user, group = cfg.settings.service_user, cfg.settings.service_group

    # Group membership first, so the group is free to be deleted
    if record.user_in_group:
        print_info(f"Removing user {cfg.current_user} from {group} group...")
        system.remove_user_from_group(cfg.current_user, group)

    if record.user_exists:
        print_info(f"Deleting {user} user and group...")
        system.delete_user(user)
        if system.group_exists(group):
            system.delete_group(group)
    else:
        print_info(f"User {user} not found.")
