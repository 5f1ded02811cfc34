"""Fresh install orchestration for Tomcat."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from . import FetchError, InstallError
from .drivers import install_drivers
from .net import download_to
from .tempfiles import TempFileRegistry
from .ui import (
    print_error,
    print_header,
    print_info,
    print_step,
    print_success,
    print_warning,
)

if TYPE_CHECKING:
    from . import RunConfig
    from .system import SystemOps

logger = logging.getLogger(__name__)

BASE_PACKAGES = ["acl", "curl", "wget", "lsb-release", "jq"]

# Subdirectories where file drops by group members must keep group access
GROUP_WRITABLE_DIRS = ("conf", "lib", "webapps")

# Failures of external tools and the filesystem; anything else is a bug
SYSTEM_ERRORS = (subprocess.CalledProcessError, OSError)

STEP_ERRORS = (*SYSTEM_ERRORS, FetchError, InstallError)


@dataclass
class InstallContext:
    """Mutable state shared by the install steps of one run."""

    cfg: RunConfig
    system: SystemOps
    temp_files: TempFileRegistry
    failed_drivers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Step:
    name: str
    action: Callable[[InstallContext], None]


# ---------------------------------------------------------------------------
# Generated files
# ---------------------------------------------------------------------------

def archive_url(cfg: RunConfig) -> str:
    index = cfg.settings.index_url.rstrip("/")
    minor = cfg.version.minor
    return f"{index}/tomcat-{cfg.major}/v{minor}/bin/apache-tomcat-{minor}.tar.gz"


def render_setenv(cfg: RunConfig) -> str:
    return f'export JAVA_OPTS="{cfg.settings.java_opts}"\n'


def render_unit_file(cfg: RunConfig, java_home: str) -> str:
    install_dir = cfg.install_dir
    settings = cfg.settings
    return f"""[Unit]
Description=Apache Tomcat {cfg.major} Web Application Server
After=network.target

[Service]
Type=forking
User={settings.service_user}
Group={settings.service_group}
Environment="JAVA_HOME={java_home}"
Environment="CATALINA_HOME={install_dir}"
Environment="CATALINA_BASE={install_dir}"
Environment="CATALINA_PID={install_dir}/temp/tomcat.pid"
ExecStart={install_dir}/bin/startup.sh
ExecStop={install_dir}/bin/shutdown.sh
RestartSec=10
Restart=always

[Install]
WantedBy=multi-user.target
"""


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def install_dependencies(ctx: InstallContext) -> None:
    settings = ctx.cfg.settings
    packages = [f"openjdk-{settings.java_version}-jdk", *BASE_PACKAGES, *settings.extra_packages]
    print_info(f"Installing: {' '.join(packages)}")
    ctx.system.install_packages(packages, upgrade=settings.upgrade_packages)
    print_success("Dependencies installed")


def download_and_extract(ctx: InstallContext) -> None:
    cfg = ctx.cfg
    url = archive_url(cfg)
    archive = ctx.temp_files.new(suffix=".tar.gz")
    try:
        print_info(f"Download URL: {url}")
        download_to(url, archive, cfg.settings.timeout)
        ctx.system.make_dirs(cfg.install_dir)
        ctx.system.extract_archive(archive, cfg.install_dir, strip_components=1)
    finally:
        ctx.temp_files.release(archive)
    print_success(f"Extraction successful. Tomcat installed in {cfg.install_dir}.")


def create_user_and_group(ctx: InstallContext) -> None:
    settings = ctx.cfg.settings
    user, group = settings.service_user, settings.service_group
    system = ctx.system

    system.create_group(group)
    if system.user_exists(user):
        print_success(f"Service user '{user}' already exists")
    else:
        system.create_user(user, group, ctx.cfg.install_dir)
        print_success(f"System user '{user}' created")
    system.set_owner(ctx.cfg.install_dir, user, group)


def set_directory_permissions(ctx: InstallContext) -> None:
    group = ctx.cfg.settings.service_group
    for name in GROUP_WRITABLE_DIRS:
        path = ctx.cfg.install_dir / name
        print_info(f"Setting permissions for the {name} directory.")
        ctx.system.make_group_writable(path)
        ctx.system.apply_default_acl(path, group)


def create_labware_dirs(ctx: InstallContext) -> None:
    settings = ctx.cfg.settings
    system = ctx.system
    catalina = ctx.cfg.install_dir / "conf" / "Catalina"
    localhost = catalina / "localhost"

    print_info(f"Creating {localhost} and {settings.shared_temp_dir}.")
    system.make_dirs(localhost)
    system.make_dirs(settings.shared_temp_dir)
    system.set_owner(catalina, settings.service_user, settings.service_group)
    system.set_owner(settings.shared_temp_dir, settings.service_user, settings.service_group)
    system.apply_default_acl(localhost, settings.service_group)
    system.apply_default_acl(settings.shared_temp_dir, settings.service_group)


def add_current_user_to_group(ctx: InstallContext) -> None:
    user = ctx.cfg.current_user
    group = ctx.cfg.settings.service_group
    if not user or user == "root":
        print_warning(f"No regular user to add to the '{group}' group (running as root).")
        return
    print_info(f"Adding user '{user}' to the '{group}' group.")
    ctx.system.add_user_to_group(user, group)


def install_jdbc_drivers(ctx: InstallContext) -> None:
    ctx.failed_drivers = install_drivers(ctx.cfg, ctx.system, ctx.temp_files)


def configure_memory(ctx: InstallContext) -> None:
    settings = ctx.cfg.settings
    setenv = ctx.cfg.install_dir / "bin" / "setenv.sh"
    ctx.system.write_file(
        setenv, render_setenv(ctx.cfg),
        settings.service_user, settings.service_group, 0o755,
    )
    print_success(f"Memory settings configured in {setenv}.")


def create_service(ctx: InstallContext) -> None:
    cfg = ctx.cfg
    java_home = ctx.system.java_home(cfg.settings.java_version)
    if not java_home:
        raise InstallError(f"Could not determine JAVA_HOME for OpenJDK {cfg.settings.java_version}.")
    logger.debug(f"JAVA_HOME={java_home}")
    ctx.system.write_file(cfg.unit_path, render_unit_file(cfg, java_home), "root", "root", 0o644)
    print_success(f"Service file written to {cfg.unit_path}")


def enable_and_start_service(ctx: InstallContext) -> None:
    name = ctx.cfg.service_name
    system = ctx.system
    system.daemon_reload()
    system.enable_service(name)
    system.start_service(name)
    status = system.service_status(name)
    if status:
        print(status.rstrip())
    print_success("Tomcat service is created, enabled, and started.")


INSTALL_STEPS: tuple[Step, ...] = (
    Step("Install dependencies", install_dependencies),
    Step("Download and install Tomcat", download_and_extract),
    Step("Create dedicated user and group", create_user_and_group),
    Step("Set directory permissions", set_directory_permissions),
    Step("Create Catalina and webtemp directories", create_labware_dirs),
    Step("Add current user to the service group", add_current_user_to_group),
    Step("Download and install JDBC drivers", install_jdbc_drivers),
    Step("Configure Tomcat memory settings", configure_memory),
    Step("Create systemd service", create_service),
    Step("Enable and start Tomcat service", enable_and_start_service),
)


def run_steps(ctx: InstallContext, steps: tuple[Step, ...] = INSTALL_STEPS) -> None:
    """Run steps in order, stopping at the first failure.

    Earlier steps are not rolled back; every step tolerates the partial
    state a failed run can leave behind.
    """
    for number, step in enumerate(steps, 1):
        print_step(number, len(steps), step.name)
        try:
            step.action(ctx)
        except STEP_ERRORS as e:
            logger.debug(f"Step {step.name!r} failed", exc_info=True)
            print_error(f"Step '{step.name}' failed: {e}")
            raise SystemExit(1)


def run_install(cfg: RunConfig, system: SystemOps, temp_files: TempFileRegistry) -> InstallContext:
    """Run a fresh installation of cfg.version."""
    ctx = InstallContext(cfg=cfg, system=system, temp_files=temp_files)
    run_steps(ctx)
    _print_install_summary(ctx)
    return ctx


def _print_install_summary(ctx: InstallContext) -> None:
    cfg = ctx.cfg
    print_header("Setup Complete")
    print(f"Tomcat version: {cfg.version.minor}")
    print(f"Installation directory: {cfg.install_dir}")
    print(f"Service: {cfg.service_name}")
    print()
    print("Service management:")
    print(f"  Start:   sudo systemctl start {cfg.service_name}")
    print(f"  Stop:    sudo systemctl stop {cfg.service_name}")
    print(f"  Status:  sudo systemctl status {cfg.service_name}")
    print(f"  Logs:    sudo journalctl -u {cfg.service_name} -f")
    print()

    if ctx.failed_drivers:
        print_warning(
            f"Installed without these JDBC drivers: {', '.join(ctx.failed_drivers)}"
        )

    print_info("A new terminal session is required for the group changes to take effect.")

    if ctx.system.is_wsl():
        distro = ctx.system.distro_name()
        win_path = "\\\\wsl.localhost\\" + distro + str(cfg.install_dir).replace("/", "\\") + "\\"
        print_info("You can now access the Tomcat directories from Windows File Explorer.")
        print_info(f"Path: {win_path}")
        print_info("Deploy your WebLIMS WAR file to the webapps directory at this location.")

    print()
    if ctx.failed_drivers:
        print_warning("Installation finished with warnings.")
    else:
        print_success("Installation complete!")
