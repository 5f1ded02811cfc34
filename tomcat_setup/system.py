"""System operations: subprocess wrappers, privileges, users, files and services."""

from __future__ import annotations

import getpass
import logging
import os
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from . import PrivilegeError
from .ui import print_info, print_success

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Subprocess helpers
# ---------------------------------------------------------------------------

def run_cmd(
    cmd: list[str],
    *,
    check: bool = True,
    capture: bool = False,
    **kwargs,
) -> subprocess.CompletedProcess:
    """Run a command, optionally capturing output."""
    logger.debug(f"Running: {' '.join(cmd)}")
    return subprocess.run(
        cmd,
        check=check,
        capture_output=capture,
        text=True,
        **kwargs,
    )


def current_login() -> str:
    """The person running the tool, even when invoked through sudo."""
    return os.environ.get("SUDO_USER") or os.environ.get("USER") or getpass.getuser()


# ---------------------------------------------------------------------------
# Privileges
# ---------------------------------------------------------------------------

def ensure_privileges() -> bool:
    """Make sure administrative commands can run.

    Returns True when commands must be prefixed with sudo, False when
    already running as root. Raises PrivilegeError otherwise.
    """
    print_info("Checking for administrative privileges...")
    if os.geteuid() == 0:
        print_success("Running as root.")
        return False

    result = run_cmd(["sudo", "-n", "true"], check=False, capture=True)
    if result.returncode == 0:
        print_success("Administrative privileges are active.")
        return True

    print_info("This tool requires administrative privileges. Please enter your password if prompted.")
    result = run_cmd(["sudo", "-v"], check=False)
    if result.returncode != 0:
        raise PrivilegeError("Could not obtain administrative privileges.")
    print_success("Administrative privileges obtained.")
    return True


def _keepalive_loop(interval: float, stop: threading.Event) -> None:
    while not stop.wait(interval):
        result = run_cmd(["sudo", "-n", "true"], check=False, capture=True)
        if result.returncode != 0:
            logger.debug("sudo keep-alive failed; stopping refresh")
            return


def start_sudo_keepalive(interval: float = 60.0) -> threading.Event:
    """Refresh cached sudo credentials in a daemon thread until the process exits.

    Setting the returned event stops the loop early.
    """
    stop = threading.Event()
    thread = threading.Thread(
        target=_keepalive_loop, args=(interval, stop),
        name="sudo-keepalive", daemon=True,
    )
    thread.start()
    return stop


# ---------------------------------------------------------------------------
# System adapter
# ---------------------------------------------------------------------------

class SystemOps(ABC):
    """Everything the installer needs from the host operating system.

    Mutating methods raise subprocess.CalledProcessError (or OSError) on
    failure; inspection methods return plain values.
    """

    # inspection
    @abstractmethod
    def path_exists(self, path: str | Path) -> bool: ...

    @abstractmethod
    def user_exists(self, user: str) -> bool: ...

    @abstractmethod
    def group_exists(self, group: str) -> bool: ...

    @abstractmethod
    def user_in_group(self, user: str, group: str) -> bool: ...

    @abstractmethod
    def service_active(self, name: str) -> bool: ...

    @abstractmethod
    def service_enabled(self, name: str) -> bool: ...

    @abstractmethod
    def java_home(self, java_version: str) -> str | None:
        """JAVA_HOME of the installed OpenJDK release, or None."""
        ...

    @abstractmethod
    def is_wsl(self) -> bool: ...

    @abstractmethod
    def distro_name(self) -> str: ...

    # packages and archives
    @abstractmethod
    def install_packages(self, packages: list[str], *, upgrade: bool = False) -> None: ...

    @abstractmethod
    def extract_archive(self, archive: str | Path, dest: str | Path, strip_components: int = 1) -> None: ...

    # users and groups
    @abstractmethod
    def create_group(self, group: str) -> None: ...

    @abstractmethod
    def create_user(self, user: str, group: str, home: str | Path) -> None: ...

    @abstractmethod
    def add_user_to_group(self, user: str, group: str) -> None: ...

    @abstractmethod
    def remove_user_from_group(self, user: str, group: str) -> None: ...

    @abstractmethod
    def delete_user(self, user: str) -> None: ...

    @abstractmethod
    def delete_group(self, group: str) -> None: ...

    # files
    @abstractmethod
    def make_dirs(self, path: str | Path) -> None: ...

    @abstractmethod
    def remove_tree(self, path: str | Path) -> None: ...

    @abstractmethod
    def remove_file(self, path: str | Path) -> None: ...

    @abstractmethod
    def list_dir(self, path: str | Path) -> list[str]:
        """Entry names in a directory, or [] when it does not exist."""
        ...

    @abstractmethod
    def set_owner(self, path: str | Path, user: str, group: str, *, recursive: bool = True) -> None: ...

    @abstractmethod
    def make_group_writable(self, path: str | Path) -> None: ...

    @abstractmethod
    def apply_default_acl(self, path: str | Path, group: str) -> None:
        """Grant group rwx on path and make new entries inherit it."""
        ...

    @abstractmethod
    def install_file(self, src: str | Path, dest: str | Path, owner: str, group: str, mode: int) -> None: ...

    @abstractmethod
    def write_file(self, dest: str | Path, content: str, owner: str, group: str, mode: int) -> None: ...

    # service manager
    @abstractmethod
    def daemon_reload(self) -> None: ...

    @abstractmethod
    def enable_service(self, name: str) -> None: ...

    @abstractmethod
    def disable_service(self, name: str) -> None: ...

    @abstractmethod
    def start_service(self, name: str) -> None: ...

    @abstractmethod
    def stop_service(self, name: str) -> None: ...

    @abstractmethod
    def service_status(self, name: str) -> str: ...


class LinuxSystem(SystemOps):
    """Debian/Ubuntu with systemd, driven through the usual command-line tools."""

    def __init__(self, *, sudo: bool = False) -> None:
        self._sudo = sudo

    def _admin(self, cmd: list[str], **kwargs) -> subprocess.CompletedProcess:
        if self._sudo:
            cmd = ["sudo", *cmd]
        return run_cmd(cmd, **kwargs)

    def _succeeds(self, cmd: list[str]) -> bool:
        return run_cmd(cmd, check=False, capture=True).returncode == 0

    # inspection

    def path_exists(self, path: str | Path) -> bool:
        return Path(path).exists()

    def user_exists(self, user: str) -> bool:
        return self._succeeds(["id", user])

    def group_exists(self, group: str) -> bool:
        return self._succeeds(["getent", "group", group])

    def user_in_group(self, user: str, group: str) -> bool:
        result = run_cmd(["id", "-nG", user], check=False, capture=True)
        return result.returncode == 0 and group in result.stdout.split()

    def service_active(self, name: str) -> bool:
        return self._succeeds(["systemctl", "is-active", "--quiet", name])

    def service_enabled(self, name: str) -> bool:
        return self._succeeds(["systemctl", "is-enabled", "--quiet", name])

    def java_home(self, java_version: str) -> str | None:
        try:
            result = run_cmd(["update-java-alternatives", "-l"], check=False, capture=True)
        except FileNotFoundError:
            return None
        return parse_java_alternatives(result.stdout, java_version)

    def is_wsl(self) -> bool:
        if os.environ.get("WSL_DISTRO_NAME"):
            return True
        try:
            return "microsoft" in Path("/proc/version").read_text().lower()
        except OSError:
            return False

    def distro_name(self) -> str:
        try:
            result = run_cmd(["lsb_release", "-is"], check=False, capture=True)
        except FileNotFoundError:
            return "Linux"
        return result.stdout.strip() or "Linux"

    # packages and archives

    def install_packages(self, packages: list[str], *, upgrade: bool = False) -> None:
        self._admin(["apt-get", "update"])
        if upgrade:
            self._admin(["apt-get", "upgrade", "-y"])
        self._admin(["apt-get", "install", "-y", *packages])

    def extract_archive(self, archive: str | Path, dest: str | Path, strip_components: int = 1) -> None:
        self._admin([
            "tar", "xzf", str(archive), "-C", str(dest),
            f"--strip-components={strip_components}",
        ])

    # users and groups

    def create_group(self, group: str) -> None:
        self._admin(["groupadd", "--system", "--force", group])

    def create_user(self, user: str, group: str, home: str | Path) -> None:
        self._admin([
            "useradd", "--system", "--no-create-home",
            "-d", str(home), "-g", group, "-s", "/bin/false", user,
        ])

    def add_user_to_group(self, user: str, group: str) -> None:
        self._admin(["usermod", "-aG", group, user])

    def remove_user_from_group(self, user: str, group: str) -> None:
        self._admin(["gpasswd", "-d", user, group], capture=True)

    def delete_user(self, user: str) -> None:
        self._admin(["userdel", user])

    def delete_group(self, group: str) -> None:
        self._admin(["groupdel", group])

    # files

    def make_dirs(self, path: str | Path) -> None:
        self._admin(["mkdir", "-p", str(path)])

    def remove_tree(self, path: str | Path) -> None:
        self._admin(["rm", "-rf", str(path)])

    def remove_file(self, path: str | Path) -> None:
        self._admin(["rm", "-f", str(path)])

    def list_dir(self, path: str | Path) -> list[str]:
        try:
            return sorted(os.listdir(path))
        except OSError:
            return []

    def set_owner(self, path: str | Path, user: str, group: str, *, recursive: bool = True) -> None:
        flags = ["-R"] if recursive else []
        self._admin(["chown", *flags, f"{user}:{group}", str(path)])

    def make_group_writable(self, path: str | Path) -> None:
        self._admin(["chmod", "-R", "g+w", str(path)])

    def apply_default_acl(self, path: str | Path, group: str) -> None:
        self._admin(["setfacl", "-R", "-m", f"g:{group}:rwx", str(path)])
        self._admin(["setfacl", "-Rdm", f"g:{group}:rwx", str(path)])

    def install_file(self, src: str | Path, dest: str | Path, owner: str, group: str, mode: int) -> None:
        self._admin([
            "install", "-o", owner, "-g", group, "-m", format(mode, "o"),
            str(src), str(dest),
        ])

    def write_file(self, dest: str | Path, content: str, owner: str, group: str, mode: int) -> None:
        with tempfile.NamedTemporaryFile("w", prefix="tomcat-setup-", delete=False) as f:
            f.write(content)
            staged = f.name
        try:
            self.install_file(staged, dest, owner, group, mode)
        finally:
            os.unlink(staged)

    # service manager

    def daemon_reload(self) -> None:
        self._admin(["systemctl", "daemon-reload"])

    def enable_service(self, name: str) -> None:
        self._admin(["systemctl", "enable", name])

    def disable_service(self, name: str) -> None:
        self._admin(["systemctl", "disable", name])

    def start_service(self, name: str) -> None:
        self._admin(["systemctl", "start", name])

    def stop_service(self, name: str) -> None:
        self._admin(["systemctl", "stop", name])

    def service_status(self, name: str) -> str:
        result = self._admin(["systemctl", "status", "--no-pager", name], check=False, capture=True)
        return result.stdout


def parse_java_alternatives(listing: str, java_version: str) -> str | None:
    """Pick JAVA_HOME from `update-java-alternatives -l` output.

    Lines look like 'java-1.21.0-openjdk-amd64  2111  /usr/lib/jvm/java-1.21.0-openjdk-amd64'.
    """
    prefix = f"java-1.{java_version}"
    for line in listing.splitlines():
        fields = line.split()
        if len(fields) >= 3 and fields[0].startswith(prefix):
            return fields[2]
    return None
