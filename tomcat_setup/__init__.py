"""Tomcat setup tool for LabWare LIMS development machines."""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path

__version__ = "1.0.0"

_SUFFIX_RE = re.compile(r"^([0-9.]+)(?:-(.+))?$")


class TomcatSetupError(Exception):
    """Base class for errors reported by the setup tool."""


class ResolutionError(TomcatSetupError):
    """A version could not be determined from the distribution index."""


class FetchError(TomcatSetupError):
    """A remote resource could not be fetched."""


class NoMatchingAssetError(FetchError):
    """A release has no asset matching any of the requested patterns."""


class PrivilegeError(TomcatSetupError):
    """Administrative privileges could not be obtained."""


class InstallError(TomcatSetupError):
    """An installation step could not complete."""


def version_key(version_str: str) -> tuple[tuple[int, ...], int, str]:
    """Sort key for Tomcat version strings like '9.10.1' or '11.0.0-M1'.

    Numeric segments compare as integers, so '9.9.5' < '9.10.1'. For equal
    numeric parts a release sorts above any pre-release suffix, and
    suffixes compare lexically among themselves.
    """
    match = _SUFFIX_RE.match(version_str.strip().lstrip("v"))
    if not match:
        return ((0,), 0, version_str)
    base, suffix = match.group(1), match.group(2) or ""
    numbers = tuple(int(p) for p in base.split(".") if p)
    return (numbers, 0 if suffix else 1, suffix)


@dataclass(frozen=True)
class VersionSpec:
    major: str
    minor: str = ""

    def with_minor(self, minor: str) -> VersionSpec:
        return replace(self, minor=minor)


@dataclass(frozen=True)
class ReleaseAsset:
    download_url: str
    filename: str

    @classmethod
    def from_url(cls, url: str) -> ReleaseAsset:
        return cls(download_url=url, filename=url.rstrip("/").rsplit("/", 1)[-1])


@dataclass(frozen=True)
class DriverSource:
    """A JDBC driver published as a GitHub release asset."""

    name: str
    owner: str
    repo: str
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class Settings:
    """Values loaded from the TOML configuration (see config_loader)."""

    java_version: str = "21"
    index_url: str = "https://dlcdn.apache.org/tomcat/"
    install_root: str = "/opt"
    service_user: str = "tomcat"
    service_group: str = "tomcat"
    shared_temp_dir: str = "/opt/webtemp"
    java_opts: str = "-Djava.awt.headless=true -Xms512m -Xmx1024m"
    upgrade_packages: bool = True
    extra_packages: tuple[str, ...] = ()
    timeout: float = 30.0
    drivers: tuple[DriverSource, ...] = ()
    log_level: str = "WARNING"


@dataclass(frozen=True)
class RunConfig:
    """Everything decided at startup, passed explicitly to each component."""

    version: VersionSpec | None
    uninstall: bool = False
    debug: bool = False
    current_user: str = ""
    settings: Settings = field(default_factory=Settings)

    @property
    def major(self) -> str:
        if self.version is None:
            raise TomcatSetupError("No Tomcat major version selected")
        return self.version.major

    @property
    def install_dir(self) -> Path:
        return Path(self.settings.install_root) / f"tomcat{self.major}"

    @property
    def service_name(self) -> str:
        return f"tomcat{self.major}.service"

    @property
    def unit_path(self) -> Path:
        return Path("/etc/systemd/system") / self.service_name

    @property
    def automated(self) -> bool:
        """--debug switches every decision point to its unattended branch."""
        return self.debug
