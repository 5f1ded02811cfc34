"""JDBC driver download from GitHub release assets."""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any

from . import DriverSource, FetchError, NoMatchingAssetError, ReleaseAsset
from .net import download_to, fetch_json
from .ui import print_error, print_info, print_success, print_warning

if TYPE_CHECKING:
    from . import RunConfig, Settings
    from .system import SystemOps
    from .tempfiles import TempFileRegistry

logger = logging.getLogger(__name__)

GITHUB_LATEST_RELEASE = "https://api.github.com/repos/{owner}/{repo}/releases/latest"


def fetch_release_info(owner: str, repo: str, settings: Settings) -> dict[str, Any]:
    """Fetch the latest release metadata for owner/repo once."""
    url = GITHUB_LATEST_RELEASE.format(owner=owner, repo=repo)
    data = fetch_json(url, settings.timeout)
    if not isinstance(data, dict):
        raise FetchError(f"Unexpected release metadata from {url}")
    return data


def asset_urls(release_info: dict[str, Any]) -> list[str]:
    return [
        a["browser_download_url"]
        for a in release_info.get("assets", [])
        if isinstance(a, dict) and a.get("browser_download_url")
    ]


def select_asset(release_info: dict[str, Any], patterns: list[str] | tuple[str, ...]) -> ReleaseAsset:
    """Pick the asset for the first pattern that matches anything.

    Patterns are regular expressions searched against the full download
    URL; within a pattern the first matching asset wins.
    """
    urls = asset_urls(release_info)
    for pattern in patterns:
        regex = re.compile(pattern)
        for url in urls:
            if regex.search(url):
                logger.debug(f"Pattern {pattern!r} matched {url}")
                return ReleaseAsset.from_url(url)
    raise NoMatchingAssetError(
        f"No release asset matches any of: {', '.join(patterns)}"
    )


def find_and_download_asset(
    cfg: RunConfig,
    system: SystemOps,
    source: DriverSource,
    temp_files: TempFileRegistry,
) -> Path:
    """Download the matching asset and install it into <install_dir>/lib.

    The download goes through a registered temporary file which is removed
    before returning, whether or not the install succeeded.
    """
    settings = cfg.settings
    release_info = fetch_release_info(source.owner, source.repo, settings)
    asset = select_asset(release_info, source.patterns)
    print_info(f"Found {source.name} driver: {asset.filename}")

    dest = cfg.install_dir / "lib" / asset.filename
    tmp = temp_files.new(suffix=".jar")
    try:
        print_info(f"Downloading from: {asset.download_url}")
        download_to(asset.download_url, tmp, settings.timeout)
        system.install_file(
            tmp, dest, settings.service_user, settings.service_group, 0o644,
        )
    finally:
        temp_files.release(tmp)

    print_success(f"{source.name} JDBC driver installed to {dest}")
    return dest


def install_drivers(cfg: RunConfig, system: SystemOps, temp_files: TempFileRegistry) -> list[str]:
    """Install every configured driver. Returns the names of those that failed.

    A failed driver is reported but does not stop the others or the rest
    of the installation.
    """
    failed: list[str] = []
    for source in cfg.settings.drivers:
        print_info(f"Downloading latest {source.name} JDBC driver")
        try:
            find_and_download_asset(cfg, system, source, temp_files)
        except (FetchError, subprocess.CalledProcessError, OSError) as e:
            logger.error(f"{source.name} driver failed: {e}")
            print_error(f"Could not install the {source.name} JDBC driver: {e}")
            print_warning(f"Continuing without the {source.name} driver; copy it into {cfg.install_dir / 'lib'} manually.")
            failed.append(source.name)
    return failed
