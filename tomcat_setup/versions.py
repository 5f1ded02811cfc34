"""Version discovery against the Apache Tomcat distribution index."""

from __future__ import annotations

import logging
import re

from . import FetchError, ResolutionError, Settings, version_key
from .net import fetch_text

logger = logging.getLogger(__name__)

_MAJOR_RE = re.compile(r'href="tomcat-([0-9]+)/"')


def _index_url(settings: Settings) -> str:
    url = settings.index_url
    return url if url.endswith("/") else url + "/"


def parse_major_versions(listing: str) -> list[str]:
    """Extract major versions from the index page, numerically ascending."""
    found = {m.group(1) for m in _MAJOR_RE.finditer(listing)}
    return sorted(found, key=int)


def parse_minor_versions(listing: str, major: str) -> list[str]:
    """Extract 'v<major>.x.y[-suffix]' entries, without the leading 'v'."""
    pattern = re.compile(rf"v{re.escape(major)}(?:\.[0-9]+)+(?:-[A-Za-z0-9]+)?")
    return [m.group(0)[1:] for m in pattern.finditer(listing)]


def get_available_major_versions(settings: Settings) -> list[str]:
    """Return the published major versions, or [] when the index is unusable."""
    try:
        listing = fetch_text(_index_url(settings), settings.timeout)
    except FetchError as e:
        logger.warning(f"Could not list Tomcat major versions: {e}")
        return []
    majors = parse_major_versions(listing)
    if not majors:
        logger.warning(f"No tomcat-<N>/ entries found at {_index_url(settings)}")
    return majors


def latest_major_version(majors: list[str]) -> str | None:
    if not majors:
        return None
    return max(majors, key=int)


def get_latest_minor_version(major: str, settings: Settings) -> str:
    """Resolve the newest full release for a major version.

    Raises ResolutionError when the listing cannot be fetched or holds no
    matching release; installation cannot proceed without one.
    """
    url = f"{_index_url(settings)}tomcat-{major}/"
    try:
        listing = fetch_text(url, settings.timeout)
    except FetchError as e:
        raise ResolutionError(
            f"Could not determine the latest minor version for Tomcat {major}: {e}"
        ) from e

    candidates = parse_minor_versions(listing, major)
    if not candidates:
        raise ResolutionError(
            f"Could not determine the latest minor version for Tomcat {major}."
        )
    latest = max(candidates, key=version_key)
    logger.debug(f"Tomcat {major} candidates: {sorted(set(candidates), key=version_key)}")
    return latest
