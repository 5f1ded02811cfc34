"""HTTP helpers: single-attempt GETs with a bounded timeout."""

from __future__ import annotations

import json
import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from . import FetchError, __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"tomcat-setup/{__version__}"


def _open(url: str, timeout: float, accept: str | None = None):
    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept
    req = urllib.request.Request(url, headers=headers)
    logger.debug(f"GET {url}")
    return urllib.request.urlopen(req, timeout=timeout)


def fetch_text(url: str, timeout: float = 30.0) -> str:
    """GET a URL and return the body decoded as UTF-8."""
    try:
        with _open(url, timeout) as resp:
            return resp.read().decode("utf-8", errors="replace")
    except (urllib.error.URLError, OSError) as e:
        raise FetchError(f"Request to {url} failed: {e}") from e


def fetch_json(url: str, timeout: float = 30.0) -> Any:
    """GET a URL and parse the body as JSON."""
    try:
        with _open(url, timeout, accept="application/vnd.github+json") as resp:
            return json.loads(resp.read())
    except (urllib.error.URLError, OSError) as e:
        raise FetchError(f"Request to {url} failed: {e}") from e
    except json.JSONDecodeError as e:
        raise FetchError(f"Invalid JSON from {url}: {e}") from e


def download_to(url: str, dest: str | Path, timeout: float = 30.0) -> None:
    """Stream a URL into dest, overwriting it."""
    try:
        with _open(url, timeout) as resp, open(dest, "wb") as out:
            shutil.copyfileobj(resp, out)
    except (urllib.error.URLError, OSError) as e:
        raise FetchError(f"Download of {url} failed: {e}") from e
