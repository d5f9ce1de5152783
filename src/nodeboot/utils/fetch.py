# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nodeboot/utils/fetch.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import requests

from nodeboot.errors import NodebootError

log = logging.getLogger("nodeboot")


class FetchError(NodebootError):
    pass


class HttpFetcher:
    """
    Thin requests wrapper for vendor install scripts and release assets.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get(self, url: str, **kwargs) -> requests.Response:
        log.debug("GET %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"GET {url} failed: {e}") from e
        return resp

    def text(self, url: str) -> str:
        return self._get(url).text

    def json(self, url: str) -> Any:
        resp = self._get(url, headers={"Accept": "application/json"})
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(f"GET {url} did not return JSON") from e

    def download(self, url: str, dest: Path, *, mode: int = 0o644) -> Path:
        """
        Stream *url* into *dest*, creating parent directories.
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        resp = self._get(url, stream=True)
        try:
            with dest.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            raise FetchError(f"download of {url} interrupted: {e}") from e
        finally:
            resp.close()

        dest.chmod(mode)
        log.debug("downloaded %s -> %s", url, dest)
        return dest
