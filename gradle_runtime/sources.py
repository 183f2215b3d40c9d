"""Descriptor sources: turn a stream or a URL into descriptor bytes."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlparse

import httpx
import structlog

from gradle_runtime.exceptions import DescriptorError, DescriptorNotFoundError

log = structlog.get_logger("gradle_runtime.sources")


def read_stream(stream: BinaryIO, *, label: str | None = None) -> bytes:
    """Read a binary stream to the end. The stream is not closed."""
    try:
        data = stream.read()
    except OSError as exc:
        raise DescriptorError(f"cannot read descriptor stream: {exc}", descriptor=label) from exc
    if isinstance(data, str):
        raise DescriptorError("descriptor stream must be opened in binary mode", descriptor=label)
    return data


def read_url(url: str, *, client: httpx.Client | None = None, timeout: float = 30.0) -> bytes:
    """Fetch descriptor bytes from an ``http``, ``https`` or ``file`` URL."""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme == "file":
        return _read_file_url(url, parsed.path)
    if scheme not in ("http", "https"):
        raise DescriptorError(f"unsupported URL scheme {parsed.scheme!r}", descriptor=url)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        resp = client.get(url)
    except httpx.HTTPError as exc:
        raise DescriptorError(f"cannot fetch descriptor: {exc}", descriptor=url) from exc
    finally:
        if owns_client:
            client.close()

    if resp.status_code == 404:
        raise DescriptorNotFoundError("descriptor not found (HTTP 404)", descriptor=url)
    if resp.status_code >= 400:
        raise DescriptorError(f"cannot fetch descriptor (HTTP {resp.status_code})", descriptor=url)
    log.debug("sources.fetched", url=url, size=len(resp.content))
    return resp.content


def _read_file_url(url: str, path: str) -> bytes:
    target = Path(unquote(path))
    if not target.is_file():
        raise DescriptorNotFoundError("descriptor file does not exist", descriptor=url)
    try:
        return target.read_bytes()
    except OSError as exc:
        raise DescriptorError(f"cannot read descriptor: {exc}", descriptor=url) from exc
