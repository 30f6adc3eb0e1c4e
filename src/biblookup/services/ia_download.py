"""Internet Archive download adapter.

Downloads of generated formats are two-phase: :meth:`IaDownloadService.probe`
asks the archive whether the file is ready (HTTP 202 while it is still being
generated) and :meth:`IaDownloadService.download` then fetches the bytes.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import httpx

from biblookup.errors import ProbeRequiredError, TransportError
from biblookup.records.ia_download import IaDownloadMessage
from biblookup.records.serializer import Format
from biblookup.services.base import RemoteService
from biblookup.settings import Settings
from biblookup.utils import slugify

EXTENDED_FILENAME = re.compile(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", flags=re.IGNORECASE)
PLAIN_FILENAME = re.compile(r'filename\s*=\s*("(?:[^"\\]|\\.)*"|[^;]+)', flags=re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    waiting: bool
    ready: bool
    error: bool
    status: int | None = None
    message: str | None = None

    @classmethod
    def from_status(cls, status: int | None, message: str | None = None) -> "ProbeResult":
        match status:
            case 202:
                return cls(waiting=True, ready=False, error=False, status=status, message=message)
            case int() if 200 <= status < 300:
                return cls(waiting=False, ready=True, error=False, status=status, message=message)
            case _:
                return cls(waiting=False, ready=False, error=True, status=status, message=message)


@dataclass(slots=True)
class DownloadedFile:
    url: str
    filename: str
    content_type: str | None
    body: bytes

    def save(self, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / safe_filename(self.filename, _fallback_name(self.url))
        target.write_bytes(self.body)
        return target


def filename_from(content_disposition: str | None) -> str | None:
    """Extract a filename, preferring the RFC 5987 ``filename*`` form."""
    if not content_disposition:
        return None
    if match := EXTENDED_FILENAME.search(content_disposition):
        charset = match.group(1) or "utf-8"
        try:
            return unquote(match.group(2).strip().strip('"'), encoding=charset)
        except LookupError:
            return unquote(match.group(2).strip().strip('"'))
    if match := PLAIN_FILENAME.search(content_disposition):
        value = match.group(1).strip()
        if value.startswith('"') and value.endswith('"'):
            value = re.sub(r"\\(.)", r"\1", value[1:-1])
        return value or None
    return None


def safe_filename(name: str | None, fallback: str) -> str:
    """Reduce a server-supplied name to a bare file name inside the target directory."""
    base = Path((name or "").replace("\\", "/")).name.strip()
    if base in {"", ".", ".."}:
        return fallback
    return base


class IaDownloadService(RemoteService):
    """Probes for and downloads generated Internet Archive files."""

    name = "ia_download"

    def __init__(self, client: httpx.AsyncClient, settings: Settings, **kwargs: Any) -> None:
        super().__init__(client, settings, **kwargs)
        self._ready: set[str] = set()

    def request_headers(self) -> dict[str, str]:
        headers = {}
        if self._settings.ia_access and self._settings.ia_secret:
            headers["Authorization"] = f"LOW {self._settings.ia_access}:{self._settings.ia_secret}"
        cookies = {
            "logged-in-user": self._settings.ia_user_cookie,
            "logged-in-sig": self._settings.ia_sig_cookie,
        }
        cookie = "; ".join(f"{key}={value}" for key, value in cookies.items() if value)
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def probe(self, url: str) -> ProbeResult:
        """Check (and trigger) generation of the file at ``url``."""
        target = self.url_for(url)
        self._logger.info("ia.probe", url=target)
        try:
            response = await self._client.get(
                target,
                headers=self.request_headers(),
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as exc:
            self._logger.warning("ia.probe_failed", url=target, error=str(exc))
            return ProbeResult.from_status(None, str(exc) or type(exc).__name__)
        body = IaDownloadMessage(response.text, format=Format.JSON, status=response.status_code) if response.text else None
        result = ProbeResult.from_status(response.status_code, body.text if body else None)
        if result.ready:
            self._ready.add(target)
        self._logger.info("ia.probe_result", url=target, status=response.status_code, ready=result.ready)
        return result

    async def download(self, url: str) -> DownloadedFile:
        """Fetch the bytes of a file that a prior probe reported ready."""
        target = self.url_for(url)
        if target not in self._ready:
            raise ProbeRequiredError(f"probe {target} before downloading it")
        try:
            async with self._client.stream(
                "GET", target, headers=self.request_headers(), timeout=self.timeout, follow_redirects=True
            ) as stream:
                stream.raise_for_status()
                body = await stream.aread()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            self._logger.warning("ia.download_failed", url=target, status=status)
            raise TransportError(f"HTTP {status} downloading {target}", status=status, service=self.name) from exc
        except httpx.HTTPError as exc:
            self._logger.warning("ia.download_failed", url=target, error=str(exc))
            raise TransportError(str(exc) or type(exc).__name__, service=self.name) from exc
        filename = safe_filename(filename_from(stream.headers.get("content-disposition")), _fallback_name(target))
        self._logger.info("ia.downloaded", url=target, filename=filename, size=len(body))
        return DownloadedFile(
            url=target, filename=filename, content_type=stream.headers.get("content-type"), body=body
        )

    async def retrieve(self, url: str, *, attempts: int = 10, interval: float = 3.0) -> DownloadedFile:
        """Probe until the file is ready, then download it."""
        result = None
        for attempt in range(attempts):
            result = await self.probe(url)
            if result.ready:
                return await self.download(url)
            if result.error:
                break
            self._logger.debug("ia.waiting", url=url, attempt=attempt + 1)
            await asyncio.sleep(interval)
        message = result.message if result else None
        raise TransportError(
            f"{url} not ready: {message or 'gave up waiting'}",
            status=result.status if result else None,
            service=self.name,
        )


def _fallback_name(url: str) -> str:
    name = Path(urlparse(url).path).name
    if "." in name:
        stem, _, suffix = name.rpartition(".")
        return f"{slugify(stem)}.{slugify(suffix)}"
    return slugify(name or url)
