"""HTTP client for a todo.txt file kept on a remote server (e.g. WebDAV)."""

from __future__ import annotations

import logging
from typing import Iterable

import httpx

from .errors import TaskError

logger = logging.getLogger(__name__)


class RemoteTodoFile:
    """A todo.txt file reachable with plain GET and PUT requests.

    ``fetch_*`` remembers the ``ETag`` the server sent; the next push sends
    it back as ``If-Match`` so a copy changed by another device in between
    is not silently overwritten.
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        headers = {"Content-Type": "text/plain; charset=utf-8"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.etag: str | None = None

    def __enter__(self) -> RemoteTodoFile:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def fetch_text(self) -> str:
        """Download the file. A missing file reads as empty."""
        try:
            resp = self._client.get(self.url)
            if resp.status_code == httpx.codes.NOT_FOUND:
                logger.info("Remote todo file %s does not exist yet", self.url)
                self.etag = None
                return ""
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TaskError(
                f"There was a problem trying to read from {self.url}: {exc}"
            ) from exc

        self.etag = resp.headers.get("ETag")
        logger.debug(
            "Fetched %d bytes from %s (etag %s)", len(resp.content), self.url, self.etag
        )
        try:
            return resp.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TaskError(f"{self.url} is not a UTF-8 text file") from exc

    def fetch_lines(self) -> list[str]:
        return self.fetch_text().splitlines()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def push_lines(self, lines: Iterable[str]) -> None:
        """Upload ``lines`` as the new file content."""
        content = "".join(f"{line}\n" for line in lines)
        headers = {}
        if self.etag:
            headers["If-Match"] = self.etag

        try:
            resp = self._client.put(
                self.url, content=content.encode("utf-8"), headers=headers
            )
            if resp.status_code == httpx.codes.PRECONDITION_FAILED:
                raise TaskError(
                    f"{self.url} was changed by someone else since it was fetched; "
                    "sync again to merge those changes"
                )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TaskError(
                f"There was a problem trying to save {self.url}: {exc}"
            ) from exc

        self.etag = resp.headers.get("ETag")
        logger.debug("Pushed %d bytes to %s", len(content), self.url)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
