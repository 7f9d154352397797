"""Retrieval of documents published by peers.

A peer publishes their document by pushing it to a public GitHub
repository.  Subscribers know the browsable repository URL; the fetcher
rewrites it to the raw-content URL of the document on the default branch
and downloads it with ``requests``.

Every failure raises a ``PeerFetchError`` subclass so callers can treat
the peer as unreachable without inspecting transport details.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass

import requests

from command_tracker.sync.models import Document
from command_tracker.sync.store import (
    DEFAULT_DOCUMENT_NAME,
    DocumentFormatError,
    document_from_payload,
)

logger = logging.getLogger(__name__)

DEFAULT_RAW_BASE_URL = "https://raw.githubusercontent.com"
DEFAULT_BRANCH = "main"
_CHUNK_SIZE = 16 * 1024

_REPO_PATTERN = re.compile(r"github\.com/([^/]+)/([^/]+)", re.IGNORECASE)
_REMOTE_OWNER_PATTERN = re.compile(r"github\.com[:/]([^/]+)/", re.IGNORECASE)


class PeerFetchError(Exception):
    """Base class for failures retrieving a peer document."""


class PeerHTTPError(PeerFetchError):
    """The peer document URL answered with a non-success status."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(f"Status Code: {status_code} for {url}")
        self.url = url
        self.status_code = status_code


class PeerPayloadError(PeerFetchError):
    """The peer document could not be parsed."""


class PeerUnavailableError(PeerFetchError):
    """Connection failure or timeout talking to the peer host."""


@dataclass(frozen=True)
class PeerRepository:
    """A peer's GitHub repository, parsed from its browsable URL."""

    username: str
    repo: str
    url: str

    @property
    def full_name(self) -> str:
        return f"{self.username}/{self.repo}"

    def raw_url(
        self,
        base_url: str = DEFAULT_RAW_BASE_URL,
        branch: str = DEFAULT_BRANCH,
        document_name: str = DEFAULT_DOCUMENT_NAME,
    ) -> str:
        """Raw-content URL of the peer's document on *branch*."""
        return (
            f"{base_url.rstrip('/')}/{self.username}/{self.repo}"
            f"/{branch}/{document_name}"
        )


def normalize_repo_url(url: str) -> str:
    """Trim whitespace, a trailing slash and a ``.git`` suffix.

    Raises:
        ValueError: If the URL is not an http(s) URL.
    """
    clean = url.strip().rstrip("/")
    if clean.endswith(".git"):
        clean = clean[: -len(".git")]
    if not clean.lower().startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid repository URL '{url}': must start with http:// or https://"
        )
    return clean


def parse_repo_url(url: str) -> PeerRepository:
    """Validate and normalise a browsable GitHub repository URL.

    Raises:
        ValueError: If the URL is not of the form
            ``https://github.com/<user>/<repo>``.
    """
    clean = normalize_repo_url(url)
    match = _REPO_PATTERN.search(clean)
    if not match:
        raise ValueError(
            f"Invalid GitHub repository URL '{url}': expected https://github.com/<user>/<repo>"
        )
    return PeerRepository(
        username=match.group(1).lower(),
        repo=match.group(2),
        url=clean,
    )


def username_from_remote(remote_url: str) -> str | None:
    """Owner of a GitHub remote (https or ssh form), lowercased."""
    match = _REMOTE_OWNER_PATTERN.search(remote_url.strip())
    return match.group(1).lower() if match else None


class PeerFetcher:
    """Download peer documents over HTTPS.

    Args:
        timeout: Seconds allowed for the whole request, connection and
            body included; a timeout is reported as ``PeerUnavailableError``.
        base_url: Raw-content host.
        branch: Branch the peer publishes from.
        document_name: File name of the published document.
        session: Optional ``requests.Session`` (tests inject a fake).
    """

    def __init__(
        self,
        timeout: float = 10.0,
        base_url: str = DEFAULT_RAW_BASE_URL,
        branch: str = DEFAULT_BRANCH,
        document_name: str = DEFAULT_DOCUMENT_NAME,
        session: requests.Session | None = None,
    ) -> None:
        self.timeout = timeout
        self.base_url = base_url
        self.branch = branch
        self.document_name = document_name
        self._session = session or requests.Session()

    def raw_url_for(self, repository: PeerRepository) -> str:
        return repository.raw_url(
            self.base_url, self.branch, self.document_name
        )

    def fetch_repository(self, repository: PeerRepository) -> Document:
        """Fetch the document published in *repository*."""
        return self.fetch(self.raw_url_for(repository))

    def fetch(self, url: str) -> Document:
        """Fetch and parse the document at a raw-content *url*.

        ``timeout`` bounds the whole download, not only each socket read,
        so a server trickling bytes cannot hold up a refresh batch.

        Raises:
            PeerHTTPError: Non-200 response.
            PeerPayloadError: Body is not a valid document.
            PeerUnavailableError: Connection error or timeout.
        """
        logger.debug("Fetching peer document %s", url)
        deadline = time.monotonic() + self.timeout
        try:
            response = self._session.get(
                url, timeout=(self.timeout, self.timeout), stream=True
            )
            try:
                if response.status_code != 200:
                    raise PeerHTTPError(url, response.status_code)
                body = self._read_body(response, url, deadline)
            finally:
                response.close()
        except requests.Timeout as exc:
            raise PeerUnavailableError(
                f"Timed out after {self.timeout}s fetching {url}"
            ) from exc
        except requests.RequestException as exc:
            raise PeerUnavailableError(
                f"Connection error fetching {url}: {exc}"
            ) from exc

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise PeerPayloadError(
                f"Peer document at {url} is not valid JSON"
            ) from exc

        try:
            return document_from_payload(payload)
        except DocumentFormatError as exc:
            raise PeerPayloadError(
                f"Peer document at {url} is malformed: {exc}"
            ) from exc

    def _read_body(
        self, response: requests.Response, url: str, deadline: float
    ) -> bytes:
        chunks: list[bytes] = []
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise PeerUnavailableError(
                    f"Timed out after {self.timeout}s fetching {url}"
                )
        return b"".join(chunks)
