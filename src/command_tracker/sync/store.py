"""Document persistence layer.

Reads and writes the canonical ``data.json`` inside the storage
directory.  The file is tracked by git, so it is written as indented JSON
that diffs line by line.

Key design choices:

* **Explicit upgrade step** -- ``upgrade_payload()`` runs once per parse
  and turns every historical shape (a bare entry array, an object without
  ``version``) into the current schema before validation.
* **Lenient validation** -- a malformed entry or subscription is dropped
  with a warning instead of discarding the whole document.
* **Dedup on save** -- ``save()`` always writes at most one entry per
  identity key.
* **Atomic writes** -- see ``file_handler.write_file_atomic``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from command_tracker.file_handler import (
    read_file_with_encoding,
    write_file_atomic,
)
from command_tracker.sync.dedup import deduplicate
from command_tracker.sync.models import (
    SCHEMA_VERSION,
    Document,
    Entry,
    Subscription,
)

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_NAME = "data.json"


class DocumentFormatError(ValueError):
    """Raised when text cannot be interpreted as a document."""


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def upgrade_payload(raw: Any) -> dict[str, Any]:
    """Bring a decoded JSON payload up to the current schema.

    * ``[...]`` (legacy) -> ``{"version": 1, "items": [...],
      "subscriptions": []}``
    * ``{...}`` without ``version`` -> same object at version 1 with
      missing lists defaulted.

    Raises:
        DocumentFormatError: If the payload is neither a list nor an
            object, or claims a newer schema than this code understands.
    """
    if isinstance(raw, list):
        return {"version": SCHEMA_VERSION, "items": raw, "subscriptions": []}
    if not isinstance(raw, dict):
        raise DocumentFormatError(
            f"Expected a JSON object or array, got {type(raw).__name__}"
        )

    version = raw.get("version", SCHEMA_VERSION)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise DocumentFormatError(
            f"Unsupported document version: {version!r}"
        )
    items = raw.get("items") or []
    subscriptions = raw.get("subscriptions") or []
    if not isinstance(items, list) or not isinstance(subscriptions, list):
        raise DocumentFormatError(
            "'items' and 'subscriptions' must be arrays"
        )
    return {
        "version": SCHEMA_VERSION,
        "items": items,
        "subscriptions": subscriptions,
    }


def document_from_payload(raw: Any) -> Document:
    """Validate an already-decoded payload into a ``Document``."""
    payload = upgrade_payload(raw)

    items: list[Entry] = []
    for index, item in enumerate(payload["items"]):
        try:
            items.append(Entry.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping invalid entry #%d: %s", index, exc)

    subscriptions: list[Subscription] = []
    for index, sub in enumerate(payload["subscriptions"]):
        try:
            subscriptions.append(Subscription.model_validate(sub))
        except ValidationError as exc:
            logger.warning(
                "Dropping invalid subscription #%d: %s", index, exc
            )

    return Document(items=items, subscriptions=subscriptions)


def parse_document(text: str) -> Document:
    """Parse document JSON text (current or legacy shape).

    Raises:
        DocumentFormatError: If the text is not valid JSON or has an
            unrecognised top-level shape.
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentFormatError(f"Invalid JSON: {exc}") from exc
    return document_from_payload(raw)


def serialize_document(document: Document) -> str:
    """Render a document the way it is stored on disk."""
    return json.dumps(document.to_json(), indent=2, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class DocumentStore:
    """Load and save the document file in a storage directory.

    Args:
        storage_dir: Directory holding the document (and the git working
            tree).
        document_name: File name of the document inside *storage_dir*.
    """

    def __init__(
        self,
        storage_dir: Path,
        document_name: str = DEFAULT_DOCUMENT_NAME,
    ) -> None:
        self.storage_dir = storage_dir
        self.document_name = document_name

    @property
    def path(self) -> Path:
        return self.storage_dir / self.document_name

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Document:
        """Read the document from disk.

        Never raises for a missing or unreadable file: both are reported
        in the log and treated as an empty document.
        """
        if not self.path.exists():
            return Document()
        try:
            text, _ = read_file_with_encoding(self.path)
        except OSError as exc:
            logger.error("Failed to read %s: %s", self.path, exc)
            return Document()
        if not text.strip():
            return Document()
        try:
            return parse_document(text)
        except DocumentFormatError as exc:
            logger.error("Ignoring malformed document %s: %s", self.path, exc)
            return Document()

    def save(self, document: Document) -> Document:
        """Deduplicate and write *document*, replacing the file whole.

        Creates the storage directory if it does not exist.

        Returns:
            The document as written (after deduplication).
        """
        items = deduplicate(document.items)
        if len(items) != len(document.items):
            logger.info(
                "Dropped %d duplicate entries before saving",
                len(document.items) - len(items),
            )
            document = document.model_copy(update={"items": items})
        write_file_atomic(self.path, serialize_document(document))
        logger.debug(
            "Saved %d entries, %d subscriptions to %s",
            len(document.items),
            len(document.subscriptions),
            self.path,
        )
        return document

    def save_entries(self, items: list[Entry]) -> Document:
        """Save a bare entry list, keeping the subscriptions on disk."""
        existing = self.load()
        return self.save(
            Document(items=items, subscriptions=existing.subscriptions)
        )

    def ensure_exists(self) -> None:
        """Seed an empty document if none is on disk yet."""
        if not self.path.exists():
            self.save(Document())
