"""In-memory history of generated icons and favorites."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from client.handles import ObjectUrlRegistry


logger = logging.getLogger(__name__)

FILENAME_PROMPT_CHARS = 20
_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png"}


@dataclass(frozen=True)
class HistoryEntry:
    image_handle: str
    prompt: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def download_filename(prompt: str, content_type: str = "image/png") -> str:
    """File name for a saved icon: ``icon-<first 20 prompt chars>.<ext>``."""
    stem = re.sub(r"\s+", "-", prompt[:FILENAME_PROMPT_CHARS]) or "generated"
    extension = _EXTENSIONS.get(content_type, "png")
    return f"icon-{stem}.{extension}"


class GenerationHistory:
    """Owns the handles of successful generations until ``close``.

    Entries are kept newest first. Favorites reference entries and never own
    handles themselves.
    """

    def __init__(self, registry: ObjectUrlRegistry) -> None:
        self.registry = registry
        self._entries: list[HistoryEntry] = []
        self._favorite_ids: list[str] = []
        self._closed = False

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    @property
    def favorites(self) -> list[HistoryEntry]:
        by_id = {entry.id: entry for entry in self._entries}
        return [by_id[i] for i in self._favorite_ids if i in by_id]

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, image_handle: str, prompt: str) -> HistoryEntry:
        """Take ownership of ``image_handle`` and record it."""
        if self._closed:
            raise RuntimeError("GenerationHistory is closed")
        entry = HistoryEntry(image_handle=image_handle, prompt=prompt)
        self._entries.insert(0, entry)
        return entry

    def get(self, entry_id: str) -> HistoryEntry:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def is_favorite(self, entry_id: str) -> bool:
        return entry_id in self._favorite_ids

    def toggle_favorite(self, entry_id: str) -> bool:
        """Flip favorite state; returns True when the entry is now a favorite."""
        self.get(entry_id)
        if entry_id in self._favorite_ids:
            self._favorite_ids.remove(entry_id)
            return False
        self._favorite_ids.insert(0, entry_id)
        return True

    def export(self, entry_id: str, directory: Path) -> Path:
        """Write an entry's image bytes into ``directory`` and return the path."""
        entry = self.get(entry_id)
        blob = self.registry.resolve(entry.image_handle)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / download_filename(entry.prompt, blob.content_type)
        path.write_bytes(blob.data)
        logger.info("Exported icon %s to %s", entry.id, path)
        return path

    def close(self) -> None:
        """Release every entry handle; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for entry in self._entries:
            self.registry.release(entry.image_handle)
        logger.debug("Released %d history handles", len(self._entries))
        self._entries.clear()
        self._favorite_ids.clear()
