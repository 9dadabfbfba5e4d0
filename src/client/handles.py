"""Displayable handles for in-memory image data.

A handle plays the role of a browser object URL: an opaque string the UI can
display while the registry keeps the bytes alive. Every handle is released
exactly once; dereferencing or releasing it again afterwards is an error,
so lifecycle bugs surface instead of silently leaking or showing stale data.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass


logger = logging.getLogger(__name__)

HANDLE_SCHEME = "blob:iconstream/"


@dataclass(frozen=True)
class ImageBlob:
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class HandleError(Exception):
    """Base class for handle lifecycle errors."""

    def __init__(self, handle: str, message: str) -> None:
        super().__init__(f"{message}: {handle}")
        self.handle = handle


class HandleReleasedError(HandleError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, "Handle already released")


class UnknownHandleError(HandleError):
    def __init__(self, handle: str) -> None:
        super().__init__(handle, "Handle was never issued by this registry")


class ObjectUrlRegistry:
    """Issue, resolve and release image handles, with lifecycle accounting."""

    def __init__(self) -> None:
        self._blobs: dict[str, ImageBlob] = {}
        self._released: set[str] = set()
        self.created_count = 0
        self.released_count = 0

    def create(self, blob: ImageBlob) -> str:
        handle = f"{HANDLE_SCHEME}{uuid.uuid4()}"
        self._blobs[handle] = blob
        self.created_count += 1
        logger.debug("Created handle %s (%d bytes)", handle, blob.size)
        return handle

    def resolve(self, handle: str) -> ImageBlob:
        """Return the blob behind a live handle.

        Raises:
            HandleReleasedError: the handle was already released.
            UnknownHandleError: the handle did not come from this registry.
        """
        blob = self._blobs.get(handle)
        if blob is not None:
            return blob
        if handle in self._released:
            raise HandleReleasedError(handle)
        raise UnknownHandleError(handle)

    def release(self, handle: str) -> None:
        """Release a live handle; releasing twice raises HandleReleasedError."""
        if handle in self._released:
            raise HandleReleasedError(handle)
        if self._blobs.pop(handle, None) is None:
            raise UnknownHandleError(handle)
        self._released.add(handle)
        self.released_count += 1
        logger.debug("Released handle %s", handle)

    def is_live(self, handle: str) -> bool:
        return handle in self._blobs

    @property
    def live_handles(self) -> list[str]:
        return list(self._blobs)
