"""
Scoped ownership of intermediate rasters.
"""

from __future__ import annotations

from typing import Any, List, TypeVar

T = TypeVar("T")


class RasterArena:
    """
    Holds every intermediate raster and OpenCV object allocated by one
    pipeline run and drops them together in release().

    Used as a context manager, release() runs on normal return, early
    validation failure and propagated errors alike.

    Attributes:
        allocated: Number of handles registered since creation.
        released: Number of handles dropped by release().
    """

    def __init__(self) -> None:
        self._handles: List[Any] = []
        self.allocated = 0
        self.released = 0

    @property
    def live(self) -> int:
        """Handles registered and not yet released."""
        return len(self._handles)

    def track(self, handle: T) -> T:
        self._handles.append(handle)
        self.allocated += 1
        return handle

    def release(self) -> None:
        while self._handles:
            handle = self._handles.pop()
            collect = getattr(handle, "collectGarbage", None)
            if callable(collect):
                collect()
            self.released += 1

    def __enter__(self) -> "RasterArena":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
