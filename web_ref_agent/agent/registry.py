from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from playwright.async_api import ElementHandle

from ..config import settings

RELEASE_MARKER_SCRIPT = """
(el, [attr, ref]) => {
    if (el.getAttribute(attr) === ref) {
        el.removeAttribute(attr);
    }
}
"""


class ReferenceRegistry:
    """Handle -> element map for the most recent snapshot generation.

    The map is only ever swapped wholesale. Handles from an older generation
    resolve to nothing, even when the same element is still on the page.
    """

    def __init__(self, marker_attribute: str | None = None) -> None:
        self.marker_attribute = marker_attribute or settings.marker_attribute
        self.generation = 0
        self._entries: dict[str, ElementHandle] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handle: object) -> bool:
        return handle in self._entries

    def handles(self) -> list[str]:
        return list(self._entries)

    def items(self) -> list[tuple[str, ElementHandle]]:
        return list(self._entries.items())

    def sample(self, limit: int | None = None) -> list[str]:
        limit = settings.not_found_sample_size if limit is None else limit
        return self.handles()[:limit]

    def resolve(self, handle: Optional[str]) -> Optional[ElementHandle]:
        if not handle:
            return None
        return self._entries.get(handle)

    async def replace(self, entries: Iterable[tuple[str, ElementHandle]]) -> int:
        previous = self._entries
        fresh: dict[str, ElementHandle] = {}
        for handle, element in entries:
            if handle in fresh:
                raise ValueError(f"duplicate handle {handle!r} in one generation")
            fresh[handle] = element
        self._entries = fresh
        self.generation += 1
        logging.debug(
            "registry_replace generation=%s entries=%s released=%s",
            self.generation,
            len(fresh),
            len(previous),
        )
        if previous:
            await asyncio.gather(*(self._release(handle, element) for handle, element in previous.items()))
        return self.generation

    async def _release(self, handle: str, element: ElementHandle) -> None:
        try:
            await element.evaluate(RELEASE_MARKER_SCRIPT, [self.marker_attribute, handle])
        except Exception as exc:  # element detached or its context navigated away
            logging.debug("registry_release_marker_failed ref=%s reason=%s", handle, exc)
        try:
            await element.dispose()
        except Exception as exc:
            logging.debug("registry_dispose_failed ref=%s reason=%s", handle, exc)
