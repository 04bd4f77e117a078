from __future__ import annotations

import logging

from ..config import Settings, settings
from .dom_scanner import DomContext
from .registry import ReferenceRegistry

CLEAR_MARKS_SCRIPT = """
(markClass) => {
    const marks = document.querySelectorAll('.' + CSS.escape(markClass));
    marks.forEach((mark) => mark.remove());
    return marks.length;
}
"""

DRAW_MARKS_SCRIPT = """
({ markClass, minSize, items }) => {
    const host = document.body || document.documentElement;
    const viewportWidth = window.innerWidth;
    const viewportHeight = window.innerHeight;
    let drawn = 0;
    for (const { ref, el } of items) {
        if (!el || !el.isConnected) continue;
        const rect = el.getBoundingClientRect();
        if (rect.width < minSize || rect.height < minSize) continue;
        if (rect.bottom < 0 || rect.top > viewportHeight || rect.right < 0 || rect.left > viewportWidth) continue;

        const label = document.createElement('div');
        label.className = markClass;
        label.textContent = ref;
        Object.assign(label.style, {
            position: 'fixed',
            left: rect.left + 'px',
            top: Math.max(rect.top - 16, 0) + 'px',
            zIndex: '2147483647',
            pointerEvents: 'none',
            background: '#e11d48',
            color: '#ffffff',
            font: 'bold 11px/14px monospace',
            padding: '0 3px',
            borderRadius: '2px',
        });

        const outline = document.createElement('div');
        outline.className = markClass;
        Object.assign(outline.style, {
            position: 'fixed',
            left: rect.left + 'px',
            top: rect.top + 'px',
            width: rect.width + 'px',
            height: rect.height + 'px',
            zIndex: '2147483646',
            pointerEvents: 'none',
            border: '2px solid #e11d48',
            boxSizing: 'border-box',
        });

        host.appendChild(outline);
        host.appendChild(label);
        drawn += 1;
    }
    return drawn;
}
"""


class SetOfMarksAnnotator:
    """Draws a numbered label and an outline over each element of the current snapshot."""

    def __init__(self, context: DomContext, registry: ReferenceRegistry, config: Settings = settings) -> None:
        self.context = context
        self.registry = registry
        self.config = config

    async def draw(self) -> int:
        await self.clear()
        items = [{"ref": handle, "el": element} for handle, element in self.registry.items()]
        if not items:
            logging.debug("marks_drawn count=0 generation=%s", self.registry.generation)
            return 0
        drawn = await self.context.evaluate(
            DRAW_MARKS_SCRIPT,
            {"markClass": self.config.mark_class, "minSize": self.config.mark_min_size_px, "items": items},
        )
        logging.debug(
            "marks_drawn count=%s refs=%s generation=%s", drawn, len(items), self.registry.generation
        )
        return int(drawn or 0)

    async def clear(self) -> int:
        removed = await self.context.evaluate(CLEAR_MARKS_SCRIPT, self.config.mark_class)
        return int(removed or 0)
