from __future__ import annotations

from typing import Optional

from ..config import settings
from .dom_scanner import DomContext

CONTENT_SELECTORS: tuple[str, ...] = ('[role="main"]', "main", "article", "#content", ".content", "#app")

# a landmark with less text than this is treated as a shell and skipped
MIN_LANDMARK_TEXT = 200

PAGE_CONTENT_SCRIPT = """
({ selectors, minText, limit }) => {
    for (const selector of selectors) {
        const el = document.querySelector(selector);
        const text = el && el.textContent ? el.textContent.trim() : '';
        if (text.length > minText) return text.substring(0, limit);
    }
    const body = document.body;
    return body ? body.innerText.substring(0, limit) : '';
}
"""


async def get_page_content(context: DomContext, limit: Optional[int] = None) -> str:
    """Main readable text of the page, preferring a content landmark over the whole body."""
    limit = settings.page_content_limit if limit is None else limit
    content = await context.evaluate(
        PAGE_CONTENT_SCRIPT,
        {"selectors": list(CONTENT_SELECTORS), "minText": MIN_LANDMARK_TEXT, "limit": limit},
    )
    return content or ""
