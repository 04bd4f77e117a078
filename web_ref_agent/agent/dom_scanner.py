"""Generic DOM scanner: turns the live page into a bounded, ref-annotated element tree.

Collection and measurement run inside the page; filtering, naming, capping and
rendering run here so they stay testable without a browser.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

from playwright.async_api import ElementHandle, Frame, Page

from ..config import Settings, settings
from ..models import AccessibilityTree, ElementInfo, ElementSnapshot
from .registry import ReferenceRegistry
from .resolver import resolve, resolve_name

DomContext = Union[Page, Frame]

INTERACTIVE_SELECTORS: tuple[str, ...] = (
    "a[href]",
    "button",
    "input",
    "select",
    "textarea",
    '[contenteditable="true"]',
    '[contenteditable=""]',
    '[role="textbox"]',
    '[role="button"]',
    '[role="link"]',
    '[role="tab"]',
    '[role="menuitem"]',
    '[role="option"]',
    '[role="checkbox"]',
    '[role="radio"]',
    '[role="switch"]',
    '[role="combobox"]',
    '[role="searchbox"]',
)

DESCRIBED_ATTRIBUTES: tuple[str, ...] = (
    "role",
    "type",
    "href",
    "id",
    "aria-label",
    "aria-labelledby",
    "aria-expanded",
    "aria-selected",
    "title",
    "data-tooltip",
    "placeholder",
    "contenteditable",
)

COLLECT_SCRIPT = """
({ selectors }) => {
    const seen = new WeakSet();
    const elements = [];
    for (const el of document.querySelectorAll(selectors.join(','))) {
        if (seen.has(el)) continue;
        seen.add(el);
        elements.push(el);
    }
    const active = document.activeElement;
    if (active && active !== document.body && active !== document.documentElement && !seen.has(active)) {
        elements.push(active);
        elements.sort((a, b) => {
            if (a === b) return 0;
            return a.compareDocumentPosition(b) & Node.DOCUMENT_POSITION_FOLLOWING ? -1 : 1;
        });
    }
    return elements;
}
"""

_DESCRIBE_FN = r"""
(el, index, attributeNames) => {
    const doc = el.ownerDocument || document;
    const view = doc.defaultView || window;
    const collapse = (node) => ((node && node.textContent) || '').replace(/\s+/g, ' ').trim();
    const attributes = {};
    for (const name of attributeNames) {
        const value = el.getAttribute(name);
        if (value !== null) attributes[name] = value;
    }
    let labelledbyText = '';
    const labelledby = el.getAttribute('aria-labelledby');
    if (labelledby) {
        labelledbyText = labelledby
            .split(/\s+/)
            .filter(Boolean)
            .map((id) => collapse(doc.getElementById(id)))
            .filter(Boolean)
            .join(' ');
    }
    let labelText = '';
    if (el.id) {
        labelText = collapse(doc.querySelector('label[for="' + view.CSS.escape(el.id) + '"]'));
    }
    const tag = el.tagName.toLowerCase();
    const rect = el.getBoundingClientRect();
    const style = view.getComputedStyle(el);
    const checkable = tag === 'input' && ['checkbox', 'radio'].includes((el.type || '').toLowerCase());
    return {
        index,
        tag,
        attributes,
        text: collapse(el).slice(0, 200),
        labelledbyText,
        labelText,
        isContentEditable: !!el.isContentEditable,
        focused: el === doc.activeElement,
        checked: checkable && !!el.checked,
        disabled: !!el.disabled || el.hasAttribute('disabled'),
        value: typeof el.value === 'string' ? el.value : null,
        rect: { x: rect.left, y: rect.top, width: rect.width, height: rect.height },
        display: style.display,
        visibility: style.visibility,
        opacity: style.opacity,
    };
}
"""

DESCRIBE_ALL_SCRIPT = (
    "(elements, attributeNames) => {\n"
    f"    const describe = {_DESCRIBE_FN};\n"
    "    return {\n"
    "        viewport: { width: window.innerWidth, height: window.innerHeight },\n"
    "        elements: elements.map((el, i) => describe(el, i, attributeNames)),\n"
    "    };\n"
    "}"
)

DESCRIBE_ONE_SCRIPT = (
    "(el, attributeNames) => {\n"
    f"    const describe = {_DESCRIBE_FN};\n"
    "    return describe(el, 0, attributeNames);\n"
    "}"
)

MARK_SCRIPT = """
({ attr, items }) => {
    document.querySelectorAll('[' + CSS.escape(attr) + ']').forEach((el) => el.removeAttribute(attr));
    for (const { ref, el } of items) {
        el.setAttribute(attr, ref);
    }
    return items.length;
}
"""


@dataclass
class Candidate:
    element: ElementHandle
    info: ElementInfo


def rejection_reason(info: ElementInfo, viewport_height: float, config: Settings = settings) -> Optional[str]:
    """Why a non-focused element is left out of the snapshot, or None to keep it."""
    min_size = config.min_field_size_px if info.is_form_field else config.min_element_size_px
    if info.rect.width < min_size or info.rect.height < min_size:
        return "too_small"
    margin = config.viewport_margin_px
    if info.rect.bottom < -margin or info.rect.top > viewport_height + margin:
        return "out_of_window"
    if info.display == "none" or info.visibility == "hidden" or info.opacity < config.min_opacity:
        return "hidden"
    if not (info.is_form_field or info.is_link or info.is_button):
        if not resolve_name(info, config.name_max_length):
            return "unnamed"
    return None


def apply_cap(candidates: Sequence[Candidate], limit: int) -> List[Candidate]:
    """Keep the first `limit` candidates in document order.

    The focused element is never cut: when it sits past the cap it takes the last slot.
    """
    if len(candidates) <= limit:
        return list(candidates)
    kept = list(candidates[:limit])
    focused = next((c for c in candidates[limit:] if c.info.focused), None)
    if focused is not None and kept:
        kept[-1] = focused
    return kept


def render_tree(title: str, url: str, elements: Sequence[ElementSnapshot], total: int) -> str:
    lines = [f'page [title="{title}"] [url="{url}"]']
    if total > len(elements):
        hidden = total - len(elements)
        lines.append(
            f"  (showing {len(elements)} of {total} interactive elements, {hidden} hidden; scroll to see more)"
        )
    lines.extend(element.render() for element in elements)
    return "\n".join(lines)


async def describe_element(element: ElementHandle) -> ElementInfo:
    payload = await element.evaluate(DESCRIBE_ONE_SCRIPT, list(DESCRIBED_ATTRIBUTES))
    return ElementInfo.from_payload(payload or {})


async def _dispose_quietly(elements: Sequence[ElementHandle]) -> None:
    async def dispose(element: ElementHandle) -> None:
        try:
            await element.dispose()
        except Exception as exc:
            logging.debug("snapshot_dispose_failed reason=%s", exc)

    if elements:
        await asyncio.gather(*(dispose(element) for element in elements))


class SnapshotBuilder:
    def __init__(self, context: DomContext, registry: ReferenceRegistry, config: Settings = settings) -> None:
        self.context = context
        self.registry = registry
        self.config = config

    async def collect(self) -> tuple[List[Candidate], float]:
        """All candidate elements in document order, with the viewport height."""
        array_handle = await self.context.evaluate_handle(
            COLLECT_SCRIPT, {"selectors": list(INTERACTIVE_SELECTORS)}
        )
        try:
            payload: dict[str, Any] = await array_handle.evaluate(
                DESCRIBE_ALL_SCRIPT, list(DESCRIBED_ATTRIBUTES)
            )
            properties = await array_handle.get_properties()
        finally:
            await array_handle.dispose()

        by_index: dict[int, ElementHandle] = {}
        for key, prop in properties.items():
            if not str(key).isdigit():
                continue
            element = prop.as_element()
            if element is not None:
                by_index[int(key)] = element

        candidates: List[Candidate] = []
        for raw in (payload or {}).get("elements", []) or []:
            info = ElementInfo.from_payload(raw)
            element = by_index.get(info.index)
            if element is None:
                continue
            candidates.append(Candidate(element=element, info=info))

        viewport = (payload or {}).get("viewport") or {}
        viewport_height = float(viewport.get("height", 0.0) or 0.0)
        return candidates, viewport_height

    def select(self, candidates: Sequence[Candidate], viewport_height: float) -> List[Candidate]:
        kept: List[Candidate] = []
        rejected: Counter[str] = Counter()
        for candidate in candidates:
            if candidate.info.focused:
                kept.append(candidate)
                continue
            reason = rejection_reason(candidate.info, viewport_height, self.config)
            if reason:
                rejected[reason] += 1
                continue
            kept.append(candidate)
        logging.debug("snapshot_filter kept=%s rejected=%s", len(kept), dict(rejected))
        return kept

    async def build(self) -> AccessibilityTree:
        candidates, viewport_height = await self.collect()
        eligible = self.select(candidates, viewport_height)
        kept = apply_cap(eligible, self.config.max_elements)

        kept_ids = {id(candidate) for candidate in kept}
        await _dispose_quietly([c.element for c in candidates if id(c) not in kept_ids])

        entries = [(f"e{i}", candidate.element) for i, candidate in enumerate(kept)]
        generation = await self.registry.replace(entries)
        await self.context.evaluate(
            MARK_SCRIPT,
            {
                "attr": self.registry.marker_attribute,
                "items": [{"ref": handle, "el": element} for handle, element in entries],
            },
        )

        snapshots: List[ElementSnapshot] = []
        for (handle, _), candidate in zip(entries, kept):
            role, name, state = resolve(
                candidate.info, self.config.name_max_length, self.config.value_preview_length
            )
            snapshots.append(
                ElementSnapshot(
                    handle=handle,
                    role=role,
                    accessible_name=name,
                    tag_hint=candidate.info.tag_hint,
                    state=state,
                    bounding_region=candidate.info.rect,
                )
            )

        title = await self.context.title()
        url = self.context.url
        tree = render_tree(title, url, snapshots, len(eligible))
        logging.info(
            "snapshot_built generation=%s candidates=%s eligible=%s kept=%s",
            generation,
            len(candidates),
            len(eligible),
            len(kept),
        )
        return AccessibilityTree(
            tree=tree,
            url=url,
            title=title,
            elements=snapshots,
            total_candidates=len(eligible),
            generation=generation,
        )
