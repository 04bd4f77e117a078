"""Find a text snippet on the page, highlight it and scroll it into view.

Snippets usually come from a model quoting the page back, so they are often
long or slightly off. Probes run from most to least precise and the first
one that matches anything wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import Settings, settings
from ..models import LocateResult
from .dom_scanner import DomContext

SPAN_PROBE_THRESHOLD = 100
SPAN_PROBE_LENGTH = 80
BLOCK_PROBE_MIN_LENGTH = 20
BLOCK_PROBE_LENGTH = 40

# stored on a block highlight so its inline background can be restored
BLOCK_BACKGROUND_ATTRIBUTE = "data-agent-highlight-bg"

CLEAR_HIGHLIGHTS_SCRIPT = """
({ highlightClass, backgroundAttr }) => {
    let cleared = 0;
    document.querySelectorAll('mark.' + CSS.escape(highlightClass)).forEach((mark) => {
        const parent = mark.parentNode;
        if (!parent) return;
        parent.replaceChild(document.createTextNode(mark.textContent || ''), mark);
        parent.normalize();
        cleared += 1;
    });
    document.querySelectorAll('[' + backgroundAttr + ']').forEach((el) => {
        el.style.background = el.getAttribute(backgroundAttr);
        el.removeAttribute(backgroundAttr);
        cleared += 1;
    });
    return cleared;
}
"""

_TEXT_NODES = """
    const skipped = new Set(['SCRIPT', 'STYLE', 'NOSCRIPT']);
    const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT, {
        acceptNode(node) {
            const parent = node.parentElement;
            if (!parent || skipped.has(parent.tagName)) return NodeFilter.FILTER_REJECT;
            const style = getComputedStyle(parent);
            if (style.display === 'none' || style.visibility === 'hidden') return NodeFilter.FILTER_REJECT;
            return NodeFilter.FILTER_ACCEPT;
        },
    });
    const textNodes = [];
    let current;
    while ((current = walker.nextNode())) textNodes.push(current);
"""

SPAN_SCRIPT = (
    "({ probe, highlightClass, maxMatches, fadeMs, removeMs }) => {"
    + _TEXT_NODES
    + """
    const needle = probe.toLowerCase();
    let count = 0;
    for (const textNode of textNodes) {
        const content = textNode.textContent || '';
        const at = content.toLowerCase().indexOf(needle);
        if (at === -1) continue;
        const range = document.createRange();
        range.setStart(textNode, at);
        range.setEnd(textNode, Math.min(at + probe.length, content.length));
        const mark = document.createElement('mark');
        mark.className = highlightClass;
        mark.style.cssText = 'background: #FFEB3B; color: #000; padding: 2px 0; border-radius: 2px; transition: background 0.5s;';
        try {
            range.surroundContents(mark);
        } catch (err) {
            continue;
        }
        count += 1;
        if (count === 1) mark.scrollIntoView({ behavior: 'smooth', block: 'center' });
        setTimeout(() => {
            mark.style.background = 'rgba(255, 235, 59, 0.3)';
            setTimeout(() => {
                const parent = mark.parentNode;
                if (!parent) return;
                parent.replaceChild(document.createTextNode(mark.textContent || ''), mark);
                parent.normalize();
            }, removeMs);
        }, fadeMs);
        if (count >= maxMatches) break;
    }
    return count;
}"""
)

BLOCK_SCRIPT = (
    "({ probe, backgroundAttr, fadeMs, removeMs }) => {"
    + _TEXT_NODES
    + """
    const needle = probe.toLowerCase();
    const hit = textNodes.find((node) => (node.textContent || '').toLowerCase().includes(needle));
    if (!hit) return 0;
    let block = hit.parentElement;
    while (block && block !== document.body && getComputedStyle(block).display.startsWith('inline')) {
        block = block.parentElement;
    }
    if (!block) return 0;
    if (!block.hasAttribute(backgroundAttr)) {
        block.setAttribute(backgroundAttr, block.style.background || '');
    }
    block.style.transition = 'background 0.5s';
    block.style.background = '#FFEB3B';
    block.scrollIntoView({ behavior: 'smooth', block: 'center' });
    setTimeout(() => {
        block.style.background = 'rgba(255, 235, 59, 0.3)';
        setTimeout(() => {
            if (!block.hasAttribute(backgroundAttr)) return;
            block.style.background = block.getAttribute(backgroundAttr);
            block.removeAttribute(backgroundAttr);
        }, removeMs);
    }, fadeMs);
    return 1;
}"""
)


def span_probe(snippet: str) -> Optional[str]:
    if len(snippet) > SPAN_PROBE_THRESHOLD:
        return snippet[:SPAN_PROBE_LENGTH]
    return snippet


def block_probe(snippet: str) -> Optional[str]:
    probe = span_probe(snippet)
    if probe is None or len(probe) <= BLOCK_PROBE_MIN_LENGTH:
        return None
    return probe[:BLOCK_PROBE_LENGTH]


@dataclass(frozen=True)
class ProbeStrategy:
    name: str
    probe: Callable[[str], Optional[str]]
    script: str


PROBE_STRATEGIES: tuple[ProbeStrategy, ...] = (
    ProbeStrategy("exact-span", span_probe, SPAN_SCRIPT),
    ProbeStrategy("prefix-block", block_probe, BLOCK_SCRIPT),
)


class TextLocator:
    def __init__(self, context: DomContext, config: Settings = settings) -> None:
        self.context = context
        self.config = config

    async def clear(self) -> int:
        return int(
            await self.context.evaluate(
                CLEAR_HIGHLIGHTS_SCRIPT,
                {"highlightClass": self.config.highlight_class, "backgroundAttr": BLOCK_BACKGROUND_ATTRIBUTE},
            )
            or 0
        )

    async def locate(self, snippet: Optional[str]) -> LocateResult:
        query = (snippet or "").strip()
        if not query:
            return LocateResult(found=False, match_count=0)

        await self.clear()
        arguments = {
            "highlightClass": self.config.highlight_class,
            "backgroundAttr": BLOCK_BACKGROUND_ATTRIBUTE,
            "maxMatches": self.config.highlight_max_matches,
            "fadeMs": self.config.highlight_fade_ms,
            "removeMs": self.config.highlight_remove_ms,
        }
        for strategy in PROBE_STRATEGIES:
            probe = strategy.probe(query)
            if probe is None:
                continue
            count = int(await self.context.evaluate(strategy.script, {**arguments, "probe": probe}) or 0)
            if count > 0:
                logging.info("text_located strategy=%s matches=%s length=%s", strategy.name, count, len(query))
                return LocateResult(found=True, match_count=count, strategy=strategy.name)

        logging.info("text_not_located length=%s", len(query))
        return LocateResult(found=False, match_count=0)
