"""Executes one primitive action against a ref from the current snapshot.

UI frameworks that wrap native property setters or listen for pointer events
instead of clicks only notice synthetic interaction when the right events
arrive in the right order. Those orders are spelled out below as data, one
sequence per action kind, and replayed inside the page by a single helper.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, assert_never

from playwright.async_api import ElementHandle

from ..config import Settings, settings
from ..models import NON_TEXT_INPUT_TYPES, ActionKind, ActionRequest, ActionResult
from .dom_scanner import DomContext, describe_element
from .errors import AutomationError, ElementNotFound, ExecutionError, OptionNotFound, WrongElementKind
from .registry import ReferenceRegistry
from .resolver import resolve_name


@dataclass(frozen=True)
class SyntheticEvent:
    type: str
    interface: str = "Event"
    init: tuple[tuple[str, Any], ...] = ()

    def payload(self, **extra: Any) -> dict[str, Any]:
        return {"type": self.type, "interface": self.interface, "init": {**dict(self.init), **extra}}


CANCELABLE = (("cancelable", True),)

CLICK_EVENTS = (
    SyntheticEvent("pointerdown", "PointerEvent"),
    SyntheticEvent("pointerup", "PointerEvent"),
    SyntheticEvent("click", "MouseEvent", CANCELABLE),
)
# One data-carrying input event, then change: each fires exactly once per value assignment.
FIELD_INPUT_EVENTS = (
    SyntheticEvent("input", "InputEvent", CANCELABLE),
    SyntheticEvent("change", "Event", CANCELABLE),
)
EDITABLE_INPUT_EVENTS = (SyntheticEvent("input", "InputEvent"),)
SELECT_EVENTS = (
    SyntheticEvent("change"),
    SyntheticEvent("input"),
)
HOVER_EVENTS = (
    SyntheticEvent("mouseenter", "MouseEvent"),
    SyntheticEvent("mouseover", "MouseEvent"),
    SyntheticEvent("mousemove", "MouseEvent"),
)
KEY_EVENTS = (
    SyntheticEvent("keydown", "KeyboardEvent", CANCELABLE),
    SyntheticEvent("keypress", "KeyboardEvent", CANCELABLE),
    SyntheticEvent("keyup", "KeyboardEvent", CANCELABLE),
)


@dataclass(frozen=True)
class KeySpec:
    key: str
    code: str
    key_code: int


NAMED_KEYS: dict[str, KeySpec] = {
    "enter": KeySpec("Enter", "Enter", 13),
    "tab": KeySpec("Tab", "Tab", 9),
    "escape": KeySpec("Escape", "Escape", 27),
    "backspace": KeySpec("Backspace", "Backspace", 8),
    "space": KeySpec(" ", "Space", 32),
    "arrowup": KeySpec("ArrowUp", "ArrowUp", 38),
    "arrowdown": KeySpec("ArrowDown", "ArrowDown", 40),
}


@dataclass(frozen=True)
class SelectOption:
    index: int
    value: str
    text: str


@dataclass(frozen=True)
class OptionStrategy:
    name: str
    matches: Callable[[SelectOption, str], bool]


OPTION_STRATEGIES: tuple[OptionStrategy, ...] = (
    OptionStrategy("exact-value", lambda option, wanted: option.value == wanted),
    OptionStrategy("exact-text", lambda option, wanted: option.text == wanted),
    OptionStrategy("text-substring", lambda option, wanted: wanted.casefold() in option.text.casefold()),
)


def match_option(options: Sequence[SelectOption], wanted: str) -> Optional[tuple[SelectOption, str]]:
    for strategy in OPTION_STRATEGIES:
        for option in options:
            if strategy.matches(option, wanted):
                return option, strategy.name
    return None


def lookup_key(value: Optional[str]) -> KeySpec:
    if value is None or value == "":
        return NAMED_KEYS["enter"]
    name = "space" if value == " " else value.strip().lower()
    spec = NAMED_KEYS.get(name)
    if spec is None:
        supported = ", ".join(s.code for s in NAMED_KEYS.values())
        raise ValueError(f"unsupported key {value!r} (supported: {supported})")
    return spec


_FIRE = """
    const fire = (target, events, extra) => {
        const view = (target.ownerDocument && target.ownerDocument.defaultView) || window;
        for (const spec of events) {
            const Ctor = view[spec.interface] || view.Event;
            const init = Object.assign({ bubbles: true, composed: true }, spec.init, extra || {});
            target.dispatchEvent(new Ctor(spec.type, init));
        }
    };
    const view = (el.ownerDocument && el.ownerDocument.defaultView) || window;
"""

ATTACHED_SCRIPT = "(el, [attr, ref]) => el.isConnected && el.getAttribute(attr) === ref"

FOCUSED_ELEMENT_SCRIPT = "() => document.activeElement || document.body"

CLICK_SCRIPT = (
    "(el, { events }) => {"
    + _FIRE
    + """
    const rect = el.getBoundingClientRect();
    const outside = rect.top < 0 || rect.bottom > view.innerHeight;
    if (outside) {
        el.scrollIntoView({ behavior: 'smooth', block: 'center' });
    }
    if (typeof el.focus === 'function') el.focus();
    fire(el, events);
    return { scrolled: outside };
}"""
)

TYPE_SCRIPT = (
    "(el, { value, fieldEvents, editableEvents, nonTextTypes }) => {"
    + _FIRE
    + """
    const tag = el.tagName.toLowerCase();
    const type = (el.getAttribute('type') || '').toLowerCase();
    const isInput = el instanceof view.HTMLInputElement
        && !nonTextTypes.includes((el.type || 'text').toLowerCase());
    const isTextArea = el instanceof view.HTMLTextAreaElement;
    if (isInput || isTextArea) {
        const previous = el.value;
        el.focus();
        const proto = isInput ? view.HTMLInputElement.prototype : view.HTMLTextAreaElement.prototype;
        const descriptor = Object.getOwnPropertyDescriptor(proto, 'value');
        if (descriptor && descriptor.set) {
            descriptor.set.call(el, value);
        } else {
            el.value = value;
        }
        fire(el, fieldEvents);
        return { kind: 'field', tag, type, previous, value: el.value };
    }
    if (el.isContentEditable) {
        const previous = el.textContent;
        el.focus();
        el.textContent = value;
        fire(el, editableEvents);
        return { kind: 'editable', tag, type, previous, value: el.textContent };
    }
    return { kind: 'unsupported', tag, type };
}"""
)

SELECT_OPTIONS_SCRIPT = """
(el) => {
    const view = (el.ownerDocument && el.ownerDocument.defaultView) || window;
    const tag = el.tagName.toLowerCase();
    if (!(el instanceof view.HTMLSelectElement)) {
        return { isSelect: false, tag, type: (el.getAttribute('type') || '').toLowerCase() };
    }
    return {
        isSelect: true,
        tag,
        selectedIndex: el.selectedIndex,
        options: Array.from(el.options).map((option, index) => ({
            index,
            value: option.value,
            text: (option.textContent || '').trim(),
        })),
    };
}
"""

SELECT_APPLY_SCRIPT = (
    "(el, { index, events }) => {"
    + _FIRE
    + """
    el.selectedIndex = index;
    fire(el, events);
    return { selectedIndex: el.selectedIndex, value: el.value };
}"""
)

HOVER_SCRIPT = (
    "(el, { events }) => {"
    + _FIRE
    + """
    const rect = el.getBoundingClientRect();
    const clientX = rect.left + rect.width / 2;
    const clientY = rect.top + rect.height / 2;
    fire(el, events, { clientX, clientY });
    return { x: clientX, y: clientY };
}"""
)

KEY_SCRIPT = (
    "(el, { events, submit }) => {"
    + _FIRE
    + """
    if (typeof el.focus === 'function') el.focus();
    fire(el, events);
    let submitted = null;
    if (submit && el instanceof view.HTMLInputElement && el.form) {
        const button = el.form.querySelector('button[type="submit"], input[type="submit"], button:not([type])');
        if (button) {
            button.click();
            submitted = 'button';
        } else {
            el.form.dispatchEvent(new view.Event('submit', { bubbles: true, cancelable: true }));
            submitted = 'event';
        }
    }
    return { tag: el.tagName.toLowerCase(), submitted };
}"""
)

SCROLL_INTO_VIEW_SCRIPT = "(el) => { el.scrollIntoView({ behavior: 'smooth', block: 'center' }); }"

SCROLL_PAGE_SCRIPT = """
({ direction, fraction, tolerance }) => {
    const viewportHeight = window.innerHeight;
    const scroller = document.scrollingElement || document.documentElement;
    const beforeY = window.scrollY;
    const maxY = Math.max(scroller.scrollHeight - viewportHeight, 0);
    const amount = Math.round(viewportHeight * fraction) * (direction === 'up' ? -1 : 1);
    const atBottom = direction === 'down' && beforeY >= maxY - tolerance;
    const atTop = direction === 'up' && beforeY <= tolerance;
    if (!atBottom && !atTop) {
        window.scrollBy({ top: amount, behavior: 'smooth' });
    }
    const afterY = Math.min(Math.max(beforeY + amount, 0), maxY);
    return { beforeY, afterY, maxY, atBottom, atTop };
}
"""


def _describe_kind(tag: str, input_type: Optional[str]) -> str:
    return f'{tag} type="{input_type}"' if input_type else tag


class ActionExecutor:
    def __init__(self, context: DomContext, registry: ReferenceRegistry, config: Settings = settings) -> None:
        self.context = context
        self.registry = registry
        self.config = config

    async def execute(self, request: ActionRequest) -> ActionResult:
        try:
            result = await self._perform(request)
        except AutomationError as exc:
            result = ActionResult(success=False, message=str(exc), error=exc.code)
        except Exception as exc:
            wrapped = ExecutionError(request.kind.value, request.handle, exc)
            result = ActionResult(success=False, message=str(wrapped), error=wrapped.code)
        logging.info(
            "action_executed kind=%s ref=%s success=%s error=%s",
            request.kind.value,
            request.handle,
            result.success,
            result.error,
        )
        return result

    async def _perform(self, request: ActionRequest) -> ActionResult:
        kind = request.kind
        match kind:
            case ActionKind.CLICK:
                return await self._click(await self._resolve(request), request.handle)
            case ActionKind.TYPE:
                return await self._type(await self._resolve(request), request.handle, request.value or "")
            case ActionKind.CLEAR:
                return await self._type(await self._resolve(request), request.handle, "", clearing=True)
            case ActionKind.SELECT:
                return await self._select(await self._resolve(request), request.handle, request.value or "")
            case ActionKind.HOVER:
                return await self._hover(await self._resolve(request), request.handle)
            case ActionKind.PRESS_KEY:
                return await self._press_key(request)
            case ActionKind.SCROLL_PAGE:
                return await self._scroll_page(request.value)
            case ActionKind.SCROLL:
                return await self._scroll_into_view(await self._resolve(request), request.handle)
            case _:
                assert_never(kind)

    async def _resolve(self, request: ActionRequest) -> ElementHandle:
        handle = request.handle
        element = self.registry.resolve(handle)
        sample = self.registry.sample(self.config.not_found_sample_size)
        if element is None:
            raise ElementNotFound(handle, sample)
        try:
            attached = await element.evaluate(ATTACHED_SCRIPT, [self.registry.marker_attribute, handle])
        except Exception as exc:
            logging.debug("action_resolve_failed ref=%s reason=%s", handle, exc)
            attached = False
        if not attached:
            raise ElementNotFound(handle, sample, reason="is no longer attached to the page")
        return element

    async def _click(self, element: ElementHandle, handle: Optional[str]) -> ActionResult:
        info = await describe_element(element)
        name = resolve_name(info, self.config.name_max_length) or info.tag
        await element.evaluate(CLICK_SCRIPT, {"events": [event.payload() for event in CLICK_EVENTS]})
        return ActionResult(success=True, message=f'Clicked "{name}" ({handle})')

    async def _type(
        self, element: ElementHandle, handle: Optional[str], text: str, clearing: bool = False
    ) -> ActionResult:
        input_init = (
            {"inputType": "deleteContentBackward", "data": None}
            if clearing
            else {"inputType": "insertText", "data": text}
        )
        field_events = [
            event.payload(**input_init) if event.type == "input" else event.payload()
            for event in FIELD_INPUT_EVENTS
        ]
        editable_events = [event.payload(**input_init) for event in EDITABLE_INPUT_EVENTS]
        outcome = await element.evaluate(
            TYPE_SCRIPT,
            {
                "value": text,
                "fieldEvents": field_events,
                "editableEvents": editable_events,
                "nonTextTypes": sorted(NON_TEXT_INPUT_TYPES),
            },
        )
        outcome = outcome or {}
        kind = outcome.get("kind")
        if kind not in {"field", "editable"}:
            raise WrongElementKind(
                handle,
                _describe_kind(outcome.get("tag") or "unknown", outcome.get("type")),
                "a text field or content-editable region",
            )
        changed = outcome.get("previous") != outcome.get("value")
        if clearing:
            prefix = "Cleared contenteditable" if kind == "editable" else "Cleared"
            return ActionResult(success=True, message=f"{prefix} {handle}", changed=changed)
        if kind == "editable":
            return ActionResult(success=True, message=f"Typed into contenteditable {handle}", changed=changed)
        return ActionResult(success=True, message=f'Typed "{text[:40]}" into {handle}', changed=changed)

    async def _select(self, element: ElementHandle, handle: Optional[str], wanted: str) -> ActionResult:
        described = await element.evaluate(SELECT_OPTIONS_SCRIPT) or {}
        if not described.get("isSelect"):
            raise WrongElementKind(
                handle,
                _describe_kind(described.get("tag") or "unknown", described.get("type")),
                "a select element",
            )
        options = [
            SelectOption(index=int(o.get("index", i)), value=o.get("value") or "", text=o.get("text") or "")
            for i, o in enumerate(described.get("options") or [])
        ]
        matched = match_option(options, wanted)
        if matched is None:
            raise OptionNotFound(handle, wanted, [o.text for o in options[: self.config.not_found_sample_size]])
        option, strategy = matched
        logging.debug("select_option_matched ref=%s strategy=%s index=%s", handle, strategy, option.index)
        await element.evaluate(
            SELECT_APPLY_SCRIPT,
            {"index": option.index, "events": [event.payload() for event in SELECT_EVENTS]},
        )
        changed = described.get("selectedIndex") != option.index
        return ActionResult(success=True, message=f'Selected "{option.text}" in {handle}', changed=changed)

    async def _hover(self, element: ElementHandle, handle: Optional[str]) -> ActionResult:
        await element.evaluate(HOVER_SCRIPT, {"events": [event.payload() for event in HOVER_EVENTS]})
        return ActionResult(success=True, message=f"Hovered over {handle}")

    async def _press_key(self, request: ActionRequest) -> ActionResult:
        try:
            key = lookup_key(request.value)
        except ValueError as exc:
            raise ExecutionError(request.kind.value, request.handle, exc) from exc

        focus_handle = None
        if request.handle or not request.kind.is_focus_relative:
            element = await self._resolve(request)
        else:
            focus_handle = await self.context.evaluate_handle(FOCUSED_ELEMENT_SCRIPT)
            element = focus_handle.as_element()
            if element is None:
                await focus_handle.dispose()
                raise ExecutionError(request.kind.value, None, "no element holds focus")
        try:
            outcome = await element.evaluate(
                KEY_SCRIPT,
                {
                    "events": [
                        event.payload(key=key.key, code=key.code, keyCode=key.key_code, which=key.key_code)
                        for event in KEY_EVENTS
                    ],
                    "submit": key.code == "Enter",
                },
            )
        finally:
            if focus_handle is not None:
                await focus_handle.dispose()

        target = request.handle or "active element"
        message = f"Pressed {key.code} on {target}"
        if (outcome or {}).get("submitted"):
            message += " and submitted its form"
        return ActionResult(success=True, message=message)

    async def _scroll_page(self, direction: Optional[str]) -> ActionResult:
        direction = (direction or "down").strip().lower()
        if direction not in {"up", "down"}:
            raise ExecutionError(ActionKind.SCROLL_PAGE.value, None, f"unsupported direction {direction!r}")
        position = await self.context.evaluate(
            SCROLL_PAGE_SCRIPT,
            {
                "direction": direction,
                "fraction": self.config.scroll_fraction,
                "tolerance": self.config.scroll_edge_tolerance_px,
            },
        )
        position = position or {}
        if position.get("atBottom"):
            return ActionResult(
                success=True,
                message="Already at the bottom of the page. No more content below.",
                changed=False,
            )
        if position.get("atTop"):
            return ActionResult(success=True, message="Already at the top of the page.", changed=False)
        max_y = float(position.get("maxY", 0) or 0)
        after_y = float(position.get("afterY", 0) or 0)
        percent = round(after_y / max(max_y, 1.0) * 100)
        return ActionResult(
            success=True,
            message=f"Scrolled {direction}. Position: {percent}% of page.",
            changed=True,
        )

    async def _scroll_into_view(self, element: ElementHandle, handle: Optional[str]) -> ActionResult:
        await element.evaluate(SCROLL_INTO_VIEW_SCRIPT)
        return ActionResult(success=True, message=f"Scrolled to {handle}")
