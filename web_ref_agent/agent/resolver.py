"""Role, accessible name and state resolution for a single element.

Works purely on ElementInfo payloads so every rule can be exercised without a browser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import settings
from ..models import ElementInfo, StateFlags

_WHITESPACE = re.compile(r"\s+")

INPUT_TYPE_ROLES = {
    "checkbox": "checkbox",
    "radio": "radio",
    "search": "searchbox",
    "submit": "button",
    "button": "button",
    "reset": "button",
}

TAG_ROLES = {
    "button": "button",
    "select": "combobox",
    "textarea": "textbox",
    "img": "img",
}


def _clean(value: Optional[str]) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def resolve_role(info: ElementInfo) -> str:
    if info.explicit_role:
        return info.explicit_role
    if info.tag == "a":
        return "link" if "href" in info.attributes else "generic"
    if info.tag == "input":
        return INPUT_TYPE_ROLES.get(info.input_type or "text", "textbox")
    return TAG_ROLES.get(info.tag, info.tag)


@dataclass(frozen=True)
class NameStrategy:
    name: str
    source: Callable[[ElementInfo], Optional[str]]

    def apply(self, info: ElementInfo) -> str:
        return _clean(self.source(info))


def _from_aria_label(info: ElementInfo) -> Optional[str]:
    return info.attributes.get("aria-label")


def _from_labelledby(info: ElementInfo) -> Optional[str]:
    if not info.attributes.get("aria-labelledby"):
        return None
    return info.labelledby_text


def _from_title(info: ElementInfo) -> Optional[str]:
    return info.attributes.get("title") or info.attributes.get("data-tooltip")


def _from_placeholder(info: ElementInfo) -> Optional[str]:
    if info.tag not in {"input", "textarea"}:
        return None
    return info.attributes.get("placeholder")


def _from_label_for(info: ElementInfo) -> Optional[str]:
    if info.tag not in {"input", "textarea"} or not info.attributes.get("id"):
        return None
    return info.label_text


def _from_text_content(info: ElementInfo) -> Optional[str]:
    return info.text


NAME_STRATEGIES: tuple[NameStrategy, ...] = (
    NameStrategy("aria-label", _from_aria_label),
    NameStrategy("aria-labelledby", _from_labelledby),
    NameStrategy("title", _from_title),
    NameStrategy("placeholder", _from_placeholder),
    NameStrategy("label-for", _from_label_for),
    NameStrategy("text-content", _from_text_content),
)


def resolve_name(info: ElementInfo, max_length: int | None = None) -> str:
    limit = max_length or settings.name_max_length
    for strategy in NAME_STRATEGIES:
        name = strategy.apply(info)
        if name:
            return name[:limit]
    return ""


def name_source(info: ElementInfo) -> Optional[str]:
    """Name of the strategy that supplies the accessible name, if any."""
    for strategy in NAME_STRATEGIES:
        if strategy.apply(info):
            return strategy.name
    return None


def resolve_state(info: ElementInfo, preview_length: int | None = None) -> StateFlags:
    limit = preview_length or settings.value_preview_length
    preview = None
    if info.value and info.input_type != "password":
        preview = info.value[:limit]
    return StateFlags(
        focused=info.focused,
        checked=info.checked,
        disabled=info.disabled,
        expanded=info.attributes.get("aria-expanded") == "true",
        selected=info.attributes.get("aria-selected") == "true",
        value_preview=preview,
    )


def resolve(
    info: ElementInfo, max_length: int | None = None, preview_length: int | None = None
) -> tuple[str, str, StateFlags]:
    return resolve_role(info), resolve_name(info, max_length), resolve_state(info, preview_length)
