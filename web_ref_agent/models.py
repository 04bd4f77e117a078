from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

FORM_FIELD_TAGS = {"input", "textarea", "select"}

# input types that never accept typed text
NON_TEXT_INPUT_TYPES = {
    "checkbox",
    "radio",
    "submit",
    "button",
    "reset",
    "image",
    "file",
    "range",
    "color",
    "hidden",
}


@dataclass(frozen=True)
class BoundingRegion:
    """Viewport-relative rectangle, as reported by getBoundingClientRect()."""

    x: float
    y: float
    width: float
    height: float

    @property
    def top(self) -> float:
        return self.y

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @classmethod
    def from_payload(cls, payload: Optional[dict[str, Any]]) -> "BoundingRegion":
        payload = payload or {}
        return cls(
            x=float(payload.get("x", 0.0) or 0.0),
            y=float(payload.get("y", 0.0) or 0.0),
            width=float(payload.get("width", 0.0) or 0.0),
            height=float(payload.get("height", 0.0) or 0.0),
        )


@dataclass
class ElementInfo:
    """Raw description of one candidate element, produced by the in-page describe script."""

    index: int
    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    labelledby_text: str = ""
    label_text: str = ""
    is_content_editable: bool = False
    focused: bool = False
    checked: bool = False
    disabled: bool = False
    value: Optional[str] = None
    rect: BoundingRegion = field(default_factory=lambda: BoundingRegion(0.0, 0.0, 0.0, 0.0))
    display: str = ""
    visibility: str = ""
    opacity: float = 1.0

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ElementInfo":
        opacity = payload.get("opacity")
        try:
            opacity_value = float(opacity) if opacity is not None else 1.0
        except (TypeError, ValueError):
            opacity_value = 1.0
        attributes = {str(k): str(v) for k, v in (payload.get("attributes") or {}).items() if v is not None}
        value = payload.get("value")
        return cls(
            index=int(payload.get("index", 0) or 0),
            tag=(payload.get("tag") or "").lower(),
            attributes=attributes,
            text=payload.get("text") or "",
            labelledby_text=payload.get("labelledbyText") or "",
            label_text=payload.get("labelText") or "",
            is_content_editable=bool(payload.get("isContentEditable")),
            focused=bool(payload.get("focused")),
            checked=bool(payload.get("checked")),
            disabled=bool(payload.get("disabled")),
            value=value if isinstance(value, str) else None,
            rect=BoundingRegion.from_payload(payload.get("rect")),
            display=payload.get("display") or "",
            visibility=payload.get("visibility") or "",
            opacity=opacity_value,
        )

    @property
    def input_type(self) -> Optional[str]:
        value = self.attributes.get("type")
        return value.lower() if value else None

    @property
    def explicit_role(self) -> Optional[str]:
        role = (self.attributes.get("role") or "").strip()
        return role or None

    @property
    def is_form_field(self) -> bool:
        return self.tag in FORM_FIELD_TAGS

    @property
    def is_link(self) -> bool:
        return self.tag == "a"

    @property
    def is_button(self) -> bool:
        return self.tag == "button" or (self.explicit_role or "").lower() == "button"

    @property
    def tag_hint(self) -> str:
        raw_type = self.attributes.get("type")
        if raw_type:
            return f'<{self.tag} type="{raw_type}">'
        return f"<{self.tag}>"


@dataclass
class StateFlags:
    focused: bool = False
    checked: bool = False
    disabled: bool = False
    expanded: bool = False
    selected: bool = False
    value_preview: Optional[str] = None

    def labels(self) -> list[str]:
        labels = [
            name
            for name in ("focused", "checked", "disabled", "expanded", "selected")
            if getattr(self, name)
        ]
        if self.value_preview:
            labels.append(f'value="{self.value_preview}"')
        return labels

    def render(self) -> str:
        labels = self.labels()
        return f"[{', '.join(labels)}]" if labels else ""


@dataclass
class ElementSnapshot:
    handle: str
    role: str
    accessible_name: str
    tag_hint: str
    state: StateFlags = field(default_factory=StateFlags)
    bounding_region: Optional[BoundingRegion] = None

    def render(self) -> str:
        name = f' "{self.accessible_name}"' if self.accessible_name else ""
        line = f"  - {self.role} {self.tag_hint} [ref={self.handle}]{name} {self.state.render()}"
        return line.rstrip()


@dataclass
class AccessibilityTree:
    tree: str
    url: str
    title: str
    elements: list[ElementSnapshot] = field(default_factory=list)
    total_candidates: int = 0
    generation: int = 0

    @property
    def truncated(self) -> bool:
        return self.total_candidates > len(self.elements)

    def to_dict(self) -> dict[str, Any]:
        return {"tree": self.tree, "url": self.url, "title": self.title}


class ActionKind(str, Enum):
    CLICK = "click"
    TYPE = "type"
    CLEAR = "clear"
    SELECT = "select"
    HOVER = "hover"
    PRESS_KEY = "press_key"
    SCROLL_PAGE = "scroll_page"
    SCROLL = "scroll"

    @property
    def is_page_level(self) -> bool:
        return self is ActionKind.SCROLL_PAGE

    @property
    def is_focus_relative(self) -> bool:
        return self is ActionKind.PRESS_KEY


@dataclass
class ActionRequest:
    kind: ActionKind
    handle: Optional[str] = None
    value: Optional[str] = None


@dataclass
class ActionResult:
    success: bool
    message: str
    changed: Optional[bool] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.changed is not None:
            payload["changed"] = self.changed
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class LocateResult:
    found: bool
    match_count: int
    strategy: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"found": self.found, "matchCount": self.match_count}
