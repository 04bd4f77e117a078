from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from ..models import ActionKind, ActionRequest


class GetAccessibilityTree(BaseModel):
    action: Literal["getAccessibilityTree"]


class DrawSetOfMarks(BaseModel):
    action: Literal["drawSetOfMarks"]


class ClearSetOfMarks(BaseModel):
    action: Literal["clearSetOfMarks"]


class WebAgentAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["webAgentAction"]
    handle: Optional[str] = Field(default=None, validation_alias=AliasChoices("handle", "ref"))
    action_type: ActionKind = Field(validation_alias=AliasChoices("actionType", "action_type"))
    value: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify_value(cls, value: Any) -> Any:
        # agents sometimes send numbers for select options or typed text
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_request(self) -> ActionRequest:
        handle = None if self.action_type.is_page_level else (self.handle or None)
        return ActionRequest(kind=self.action_type, handle=handle, value=self.value)


class FindAndHighlight(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["findAndHighlight"]
    search_text: str = Field(default="", validation_alias=AliasChoices("searchText", "search_text"))


class GetPageContent(BaseModel):
    action: Literal["getPageContent"]
    limit: Optional[int] = Field(default=None, gt=0)


class Ping(BaseModel):
    action: Literal["ping"]


Message = Annotated[
    Union[
        GetAccessibilityTree,
        DrawSetOfMarks,
        ClearSetOfMarks,
        WebAgentAction,
        FindAndHighlight,
        GetPageContent,
        Ping,
    ],
    Field(discriminator="action"),
]

message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(payload: Any) -> Message:
    """Validate a raw message dict. Raises pydantic.ValidationError."""
    return message_adapter.validate_python(payload)


def describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message
