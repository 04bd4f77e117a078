from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ..config import Settings, settings
from ..models import AccessibilityTree, ActionRequest, ActionResult, LocateResult
from .annotator import SetOfMarksAnnotator
from .dom_scanner import DomContext, SnapshotBuilder
from .executor import ActionExecutor
from .messages import (
    ClearSetOfMarks,
    DrawSetOfMarks,
    FindAndHighlight,
    GetAccessibilityTree,
    GetPageContent,
    Ping,
    WebAgentAction,
    describe_validation_error,
    parse_message,
)
from .page_content import get_page_content
from .registry import ReferenceRegistry
from .text_locator import TextLocator


class AutomationSession:
    """All automation state for one page or frame.

    Sessions share nothing, so one per tab can run side by side. Refs handed
    out by a session only resolve against that session's latest snapshot.
    """

    def __init__(self, context: DomContext, config: Settings = settings) -> None:
        self.context = context
        self.config = config
        self.registry = ReferenceRegistry(config.marker_attribute)
        self.snapshots = SnapshotBuilder(context, self.registry, config)
        self.executor = ActionExecutor(context, self.registry, config)
        self.annotator = SetOfMarksAnnotator(context, self.registry, config)
        self.locator = TextLocator(context, config)

    async def get_accessibility_tree(self) -> AccessibilityTree:
        return await self.snapshots.build()

    async def draw_set_of_marks(self) -> int:
        return await self.annotator.draw()

    async def clear_set_of_marks(self) -> int:
        return await self.annotator.clear()

    async def web_agent_action(self, request: ActionRequest) -> ActionResult:
        return await self.executor.execute(request)

    async def find_and_highlight(self, text: Optional[str]) -> LocateResult:
        return await self.locator.locate(text)

    async def get_page_content(self, limit: Optional[int] = None) -> str:
        return await get_page_content(self.context, self.config.page_content_limit if limit is None else limit)

    async def ping(self) -> dict[str, Any]:
        return {"pong": True}

    async def handle_message(self, payload: Any) -> dict[str, Any]:
        """Dispatch one raw message and return its JSON-ready response."""
        try:
            message = parse_message(payload)
        except ValidationError as exc:
            reason = describe_validation_error(exc)
            logging.warning("message_rejected reason=%s", reason)
            return {"success": False, "message": f"Invalid message: {reason}"}

        try:
            match message:
                case GetAccessibilityTree():
                    return (await self.get_accessibility_tree()).to_dict()
                case DrawSetOfMarks():
                    await self.draw_set_of_marks()
                    return {"success": True}
                case ClearSetOfMarks():
                    await self.clear_set_of_marks()
                    return {"success": True}
                case WebAgentAction():
                    return (await self.web_agent_action(message.to_request())).to_dict()
                case FindAndHighlight():
                    return (await self.find_and_highlight(message.search_text)).to_dict()
                case GetPageContent():
                    return {"content": await self.get_page_content(message.limit)}
                case Ping():
                    return await self.ping()
        except Exception as exc:
            logging.warning("message_failed action=%s reason=%s", message.action, exc)
            return {"success": False, "message": f"{message.action} failed: {exc}"}
        return {"success": False, "message": f"Unsupported message: {message.action}"}
