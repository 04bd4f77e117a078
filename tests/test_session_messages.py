import asyncio
import logging

import pytest

from web_ref_agent.agent.annotator import DRAW_MARKS_SCRIPT
from web_ref_agent.agent.messages import WebAgentAction, parse_message
from web_ref_agent.agent.page_content import PAGE_CONTENT_SCRIPT
from web_ref_agent.agent.session import AutomationSession
from web_ref_agent.agent.text_locator import CLEAR_HIGHLIGHTS_SCRIPT, SPAN_SCRIPT
from web_ref_agent.models import ActionKind

from fakes import FakeElement, FakePage, element_payload


def make_session(*elements: FakeElement) -> tuple[FakePage, AutomationSession]:
    page = FakePage(list(elements), title="Shop", url="https://shop.test/")
    return page, AutomationSession(page)


def send(session: AutomationSession, payload):
    return asyncio.run(session.handle_message(payload))


def test_accessibility_tree_message():
    _, session = make_session(FakeElement(element_payload("button", "Submit")))

    response = send(session, {"action": "getAccessibilityTree"})

    assert response == {
        "tree": 'page [title="Shop"] [url="https://shop.test/"]\n  - button <button> [ref=e0] "Submit"',
        "url": "https://shop.test/",
        "title": "Shop",
    }


def test_action_message_accepts_ref_alias():
    field = FakeElement(element_payload("input", attributes={"placeholder": "Search..."}))
    _, session = make_session(field)
    send(session, {"action": "getAccessibilityTree"})

    response = send(session, {"action": "webAgentAction", "ref": "e0", "actionType": "type", "value": "shoes"})

    assert response == {"success": True, "message": 'Typed "shoes" into e0', "changed": True}
    assert field.value == "shoes"


def test_action_message_before_any_snapshot_is_not_found():
    _, session = make_session(FakeElement(element_payload("button", "Submit")))

    response = send(session, {"action": "webAgentAction", "handle": "e0", "actionType": "click"})

    assert response["success"] is False
    assert response["error"] == "NotFound"
    assert "request a new snapshot" in response["message"]


def test_scroll_page_message_uses_value_as_direction():
    _, session = make_session()

    response = send(session, {"action": "webAgentAction", "actionType": "scroll_page", "value": "down"})

    assert response["success"] is True
    assert response["message"].startswith("Scrolled down.")


def test_marks_messages():
    page, session = make_session(FakeElement(element_payload("button", "A")))
    send(session, {"action": "getAccessibilityTree"})

    assert send(session, {"action": "drawSetOfMarks"}) == {"success": True}
    assert send(session, {"action": "clearSetOfMarks"}) == {"success": True}
    assert DRAW_MARKS_SCRIPT in page.scripts()


def test_find_and_highlight_message():
    page, session = make_session()
    page.on(CLEAR_HIGHLIGHTS_SCRIPT, 0)
    page.on(SPAN_SCRIPT, 2)

    assert send(session, {"action": "findAndHighlight", "searchText": "free shipping"}) == {
        "found": True,
        "matchCount": 2,
    }


def test_page_content_and_ping():
    page, session = make_session()
    page.on(PAGE_CONTENT_SCRIPT, lambda arg: "x" * arg["limit"])

    assert send(session, {"action": "getPageContent", "limit": 12}) == {"content": "x" * 12}
    assert send(session, {"action": "getPageContent"}) == {"content": "x" * 100000}
    assert send(session, {"action": "ping"}) == {"pong": True}


@pytest.mark.parametrize(
    "payload",
    [
        {"action": "launchRockets"},
        {"actionType": "click"},
        {"action": "webAgentAction", "handle": "e0", "actionType": "doubleClick"},
        "getAccessibilityTree",
    ],
)
def test_malformed_messages_are_rejected(payload, caplog):
    _, session = make_session()

    with caplog.at_level(logging.WARNING):
        response = send(session, payload)

    assert response["success"] is False
    assert response["message"].startswith("Invalid message")
    assert "message_rejected" in caplog.text


def test_page_failures_become_unsuccessful_responses():
    def closed(_arg):
        raise RuntimeError("Target closed")

    page, session = make_session()
    page.on(PAGE_CONTENT_SCRIPT, closed)

    response = send(session, {"action": "getPageContent"})

    assert response == {"success": False, "message": "getPageContent failed: Target closed"}


def test_action_model_normalises_values():
    message = parse_message({"action": "webAgentAction", "ref": "e3", "actionType": "select", "value": 2})
    assert isinstance(message, WebAgentAction)

    request = message.to_request()
    assert request.kind is ActionKind.SELECT
    assert (request.handle, request.value) == ("e3", "2")


def test_page_level_action_drops_handle():
    message = parse_message({"action": "webAgentAction", "handle": "e3", "actionType": "scroll_page", "value": "down"})

    request = message.to_request()

    assert request.kind is ActionKind.SCROLL_PAGE
    assert request.handle is None
    assert request.value == "down"


def test_empty_handle_is_treated_as_missing():
    message = parse_message({"action": "webAgentAction", "handle": "", "actionType": "press_key"})

    assert message.to_request().handle is None
