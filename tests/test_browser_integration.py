"""End-to-end scenarios against headless Chromium.

Skipped when Playwright's Chromium is not installed or cannot start here.
"""

import asyncio

import pytest
from playwright.async_api import async_playwright

from web_ref_agent.agent.session import AutomationSession
from web_ref_agent.models import ActionKind, ActionRequest


async def _can_launch() -> bool:
    try:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True)
            await browser.close()
        return True
    except Exception:
        return False


pytestmark = pytest.mark.skipif(not asyncio.run(_can_launch()), reason="Chromium is not available")


def on_page(html: str, scenario):
    async def runner():
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=True)
            try:
                page = await browser.new_page(viewport={"width": 1024, "height": 700})
                await page.set_content(html)
                return await scenario(page, AutomationSession(page))
            finally:
                await browser.close()

    return asyncio.run(runner())


def act(session: AutomationSession, kind: ActionKind, handle=None, value=None):
    return session.web_agent_action(ActionRequest(kind=kind, handle=handle, value=value))


def test_single_button_tree():
    async def scenario(page, session):
        return await session.get_accessibility_tree()

    tree = on_page("<title>Form</title><button>Submit</button>", scenario)

    assert tree.tree == 'page [title="Form"] [url="about:blank"]\n  - button <button> [ref=e0] "Submit"'


def test_placeholder_names_and_markers():
    async def scenario(page, session):
        tree = await session.get_accessibility_tree()
        marker = await page.get_attribute("input", "data-agent-ref")
        return tree, marker

    tree, marker = on_page('<input type="text" placeholder="Search...">', scenario)

    assert tree.elements[0].role == "textbox"
    assert tree.elements[0].accessible_name == "Search..."
    assert marker == "e0"


def test_type_fires_input_and_change_once():
    html = """
    <input id="q">
    <script>
      window.counts = { input: 0, change: 0 };
      const q = document.getElementById('q');
      q.addEventListener('input', () => window.counts.input++);
      q.addEventListener('change', () => window.counts.change++);
    </script>
    """

    async def scenario(page, session):
        await session.get_accessibility_tree()
        result = await act(session, ActionKind.TYPE, "e0", "hello world")
        return result, await page.input_value("#q"), await page.evaluate("window.counts")

    result, value, counts = on_page(html, scenario)

    assert result.success
    assert value == "hello world"
    assert counts == {"input": 1, "change": 1}


def test_click_scrolls_offscreen_button_into_view():
    html = """
    <div style="height: 1000px">spacer</div>
    <button onclick="window.clicked = true">Far away</button>
    """

    async def scenario(page, session):
        await session.get_accessibility_tree()
        result = await act(session, ActionKind.CLICK, "e0")
        await page.wait_for_timeout(800)
        return result, await page.evaluate("window.clicked === true"), await page.evaluate("window.scrollY")

    result, clicked, scroll_y = on_page(html, scenario)

    assert result.message == 'Clicked "Far away" (e0)'
    assert clicked
    assert scroll_y > 0


def test_select_by_substring_and_wrong_kind():
    html = """
    <select id="country"><option value="">Choose</option><option value="gb">United Kingdom</option></select>
    <button>Go</button>
    """

    async def scenario(page, session):
        await session.get_accessibility_tree()
        selected = await act(session, ActionKind.SELECT, "e0", "kingdom")
        wrong = await act(session, ActionKind.SELECT, "e1", "kingdom")
        return selected, wrong, await page.input_value("#country")

    selected, wrong, value = on_page(html, scenario)

    assert selected.success
    assert value == "gb"
    assert wrong.error == "WrongElementKind"
    assert "<button>" in wrong.message


def test_handles_do_not_survive_a_new_snapshot():
    async def scenario(page, session):
        await session.get_accessibility_tree()
        await page.evaluate("document.getElementById('first').remove()")
        await session.get_accessibility_tree()
        return await act(session, ActionKind.CLICK, "e1")

    result = on_page('<button id="first">One</button><button>Two</button>', scenario)

    assert result.error == "NotFound"
    assert "Available refs: e0" in result.message


def test_enter_submits_form():
    html = """
    <form onsubmit="event.preventDefault(); window.submitted = true;">
      <input name="q" placeholder="Query">
      <button type="submit">Search</button>
    </form>
    """

    async def scenario(page, session):
        await session.get_accessibility_tree()
        result = await act(session, ActionKind.PRESS_KEY, "e0", "Enter")
        return result, await page.evaluate("window.submitted === true")

    result, submitted = on_page(html, scenario)

    assert result.success
    assert submitted


def test_scroll_page_reaches_bottom():
    async def scenario(page, session):
        messages = []
        for _ in range(15):
            result = await act(session, ActionKind.SCROLL_PAGE, value="down")
            messages.append(result.message)
            if result.changed is False:
                break
            await page.wait_for_timeout(700)
        return messages

    messages = on_page('<div style="height: 3000px">tall</div>', scenario)

    assert messages[0].startswith("Scrolled down. Position:")
    assert messages[-1] == "Already at the bottom of the page. No more content below."


def test_find_and_highlight_and_marks():
    html = "<p>Free shipping on all orders over fifty dollars.</p><a href='#'>Details</a>"

    async def scenario(page, session):
        located = await session.find_and_highlight("free SHIPPING")
        highlights = await page.locator("mark.__agent-highlight").count()
        await session.get_accessibility_tree()
        drawn = await session.draw_set_of_marks()
        marks = await page.locator(".__agent-som-mark").count()
        await session.clear_set_of_marks()
        remaining = await page.locator(".__agent-som-mark").count()
        return located, highlights, drawn, marks, remaining

    located, highlights, drawn, marks, remaining = on_page(html, scenario)

    assert located.found and located.match_count == 1
    assert highlights == 1
    assert drawn == 1
    assert marks == 2
    assert remaining == 0
