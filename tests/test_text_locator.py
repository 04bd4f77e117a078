import asyncio

from web_ref_agent.agent.text_locator import (
    BLOCK_SCRIPT,
    CLEAR_HIGHLIGHTS_SCRIPT,
    SPAN_SCRIPT,
    TextLocator,
    block_probe,
    span_probe,
)

from fakes import FakePage


def locator_page(span_matches=0, block_matches=0):
    page = FakePage()
    page.on(CLEAR_HIGHLIGHTS_SCRIPT, 0)
    page.on(SPAN_SCRIPT, span_matches)
    page.on(BLOCK_SCRIPT, block_matches)
    return page


def probes(page: FakePage, script: str) -> list[str]:
    return [arg["probe"] for called, arg in page.calls if called == script]


def test_blank_snippet_is_not_found_without_touching_page():
    page = locator_page(span_matches=3)

    result = asyncio.run(TextLocator(page).locate("   "))

    assert result.to_dict() == {"found": False, "matchCount": 0}
    assert page.calls == []


def test_exact_span_match_clears_previous_highlights_first():
    page = locator_page(span_matches=2)

    result = asyncio.run(TextLocator(page).locate("  pricing plans "))

    assert result.to_dict() == {"found": True, "matchCount": 2}
    assert result.strategy == "exact-span"
    assert page.scripts() == [CLEAR_HIGHLIGHTS_SCRIPT, SPAN_SCRIPT]
    assert probes(page, SPAN_SCRIPT) == ["pricing plans"]
    span_arg = page.calls[1][1]
    assert span_arg["maxMatches"] == 3
    assert (span_arg["fadeMs"], span_arg["removeMs"]) == (5000, 5000)


def test_long_snippet_probes_with_first_eighty_chars():
    snippet = "".join(chr(ord("a") + i % 26) for i in range(500))
    page = locator_page(span_matches=1)

    asyncio.run(TextLocator(page).locate(snippet))

    assert probes(page, SPAN_SCRIPT) == [snippet[:80]]


def test_falls_back_to_block_highlight():
    snippet = "The quick brown fox jumps over the lazy dog near the river bank"
    page = locator_page(span_matches=0, block_matches=1)

    result = asyncio.run(TextLocator(page).locate(snippet))

    assert result.found and result.match_count == 1
    assert result.strategy == "prefix-block"
    assert probes(page, BLOCK_SCRIPT) == [snippet[:40]]


def test_short_snippet_never_uses_block_fallback():
    page = locator_page(span_matches=0, block_matches=1)

    result = asyncio.run(TextLocator(page).locate("short phrase"))

    assert not result.found
    assert BLOCK_SCRIPT not in page.scripts()


def test_probe_lengths():
    assert span_probe("x" * 100) == "x" * 100
    assert span_probe("x" * 101) == "x" * 80
    assert block_probe("x" * 20) is None
    assert block_probe("x" * 21) == "x" * 21
    assert block_probe("x" * 300) == "x" * 40
