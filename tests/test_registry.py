import asyncio
import logging

import pytest

from web_ref_agent.agent.registry import ReferenceRegistry

from fakes import FakeElement, element_payload


def marked(handle: str, attr: str = "data-agent-ref"):
    node = FakeElement(element_payload("button", handle))
    node.attributes[attr] = handle
    return node, node.new_handle()


def test_replace_bumps_generation_and_invalidates_old_handles():
    registry = ReferenceRegistry()
    old_node, old_handle = marked("e0")
    new_node, new_handle = marked("e0")

    assert asyncio.run(registry.replace([("e0", old_handle)])) == 1
    assert registry.resolve("e0") is old_handle

    assert asyncio.run(registry.replace([("e0", new_handle)])) == 2
    assert registry.resolve("e0") is new_handle
    assert old_handle.disposed
    assert "data-agent-ref" not in old_node.attributes
    assert new_node.attributes["data-agent-ref"] == "e0"


def test_stale_handles_resolve_to_nothing():
    registry = ReferenceRegistry()
    _, first = marked("e0")
    _, second = marked("e1")
    asyncio.run(registry.replace([("e0", first), ("e1", second)]))
    asyncio.run(registry.replace([]))

    assert registry.resolve("e0") is None
    assert registry.resolve("e1") is None
    assert len(registry) == 0
    assert registry.generation == 2


def test_release_leaves_marker_reassigned_to_another_ref():
    registry = ReferenceRegistry()
    node, handle = marked("e0")
    asyncio.run(registry.replace([("e0", handle)]))
    node.attributes["data-agent-ref"] = "e4"

    asyncio.run(registry.replace([("e4", node.new_handle())]))
    assert node.attributes["data-agent-ref"] == "e4"


def test_duplicate_handles_rejected():
    registry = ReferenceRegistry()
    _, first = marked("e0")
    _, second = marked("e0")
    with pytest.raises(ValueError):
        asyncio.run(registry.replace([("e0", first), ("e0", second)]))
    assert registry.generation == 0


def test_release_failures_are_logged_not_raised(caplog):
    registry = ReferenceRegistry()
    _, handle = marked("e0")
    asyncio.run(registry.replace([("e0", handle)]))
    handle.disposed = True  # simulates a handle from a page that navigated away

    with caplog.at_level(logging.DEBUG):
        asyncio.run(registry.replace([]))

    assert "registry_release_marker_failed ref=e0" in caplog.text


def test_sample_and_membership():
    registry = ReferenceRegistry(marker_attribute="data-test-ref")
    handles = [(f"e{i}", marked(f"e{i}", "data-test-ref")[1]) for i in range(15)]
    asyncio.run(registry.replace(handles))

    assert "e3" in registry
    assert "e99" not in registry
    assert registry.sample(4) == ["e0", "e1", "e2", "e3"]
    assert len(registry.sample()) == 10
    assert registry.resolve(None) is None
    assert registry.resolve("") is None
