from __future__ import annotations

import pytest


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({"tag_name": "BUTTON", "text_content": "Save"}, '"Save" button'),
        ({"tag_name": "div", "role": "button", "aria_label": "Close"}, '"Close" button'),
        ({"tag_name": "button"}, "button"),
        ({"tag_name": "a", "href": "https://shop.test/docs/pricing"}, "link to pricing"),
        ({"tag_name": "a", "href": "https://shop.test/"}, "link to https://shop.test/"),
        ({"tag_name": "input"}, "text input field"),
        ({"tag_name": "input", "type": "search", "placeholder": "Find"}, '"Find" search field'),
        ({"tag_name": "textarea", "name": "notes"}, '"notes" text area'),
        ({"tag_name": "select", "name": "country"}, '"country" dropdown'),
        ({"tag_name": "img", "src": "/static/logo.png?v=2"}, "image (logo.png)"),
        ({"tag_name": "span", "text_content": "Free shipping"}, '"Free shipping"'),
        ({"tag_name": "div", "id": "sidebar"}, "#sidebar div"),
        ({"tag_name": "div", "id": "a1b2c3d4e5"}, "div"),
        ({"tag_name": "div", "class_name": "_x a1b2c3d4e5f6 card"}, ".card div"),
        ({}, "element"),
    ],
)
def test_semantic_name(kwargs, expected):
    from sessionlens.features.semantic_parser.node_map import NodeInfo, semantic_name

    assert semantic_name(NodeInfo(**kwargs)) == expected


def test_semantic_name_redacts_visible_text():
    from sessionlens.features.semantic_parser.node_map import NodeInfo, semantic_name

    assert semantic_name(NodeInfo(tag_name="a", text_content="mail ann@corp.io")) == '"mail [REDACTED]" link'


def test_redact_emails_and_card_numbers():
    from sessionlens.features.semantic_parser.node_map import redact

    assert redact("card 4111 1111 1111 1111 ok") == "card [REDACTED] ok"
    assert redact("reach me: a.b+c@example.co.uk") == "reach me: [REDACTED]"
    assert redact("order 1234") == "order 1234"
    assert redact(None) == ""


def test_build_node_map_and_title():
    from sessionlens.features.semantic_parser.node_map import build_node_map, find_title

    doc = {
        "type": 0,
        "id": 1,
        "childNodes": [
            {
                "type": 2,
                "id": 2,
                "tagName": "html",
                "attributes": {},
                "childNodes": [
                    {"type": 2, "id": 3, "tagName": "title", "attributes": {}, "childNodes": [{"type": 3, "id": 4, "textContent": "Home"}]},
                    {"type": 2, "id": 5, "tagName": "a", "attributes": {"href": "/x", "class": "nav"}, "childNodes": [{"type": 3, "id": 6, "textContent": " Go "}]},
                ],
            }
        ],
    }
    node_map: dict = {}
    build_node_map(doc, node_map)

    assert set(node_map) == {2, 3, 5}
    assert node_map[5].text_content == "Go"
    assert node_map[5].class_name == "nav"
    assert node_map[5].is_interactive
    assert find_title(doc) == "Home"


def test_build_node_map_handles_deep_trees():
    from sessionlens.features.semantic_parser.node_map import build_node_map

    root = node = {"type": 2, "id": 1, "tagName": "div", "attributes": {}, "childNodes": []}
    for i in range(2, 5000):
        child = {"type": 2, "id": i, "tagName": "div", "attributes": {}, "childNodes": []}
        node["childNodes"].append(child)
        node = child

    node_map: dict = {}
    build_node_map(root, node_map)
    assert len(node_map) == 4999


def test_clock_helpers():
    from sessionlens.features.semantic_parser.node_map import clock_seconds, format_clock, format_time

    assert format_clock(0) == "00:00"
    assert format_clock(61_999) == "01:01"
    assert format_time(3_600_000) == "[60:00]"
    assert format_clock(-5) == "00:00"
    assert clock_seconds("02:05") == 125
    assert clock_seconds("[01:01]") == 61
    assert clock_seconds("bogus") == 0
