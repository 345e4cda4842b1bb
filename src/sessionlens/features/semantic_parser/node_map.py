from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sessionlens.features.events.schema import NodeType

PII_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}|(?:\d[ -]*?){13,16}")
REDACTED = "[REDACTED]"

# ids/classes that look machine-generated carry no meaning for a reader
_GENERATED_TOKEN_RE = re.compile(r"^[a-z0-9]{8,}$", re.IGNORECASE)

MAX_NODE_TEXT = 100
MAX_INLINE_TEXT = 50

INTERACTIVE_TAGS: frozenset[str] = frozenset({"button", "a", "input", "select"})


def redact(text: str | None) -> str:
    if not text:
        return ""
    return PII_RE.sub(REDACTED, text)


def format_clock(ms: int) -> str:
    seconds = max(0, int(ms)) // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def format_time(ms: int) -> str:
    return f"[{format_clock(ms)}]"


@dataclass(frozen=True, slots=True)
class NodeInfo:
    tag_name: str = ""
    id: str | None = None
    class_name: str | None = None
    type: str | None = None
    placeholder: str | None = None
    name: str | None = None
    role: str | None = None
    aria_label: str | None = None
    text_content: str | None = None
    href: str | None = None
    src: str | None = None

    @property
    def tag(self) -> str:
        return (self.tag_name or "").lower()

    @property
    def is_interactive(self) -> bool:
        return self.tag in INTERACTIVE_TAGS or self.role == "button"

    @classmethod
    def from_element_info(cls, info: Mapping[str, Any]) -> NodeInfo:
        """Element description attached to clicks synthesized from analytics events."""

        def s(key: str) -> str | None:
            v = info.get(key)
            return str(v) if v not in (None, "") else None

        return cls(
            tag_name=s("tagName") or "",
            id=s("id"),
            class_name=s("className"),
            text_content=s("textContent"),
            href=s("href"),
        )


def _attr(attrs: Mapping[str, Any], key: str) -> str | None:
    v = attrs.get(key)
    if v is None or isinstance(v, bool):
        return None
    return str(v)


def _direct_text(node: Mapping[str, Any]) -> str | None:
    parts = []
    for child in node.get("childNodes") or []:
        if isinstance(child, dict) and child.get("type") == NodeType.TEXT:
            text = (child.get("textContent") or "").strip()
            if text:
                parts.append(text)
    text = " ".join(parts).strip()
    if text and len(text) < MAX_NODE_TEXT:
        return text
    return None


def _node_info(node: Mapping[str, Any]) -> NodeInfo:
    attrs = node.get("attributes") or {}
    if not isinstance(attrs, dict):
        attrs = {}
    return NodeInfo(
        tag_name=str(node.get("tagName") or ""),
        id=_attr(attrs, "id"),
        class_name=_attr(attrs, "class"),
        type=_attr(attrs, "type"),
        placeholder=_attr(attrs, "placeholder"),
        name=_attr(attrs, "name"),
        role=_attr(attrs, "role"),
        aria_label=_attr(attrs, "aria-label"),
        text_content=_direct_text(node),
        href=_attr(attrs, "href"),
        src=_attr(attrs, "src"),
    )


def build_node_map(root: Any, node_map: dict[int, NodeInfo]) -> None:
    """
    Record every element node under `root` (inclusive) by its serialized id.
    Iterative so deeply nested documents cannot hit the recursion limit.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        node_id = node.get("id")
        if node.get("type") == NodeType.ELEMENT and isinstance(node_id, int) and node_id:
            node_map[node_id] = _node_info(node)
        children = node.get("childNodes")
        if isinstance(children, list):
            stack.extend(children)


def find_title(root: Any) -> str:
    """Text of the first <title> element in document order, else ""."""
    stack = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        children = node.get("childNodes")
        children = children if isinstance(children, list) else []
        if node.get("tagName") == "title" and children:
            first = children[0]
            text = first.get("textContent") if isinstance(first, dict) else None
            if text:
                return str(text)
        stack.extend(reversed(children))
    return ""


def _meaningful_class(class_name: str) -> str | None:
    for c in class_name.split(" "):
        if len(c) > 2 and not c.startswith("_") and not _GENERATED_TOKEN_RE.match(c):
            return c
    return None


def semantic_name(info: NodeInfo) -> str:
    """Human-readable label for an element, e.g. '"Checkout" button'."""
    tag = info.tag or "element"
    text = info.text_content
    aria = info.aria_label

    if tag == "button" or info.role == "button":
        if text:
            return f'"{redact(text)}" button'
        if aria:
            return f'"{aria}" button'
        return "button"

    if tag == "a":
        if text:
            return f'"{redact(text)}" link'
        if aria:
            return f'"{aria}" link'
        if info.href:
            return f"link to {info.href.split('/')[-1] or info.href}"
        return "link"

    if tag == "input":
        input_type = info.type or "text"
        label = info.placeholder or info.name or aria
        if label:
            return f'"{label}" {input_type} field'
        return f"{input_type} input field"

    if tag == "textarea":
        label = info.placeholder or info.name
        return f'"{label}" text area' if label else "text area"

    if tag == "select":
        return f'"{info.name}" dropdown' if info.name else "dropdown"

    if tag == "img":
        if info.src:
            filename = info.src.split("/")[-1].split("?")[0] or "image"
            return f"image ({filename})"
        return "image"

    if tag in ("div", "span") and text and len(text) < MAX_INLINE_TEXT:
        return f'"{redact(text)}"'

    if aria:
        return f'"{aria}" {tag}'

    if info.id and not _GENERATED_TOKEN_RE.match(info.id) and not info.id.startswith(":r"):
        return f"#{info.id} {tag}"

    if info.class_name:
        cls = _meaningful_class(info.class_name)
        if cls:
            return f".{cls} {tag}"

    return tag


def clock_seconds(clock: str) -> int:
    """Inverse of format_clock: "MM:SS" -> seconds. Malformed input reads as 0."""
    minutes, _, seconds = clock.strip("[] ").partition(":")
    try:
        return int(minutes) * 60 + int(seconds)
    except ValueError:
        return 0
