"""
Node identity resolution for Ariadne (rrweb driver).

Recorder events refer to elements by opaque integer node ids. This module
keeps a map from those ids to NodeInfo records, built from the initial
full snapshot and extended by the "adds" of later Mutation events, and
turns a NodeInfo into a short human-readable name.

Entries are never removed: naming a node that has since been detached
from the document is accepted.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from common.models.canonical_event import NodeType
from common.models.node_info import NodeInfo

from .decoder import DECOMPRESS_ERRORS, gunzip_latin1_json


LOG = logging.getLogger(__name__)

MAX_TEXT_CONTENT = 100
MAX_CONTAINER_TEXT = 50

PII_PATTERN = re.compile(
    r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}|(?:\d[ -]*?){13,16}"
)
HASH_LIKE_PATTERN = re.compile(r"^[a-z0-9]{8,}$", re.IGNORECASE)

NodeMap = Dict[int, NodeInfo]


def redact(text: Optional[str]) -> str:
    """Replace e-mail addresses and card-like digit runs with [REDACTED]."""
    if not text:
        return ""
    return PII_PATTERN.sub("[REDACTED]", text)


def _is_hash_like(token: str) -> bool:
    return HASH_LIKE_PATTERN.match(token) is not None


def _last_segment(value: str) -> str:
    return value.split("/")[-1]


# --------------------------------------------------------------------------- #
# Naming
# --------------------------------------------------------------------------- #


def get_semantic_name(info: NodeInfo) -> str:
    """
    Describe an element in a few words.

    Priority (first match wins):

        1. button / role=button: text, aria-label, else "button"
        2. a: text, aria-label, last href segment, else "link"
        3. input: placeholder, name, aria-label, else "<type> input field"
        4. textarea: placeholder, name, else "text area"
        5. select: name, else "dropdown"
        6. img: file name of src, else "image"
        7. div/span with short text: the quoted text
        8. aria-label
        9. id, unless it looks generated
        10. first class that does not look generated
        11. bare tag name
    """
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
            return f"link to {_last_segment(info.href) or info.href}"
        return "link"

    if tag == "input":
        input_type = info.type or "text"
        if info.placeholder:
            return f'"{info.placeholder}" {input_type} field'
        if info.name:
            return f'"{info.name}" {input_type} field'
        if aria:
            return f'"{aria}" {input_type} field'
        return f"{input_type} input field"

    if tag == "textarea":
        if info.placeholder:
            return f'"{info.placeholder}" text area'
        if info.name:
            return f'"{info.name}" text area'
        return "text area"

    if tag == "select":
        if info.name:
            return f'"{info.name}" dropdown'
        return "dropdown"

    if tag == "img":
        if info.src:
            filename = _last_segment(info.src).split("?")[0] or "image"
            return f"image ({filename})"
        return "image"

    if tag in ("div", "span") and text and len(text) < MAX_CONTAINER_TEXT:
        return f'"{redact(text)}"'

    if aria:
        return f'"{aria}" {tag}'

    if info.id and not _is_hash_like(info.id) and not info.id.startswith(":r"):
        return f"#{info.id} {tag}"

    if info.class_name:
        classes = [
            c
            for c in info.class_name.split(" ")
            if len(c) > 2 and not c.startswith("_") and not _is_hash_like(c)
        ]
        if classes:
            return f".{classes[0]} {tag}"

    return tag


# --------------------------------------------------------------------------- #
# Map building
# --------------------------------------------------------------------------- #


def _attr(attributes: Dict[str, Any], key: str) -> Optional[str]:
    value = attributes.get(key)
    if value is None or value is False:
        return None
    return str(value)


def _node_info_from(node: Dict[str, Any]) -> NodeInfo:
    attributes = node.get("attributes")
    if not isinstance(attributes, dict):
        attributes = {}

    info = NodeInfo(
        tag_name=str(node.get("tagName") or ""),
        id=_attr(attributes, "id"),
        class_name=_attr(attributes, "class"),
        type=_attr(attributes, "type"),
        placeholder=_attr(attributes, "placeholder"),
        name=_attr(attributes, "name"),
        role=_attr(attributes, "role"),
        aria_label=_attr(attributes, "aria-label"),
        href=_attr(attributes, "href"),
        src=_attr(attributes, "src"),
    )

    children = node.get("childNodes")
    if isinstance(children, list):
        parts = []
        for child in children:
            if isinstance(child, dict) and child.get("type") == NodeType.TEXT:
                chunk = str(child.get("textContent") or "").strip()
                if chunk:
                    parts.append(chunk)
        text = " ".join(parts).strip()
        if text and len(text) < MAX_TEXT_CONTENT:
            info.text_content = text

    return info


def build_node_map(node: Any, node_map: NodeMap) -> None:
    """
    Walk a serialized node tree and add every identified element.

    Existing entries for the same id are replaced; nothing is removed.
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if not isinstance(current, dict):
            continue

        node_id = current.get("id")
        if node_id and current.get("type") == NodeType.ELEMENT:
            try:
                node_map[int(node_id)] = _node_info_from(current)
            except (TypeError, ValueError):
                LOG.debug("Ignoring node with non-integer id %r", node_id)

        children = current.get("childNodes")
        if isinstance(children, list):
            # Reverse so that document order is preserved when popping.
            stack.extend(reversed(children))


def find_page_title(node: Any) -> Optional[str]:
    """Return the text of the first <title> element in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        if not isinstance(current, dict):
            continue
        children = current.get("childNodes")
        if current.get("tagName") == "title" and isinstance(children, list) and children:
            first = children[0]
            if isinstance(first, dict) and first.get("textContent"):
                return str(first["textContent"])
        if isinstance(children, list):
            stack.extend(reversed(children))
    return None


def decode_snapshot_data(data: Any) -> Optional[Dict[str, Any]]:
    """
    Return a FullSnapshot payload as a dict.

    String payloads are tried as Latin-1 gzip JSON, then as plain JSON.
    Returns None if nothing works.
    """
    if isinstance(data, dict):
        return data
    if not isinstance(data, str):
        return None
    try:
        parsed = gunzip_latin1_json(data)
    except DECOMPRESS_ERRORS:
        try:
            parsed = json.loads(data)
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


# --------------------------------------------------------------------------- #
# Resolver
# --------------------------------------------------------------------------- #


class NodeResolver:
    """
    Per-parse node id -> NodeInfo map.

    Usage:

        resolver = NodeResolver()
        resolver.load_snapshot(full_snapshot_event.data)
        ...
        resolver.apply_mutation(mutation_event.data)
        name = resolver.name_for(42)
    """

    def __init__(self) -> None:
        self.nodes: NodeMap = {}
        self.page_title: str = ""

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: Any) -> Optional[NodeInfo]:
        try:
            return self.nodes.get(int(node_id))
        except (TypeError, ValueError):
            return None

    def load_snapshot(self, data: Any) -> bool:
        """
        Index a FullSnapshot payload.

        Returns False (and keeps the current map) if the payload cannot be
        decoded; later names then degrade to placeholders.
        """
        snapshot = decode_snapshot_data(data)
        if snapshot is None:
            LOG.warning("Could not decompress or parse snapshot data")
            return False

        root = snapshot.get("node")
        if not root:
            return False

        build_node_map(root, self.nodes)
        self.page_title = find_page_title(root) or ""
        return True

    def apply_mutation(self, data: Dict[str, Any]) -> int:
        """Index the subtrees added by a Mutation payload. Returns len(adds)."""
        adds = data.get("adds")
        if not isinstance(adds, list):
            return 0
        for add in adds:
            if isinstance(add, dict) and add.get("node"):
                build_node_map(add["node"], self.nodes)
        return len(adds)

    def name_for(self, node_id: Any, placeholder: str = "element") -> str:
        """Semantic name of a node, or "<placeholder> #<id>" if unknown."""
        info = self.get(node_id)
        if info is None:
            return f"{placeholder} #{node_id}"
        return get_semantic_name(info)
