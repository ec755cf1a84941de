"""
Node identity model for Ariadne.

A NodeInfo is the small set of attributes we keep about a recorded DOM
element so that later events, which only carry an opaque integer id, can
be described in human terms ("Buy" button, "email" text field, ...).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class NodeInfo:
    """
    Semantic attributes of one recorded element.

    Attributes:
        tag_name:
            Tag name as recorded (may be empty for odd nodes).
        id:
            The element's DOM `id` attribute (not the recorder node id).
        class_name:
            Raw `class` attribute, space separated.
        type:
            `type` attribute (inputs: text, password, submit, ...).
        placeholder, name, role, aria_label, href, src:
            The corresponding attributes.
        text_content:
            Short text taken from direct text children (< 100 chars).
    """

    tag_name: str = ""
    id: Optional[str] = None
    class_name: Optional[str] = None
    type: Optional[str] = None
    placeholder: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    aria_label: Optional[str] = None
    text_content: Optional[str] = None
    href: Optional[str] = None
    src: Optional[str] = None

    @property
    def tag(self) -> str:
        """Lower-cased tag name ("" if unknown)."""
        return (self.tag_name or "").lower()

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
