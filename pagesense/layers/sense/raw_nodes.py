"""
Raw Nodes - Typed view of the extraction script's flat node map.

Every entry is classified exactly once into a text record, an element
record, or an unparseable record. The tree builder skips the last kind
instead of guessing at what it meant.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class RawTextRecord:
    text: str
    is_visible: bool = False


@dataclass(frozen=True)
class RawElementRecord:
    tag_name: str
    xpath: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    child_ids: List[str] = field(default_factory=list)
    is_visible: bool = False
    is_interactive: bool = False
    is_top_element: bool = False
    is_in_viewport: bool = True
    highlight_index: Optional[int] = None
    has_shadow_root: bool = False


@dataclass(frozen=True)
class UnparseableRecord:
    raw: Any
    reason: str


RawRecord = Union[RawTextRecord, RawElementRecord, UnparseableRecord]


def _flag(data: Dict[str, Any], *keys: str, default: bool) -> bool:
    """Read the first present boolean among ``keys``; ``None`` means absent."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return bool(value)
    return default


def _is_id(value: Any) -> bool:
    return isinstance(value, str) or _is_index(value)


def _is_index(value: Any) -> bool:
    # bool is an int subclass but never a valid id or index
    return isinstance(value, int) and not isinstance(value, bool)


def _is_text_record(data: Dict[str, Any]) -> bool:
    return data.get("isText") is True or data.get("type") == "TEXT_NODE"


def parse_raw_node(data: Any) -> RawRecord:
    """
    Classify one raw map entry.

    Both the abstract shape (``isText``, ``childIds``, ``hasShadowRoot``) and
    the shape emitted by the bundled buildDomTree script (``type:
    "TEXT_NODE"``, ``children``, ``shadowRoot``) are understood.

    Args:
        data: One value from the extraction result's ``map``

    Returns:
        A RawTextRecord, RawElementRecord or UnparseableRecord
    """
    if not isinstance(data, dict) or not data:
        return UnparseableRecord(raw=data, reason="entry is empty or not an object")

    if _is_text_record(data):
        text = data.get("text")
        return RawTextRecord(
            text=text if isinstance(text, str) else "",
            is_visible=_flag(data, "isVisible", default=False),
        )

    tag_name = data.get("tagName")
    if not isinstance(tag_name, str) or not tag_name:
        return UnparseableRecord(raw=data, reason="missing tagName and not a text record")

    raw_children = data.get("childIds")
    if raw_children is None:
        raw_children = data.get("children")
    if raw_children is None:
        raw_children = []
    if not isinstance(raw_children, (list, tuple)) or not all(
        _is_id(child_id) for child_id in raw_children
    ):
        return UnparseableRecord(raw=data, reason="child list is not a list of ids")

    attributes = data.get("attributes")
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        return UnparseableRecord(raw=data, reason="attributes is not an object")

    xpath = data.get("xpath")
    if xpath is not None and not isinstance(xpath, str):
        return UnparseableRecord(raw=data, reason="xpath is not a string")

    highlight_index = data.get("highlightIndex")
    if highlight_index is not None and not _is_index(highlight_index):
        return UnparseableRecord(raw=data, reason="highlightIndex is not an integer")

    return RawElementRecord(
        tag_name=tag_name,
        xpath=xpath or "",
        attributes={str(k): "" if v is None else str(v) for k, v in attributes.items()},
        child_ids=[str(child_id) for child_id in raw_children],
        is_visible=_flag(data, "isVisible", default=False),
        is_interactive=_flag(data, "isInteractive", default=False),
        is_top_element=_flag(data, "isTopElement", default=False),
        is_in_viewport=_flag(data, "isInViewport", default=True),
        highlight_index=highlight_index,
        has_shadow_root=_flag(data, "hasShadowRoot", "shadowRoot", default=False),
    )
