"""News feed entries parsed from XML elements."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass

DEFAULT_TITLE = "Untitled"
DEFAULT_CONTENT = "No content."


@dataclass
class NewsEntry:
    """A single news item."""

    title: str = DEFAULT_TITLE
    content: str = DEFAULT_CONTENT
    link: str = ""


def _local_name(tag: object) -> str:
    return tag.rpartition("}")[2] if isinstance(tag, str) else ""


def _child_value(element: ET.Element, name: str, default: str = "") -> str:
    """Text of the first descendant element named ``name``, or ``default``."""
    for node in element.iter():
        if node is not element and _local_name(node.tag) == name:
            return "".join(node.itertext())
    return default


def news_entry_from_xml(element: ET.Element | str | bytes) -> NewsEntry:
    """Build a :class:`NewsEntry` from an XML element or an XML document string."""
    if isinstance(element, (str, bytes)):
        element = ET.fromstring(element)
    return NewsEntry(
        title=_child_value(element, "title", DEFAULT_TITLE),
        content=_child_value(element, "content", DEFAULT_CONTENT),
        link=_child_value(element, "id"),
    )