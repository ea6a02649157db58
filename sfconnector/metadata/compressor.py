"""
XML canonicalizer for retrieved metadata files.

Reorders the root's child elements in a stable, deterministic order and
rewrites the file with uniform indentation so repeated retrieves produce
minimal diffs.
"""

import logging
import re
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Callable, Dict, List, Tuple

from sfconnector.engine.errors import InvalidInput


logger = logging.getLogger(__name__)


class SortOrder(str, Enum):
    SIMPLE_FIRST = "simpleFirst"
    COMPLEX_FIRST = "complexFirst"
    ALPHABET_ASC = "alphabetAsc"
    ALPHABET_DESC = "alphabetDesc"


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


_NAME_TAGS = ("name", "fullName")


def _sort_key(element: ET.Element) -> Tuple[str, str]:
    # Same-tag siblings are ordered by their name child, else their first child's text
    text = ""
    for child in element:
        if _local_name(child.tag) in _NAME_TAGS:
            text = (child.text or "").strip()
            break
    else:
        for child in element:
            text = (child.text or "").strip()
            break
    return _local_name(element.tag).lower(), text.lower()


def _is_complex(element: ET.Element) -> bool:
    return len(element) > 0


_ORDERINGS: Dict[SortOrder, Callable[[List[ET.Element]], List[ET.Element]]] = {
    SortOrder.SIMPLE_FIRST: lambda elements: sorted(
        elements, key=lambda e: (_is_complex(e), _sort_key(e))
    ),
    SortOrder.COMPLEX_FIRST: lambda elements: sorted(
        elements, key=lambda e: (not _is_complex(e), _sort_key(e))
    ),
    SortOrder.ALPHABET_ASC: lambda elements: sorted(elements, key=_sort_key),
    SortOrder.ALPHABET_DESC: lambda elements: sorted(elements, key=_sort_key, reverse=True),
}


def _root_namespace(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        head = f.read(2048)
    match = re.search(r'xmlns="([^"]+)"', head)
    return match.group(1) if match else ""


def compress_file(path: str, sort_order: str = SortOrder.SIMPLE_FIRST.value) -> None:
    """
    Canonicalize one XML file in place.

    Args:
        path: XML file to rewrite
        sort_order: One of simpleFirst, complexFirst, alphabetAsc,
            alphabetDesc

    Raises:
        InvalidInput: If the sort order is unknown or the file is not XML.
    """
    try:
        order = SortOrder(sort_order or SortOrder.SIMPLE_FIRST.value)
    except ValueError as e:
        raise InvalidInput(f"Unknown sort order '{sort_order}'") from e

    namespace = _root_namespace(path)
    if namespace:
        # Keep the default namespace unprefixed on write
        ET.register_namespace("", namespace)
    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise InvalidInput(f"Cannot compress '{path}': {e}") from e

    root = tree.getroot()
    ordered = _ORDERINGS[order](list(root))
    for child in list(root):
        root.remove(child)
    root.extend(ordered)

    ET.indent(tree, space="    ")
    tree.write(path, encoding="UTF-8", xml_declaration=True)
    logger.debug(f"[compressor] {path} compressed ({order.value})")
