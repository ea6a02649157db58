"""
Metadata selection tree operations.

Union of partial trees, bulk checking, deterministic ordering and validation
of user-supplied selections (Metadata JSON objects or files).
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from sfconnector.engine.errors import InvalidInput
from sfconnector.metadata.models import MetadataDetail, MetadataItem, MetadataObject, MetadataType


logger = logging.getLogger(__name__)

MetadataMap = Dict[str, MetadataType]


def have_children(node: Any) -> bool:
    """True if a type/object (model or raw dict) has a non-empty children map."""
    if node is None:
        return False
    if isinstance(node, dict):
        return bool(node.get("childs"))
    return bool(getattr(node, "childs", None))


def _union_items(a: Dict[str, MetadataItem], b: Dict[str, MetadataItem]) -> Dict[str, MetadataItem]:
    result: Dict[str, MetadataItem] = {}
    for name in list(a.keys()) + [key for key in b.keys() if key not in a]:
        left, right = a.get(name), b.get(name)
        if left is None or right is None:
            result[name] = (left or right).model_copy(deep=True)
            continue
        merged = left.model_copy(deep=True)
        merged.checked = left.checked or right.checked
        merged.path = left.path or right.path
        result[name] = merged
    return result


def _union_objects(a: Dict[str, MetadataObject], b: Dict[str, MetadataObject]) -> Dict[str, MetadataObject]:
    result: Dict[str, MetadataObject] = {}
    for name in list(a.keys()) + [key for key in b.keys() if key not in a]:
        left, right = a.get(name), b.get(name)
        if left is None or right is None:
            result[name] = (left or right).model_copy(deep=True)
            continue
        result[name] = MetadataObject(
            name=left.name,
            checked=left.checked or right.checked,
            path=left.path or right.path,
            childs=_union_items(left.childs, right.childs),
        )
    return result


def combine(tree_a: Optional[MetadataMap], tree_b: Optional[MetadataMap]) -> MetadataMap:
    """
    Union two selection trees without mutating either input.

    Checked flags are OR-ed at every level and children are unioned by name.
    A key present in only one tree is copied verbatim.

    Args:
        tree_a: First tree (e.g. scanned from the local project)
        tree_b: Second tree (e.g. described from the org)

    Returns:
        New combined tree.
    """
    tree_a = tree_a or {}
    tree_b = tree_b or {}
    result: MetadataMap = {}
    for name in list(tree_a.keys()) + [key for key in tree_b.keys() if key not in tree_a]:
        left, right = tree_a.get(name), tree_b.get(name)
        if left is None or right is None:
            result[name] = (left or right).model_copy(deep=True)
            continue
        result[name] = MetadataType(
            name=left.name,
            checked=left.checked or right.checked,
            path=left.path or right.path,
            suffix=left.suffix or right.suffix,
            childs=_union_objects(left.childs, right.childs),
        )
    return result


def check_all(tree: MetadataMap) -> MetadataMap:
    """Mark every node of the tree as checked (in place)."""
    for metadata_type in tree.values():
        metadata_type.checked = True
        for metadata_object in metadata_type.childs.values():
            metadata_object.checked = True
            for metadata_item in metadata_object.childs.values():
                metadata_item.checked = True
    return tree


def _sorted_keys(keys: Iterable[str]) -> List[str]:
    return sorted(keys, key=lambda key: key.lower())


def order_metadata(tree: MetadataMap) -> MetadataMap:
    """Return the tree sorted case-insensitively at every level."""
    ordered: MetadataMap = {}
    for type_name in _sorted_keys(tree.keys()):
        metadata_type = tree[type_name]
        objects: Dict[str, MetadataObject] = {}
        for object_name in _sorted_keys(metadata_type.childs.keys()):
            metadata_object = metadata_type.childs[object_name]
            metadata_object.childs = {
                item_name: metadata_object.childs[item_name]
                for item_name in _sorted_keys(metadata_object.childs.keys())
            }
            objects[object_name] = metadata_object
        metadata_type.childs = objects
        ordered[type_name] = metadata_type
    return ordered


def metadata_type_names(types_or_details: Optional[Iterable[Union[str, MetadataDetail]]]) -> List[str]:
    """
    Normalize a list of type names or MetadataDetail objects to sorted names.

    Args:
        types_or_details: Type names, MetadataDetail objects, or None

    Returns:
        Type names sorted case-insensitively.
    """
    if types_or_details is None:
        return []
    if isinstance(types_or_details, (str, MetadataDetail)):
        types_or_details = [types_or_details]
    names: List[str] = []
    for entry in types_or_details:
        if isinstance(entry, MetadataDetail):
            names.append(entry.xml_name)
        elif isinstance(entry, dict) and entry.get("xmlName"):
            names.append(entry["xmlName"])
        elif isinstance(entry, str):
            names.append(entry)
    return _sorted_keys(names)


def _with_names(name: str, value: Dict[str, Any], depth: int) -> Dict[str, Any]:
    # Children maps may omit 'name'; the key is the name
    node = {"name": name, **value}
    childs = node.get("childs")
    if depth < 2 and isinstance(childs, dict):
        node["childs"] = {
            child_name: _with_names(child_name, child, depth + 1) if isinstance(child, dict) else child
            for child_name, child in childs.items()
        }
    elif childs is None:
        node.pop("childs", None)
    return node


def validate_metadata_json(data: Union[str, Dict[str, Any]]) -> MetadataMap:
    """
    Validate a Metadata JSON selection given as a map or a JSON file path.

    Args:
        data: Map of type name -> type (dict or MetadataType), or the path of
            a JSON file holding such a map

    Returns:
        Validated selection tree.

    Raises:
        InvalidInput: If the file is missing or unreadable, or the content
            does not have the Metadata JSON shape.
    """
    if isinstance(data, str):
        path = os.path.abspath(os.path.expanduser(data))
        if not os.path.isfile(path):
            raise InvalidInput(f"The metadata JSON file '{data}' does not exist or is not a file")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInput(f"The metadata JSON file '{data}' is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidInput("Metadata JSON must be an object keyed by metadata type name")

    tree: MetadataMap = {}
    for type_name, value in data.items():
        if isinstance(value, MetadataType):
            tree[type_name] = value
            continue
        if not isinstance(value, dict):
            raise InvalidInput(f"Wrong Metadata JSON format for type '{type_name}'")
        try:
            tree[type_name] = MetadataType.model_validate(_with_names(type_name, value, depth=0))
        except ValidationError as e:
            raise InvalidInput(f"Wrong Metadata JSON format for type '{type_name}': {e}") from e
    return tree


def metadata_members(types: Union[str, Iterable[str], Dict[str, Any]]) -> List[str]:
    """
    Flatten a deploy selection into CLI metadata members.

    Args:
        types: Comma separated names, a list of names, or a Metadata JSON
            selection (checked types, objects and items become 'Type',
            'Type:Object' and 'Type:Object.Item')

    Returns:
        Members in selection order.

    Raises:
        InvalidInput: If a selection map has the wrong shape.
    """
    if isinstance(types, str):
        return [member.strip() for member in types.split(",") if member.strip()]
    if not isinstance(types, dict):
        return [member.strip() for member in types if member and member.strip()]

    members: List[str] = []
    for type_name, metadata_type in validate_metadata_json(types).items():
        if not metadata_type.have_children():
            if metadata_type.checked:
                members.append(type_name)
            continue
        for object_name, metadata_object in metadata_type.childs.items():
            if metadata_object.have_children():
                members.extend(
                    f"{type_name}:{object_name}.{item_name}"
                    for item_name, item in metadata_object.childs.items()
                    if item.checked
                )
            elif metadata_object.checked:
                members.append(f"{type_name}:{object_name}")
    return members
