"""
package.xml materializer.

Turns a selection tree into a Metadata API manifest listing every checked
member.
"""

import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from sfconnector.metadata.registry import is_folder_type
from sfconnector.metadata.tree import MetadataMap


logger = logging.getLogger(__name__)

METADATA_NAMESPACE = "http://soap.sforce.com/2006/04/metadata"
PACKAGE_FILE_NAME = "package.xml"
DEFAULT_API_VERSION = "60.0"


def get_package_members(metadata: MetadataMap, explicit: bool = True) -> Dict[str, List[str]]:
    """
    Collect the manifest members of every type in the tree.

    Args:
        metadata: Selection tree
        explicit: List every checked member by name. When False, a checked
            type is written as '*' even if it has children.

    Returns:
        Type name -> sorted member names (types without members are omitted).
    """
    members: Dict[str, List[str]] = {}
    for type_name, metadata_type in metadata.items():
        if not explicit and metadata_type.checked:
            members[type_name] = ["*"]
            continue
        if not metadata_type.have_children():
            if metadata_type.checked:
                members[type_name] = ["*"]
            continue

        separator = "/" if is_folder_type(type_name) else "."
        type_members: List[str] = []
        for object_name, metadata_object in metadata_type.childs.items():
            if metadata_object.have_children():
                if is_folder_type(type_name) and metadata_object.checked:
                    # Folders are retrieved as members of their own
                    type_members.append(object_name)
                for item_name, metadata_item in metadata_object.childs.items():
                    if metadata_item.checked:
                        type_members.append(f"{object_name}{separator}{item_name}")
            elif metadata_object.checked:
                type_members.append(object_name)
        if type_members:
            members[type_name] = sorted(set(type_members), key=lambda name: name.lower())
    return members


def _build_package(members: Dict[str, List[str]], api_version: str) -> ET.ElementTree:
    ET.register_namespace("", METADATA_NAMESPACE)
    root = ET.Element(f"{{{METADATA_NAMESPACE}}}Package")
    for type_name in sorted(members.keys(), key=lambda name: name.lower()):
        types_element = ET.SubElement(root, f"{{{METADATA_NAMESPACE}}}types")
        for member in members[type_name]:
            ET.SubElement(types_element, f"{{{METADATA_NAMESPACE}}}members").text = member
        ET.SubElement(types_element, f"{{{METADATA_NAMESPACE}}}name").text = type_name
    ET.SubElement(root, f"{{{METADATA_NAMESPACE}}}version").text = api_version
    tree = ET.ElementTree(root)
    ET.indent(tree, space="    ")
    return tree


def create_package(
    metadata: MetadataMap,
    folder: str,
    api_version: Optional[str] = None,
    explicit: bool = True,
    file_name: str = PACKAGE_FILE_NAME,
) -> str:
    """
    Write a package manifest for a selection tree.

    Args:
        metadata: Selection tree
        folder: Output folder (created if missing)
        api_version: Manifest API version (defaults to DEFAULT_API_VERSION)
        explicit: See get_package_members()
        file_name: Manifest file name

    Returns:
        Path of the written manifest.
    """
    members = get_package_members(metadata, explicit=explicit)
    os.makedirs(folder, exist_ok=True)
    path = os.path.join(folder, file_name)
    tree = _build_package(members, str(api_version or DEFAULT_API_VERSION))
    tree.write(path, encoding="UTF-8", xml_declaration=True)
    logger.info(f"[package] Wrote {path} ({len(members)} types)")
    return path
