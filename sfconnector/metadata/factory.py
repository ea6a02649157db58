"""
Metadata tree factory.

Builds MetadataDetail lists and MetadataType trees from CLI responses, SOQL
records and scans of a local source-format project.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from sfconnector.metadata.models import (
    MetadataDetail,
    MetadataItem,
    MetadataObject,
    MetadataType,
    SObject,
    SObjectField,
)
from sfconnector.metadata.registry import (
    CHILD_TYPE_FOLDERS,
    FOLDER_TYPE_BY_METADATA_TYPE,
    NOT_INCLUDED_METADATA,
    OBJECT_FOLDER_TYPES,
    SOURCE_ROOT,
    UNFILED_FOLDER,
    MetadataTypes,
    is_folder_type,
)
from sfconnector.metadata.tree import MetadataMap, order_metadata
from sfconnector.shared.contracts.results import ExportTreeDataResult


logger = logging.getLogger(__name__)

GLOBAL_ACTIONS = "GlobalActions"


def _force_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _include_namespace(namespace: Optional[str], org_namespace: str, download_all: bool) -> bool:
    if download_all or not namespace:
        return True
    return namespace == org_namespace


# ============================================================================
# Metadata details
# ============================================================================


def create_metadata_details(objects: Any) -> List[MetadataDetail]:
    """Build MetadataDetail objects from the 'metadataObjects' list."""
    details = [MetadataDetail.model_validate(obj) for obj in _force_list(objects)]
    return sorted(details, key=lambda detail: detail.xml_name.lower())


def create_folder_metadata_map(details: Iterable[MetadataDetail]) -> Dict[str, MetadataDetail]:
    """
    Map source folders to the metadata type stored in them.

    Top-level types are keyed by their directory name. Known child types are
    keyed by '<parent directory>/<subfolder>' and inherit the parent's
    directory.

    Args:
        details: MetadataDetail objects from list_metadata_types()

    Returns:
        Folder key -> MetadataDetail.
    """
    folder_map: Dict[str, MetadataDetail] = {}
    for detail in details:
        if not detail.directory_name:
            continue
        folder_map[detail.directory_name] = detail
        for child_name in detail.child_xml_names:
            if child_name not in CHILD_TYPE_FOLDERS:
                continue
            subfolder, suffix = CHILD_TYPE_FOLDERS[child_name]
            folder_map[f"{detail.directory_name}/{subfolder}"] = MetadataDetail(
                xml_name=child_name,
                directory_name=detail.directory_name,
                suffix=suffix,
                parent_xml_name=detail.xml_name,
                subfolder=subfolder,
            )
    return folder_map


# ============================================================================
# Remote sources
# ============================================================================


def _add_member(
    metadata_type: MetadataType,
    object_name: str,
    item_name: Optional[str] = None,
    path: Optional[str] = None,
) -> None:
    metadata_object = metadata_type.get_child(object_name)
    if metadata_object is None:
        metadata_object = metadata_type.add_child(
            MetadataObject(name=object_name, path=None if item_name else path)
        )
    if item_name:
        metadata_object.add_child(MetadataItem(name=item_name, path=path))


def create_metadata_type_from_response(
    type_name: str,
    result: Any,
    namespace_prefix: str = "",
    download_all: bool = True,
    group_global_actions: bool = False,
) -> MetadataType:
    """
    Build a type from the records of 'org list metadata'.

    Members named 'Parent.Child' (or 'Folder/Child' for folder-based types)
    become object/item pairs; anything else is an object. Global quick actions
    (no parent object) can be grouped as items of a 'GlobalActions' object.

    Args:
        type_name: Described metadata type
        result: CLI result (list of {fullName, namespacePrefix, ...})
        namespace_prefix: Org namespace prefix
        download_all: Keep members from every namespace when True
        group_global_actions: Group global QuickActions under 'GlobalActions'

    Returns:
        MetadataType with its children (possibly none).
    """
    metadata_type = MetadataType(name=type_name)
    separator = "/" if is_folder_type(type_name) else "."
    for record in _force_list(result):
        if not isinstance(record, dict) or not record.get("fullName"):
            continue
        if not _include_namespace(record.get("namespacePrefix"), namespace_prefix, download_all):
            continue
        full_name = record["fullName"]
        if separator in full_name:
            object_name, item_name = full_name.split(separator, 1)
            _add_member(metadata_type, object_name, item_name, record.get("fileName"))
        elif group_global_actions and type_name == MetadataTypes.QUICK_ACTION.value:
            _add_member(metadata_type, GLOBAL_ACTIONS, full_name, record.get("fileName"))
        else:
            _add_member(metadata_type, full_name, path=record.get("fileName"))
    return order_metadata({type_name: metadata_type})[type_name]


def group_folders_by_type(records: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Group Folder records by their Type field."""
    result: Dict[str, List[Dict[str, Any]]] = {}
    for folder in records:
        result.setdefault(folder.get("Type"), []).append(folder)
    return result


def create_metadata_type_from_records(
    type_name: str,
    records: Iterable[Dict[str, Any]],
    folders_by_type: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    namespace_prefix: str = "",
    download_all: bool = True,
) -> MetadataType:
    """
    Build a folder-based type (Report, Dashboard, ...) from SOQL records.

    Objects are folders (by developer name) and items are the records.
    Records whose folder cannot be resolved land in 'unfiled$public'.
    """
    folders = (folders_by_type or {}).get(FOLDER_TYPE_BY_METADATA_TYPE.get(type_name), [])
    folder_names = {folder.get("Id"): folder.get("DeveloperName") for folder in folders}

    metadata_type = MetadataType(name=type_name)
    for record in records:
        if not _include_namespace(record.get("NamespacePrefix"), namespace_prefix, download_all):
            continue
        if record.get("FolderName"):
            folder_name = record["FolderName"]
        else:
            folder_name = folder_names.get(record.get("FolderId")) or UNFILED_FOLDER
        _add_member(metadata_type, folder_name, record.get("DeveloperName"))
    return order_metadata({type_name: metadata_type})[type_name]


def create_not_included_metadata_type(type_name: str) -> Optional[MetadataType]:
    """Build a type the CLI cannot list from the static registry."""
    members = NOT_INCLUDED_METADATA.get(type_name)
    if members is None:
        return None
    metadata_type = MetadataType(name=type_name)
    for member in members:
        metadata_type.add_child(MetadataObject(name=member))
    return metadata_type


def create_sobject_from_schema(result: Dict[str, Any]) -> Optional[SObject]:
    """Build an SObject from the result of 'sobject describe'."""
    if not result or not result.get("name"):
        return None
    sobject = SObject.model_validate(result)
    for field_data in _force_list(result.get("fields")):
        field = SObjectField.model_validate(field_data)
        field.picklist_values = [
            value.get("value") for value in _force_list(field_data.get("picklistValues"))
            if isinstance(value, dict) and value.get("active", True)
        ]
        sobject.sobject_fields[field.name] = field
    sobject.record_types = [
        info.get("developerName") for info in _force_list(result.get("recordTypeInfos"))
        if info.get("developerName") and not info.get("master", False)
    ]
    return sobject


def parse_export_tree_output(result: Any) -> List[ExportTreeDataResult]:
    """
    Describe the files written by a tree export.

    Accepts either the CLI's text summary ('Wrote 3 records to Account.json,
    Wrote ...') or a JSON list of {file|path, records} entries.
    """
    entries: List[ExportTreeDataResult] = []
    if isinstance(result, str):
        for chunk in result.replace("\n", "").split(","):
            parts = chunk.strip().split(" ")
            if len(parts) < 2:
                continue
            records = int(parts[1]) if parts[1].isdigit() else 0
            file_name = os.path.basename(parts[-1])
            entries.append(ExportTreeDataResult(
                file=file_name, records=records, is_plan_file=file_name.endswith("-plan.json")
            ))
        return entries

    for item in _force_list(result):
        if not isinstance(item, dict):
            continue
        file_name = os.path.basename(item.get("file") or item.get("path") or "")
        if not file_name:
            continue
        entries.append(ExportTreeDataResult(
            file=file_name,
            records=int(item.get("records") or 0),
            is_plan_file=file_name.endswith("-plan.json"),
        ))
    return entries


# ============================================================================
# Local project scan
# ============================================================================


def _meta_name(file_name: str, suffix: Optional[str]) -> Optional[str]:
    ending = f".{suffix}-meta.xml"
    if suffix and file_name.endswith(ending):
        return file_name[: -len(ending)]
    return None


def _list_dir(path: str) -> List[str]:
    if not os.path.isdir(path):
        return []
    return sorted(os.listdir(path))


def _scan_child_type(metadata_type: MetadataType, detail: MetadataDetail, base: str) -> None:
    parent_dir = os.path.join(base, detail.directory_name)
    for object_name in _list_dir(parent_dir):
        folder = os.path.join(parent_dir, object_name, detail.subfolder)
        for file_name in _list_dir(folder):
            item_name = _meta_name(file_name, detail.suffix)
            if item_name:
                _add_member(metadata_type, object_name, item_name, os.path.join(folder, file_name))


def _scan_folder_type(metadata_type: MetadataType, detail: MetadataDetail, base: str) -> None:
    type_dir = os.path.join(base, detail.directory_name)
    for folder_name in _list_dir(type_dir):
        folder = os.path.join(type_dir, folder_name)
        if not os.path.isdir(folder):
            continue
        for file_name in _list_dir(folder):
            item_name = _meta_name(file_name, detail.suffix)
            if item_name:
                _add_member(metadata_type, folder_name, item_name, os.path.join(folder, file_name))


def _scan_object_folder_type(metadata_type: MetadataType, detail: MetadataDetail, base: str) -> None:
    type_dir = os.path.join(base, detail.directory_name)
    for object_name in _list_dir(type_dir):
        file_path = os.path.join(type_dir, object_name, f"{object_name}.{detail.suffix}-meta.xml")
        if os.path.isfile(file_path):
            _add_member(metadata_type, object_name, path=file_path)


def _scan_flat_type(metadata_type: MetadataType, detail: MetadataDetail, base: str) -> None:
    type_dir = os.path.join(base, detail.directory_name)
    for file_name in _list_dir(type_dir):
        file_path = os.path.join(type_dir, file_name)
        if not os.path.isfile(file_path):
            continue
        name = _meta_name(file_name, detail.suffix)
        if name is None and detail.suffix and file_name.endswith(f".{detail.suffix}"):
            name = file_name[: -len(detail.suffix) - 1]
        if name and metadata_type.get_child(name) is None:
            _add_member(metadata_type, name, path=file_path)


def create_metadata_types_from_file_system(
    folder_map: Dict[str, MetadataDetail],
    project_folder: str,
) -> MetadataMap:
    """
    Scan a source-format project and build the tree of what exists locally.

    Args:
        folder_map: Output of create_folder_metadata_map()
        project_folder: Project root (containing force-app/main/default)

    Returns:
        Tree with one entry per type that has at least one local member.
    """
    base = os.path.join(project_folder, SOURCE_ROOT)
    metadata: MetadataMap = {}
    if not os.path.isdir(base):
        logger.warning(f"[factory] No source folder found at {base}")
        return metadata

    for detail in folder_map.values():
        metadata_type = MetadataType(
            name=detail.xml_name,
            suffix=detail.suffix,
            path=os.path.join(base, detail.directory_name),
        )
        if detail.subfolder:
            _scan_child_type(metadata_type, detail, base)
        elif detail.in_folder or is_folder_type(detail.xml_name):
            _scan_folder_type(metadata_type, detail, base)
        elif detail.xml_name in OBJECT_FOLDER_TYPES:
            _scan_object_folder_type(metadata_type, detail, base)
        else:
            _scan_flat_type(metadata_type, detail, base)
        if metadata_type.have_children():
            metadata[detail.xml_name] = metadata_type
    return order_metadata(metadata)
