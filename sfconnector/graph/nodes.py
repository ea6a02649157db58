"""
Special-types graph nodes.

Each node performs one step of the retrieve recipe against the connector
carried in the state and returns the state updates it produced. Node
exceptions propagate out of the graph; the connector restores its project
paths whatever happens.
"""

import logging
import os
import shutil
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

from sfconnector.engine.batches import calculate_increment
from sfconnector.engine.progress import ProgressStage
from sfconnector.graph.state import SpecialTypesState
from sfconnector.metadata.compressor import compress_file
from sfconnector.metadata.factory import (
    create_folder_metadata_map,
    create_metadata_types_from_file_system,
)
from sfconnector.metadata.models import MetadataDetail, MetadataObject, MetadataType
from sfconnector.metadata.package import create_package
from sfconnector.metadata.registry import (
    OBJECT_FOLDER_TYPES,
    SOURCE_ROOT,
    SPECIAL_METADATA,
    MetadataTypes,
    special_types_to_retrieve,
)
from sfconnector.metadata.tree import MetadataMap, check_all, combine, have_children, metadata_type_names
from sfconnector.shared.files import delete_path, recreate_folder, wait_for_files


logger = logging.getLogger(__name__)

ADMIN_PROFILE = "Admin"


def _log_prefix(state: SpecialTypesState, node: str) -> str:
    session_id = state.get("session_id", "unknown")
    return f"[session={session_id}] [graph=special_types] [node={node}] "


def _emit(state: SpecialTypesState, stage: ProgressStage, **kwargs: Any) -> None:
    state["connector"].progress.emit(stage, state.get("progress"), **kwargs)


# ============================================================================
# Selection
# ============================================================================


async def prepare_node(state: SpecialTypesState) -> Dict[str, Any]:
    """
    Work out which types the recipe retrieves.

    The permissions recipe always retrieves the Admin profile. The other
    recipes expand the special types named in the selection (all of them
    when there is no selection) together with their related types.
    """
    _log = _log_prefix(state, "prepare")
    _emit(state, ProgressStage.PREPARE)

    if state["recipe"] == "permissions":
        profile = MetadataType(name=MetadataTypes.PROFILE.value, checked=True)
        profile.add_child(MetadataObject(name=ADMIN_PROFILE, checked=True))
        logger.info(f"{_log}Retrieving profile '{ADMIN_PROFILE}' for user permissions")
        return {
            "data_to_retrieve": [MetadataTypes.PROFILE.value],
            "metadata": {MetadataTypes.PROFILE.value: profile},
            "stages": [ProgressStage.PREPARE.value],
        }

    data_to_retrieve = special_types_to_retrieve(state.get("types"))
    state["connector"].progress.set_total(calculate_increment(metadata_type_names(data_to_retrieve)))
    logger.info(f"{_log}Types to retrieve: {len(data_to_retrieve)} | recipe={state['recipe']}")
    return {
        "data_to_retrieve": data_to_retrieve,
        "stages": [ProgressStage.PREPARE.value],
    }


async def _folder_metadata_map(state: SpecialTypesState) -> Dict[str, MetadataDetail]:
    folder_map = state.get("folder_metadata_map")
    if folder_map is None:
        details = await state["connector"].list_metadata_types()
        folder_map = create_folder_metadata_map(details)
    return folder_map


async def load_local_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Scan the original project for the types to retrieve."""
    _log = _log_prefix(state, "load_local")
    _emit(state, ProgressStage.LOADING_LOCAL)

    folder_map = await _folder_metadata_map(state)
    from_file_system = create_metadata_types_from_file_system(
        folder_map, state["original_project_folder"]
    )
    local_metadata = {
        type_name: from_file_system[type_name]
        for type_name in state["data_to_retrieve"]
        if type_name in from_file_system
    }
    logger.info(f"{_log}Local types found: {sorted(local_metadata.keys())}")
    return {
        "folder_metadata_map": folder_map,
        "local_metadata": local_metadata,
        "aborted": state["connector"].aborted,
        "stages": [ProgressStage.LOADING_LOCAL.value],
    }


async def load_org_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Describe the types to retrieve from the org."""
    _log = _log_prefix(state, "load_org")
    _emit(state, ProgressStage.LOADING_ORG)

    connector = state["connector"]
    folder_map = await _folder_metadata_map(state)
    org_metadata = await connector.describe_metadata_types(
        state["data_to_retrieve"],
        download_all=state.get("download_all", True),
        progress=state.get("progress"),
    )
    logger.info(f"{_log}Org types described: {len(org_metadata)} | aborted={connector.aborted}")
    return {
        "folder_metadata_map": folder_map,
        "org_metadata": org_metadata,
        "aborted": connector.aborted,
        "stages": [ProgressStage.LOADING_ORG.value],
    }


async def select_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Union the loaded trees and select every node in them."""
    _log = _log_prefix(state, "select")
    metadata = combine(state.get("local_metadata"), state.get("org_metadata"))
    check_all(metadata)
    logger.info(f"{_log}Selection ready | types={len(metadata)}")
    return {"metadata": metadata}


# ============================================================================
# Scratch project and retrieve
# ============================================================================


async def create_project_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Recreate the temp folder and generate the scratch project in it."""
    _log = _log_prefix(state, "create_project")
    connector = state["connector"]
    recreate_folder(state["tmp_folder"])
    _emit(state, ProgressStage.CREATE_PROJECT)

    await connector.create_sfdx_project(
        connector.graph_config.project_name, state["tmp_folder"], None, True
    )
    logger.info(f"{_log}Scratch project at {connector.context.project_folder} | aborted={connector.aborted}")
    return {"aborted": connector.aborted, "stages": [ProgressStage.CREATE_PROJECT.value]}


async def generate_package_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Write the scratch project's package.xml for the selection."""
    _log = _log_prefix(state, "generate_package")
    context = state["connector"].context
    if context.project_folder is None or context.project_folder == state.get("original_project_folder"):
        # Never write a manifest into the user's own project
        logger.warning(f"{_log}Connection is not on the scratch project, skipping package generation")
        return {"aborted": True}
    package_file = create_package(
        state.get("metadata") or {},
        context.package_folder,
        api_version=context.api_version,
        explicit=True,
    )
    # Ignore rules of the template would drop retrieved files
    delete_path(os.path.join(context.project_folder, ".forceignore"))
    logger.info(f"{_log}Package written to {package_file}")
    return {}


async def authorize_node(state: SpecialTypesState) -> Dict[str, Any]:
    connector = state["connector"]
    await connector.set_auth_org()
    return {"aborted": connector.aborted}


async def retrieve_node(state: SpecialTypesState) -> Dict[str, Any]:
    _log = _log_prefix(state, "retrieve")
    connector = state["connector"]
    _emit(state, ProgressStage.RETRIEVE)

    retrieve_result = await connector.retrieve(False)
    logger.info(f"{_log}Retrieve finished | aborted={connector.aborted}")
    return {
        "retrieve_result": retrieve_result,
        "aborted": connector.aborted,
        "stages": [ProgressStage.RETRIEVE.value],
    }


async def wait_for_files_node(state: SpecialTypesState) -> Dict[str, Any]:
    """Block until the retrieved files are on disk (bounded)."""
    _log = _log_prefix(state, "wait_for_files")
    connector = state["connector"]
    config = connector.graph_config
    source_folder = os.path.join(connector.context.project_folder, SOURCE_ROOT)
    files = await wait_for_files(
        source_folder,
        timeout=config.wait_for_files_timeout,
        interval=config.wait_for_files_interval,
    )
    logger.info(f"{_log}{len(files)} retrieved files found")
    return {}


# ============================================================================
# Result processing
# ============================================================================


def _relative_file(detail: MetadataDetail, object_name: str, item_name: Optional[str]) -> str:
    if item_name is not None:
        file_name = f"{item_name}.{detail.suffix}-meta.xml"
        if detail.subfolder:
            return "/".join([SOURCE_ROOT, detail.directory_name, object_name, detail.subfolder, file_name])
        return "/".join([SOURCE_ROOT, detail.directory_name, object_name, file_name])
    file_name = f"{object_name}.{detail.suffix}-meta.xml"
    if detail.xml_name in OBJECT_FOLDER_TYPES:
        return "/".join([SOURCE_ROOT, detail.directory_name, object_name, file_name])
    return "/".join([SOURCE_ROOT, detail.directory_name, file_name])


def copy_metadata_files(
    state: SpecialTypesState,
    source_project: str,
    target_project: str,
) -> List[str]:
    """
    Copy the retrieved special-type files into the original project.

    A member is copied when there is no selection, or when its type, object
    or item is checked in the selection.

    Returns:
        Target paths of the copied files.
    """
    folder_map: Dict[str, MetadataDetail] = state.get("folder_metadata_map") or {}
    metadata: MetadataMap = state.get("metadata") or {}
    types = state.get("types")
    compress = state.get("compress", False)
    sort_order = state.get("sort_order")
    copied: List[str] = []

    for detail in folder_map.values():
        type_name = detail.xml_name
        if type_name not in SPECIAL_METADATA or type_name not in metadata:
            continue
        type_to_copy = types.get(type_name) if types else None
        if types and type_to_copy is None:
            continue
        metadata_type = metadata[type_name]
        if not metadata_type.have_children():
            continue

        for object_name, metadata_object in metadata_type.childs.items():
            object_to_copy = type_to_copy.childs.get(object_name) if have_children(type_to_copy) else None
            if metadata_object.have_children():
                members = [
                    (item_name, object_to_copy.childs.get(item_name) if have_children(object_to_copy) else None)
                    for item_name in metadata_object.childs.keys()
                ]
            else:
                members = [(None, None)]

            for item_name, item_to_copy in members:
                selected = (
                    not types
                    or (type_to_copy is not None and type_to_copy.checked)
                    or (object_to_copy is not None and object_to_copy.checked)
                    or (item_to_copy is not None and item_to_copy.checked)
                )
                if not selected:
                    continue
                relative = _relative_file(detail, object_name, item_name)
                source_file = os.path.join(source_project, relative)
                target_file = os.path.join(target_project, relative)
                if not os.path.isfile(source_file):
                    continue
                _emit(state, ProgressStage.COPY_FILE, type_name=type_name,
                      object_name=object_name, item_name=item_name, data=target_file)
                os.makedirs(os.path.dirname(target_file), exist_ok=True)
                shutil.copyfile(source_file, target_file)
                if compress:
                    _emit(state, ProgressStage.COMPRESS_FILE, type_name=type_name,
                          object_name=object_name, item_name=item_name, data=target_file)
                    compress_file(target_file, sort_order)
                copied.append(target_file)
    return copied


async def copy_data_node(state: SpecialTypesState) -> Dict[str, Any]:
    _log = _log_prefix(state, "copy_data")
    connector = state["connector"]
    _emit(state, ProgressStage.COPY_DATA)

    copied = copy_metadata_files(
        state,
        source_project=connector.context.project_folder,
        target_project=state["original_project_folder"],
    )
    logger.info(f"{_log}Copied {len(copied)} files into {state['original_project_folder']}")
    return {"copied_files": copied, "stages": [ProgressStage.COPY_DATA.value]}


def read_user_permissions(profile_file: str) -> List[str]:
    """Names of every userPermissions entry of a profile file."""
    if not os.path.isfile(profile_file):
        return []
    root = ET.parse(profile_file).getroot()
    permissions: List[str] = []
    for permission in root.findall("{*}userPermissions"):
        name = permission.find("{*}name")
        if name is not None and name.text:
            permissions.append(name.text.strip())
    return permissions


async def process_permissions_node(state: SpecialTypesState) -> Dict[str, Any]:
    _log = _log_prefix(state, "process_permissions")
    connector = state["connector"]
    _emit(state, ProgressStage.PROCESS)

    profile_file = os.path.join(
        connector.context.project_folder, SOURCE_ROOT, "profiles", f"{ADMIN_PROFILE}.profile-meta.xml"
    )
    permissions = read_user_permissions(profile_file)
    logger.info(f"{_log}{len(permissions)} user permissions read")
    return {"user_permissions": permissions, "stages": [ProgressStage.PROCESS.value]}


async def aborted_node(state: SpecialTypesState) -> Dict[str, Any]:
    logger.info(f"{_log_prefix(state, 'aborted')}Connection aborted, stopping recipe -> END")
    return {"aborted": True}
