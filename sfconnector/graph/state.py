"""
Special-types retrieve state schema.

Defines the state that flows through the special-types graph: the recipe
options, the selection trees built along the way and the retrieve outcome.
"""

from typing import Annotated, Any, Dict, List, Optional, TypedDict
import operator


class SpecialTypesState(TypedDict):
    """
    State schema for the special-types graph.

    One graph serves every recipe:
    - local: types present in the local project
    - mixed: local types plus everything the org has for them
    - org: everything the org has for the special types
    - permissions: the Admin profile, to read its user permissions
    """

    # Inputs
    connector: Any
    recipe: str
    tmp_folder: str
    types: Optional[Dict[str, Any]]
    download_all: bool
    compress: bool
    sort_order: Optional[str]
    progress: Optional[Any]
    original_project_folder: Optional[str]

    # Selection
    data_to_retrieve: List[str]
    folder_metadata_map: Optional[Dict[str, Any]]
    local_metadata: Optional[Dict[str, Any]]
    org_metadata: Optional[Dict[str, Any]]
    metadata: Optional[Dict[str, Any]]

    # Outcome
    retrieve_result: Optional[Any]
    user_permissions: Optional[List[str]]
    aborted: bool
    copied_files: Annotated[List[str], operator.add]
    stages: Annotated[List[str], operator.add]

    # Session tracking
    session_id: Optional[str]
