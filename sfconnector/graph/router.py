"""
Routing logic for the special-types graph.

Picks the loading nodes each recipe needs and stops the graph early once the
connection has been aborted.
"""

import logging
from typing import Literal

from sfconnector.graph.state import SpecialTypesState


logger = logging.getLogger(__name__)


def _aborted(state: SpecialTypesState) -> bool:
    connector = state.get("connector")
    return bool(state.get("aborted")) or bool(connector is not None and connector.aborted)


def route_after_prepare(
    state: SpecialTypesState,
) -> Literal["load_local", "load_org", "create_project"]:
    """
    Route from prepare to the first loading node of the recipe.

    Routing logic:
    1. permissions -> create_project (the selection is fixed)
    2. org -> load_org
    3. local, mixed -> load_local
    """
    session_id = state.get("session_id", "unknown")
    recipe = state["recipe"]
    _log = f"[session={session_id}] [graph=special_types] [router=route_after_prepare] "

    if recipe == "permissions":
        target = "create_project"
    elif recipe == "org":
        target = "load_org"
    else:
        target = "load_local"
    logger.info(f"{_log}Routing to '{target}' | recipe={recipe}")
    return target


def route_after_local(
    state: SpecialTypesState,
) -> Literal["load_org", "select", "aborted"]:
    """Mixed recipes also load the org; local recipes go straight to selection."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=special_types] [router=route_after_local] "

    if _aborted(state):
        logger.info(f"{_log}Routing to 'aborted'")
        return "aborted"
    target = "load_org" if state["recipe"] == "mixed" else "select"
    logger.info(f"{_log}Routing to '{target}' | recipe={state['recipe']}")
    return target


def route_after_org(state: SpecialTypesState) -> Literal["select", "aborted"]:
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=special_types] [router=route_after_org] "

    if _aborted(state):
        logger.info(f"{_log}Routing to 'aborted'")
        return "aborted"
    logger.info(f"{_log}Routing to 'select'")
    return "select"


def _in_scratch_project(state: SpecialTypesState) -> bool:
    connector = state.get("connector")
    if connector is None:
        return False
    project_folder = connector.context.project_folder
    return project_folder is not None and project_folder != state.get("original_project_folder")


def _route_in_scratch_project(state: SpecialTypesState, target: str, router: str) -> str:
    # Every step after create_project writes into the current project folder
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=special_types] [router={router}] "

    if _aborted(state) or not _in_scratch_project(state):
        logger.info(f"{_log}Routing to 'aborted' | aborted={_aborted(state)}")
        return "aborted"
    return target


def route_after_project(state: SpecialTypesState) -> Literal["generate_package", "aborted"]:
    """Stop unless the connection now points at the scratch project."""
    return _route_in_scratch_project(state, "generate_package", "route_after_project")


def route_after_package(state: SpecialTypesState) -> Literal["authorize", "aborted"]:
    return _route_in_scratch_project(state, "authorize", "route_after_package")


def route_after_authorize(state: SpecialTypesState) -> Literal["retrieve", "aborted"]:
    return _route_in_scratch_project(state, "retrieve", "route_after_authorize")


def route_after_retrieve(state: SpecialTypesState) -> Literal["wait_for_files", "aborted"]:
    if _aborted(state):
        return "aborted"
    return "wait_for_files"


def route_after_wait(
    state: SpecialTypesState,
) -> Literal["process_permissions", "copy_data"]:
    """User permissions are read from the retrieved profile; every other recipe copies files."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=special_types] [router=route_after_wait] "

    target = "process_permissions" if state["recipe"] == "permissions" else "copy_data"
    logger.info(f"{_log}Routing to '{target}'")
    return target
