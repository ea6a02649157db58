"""
Special-types graph construction.

Builds the recipe graph shared by the local, mixed, org and user-permissions
retrieves.
"""

import logging

from langgraph.graph import END, StateGraph

from sfconnector.graph.nodes import (
    aborted_node,
    authorize_node,
    copy_data_node,
    create_project_node,
    generate_package_node,
    load_local_node,
    load_org_node,
    prepare_node,
    process_permissions_node,
    retrieve_node,
    select_node,
    wait_for_files_node,
)
from sfconnector.graph.router import (
    route_after_authorize,
    route_after_local,
    route_after_org,
    route_after_package,
    route_after_prepare,
    route_after_project,
    route_after_retrieve,
    route_after_wait,
)
from sfconnector.graph.state import SpecialTypesState


logger = logging.getLogger(__name__)


def create_special_types_graph():
    """
    Create and compile the special-types graph.

    The graph structure is:
        prepare -> route_after_prepare
          -> "load_local" -> route_after_local -> load_org | select | aborted
          -> "load_org"   -> route_after_org   -> select | aborted
          -> "create_project" (permissions)
        select -> create_project -> generate_package -> authorize -> retrieve
          (each step routes to aborted unless the connection is on the
          scratch project and has not been aborted)
        retrieve -> route_after_retrieve -> wait_for_files | aborted
        wait_for_files -> route_after_wait -> process_permissions | copy_data
        process_permissions, copy_data, aborted -> END

    Returns:
        Compiled LangGraph application ready for execution.
    """
    graph = StateGraph(SpecialTypesState)

    graph.add_node("prepare", prepare_node)
    graph.add_node("load_local", load_local_node)
    graph.add_node("load_org", load_org_node)
    graph.add_node("select", select_node)
    graph.add_node("create_project", create_project_node)
    graph.add_node("generate_package", generate_package_node)
    graph.add_node("authorize", authorize_node)
    graph.add_node("retrieve", retrieve_node)
    graph.add_node("wait_for_files", wait_for_files_node)
    graph.add_node("copy_data", copy_data_node)
    graph.add_node("process_permissions", process_permissions_node)
    graph.add_node("aborted", aborted_node)

    graph.set_entry_point("prepare")

    graph.add_conditional_edges(
        "prepare",
        route_after_prepare,
        {
            "load_local": "load_local",
            "load_org": "load_org",
            "create_project": "create_project",
        },
    )
    graph.add_conditional_edges(
        "load_local",
        route_after_local,
        {
            "load_org": "load_org",
            "select": "select",
            "aborted": "aborted",
        },
    )
    graph.add_conditional_edges(
        "load_org",
        route_after_org,
        {
            "select": "select",
            "aborted": "aborted",
        },
    )

    graph.add_edge("select", "create_project")
    graph.add_conditional_edges(
        "create_project",
        route_after_project,
        {
            "generate_package": "generate_package",
            "aborted": "aborted",
        },
    )
    graph.add_conditional_edges(
        "generate_package",
        route_after_package,
        {
            "authorize": "authorize",
            "aborted": "aborted",
        },
    )
    graph.add_conditional_edges(
        "authorize",
        route_after_authorize,
        {
            "retrieve": "retrieve",
            "aborted": "aborted",
        },
    )

    graph.add_conditional_edges(
        "retrieve",
        route_after_retrieve,
        {
            "wait_for_files": "wait_for_files",
            "aborted": "aborted",
        },
    )
    graph.add_conditional_edges(
        "wait_for_files",
        route_after_wait,
        {
            "process_permissions": "process_permissions",
            "copy_data": "copy_data",
        },
    )

    graph.add_edge("copy_data", END)
    graph.add_edge("process_permissions", END)
    graph.add_edge("aborted", END)

    app = graph.compile()

    return app
