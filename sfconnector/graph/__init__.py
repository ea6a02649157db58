"""Special-types retrieve graph."""

from sfconnector.graph.build import create_special_types_graph
from sfconnector.graph.config import DEFAULT_CONFIG, GraphConfig, get_config
from sfconnector.graph.state import SpecialTypesState

__all__ = [
    "create_special_types_graph",
    "DEFAULT_CONFIG",
    "GraphConfig",
    "get_config",
    "SpecialTypesState",
]
