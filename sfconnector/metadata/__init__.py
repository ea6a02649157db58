"""Metadata selection trees, registries and file collaborators."""

from sfconnector.metadata.models import (
    MetadataDetail,
    MetadataItem,
    MetadataObject,
    MetadataType,
    SObject,
    SObjectField,
)
from sfconnector.metadata.registry import MetadataTypes, SPECIAL_METADATA, special_types_to_retrieve
from sfconnector.metadata.tree import (
    MetadataMap,
    check_all,
    combine,
    have_children,
    metadata_type_names,
    order_metadata,
    validate_metadata_json,
)

__all__ = [
    "MetadataDetail",
    "MetadataItem",
    "MetadataObject",
    "MetadataType",
    "SObject",
    "SObjectField",
    "MetadataTypes",
    "SPECIAL_METADATA",
    "special_types_to_retrieve",
    "MetadataMap",
    "check_all",
    "combine",
    "have_children",
    "metadata_type_names",
    "order_metadata",
    "validate_metadata_json",
]
