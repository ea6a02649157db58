"""
Metadata selection tree models.

Three levels: MetadataType -> MetadataObject -> MetadataItem. A checked node
is included in generated package manifests; a checked type or object with no
children selects everything under it.

The JSON representation uses 'childs' for the children map (Metadata JSON
format), e.g.:

    {"CustomField": {"name": "CustomField", "checked": false,
                     "childs": {"Account": {"name": "Account", "checked": true}}}}
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from sfconnector.metadata.registry import MetadataTypes


class MetadataItem(BaseModel):
    """Leaf node (e.g. a field of an object)."""

    name: str = Field(description="Item API name")
    checked: bool = Field(default=False, description="Include in the selection")
    path: Optional[str] = Field(default=None, description="Local file path, if known")


class MetadataObject(BaseModel):
    """Named member of a type (e.g. an object or a report folder)."""

    name: str = Field(description="Object API name")
    checked: bool = Field(default=False, description="Include in the selection")
    path: Optional[str] = Field(default=None, description="Local file path, if known")
    childs: Dict[str, MetadataItem] = Field(
        default_factory=dict, description="Items keyed by name"
    )

    def have_children(self) -> bool:
        return len(self.childs) > 0

    def add_child(self, item: MetadataItem) -> MetadataItem:
        self.childs[item.name] = item
        return item


class MetadataType(BaseModel):
    """Top-level metadata category (e.g. CustomField)."""

    name: str = Field(description="Metadata type API name")
    checked: bool = Field(default=False, description="Include in the selection")
    path: Optional[str] = Field(default=None, description="Local folder path, if known")
    suffix: Optional[str] = Field(default=None, description="File suffix for the type")
    childs: Dict[str, MetadataObject] = Field(
        default_factory=dict, description="Objects keyed by name"
    )

    @property
    def kind(self) -> MetadataTypes:
        return MetadataTypes.from_name(self.name)

    def have_children(self) -> bool:
        return len(self.childs) > 0

    def add_child(self, obj: MetadataObject) -> MetadataObject:
        self.childs[obj.name] = obj
        return obj

    def get_child(self, name: str) -> Optional[MetadataObject]:
        return self.childs.get(name)


class MetadataDetail(BaseModel):
    """
    Description of a metadata type as returned by 'list metadata types'.

    Child types (CustomField, RecordType, ...) carry the parent type name and
    the subfolder they occupy inside each parent object's folder.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    xml_name: str = Field(alias="xmlName", description="Metadata type API name")
    directory_name: Optional[str] = Field(
        default=None, alias="directoryName", description="Source folder name"
    )
    suffix: Optional[str] = Field(default=None, description="File suffix")
    in_folder: bool = Field(default=False, alias="inFolder")
    meta_file: bool = Field(default=False, alias="metaFile")
    child_xml_names: List[str] = Field(default_factory=list, alias="childXmlNames")
    parent_xml_name: Optional[str] = Field(default=None)
    subfolder: Optional[str] = Field(default=None)


class SObjectField(BaseModel):
    """Field of a described SObject."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    label: Optional[str] = None
    type: Optional[str] = None
    length: Optional[int] = None
    custom: bool = False
    nillable: bool = True
    reference_to: List[str] = Field(default_factory=list, alias="referenceTo")
    picklist_values: List[str] = Field(default_factory=list)


class SObject(BaseModel):
    """Schema of an SObject from 'sobject describe'."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    label: Optional[str] = None
    label_plural: Optional[str] = Field(default=None, alias="labelPlural")
    key_prefix: Optional[str] = Field(default=None, alias="keyPrefix")
    custom: bool = False
    queryable: bool = True
    sobject_fields: Dict[str, SObjectField] = Field(default_factory=dict)
    record_types: List[str] = Field(default_factory=list)
