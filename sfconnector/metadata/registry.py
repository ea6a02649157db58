"""
Static metadata registries.

Known type names, the special types that need the scratch-project retrieve
flow, types the CLI cannot list, SOQL queries for folder-based types and the
folder layout of child types stored under their parent's directory.
"""

from enum import Enum
from typing import Dict, List, Tuple


class MetadataTypes(str, Enum):
    """Metadata type API names the connector knows about."""

    APEX_CLASS = "ApexClass"
    APEX_PAGE = "ApexPage"
    APEX_TRIGGER = "ApexTrigger"
    BUSINESS_PROCESS = "BusinessProcess"
    COMPACT_LAYOUT = "CompactLayout"
    CUSTOM_APPLICATION = "CustomApplication"
    CUSTOM_FIELD = "CustomField"
    CUSTOM_LABEL = "CustomLabel"
    CUSTOM_LABELS = "CustomLabels"
    CUSTOM_METADATA = "CustomMetadata"
    CUSTOM_OBJECT = "CustomObject"
    CUSTOM_OBJECT_TRANSLATION = "CustomObjectTranslation"
    CUSTOM_PAGE_WEBLINK = "CustomPageWebLink"
    CUSTOM_PERMISSION = "CustomPermission"
    CUSTOM_TAB = "CustomTab"
    DASHBOARD = "Dashboard"
    DOCUMENT = "Document"
    EMAIL_TEMPLATE = "EmailTemplate"
    FIELD_SET = "FieldSet"
    FLOW = "Flow"
    INDEX = "Index"
    LAYOUT = "Layout"
    LIST_VIEW = "ListView"
    PERMISSION_SET = "PermissionSet"
    PROFILE = "Profile"
    QUICK_ACTION = "QuickAction"
    RECORD_TYPE = "RecordType"
    REPORT = "Report"
    REPORT_TYPE = "ReportType"
    SHARING_REASON = "SharingReason"
    STANDARD_VALUE_SET = "StandardValueSet"
    TRANSLATIONS = "Translations"
    VALIDATION_RULE = "ValidationRule"
    WEB_LINK = "WebLink"
    OTHER = "Other"

    @classmethod
    def from_name(cls, name: str) -> "MetadataTypes":
        """Known member for a type name, or OTHER for unknown names."""
        try:
            member = cls(name)
        except ValueError:
            return cls.OTHER
        return member


# Special types and the types that must be retrieved with them so the
# retrieved files contain every related permission/translation entry
SPECIAL_METADATA: Dict[str, List[str]] = {
    MetadataTypes.CUSTOM_APPLICATION.value: [
        MetadataTypes.CUSTOM_TAB.value,
    ],
    MetadataTypes.PERMISSION_SET.value: [
        MetadataTypes.CUSTOM_APPLICATION.value,
        MetadataTypes.APEX_CLASS.value,
        MetadataTypes.APEX_PAGE.value,
        MetadataTypes.CUSTOM_METADATA.value,
        MetadataTypes.CUSTOM_OBJECT.value,
        MetadataTypes.CUSTOM_FIELD.value,
        MetadataTypes.CUSTOM_PERMISSION.value,
        MetadataTypes.CUSTOM_TAB.value,
        MetadataTypes.FLOW.value,
        MetadataTypes.RECORD_TYPE.value,
    ],
    MetadataTypes.PROFILE.value: [
        MetadataTypes.CUSTOM_APPLICATION.value,
        MetadataTypes.APEX_CLASS.value,
        MetadataTypes.APEX_PAGE.value,
        MetadataTypes.CUSTOM_METADATA.value,
        MetadataTypes.CUSTOM_OBJECT.value,
        MetadataTypes.CUSTOM_FIELD.value,
        MetadataTypes.CUSTOM_PERMISSION.value,
        MetadataTypes.CUSTOM_TAB.value,
        MetadataTypes.FLOW.value,
        MetadataTypes.LAYOUT.value,
        MetadataTypes.RECORD_TYPE.value,
    ],
    MetadataTypes.RECORD_TYPE.value: [
        MetadataTypes.CUSTOM_FIELD.value,
    ],
    MetadataTypes.TRANSLATIONS.value: [
        MetadataTypes.CUSTOM_APPLICATION.value,
        MetadataTypes.CUSTOM_LABEL.value,
        MetadataTypes.CUSTOM_PAGE_WEBLINK.value,
        MetadataTypes.CUSTOM_TAB.value,
        MetadataTypes.FLOW.value,
        MetadataTypes.QUICK_ACTION.value,
        MetadataTypes.REPORT_TYPE.value,
    ],
    MetadataTypes.CUSTOM_OBJECT_TRANSLATION.value: [
        MetadataTypes.CUSTOM_OBJECT.value,
        MetadataTypes.CUSTOM_FIELD.value,
        MetadataTypes.FIELD_SET.value,
        MetadataTypes.LAYOUT.value,
        MetadataTypes.QUICK_ACTION.value,
        MetadataTypes.RECORD_TYPE.value,
        MetadataTypes.SHARING_REASON.value,
        MetadataTypes.VALIDATION_RULE.value,
        MetadataTypes.WEB_LINK.value,
    ],
}

# Types the CLI cannot list; their members are known up front
NOT_INCLUDED_METADATA: Dict[str, List[str]] = {
    MetadataTypes.STANDARD_VALUE_SET.value: [
        "AccountContactMultiRoles", "AccountContactRole", "AccountOwnership",
        "AccountRating", "AccountType", "CampaignMemberStatus", "CampaignStatus",
        "CampaignType", "CaseContactRole", "CaseOrigin", "CasePriority",
        "CaseReason", "CaseStatus", "CaseType", "ContactRole",
        "ContractContactRole", "ContractStatus", "EntitlementType",
        "EventSubject", "EventType", "FiscalYearPeriodName",
        "FiscalYearPeriodPrefix", "FiscalYearQuarterName",
        "FiscalYearQuarterPrefix", "IdeaCategory", "IdeaMultiCategory",
        "IdeaStatus", "IdeaThemeStatus", "Industry", "LeadSource", "LeadStatus",
        "OpportunityCompetitor", "OpportunityStage", "OpportunityType",
        "OrderType", "PartnerRole", "Product2Family", "QuestionOrigin",
        "QuickTextCategory", "QuickTextChannel", "QuoteStatus",
        "RoleInTerritory2", "SalesTeamRole", "Salutation",
        "ServiceContractApprovalStatus", "SocialPostClassification",
        "SocialPostEngagementLevel", "SocialPostReviewedStatus",
        "SolutionStatus", "TaskPriority", "TaskStatus", "TaskSubject",
        "TaskType", "WorkOrderLineItemStatus", "WorkOrderPriority",
        "WorkOrderStatus",
    ],
}

# Folder-based types are listed with SOQL instead of the metadata API
METADATA_QUERIES: Dict[str, str] = {
    MetadataTypes.REPORT.value: "Select Id, DeveloperName, NamespacePrefix, FolderName from Report",
    MetadataTypes.DASHBOARD.value: "Select Id, DeveloperName, NamespacePrefix, FolderId from Dashboard",
    MetadataTypes.DOCUMENT.value: "Select Id, DeveloperName, NamespacePrefix, FolderId from Document",
    MetadataTypes.EMAIL_TEMPLATE.value: "Select Id, DeveloperName, NamespacePrefix, FolderId FROM EmailTemplate",
}

FOLDERS_QUERY = "Select Id, Name, DeveloperName, NamespacePrefix, Type FROM Folder"

# Folder.Type value for each folder-based metadata type
FOLDER_TYPE_BY_METADATA_TYPE: Dict[str, str] = {
    MetadataTypes.REPORT.value: "Report",
    MetadataTypes.DASHBOARD.value: "Dashboard",
    MetadataTypes.DOCUMENT.value: "Document",
    MetadataTypes.EMAIL_TEMPLATE.value: "Email",
}

UNFILED_FOLDER = "unfiled$public"

# Child type -> (subfolder under <parent dir>/<object>/, file suffix)
CHILD_TYPE_FOLDERS: Dict[str, Tuple[str, str]] = {
    MetadataTypes.BUSINESS_PROCESS.value: ("businessProcesses", "businessProcess"),
    MetadataTypes.COMPACT_LAYOUT.value: ("compactLayouts", "compactLayout"),
    MetadataTypes.CUSTOM_FIELD.value: ("fields", "field"),
    MetadataTypes.FIELD_SET.value: ("fieldSets", "fieldSet"),
    MetadataTypes.INDEX.value: ("indexes", "index"),
    MetadataTypes.LIST_VIEW.value: ("listViews", "listView"),
    MetadataTypes.RECORD_TYPE.value: ("recordTypes", "recordType"),
    MetadataTypes.SHARING_REASON.value: ("sharingReasons", "sharingReason"),
    MetadataTypes.VALIDATION_RULE.value: ("validationRules", "validationRule"),
    MetadataTypes.WEB_LINK.value: ("webLinks", "webLink"),
}

# Types stored as <dir>/<name>/<name>.<suffix>-meta.xml
OBJECT_FOLDER_TYPES = (
    MetadataTypes.CUSTOM_OBJECT.value,
    MetadataTypes.CUSTOM_OBJECT_TRANSLATION.value,
)

SOURCE_ROOT = "force-app/main/default"


def is_folder_type(type_name: str) -> bool:
    return type_name in METADATA_QUERIES


def special_types_to_retrieve(selection=None) -> List[str]:
    """
    Expand the special-types registry into the list of types to retrieve.

    Args:
        selection: Optional selection map; only special types present in it
            are expanded. None or empty expands the whole registry.

    Returns:
        Type names in registry order without duplicates.
    """
    result: List[str] = []
    for type_name, children in SPECIAL_METADATA.items():
        if selection and type_name not in selection:
            continue
        for name in [type_name] + children:
            if name not in result:
                result.append(name)
    return result
