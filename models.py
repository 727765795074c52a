"""Data models and type definitions."""
from typing import Any, Dict, List, Optional, TypedDict


class RunData(TypedDict, total=False):
    """Describe run data structure."""
    status: str
    logs: List[str]
    created_at: str
    error: Optional[str]
    summary: Optional["RunSummary"]
    csv_file: Optional[str]
    has_csv_file: bool


class SalesforceCredentials(TypedDict, total=False):
    """Salesforce authentication credentials."""
    client_id: str
    client_secret: str
    username: str
    password: str
    security_token: str
    login_url: str


class TokenResponse(TypedDict, total=False):
    """Salesforce OAuth token response."""
    access_token: str
    instance_url: str
    id: str
    token_type: str
    issued_at: str
    signature: str


class GlobalObject(TypedDict):
    """One entry of the describeGlobal catalog."""
    name: str
    label: str
    custom: bool


class PicklistValue(TypedDict, total=False):
    """Picklist entry of a describe field."""
    active: bool
    defaultValue: bool
    label: str
    value: str


class DescribeField(TypedDict, total=False):
    """Salesforce field metadata as returned by the describe endpoint."""
    name: str
    label: str
    type: str
    length: int
    precision: int
    scale: int
    picklistValues: List[PicklistValue]
    referenceTo: List[str]
    relationshipName: Optional[str]
    nillable: bool
    updateable: bool
    createable: bool
    calculated: bool
    defaultValue: Any
    defaultValueFormula: Optional[str]
    custom: bool
    externalId: bool
    unique: bool
    autoNumber: bool
    permissionable: bool
    inlineHelpText: Optional[str]


class ThemeInfo(TypedDict, total=False):
    """Icon metadata from the UI API."""
    color: str
    iconUrl: str


class ChildRelationship(TypedDict, total=False):
    """Child relationship of a describe result."""
    cascadeDelete: bool
    childSObject: str
    deprecatedAndHidden: bool
    field: str
    relationshipName: Optional[str]


class DescribeResult(TypedDict, total=False):
    """Salesforce object metadata as returned by the describe endpoint."""
    name: str
    label: str
    labelPlural: str
    keyPrefix: Optional[str]
    custom: bool
    fields: List[DescribeField]
    childRelationships: List[ChildRelationship]
    nameFields: List[str]
    createable: bool
    updateable: bool
    deletable: bool
    queryable: bool
    searchable: bool
    themeInfo: ThemeInfo


class ChildRelation(TypedDict):
    """Child relationship kept in a schema document."""
    childObject: str
    field: str
    relationshipName: Optional[str]
    cascadeDelete: bool


# Field keys contain dashes, so the functional form is required.
# Unknown extension keys are allowed on top of these and survive merges.
PropertyDescriptor = TypedDict(
    "PropertyDescriptor",
    {
        "type": str,
        "title": str,
        "description": str,
        "format": str,
        "enum": List[str],
        "x-object": str,
        "x-objects": List[str],
        "maxLength": int,
        "minimum": float,
        "maximum": float,
        "multipleOf": float,
        "nullable": bool,
        "readOnly": bool,
        "calculated": bool,
        "permissionable": bool,
        "autoNumber": bool,
        "unique": bool,
        "externalId": bool,
    },
    total=False,
)


class SchemaDocument(TypedDict, total=False):
    """Normalized representation of one Salesforce object."""
    name: str
    description: str
    properties: Dict[str, PropertyDescriptor]
    module: str
    sourceUrl: str
    keyPrefix: str
    label: str
    labelPlural: str
    custom: bool
    nameField: str
    iconUrl: str
    iconColor: str
    required: List[str]
    createable: bool
    updateable: bool
    deletable: bool
    queryable: bool
    searchable: bool
    childRelationships: List[ChildRelation]


class ProgressState(TypedDict):
    """Checkpoint of a resumable bulk describe pass."""
    lastProcessedIndex: int
    lastProcessedObject: str
    totalObjects: int
    startedAt: str
    lastUpdatedAt: str
    processedCount: int


class IndexEntry(TypedDict, total=False):
    """Summary of one object in index.json."""
    description: str
    fieldCount: int
    label: str
    file: str
    name: str
    module: str
    keyPrefix: str


class DocumentIndex(TypedDict, total=False):
    """Master index of a store."""
    version: str
    totalObjects: int
    generatedAt: str
    objects: Dict[str, IndexEntry]


class ObjectDescription(TypedDict, total=False):
    """Description-only view of an index entry."""
    description: str
    fieldCount: int
    label: Optional[str]


class SearchResult(ObjectDescription, total=False):
    """Search hit over the index."""
    name: str


class RunSummary(TypedDict):
    """Outcome of a bulk describe pass."""
    processed: int
    skipped: int
    failed: int
    startIndex: int
    totalObjects: int
    completed: bool


class FieldRow(TypedDict):
    """Flattened field row for the CSV export."""
    Object: str
    Field: str
    Type: str
    Format: str
    ReferenceTo: str
    Nullable: str
    ReadOnly: str
    Description: str


# Attributes of a property the merge engine knows how to reconcile
MERGED_PROPERTY_ATTRIBUTES = (
    "title",
    "format",
    "enum",
    "x-object",
    "x-objects",
    "maxLength",
    "minimum",
    "maximum",
    "nullable",
    "readOnly",
    "calculated",
    "permissionable",
    "autoNumber",
    "unique",
    "externalId",
    "multipleOf",
)

KNOWN_PROPERTY_KEYS = frozenset(("type", "description") + MERGED_PROPERTY_ATTRIBUTES)
