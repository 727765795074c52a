"""Describe result to schema document conversion."""
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from models import (
    ChildRelation,
    DescribeField,
    DescribeResult,
    PropertyDescriptor,
    SchemaDocument,
)

logger = logging.getLogger(__name__)

# Salesforce field type -> (semantic type, format)
TYPE_MAPPING: Dict[str, Tuple[str, Optional[str]]] = {
    # String types
    'string': ('string', None),
    'id': ('string', 'salesforce-id'),
    'reference': ('string', 'salesforce-id'),
    'email': ('string', 'email'),
    'url': ('string', 'uri'),
    'phone': ('string', 'phone'),
    'picklist': ('string', None),
    'multipicklist': ('string', None),
    'textarea': ('string', None),
    'encryptedstring': ('string', None),
    'combobox': ('string', None),
    # Number types
    'int': ('integer', None),
    'long': ('integer', None),
    'double': ('number', None),
    'currency': ('number', 'currency'),
    'percent': ('number', 'percent'),
    # Boolean
    'boolean': ('boolean', None),
    # Date/Time types
    'date': ('string', 'date'),
    'datetime': ('string', 'date-time'),
    'time': ('string', 'time'),
    # Compound and special types
    'address': ('object', None),
    'location': ('object', None),
    'base64': ('string', 'byte'),
    'anytype': ('string', None),
    'json': ('object', None),
}

DEFAULT_TYPE = ('string', None)

PICKLIST_TYPES = ('picklist', 'multipicklist')
NUMERIC_TYPES = ('number', 'integer')

# Steps finer than this many decimal places are useless for validation
MAX_STEP_SCALE = 8

# .../img/icon/t4v35/standard/account_120.png -> standard/account_120.png
ICON_URL_PATTERN = re.compile(r'/icon/[^/]+/(.+)$')

FEED_SUFFIX = 'Feed'


class ConverterService:
    """Service converting describe results into schema documents."""

    @staticmethod
    def map_field_type(field_type: Optional[str]) -> Tuple[str, Optional[str]]:
        """
        Map a Salesforce field type to a semantic type and format.

        Args:
            field_type: Salesforce field type, any case

        Returns:
            Tuple of (semantic_type, format); unknown types map to string
        """
        if not field_type:
            return DEFAULT_TYPE
        return TYPE_MAPPING.get(field_type.lower(), DEFAULT_TYPE)

    @staticmethod
    def numeric_bounds(precision: int, scale: int) -> Tuple[float, Optional[float]]:
        """
        Symmetric bound and step for a number with the given precision and scale.

        Returns:
            Tuple of (maximum, step); step is None when scale is 0 or above 8
        """
        maximum = 10 ** (precision - scale) - 10 ** (-scale)
        step = 10 ** (-scale) if 0 < scale <= MAX_STEP_SCALE else None
        return maximum, step

    @staticmethod
    def extract_icon(icon_url: Optional[str]) -> Optional[str]:
        """Keep only the part after /icon/<version>/ of a UI API icon URL."""
        if not icon_url:
            return None
        match = ICON_URL_PATTERN.search(icon_url)
        return match.group(1) if match else None

    def convert_field(self, field: DescribeField) -> PropertyDescriptor:
        """
        Convert one describe field to a property descriptor.

        Args:
            field: Field metadata from the describe endpoint

        Returns:
            Normalized property descriptor
        """
        field_type = (field.get('type') or '').lower()
        semantic_type, type_format = self.map_field_type(field_type)

        prop: PropertyDescriptor = {'type': semantic_type}
        if field.get('label'):
            prop['title'] = field['label']
        # Help text only; never an empty description
        if field.get('inlineHelpText'):
            prop['description'] = field['inlineHelpText']
        if type_format:
            prop['format'] = type_format

        if field_type in PICKLIST_TYPES:
            active_values = [
                value['value']
                for value in field.get('picklistValues') or []
                if value.get('active')
            ]
            if active_values:
                prop['enum'] = active_values

        if field_type == 'reference':
            reference_to = field.get('referenceTo') or []
            if len(reference_to) == 1:
                prop['x-object'] = reference_to[0]
            elif len(reference_to) > 1:
                prop['x-objects'] = list(reference_to)

        if field.get('length') and semantic_type == 'string':
            prop['maxLength'] = field['length']

        precision = field.get('precision')
        scale = field.get('scale')
        if semantic_type in NUMERIC_TYPES and precision is not None and scale is not None:
            maximum, step = self.numeric_bounds(precision, scale)
            # Integer fields report precision 0 and carry their size in digits
            if precision:
                prop['maximum'] = maximum
                prop['minimum'] = -maximum
            if step is not None:
                prop['multipleOf'] = step

        if field.get('nillable') is not None:
            prop['nullable'] = field['nillable']

        if field.get('calculated') or not field.get('updateable'):
            prop['readOnly'] = True

        for flag in ('calculated', 'autoNumber', 'unique', 'externalId'):
            if field.get(flag):
                prop[flag] = True
        if field.get('permissionable') is not None:
            prop['permissionable'] = field['permissionable']

        return prop

    @staticmethod
    def required_fields(fields: Iterable[DescribeField]) -> List[str]:
        """Fields a record cannot be created without."""
        return [
            field['name']
            for field in fields
            if not field.get('nillable')
            and not field.get('calculated')
            and not field.get('defaultValue')
            and not field.get('defaultValueFormula')
            and field.get('createable')
        ]

    @staticmethod
    def child_relations(describe: DescribeResult) -> List[ChildRelation]:
        """Visible child relationships, Feed objects excluded."""
        relations: List[ChildRelation] = []
        for rel in describe.get('childRelationships') or []:
            child = rel.get('childSObject')
            if rel.get('deprecatedAndHidden') or not child or child.endswith(FEED_SUFFIX):
                continue
            relations.append({
                'childObject': child,
                'field': rel.get('field'),
                'relationshipName': rel.get('relationshipName'),
                'cascadeDelete': bool(rel.get('cascadeDelete')),
            })
        return relations

    def convert_object(self, describe: DescribeResult, include_metadata: bool = True) -> SchemaDocument:
        """
        Convert a describe result to a schema document.

        Args:
            describe: Object metadata from the describe endpoint
            include_metadata: Attach key prefix, flags, icon and child relationships

        Returns:
            Schema document keyed by field name
        """
        name = describe['name']
        fields = describe.get('fields') or []

        document: SchemaDocument = {
            'name': name,
            'label': describe.get('label') or name,
            'description': f"{describe.get('labelPlural') or describe.get('label') or name} - {name}",
            'properties': {field['name']: self.convert_field(field) for field in fields},
        }

        required = self.required_fields(fields)
        if required:
            document['required'] = required

        if not include_metadata:
            return document

        if describe.get('labelPlural'):
            document['labelPlural'] = describe['labelPlural']
        if describe.get('keyPrefix'):
            document['keyPrefix'] = describe['keyPrefix']
        if describe.get('custom') is not None:
            document['custom'] = describe['custom']
        for flag in ('createable', 'updateable', 'deletable', 'queryable', 'searchable'):
            if describe.get(flag) is not None:
                document[flag] = describe[flag]

        name_fields = describe.get('nameFields') or []
        if name_fields:
            document['nameField'] = name_fields[0]

        theme_info = describe.get('themeInfo') or {}
        icon = self.extract_icon(theme_info.get('iconUrl'))
        if icon:
            document['iconUrl'] = icon
        elif theme_info.get('iconUrl'):
            logger.debug(f"Ignoring unrecognised icon URL for {name}: {theme_info['iconUrl']}")
        if theme_info.get('color'):
            document['iconColor'] = theme_info['color']

        relations = self.child_relations(describe)
        if relations:
            document['childRelationships'] = relations

        return document

    def convert_many(
        self,
        describes: Iterable[DescribeResult],
        include_metadata: bool = True
    ) -> Dict[str, SchemaDocument]:
        """Convert several describe results, keyed by object name."""
        return {
            describe['name']: self.convert_object(describe, include_metadata)
            for describe in describes
        }
