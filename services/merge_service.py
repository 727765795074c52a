"""Merge freshly converted schema documents with curated documentation."""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config import OBJECT_REFERENCE_URL, UNKNOWN_MODULE
from models import (
    KNOWN_PROPERTY_KEYS,
    MERGED_PROPERTY_ATTRIBUTES,
    PropertyDescriptor,
    SchemaDocument,
)
from utils import extension_keys, is_custom_field, is_defined

logger = logging.getLogger(__name__)

# Human-authored fields, always taken from the existing document
CURATED_DOCUMENT_KEYS = ('description', 'module', 'sourceUrl')

# Machine-derived fields, refreshed from the latest describe
MACHINE_DOCUMENT_KEYS = (
    'keyPrefix',
    'labelPlural',
    'custom',
    'nameField',
    'iconUrl',
    'iconColor',
    'required',
    'createable',
    'updateable',
    'deletable',
    'queryable',
    'searchable',
    'childRelationships',
)

HANDLED_DOCUMENT_KEYS = frozenset(
    ('name', 'label', 'properties') + CURATED_DOCUMENT_KEYS + MACHINE_DOCUMENT_KEYS
)


def _ordered_union(*key_lists: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for keys in key_lists:
        for key in keys:
            seen.setdefault(key, None)
    return list(seen)


def _without_nulls(document: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in document.items() if value is not None}


class MergeService:
    """
    Reconciles a fresh describe conversion with an existing persisted store.

    Curated prose (object description, module, sourceUrl and field
    descriptions) always comes from the existing side. Everything the describe
    API derives (types refinements, references, flags) comes from the fresh side.
    Merging a document against itself returns an equal document.
    """

    def merge(
        self,
        fresh: SchemaDocument,
        existing_store: Optional[Mapping[str, SchemaDocument]] = None
    ) -> SchemaDocument:
        """
        Produce the single document to persist for fresh['name'].

        Args:
            fresh: Freshly converted schema document
            existing_store: Persisted documents keyed by object name, possibly empty

        Returns:
            Reconciled schema document
        """
        object_name = fresh['name']
        existing = (existing_store or {}).get(object_name)

        if not existing:
            logger.info(f"New object not in docs: {object_name} (adding to {UNKNOWN_MODULE} cloud)")
            return self._new_document(fresh)

        return self._merge_documents(fresh, existing)

    def merge_properties(
        self,
        fresh_properties: Mapping[str, PropertyDescriptor],
        existing_properties: Mapping[str, PropertyDescriptor]
    ) -> Dict[str, PropertyDescriptor]:
        """Merge the property maps of two documents over the union of field names."""
        merged: Dict[str, PropertyDescriptor] = {}

        for prop_name in _ordered_union(existing_properties, fresh_properties):
            existing_prop = existing_properties.get(prop_name)
            fresh_prop = fresh_properties.get(prop_name)

            if existing_prop is not None and fresh_prop is not None:
                # Custom fields are never matched against documentation
                if is_custom_field(prop_name):
                    merged[prop_name] = self.new_property(prop_name, fresh_prop)
                else:
                    merged[prop_name] = self._merge_property(fresh_prop, existing_prop)
            elif existing_prop is not None:
                merged[prop_name] = dict(existing_prop)
            else:
                merged[prop_name] = self.new_property(prop_name, fresh_prop)

        return merged

    @staticmethod
    def new_property(prop_name: str, fresh_prop: PropertyDescriptor) -> PropertyDescriptor:
        """A field only the fresh side knows about; description is synthesized when missing."""
        prop: PropertyDescriptor = {
            'type': fresh_prop.get('type'),
            'description': fresh_prop.get('description') or f"{prop_name} field",
        }
        for key, value in fresh_prop.items():
            if key not in prop and value is not None:
                prop[key] = value
        return _without_nulls(prop)

    @staticmethod
    def _merge_property(fresh_prop: PropertyDescriptor, existing_prop: PropertyDescriptor) -> PropertyDescriptor:
        prop: PropertyDescriptor = {
            'type': existing_prop.get('type') or fresh_prop.get('type'),
        }
        # Curated text is never replaced by machine text, even when empty
        if is_defined(existing_prop, 'description'):
            prop['description'] = existing_prop['description']

        for attribute in MERGED_PROPERTY_ATTRIBUTES:
            # A multipleOf of 0 or a False flag is still a value
            if is_defined(fresh_prop, attribute):
                prop[attribute] = fresh_prop[attribute]

        existing_extensions = extension_keys(existing_prop, KNOWN_PROPERTY_KEYS)
        fresh_extensions = extension_keys(fresh_prop, KNOWN_PROPERTY_KEYS)
        prop.update(existing_extensions)
        prop.update(fresh_extensions)

        return _without_nulls(prop)

    def _new_document(self, fresh: SchemaDocument) -> SchemaDocument:
        object_name = fresh['name']
        document: Dict[str, Any] = {
            'name': object_name,
            'description': (
                fresh.get('description')
                or fresh.get('label')
                or f"{object_name} object from Salesforce org"
            ),
            'properties': {
                prop_name: self.new_property(prop_name, prop)
                for prop_name, prop in (fresh.get('properties') or {}).items()
            },
            'module': UNKNOWN_MODULE,
        }
        if fresh.get('custom') is False:
            document['sourceUrl'] = OBJECT_REFERENCE_URL
        if fresh.get('label'):
            document['label'] = fresh['label']
        for key in MACHINE_DOCUMENT_KEYS:
            if is_defined(fresh, key):
                document[key] = fresh[key]
        if not document.get('childRelationships'):
            document.pop('childRelationships', None)
        return document

    def _merge_documents(self, fresh: SchemaDocument, existing: SchemaDocument) -> SchemaDocument:
        document: Dict[str, Any] = {
            'name': fresh['name'],
            'description': existing.get('description'),
            'properties': self.merge_properties(
                fresh.get('properties') or {},
                existing.get('properties') or {},
            ),
            'module': existing.get('module'),
            'sourceUrl': existing.get('sourceUrl'),
            'label': existing.get('label') or fresh.get('label'),
        }

        for key in MACHINE_DOCUMENT_KEYS:
            if is_defined(fresh, key):
                document[key] = fresh[key]
            elif is_defined(existing, key):
                document[key] = existing[key]

        # Extension keys added by other tooling (clouds, access rules, ...)
        for key, value in extension_keys(existing, HANDLED_DOCUMENT_KEYS).items():
            document[key] = value

        return _without_nulls(document)
