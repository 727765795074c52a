"""Read-only lookups over a persisted schema store."""
import logging
import os
import re
from typing import Dict, List, Optional, Pattern, Union

from config import INDEX_FILE, INDEX_VERSION
from models import DocumentIndex, IndexEntry, ObjectDescription, SchemaDocument, SearchResult
from services.file_service import FileService
from utils import object_relative_path

logger = logging.getLogger(__name__)

SearchPattern = Union[str, Pattern[str]]


class ReferenceCache:
    """Index and object cache shared by every lookup against one store."""

    def __init__(self):
        self.index: Optional[DocumentIndex] = None
        self.index_loaded = False
        self.objects: Dict[str, SchemaDocument] = {}

    def clear(self) -> None:
        """Reset both caches in place."""
        self.index = None
        self.index_loaded = False
        self.objects.clear()


def _compile(pattern: SearchPattern) -> Pattern[str]:
    if isinstance(pattern, str):
        return re.compile(pattern, re.IGNORECASE)
    return pattern


def _summary(entry: IndexEntry) -> ObjectDescription:
    return {
        'description': entry.get('description', ''),
        'fieldCount': entry.get('fieldCount', 0),
        'label': entry.get('label'),
    }


class ReferenceService:
    """
    Lookup API over a letter-partitioned store (index.json + objects/<L>/<Name>.json).

    Missing objects, a missing index or unreadable files are reported as None
    or empty results, never as exceptions.
    """

    def __init__(self, doc_dir: str, cache: Optional[ReferenceCache] = None):
        """
        Initialize the reference service.

        Args:
            doc_dir: Store root
            cache: Cache to share with other lookups; a private one by default
        """
        self.doc_dir = doc_dir
        self.cache = cache if cache is not None else ReferenceCache()
        self.file_service = FileService(doc_dir)

    def load_index(self, use_cache: bool = True) -> Optional[DocumentIndex]:
        """
        Load the store index.

        Args:
            use_cache: Return the cached index when one was loaded before

        Returns:
            The index (the same instance on every cached call), or None when absent
        """
        if use_cache and self.cache.index_loaded:
            return self.cache.index

        raw = self.file_service.read_json(os.path.join(self.doc_dir, INDEX_FILE))
        if not isinstance(raw, dict) or not isinstance(raw.get('objects'), dict):
            logger.warning(f"Index file not found or invalid in {self.doc_dir}")
            index = None
        else:
            index = {
                'version': raw.get('version') or raw.get('generated') or INDEX_VERSION,
                'totalObjects': raw.get('totalObjects', len(raw['objects'])),
                'objects': raw['objects'],
            }
            generated_at = raw.get('generatedAt') or raw.get('generated')
            if generated_at:
                index['generatedAt'] = generated_at

        self.cache.index = index
        self.cache.index_loaded = True
        return index

    def resolve_name(self, object_name: str, use_cache: bool = True) -> Optional[str]:
        """
        Map a name to its index key.

        Index keys are API names; entries may carry a display name under 'name'.
        An exact key match wins; otherwise the first entry whose 'name' matches.
        """
        return self._resolve_key(self.load_index(use_cache), object_name)

    @staticmethod
    def _resolve_key(index: Optional[DocumentIndex], object_name: str) -> Optional[str]:
        if not index:
            return None

        objects = index['objects']
        by_display_name = [
            key for key, entry in objects.items()
            if isinstance(entry, dict) and entry.get('name') == object_name and key != object_name
        ]

        if object_name in objects:
            if by_display_name:
                logger.warning(
                    f"'{object_name}' is an index key and also the display name of "
                    f"{', '.join(by_display_name)}; using the key match"
                )
            return object_name

        if len(by_display_name) > 1:
            logger.warning(
                f"Display name '{object_name}' is shared by {', '.join(by_display_name)}; "
                f"using {by_display_name[0]}"
            )
        return by_display_name[0] if by_display_name else None

    def _load_object_file(self, key: str, entry: Optional[IndexEntry]) -> Optional[SchemaDocument]:
        relative = (entry or {}).get('file') or object_relative_path(key)
        file_path = os.path.join(self.doc_dir, *relative.split('/'))

        data = self.file_service.read_json(file_path)
        if not isinstance(data, dict) or not data:
            logger.warning(f"Object file not found: {relative}")
            return None

        # The file holds a single document under its API name
        document = data.get(key) or next(iter(data.values()))
        return document if isinstance(document, dict) else None

    def get_object(self, object_name: str, use_cache: bool = True) -> Optional[SchemaDocument]:
        """
        Get the full document of an object.

        Args:
            object_name: API name or display name
            use_cache: Serve and fill the object cache

        Returns:
            The document, or None when the object is unknown
        """
        if not object_name or '/' in object_name or '\\' in object_name:
            return None
        if use_cache and object_name in self.cache.objects:
            return self.cache.objects[object_name]

        index = self.load_index(use_cache)
        key = self._resolve_key(index, object_name) or object_name
        entry = index['objects'].get(key) if index else None

        document = self._load_object_file(key, entry)
        if document is not None and use_cache:
            self.cache.objects[object_name] = document
        return document

    def search_objects(self, pattern: SearchPattern, use_cache: bool = True) -> List[SearchResult]:
        """Objects whose name matches a case-insensitive pattern."""
        index = self.load_index(use_cache)
        if not index:
            return []

        regex = _compile(pattern)
        return [
            {'name': name, **_summary(entry)}
            for name, entry in index['objects'].items()
            if regex.search(name)
        ]

    def search_objects_by_description(self, pattern: SearchPattern, use_cache: bool = True) -> List[SearchResult]:
        """Objects whose description matches a case-insensitive pattern."""
        index = self.load_index(use_cache)
        if not index:
            return []

        regex = _compile(pattern)
        return [
            {'name': name, **_summary(entry)}
            for name, entry in index['objects'].items()
            if regex.search(entry.get('description') or '')
        ]

    def get_all_object_names(self, use_cache: bool = True) -> List[str]:
        """Sorted names of every indexed object."""
        index = self.load_index(use_cache)
        return sorted(index['objects']) if index else []

    def get_object_description(self, object_name: str, use_cache: bool = True) -> Optional[ObjectDescription]:
        """Description and field count of one object without loading its file."""
        index = self.load_index(use_cache)
        key = self._resolve_key(index, object_name)
        if key is None:
            return None

        entry = index['objects'][key]
        return _summary(entry)

    def load_all_descriptions(self, use_cache: bool = True) -> Optional[Dict[str, ObjectDescription]]:
        """Descriptions of every indexed object."""
        index = self.load_index(use_cache)
        if not index:
            return None

        return {
            name: _summary(entry)
            for name, entry in index['objects'].items()
        }

    def load_all_objects(self, use_cache: bool = True) -> Dict[str, SchemaDocument]:
        """Every indexed object that can be loaded."""
        collection: Dict[str, SchemaDocument] = {}
        for name in self.get_all_object_names(use_cache):
            document = self.get_object(name, use_cache)
            if document is not None:
                collection[name] = document
        return collection

    def clear_cache(self) -> None:
        """Drop the cached index and objects."""
        self.cache.clear()
