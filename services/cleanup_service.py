"""Maintenance passes over an existing schema store."""
import logging
import os
import re
from typing import Callable, Dict

from config import UNWANTED_OBJECT_SUFFIXES
from services.file_service import FileService
from utils import is_custom_field

logger = logging.getLogger(__name__)

# Words kept upper-case when a field name is turned into a label
SPECIAL_WORDS = {'Id': 'ID', 'ID': 'ID', 'URL': 'URL', 'API': 'API'}


def field_name_to_label(field_name: str) -> str:
    """
    Split a field name into words, e.g. LastModifiedById -> Last Modified By ID.

    Args:
        field_name: API name of the field

    Returns:
        The words of the name separated by spaces
    """
    label = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1 \2', field_name)
    label = re.sub(r'([a-z\d])([A-Z])', r'\1 \2', label)
    return ' '.join(SPECIAL_WORDS.get(word, word) for word in label.split(' '))


def is_redundant_description(field_name: str, description: str) -> bool:
    """True when a description only repeats the field name, optionally after 'The'."""
    if not description:
        return False
    expected = field_name_to_label(field_name).lower()
    cleaned = description.strip().lower()
    return cleaned in (expected, f"the {expected}")


class CleanupService:
    """Service rewriting object files of a store in place."""

    def __init__(self, file_service: FileService):
        """
        Initialize the cleanup service.

        Args:
            file_service: Store to clean
        """
        self.file_service = file_service

    def _rewrite_properties(self, transform: Callable[[str, Dict], int]) -> Dict[str, int]:
        """
        Apply a per-property transform to every document and save changed files.

        The transform mutates the property map of one document and returns the
        number of changes it made.
        """
        changes = files = 0
        for file_path, key, document in self.file_service.iter_documents():
            properties = document.get('properties')
            if not isinstance(properties, dict):
                continue
            changed = transform(key, properties)
            if changed:
                self.file_service.write_json(file_path, {key: document})
                changes += changed
                files += 1
                logger.info(f"{os.path.basename(file_path)}: {changed} change(s)")
        return {'changes': changes, 'files': files}

    def remove_custom_fields(self) -> Dict[str, int]:
        """Delete __c/__r fields from every object."""
        def transform(_: str, properties: Dict) -> int:
            custom = [name for name in properties if is_custom_field(name)]
            for name in custom:
                del properties[name]
            return len(custom)

        result = self._rewrite_properties(transform)
        logger.info(f"Removed {result['changes']} custom fields from {result['files']} files")
        return result

    def clean_min_max(self) -> Dict[str, int]:
        """Delete minimum/maximum constraints from every field."""
        def transform(_: str, properties: Dict) -> int:
            removed = 0
            for prop in properties.values():
                for key in ('minimum', 'maximum'):
                    if key in prop:
                        del prop[key]
                        removed += 1
            return removed

        result = self._rewrite_properties(transform)
        logger.info(f"Cleaned minimum/maximum from {result['files']} files")
        return result

    def clean_redundant_descriptions(self) -> Dict[str, int]:
        """Delete field descriptions that only restate the field name."""
        def transform(_: str, properties: Dict) -> int:
            removed = 0
            for field_name, prop in properties.items():
                if is_redundant_description(field_name, prop.get('description')):
                    del prop['description']
                    removed += 1
            return removed

        result = self._rewrite_properties(transform)
        logger.info(f"Removed {result['changes']} redundant descriptions from {result['files']} files")
        return result

    def clean_unwanted_objects(self) -> Dict[str, int]:
        """Delete History/Event/Feed/Share object files."""
        deleted = {suffix: 0 for suffix in UNWANTED_OBJECT_SUFFIXES}
        for file_path in list(self.file_service.iter_object_files()):
            object_name = os.path.basename(file_path)[:-len('.json')]
            for suffix in UNWANTED_OBJECT_SUFFIXES:
                if object_name.endswith(suffix):
                    self.file_service.delete_object_file(file_path)
                    deleted[suffix] += 1
                    break

        logger.info(f"Deleted {sum(deleted.values())} unwanted object files")
        return deleted
