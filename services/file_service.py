"""Schema store file service."""
import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from config import INDEX_FILE, INDEX_VERSION, OBJECTS_DIR
from exceptions import SchemaStoreError
from models import DocumentIndex, FieldRow, IndexEntry, SchemaDocument
from services.merge_service import MergeService
from utils import object_relative_path, utc_now_iso

logger = logging.getLogger(__name__)


class FileService:
    """Service for reading and writing a letter-partitioned schema store."""

    def __init__(self, root_dir: str, merge_service: Optional[MergeService] = None):
        """
        Initialize the file service.

        Args:
            root_dir: Store root (holds index.json and the objects/ tree)
            merge_service: Merge engine used by save_merged
        """
        self.root_dir = root_dir
        self.objects_dir = os.path.join(root_dir, OBJECTS_DIR)
        self.index_path = os.path.join(root_dir, INDEX_FILE)
        self.merge_service = merge_service or MergeService()

    def _ensure_directory(self, directory: str) -> None:
        os.makedirs(directory, exist_ok=True)

    def object_path(self, object_name: str, merged_layout: bool = True) -> str:
        """
        Path of an object's file.

        Args:
            object_name: Name of the Salesforce object
            merged_layout: objects/<L>/<Name>.json when True, <L>/<Name>.json otherwise

        Returns:
            Absolute or root-relative file path
        """
        relative = object_relative_path(object_name, under_objects_dir=merged_layout)
        return os.path.join(self.root_dir, *relative.split('/'))

    @staticmethod
    def write_json(file_path: str, data: Any) -> None:
        """Write JSON through a temporary file so readers never see half a file."""
        os.makedirs(os.path.dirname(file_path) or '.', exist_ok=True)
        tmp_path = f"{file_path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as file:
            json.dump(data, file, indent=2, ensure_ascii=False)
            file.write('\n')
        os.replace(tmp_path, file_path)

    @staticmethod
    def read_json(file_path: str) -> Optional[Any]:
        """Parsed JSON content, or None when the file is missing or corrupt."""
        if not os.path.isfile(file_path):
            return None
        try:
            with open(file_path, 'r', encoding='utf-8') as file:
                return json.load(file)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {file_path}: {e}")
            return None

    def read_object_file(self, object_name: str) -> Dict[str, SchemaDocument]:
        """
        Load the persisted store entry of one object.

        Returns:
            Mapping of object name to document; empty when absent or unreadable
        """
        data = self.read_json(self.object_path(object_name))
        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed store file for {object_name}")
            return {}
        return data

    def save_merged(self, schema: SchemaDocument) -> SchemaDocument:
        """
        Merge a fresh document with what is stored for it and persist the result.

        Args:
            schema: Freshly converted schema document

        Returns:
            The document that was written
        """
        object_name = schema.get('name')
        if not object_name:
            raise SchemaStoreError("Cannot store a schema document without a name")

        existing_store = self.read_object_file(object_name)
        merged = self.merge_service.merge(schema, existing_store)
        self.write_json(self.object_path(object_name), {object_name: merged})
        logger.debug(f"Saved merged document for {object_name}")
        return merged

    def save_schema(self, schema: SchemaDocument) -> str:
        """Write a converted document as-is to <L>/<Name>.json."""
        object_name = schema.get('name')
        if not object_name:
            raise SchemaStoreError("Cannot store a schema document without a name")

        file_path = self.object_path(object_name, merged_layout=False)
        self.write_json(file_path, schema)
        return file_path

    def iter_object_files(self) -> Iterator[str]:
        """Every object file of the store, sorted by partition and name."""
        if not os.path.isdir(self.objects_dir):
            return
        for letter in sorted(os.listdir(self.objects_dir)):
            letter_dir = os.path.join(self.objects_dir, letter)
            if not os.path.isdir(letter_dir):
                continue
            for file_name in sorted(os.listdir(letter_dir)):
                if file_name.endswith('.json'):
                    yield os.path.join(letter_dir, file_name)

    def iter_documents(self) -> Iterator[Tuple[str, str, SchemaDocument]]:
        """(file path, document key, document) for every readable object file."""
        for file_path in self.iter_object_files():
            data = self.read_json(file_path)
            if not isinstance(data, dict) or not data:
                logger.warning(f"Skipping unreadable object file {file_path}")
                continue
            key = next(iter(data))
            document = data[key]
            if not isinstance(document, dict):
                logger.warning(f"Skipping malformed object file {file_path}")
                continue
            yield file_path, key, document

    def rebuild_index(self) -> DocumentIndex:
        """
        Regenerate index.json from the objects/ tree.

        Returns:
            The index that was written
        """
        objects: Dict[str, IndexEntry] = {}

        for file_path, key, document in self.iter_documents():
            relative = os.path.relpath(file_path, self.root_dir).replace(os.sep, '/')
            entry: IndexEntry = {
                'name': document.get('name') or key,
                'description': document.get('description') or '',
                'fieldCount': len(document.get('properties') or {}),
                'file': relative,
            }
            for optional_key in ('label', 'module', 'keyPrefix'):
                if document.get(optional_key):
                    entry[optional_key] = document[optional_key]
            objects[key] = entry

        index: DocumentIndex = {
            'version': INDEX_VERSION,
            'totalObjects': len(objects),
            'generatedAt': utc_now_iso(),
            'objects': dict(sorted(objects.items())),
        }
        self.write_json(self.index_path, index)
        logger.info(f"Index rebuilt with {len(objects)} objects at {self.index_path}")
        return index

    def field_rows(self) -> List[FieldRow]:
        """Flatten every stored field into one row per field."""
        rows: List[FieldRow] = []
        for _, key, document in self.iter_documents():
            for field_name, prop in (document.get('properties') or {}).items():
                reference_to = prop.get('x-objects') or ([prop['x-object']] if prop.get('x-object') else [])
                rows.append({
                    'Object': key,
                    'Field': field_name,
                    'Type': prop.get('type') or 'N/A',
                    'Format': prop.get('format') or 'N/A',
                    'ReferenceTo': ','.join(reference_to) if reference_to else 'N/A',
                    'Nullable': str(prop['nullable']) if 'nullable' in prop else 'N/A',
                    'ReadOnly': str(bool(prop.get('readOnly'))),
                    'Description': prop.get('description') or '',
                })
        return rows

    @staticmethod
    def _format_date() -> str:
        """Format current date for filename."""
        return datetime.now().replace(microsecond=0).strftime('%Y_%m_%d')

    def export_fields_csv(self, output_dir: Optional[str] = None) -> str:
        """
        Save every stored field to a CSV file.

        Args:
            output_dir: Target directory, the store root by default

        Returns:
            Path to the saved CSV file
        """
        output_dir = output_dir or self.root_dir
        self._ensure_directory(output_dir)
        columns = list(FieldRow.__annotations__)
        df = pd.DataFrame(self.field_rows(), columns=columns)
        file_path = os.path.join(output_dir, f"{self._format_date()}_salesforce_fields.csv")
        df.to_csv(file_path, index=False)
        logger.info(f"Field metadata saved to {file_path}")
        return file_path

    @staticmethod
    def file_exists(file_path: str) -> bool:
        """
        Check if a file exists.

        Args:
            file_path: Path to the file

        Returns:
            True if file exists, False otherwise
        """
        return os.path.exists(file_path) and os.path.isfile(file_path)

    def delete_object_file(self, file_path: str) -> None:
        """Remove one object file from the store."""
        os.remove(file_path)
        logger.info(f"Deleted {os.path.relpath(file_path, self.root_dir)}")
