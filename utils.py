"""Utility functions."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping

from config import (
    CUSTOM_FIELD_MARKERS,
    OBJECTS_DIR,
    STATUS_STARTING,
    UNWANTED_OBJECT_SUFFIXES,
)
from models import RunData

logger = logging.getLogger(__name__)


def create_run_data() -> RunData:
    """
    Create a new describe run data structure.

    Returns:
        Initialized run data dictionary
    """
    return {
        'status': STATUS_STARTING,
        'logs': [],
        'created_at': datetime.now().isoformat()
    }


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def partition_letter(object_name: str) -> str:
    """Store partition for an object: its first letter, uppercased."""
    if not object_name:
        raise ValueError("Object name must not be empty")
    return object_name[0].upper()


def object_relative_path(object_name: str, under_objects_dir: bool = True) -> str:
    """
    Relative path of an object's file inside a store.

    Args:
        object_name: API (or display) name of the object
        under_objects_dir: Prefix the path with the objects/ directory

    Returns:
        POSIX-style path such as objects/A/Account.json
    """
    relative = f"{partition_letter(object_name)}/{object_name}.json"
    return f"{OBJECTS_DIR}/{relative}" if under_objects_dir else relative


def is_custom_field(field_name: str) -> bool:
    """True for custom fields and custom relationships."""
    return any(marker in field_name for marker in CUSTOM_FIELD_MARKERS)


def is_unwanted_object(object_name: str) -> bool:
    """True for History/Event/Feed/Share objects."""
    return object_name.endswith(UNWANTED_OBJECT_SUFFIXES)


def is_defined(mapping: Mapping[str, Any], key: str) -> bool:
    """A key counts as defined when present with a non-null value."""
    return mapping.get(key) is not None


def extension_keys(mapping: Mapping[str, Any], known: Iterable[str]) -> Dict[str, Any]:
    """Residual entries of an open mapping that are not in the known set."""
    known = set(known)
    return {key: value for key, value in mapping.items() if key not in known}
