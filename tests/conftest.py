from typing import Any, Callable, Dict, List, Optional

import pytest

from config import Settings
from services.file_service import FileService

SF_ENV_VARS = (
    "SF_LOGIN_URL", "SF_USERNAME", "SF_PASSWORD", "SF_SECURITY_TOKEN",
    "SF_CLIENT_ID", "SF_CLIENT_SECRET", "SF_ACCESS_TOKEN", "SF_INSTANCE_URL",
    "SF_API_VERSION", "SF_MERGE_WITH_DOCS", "SF_OUTPUT_DIR", "SF_OBJECTS",
    "SF_BATCH_SIZE", "SF_RESUME", "SF_START_FROM_INDEX", "SF_SKIP_CUSTOM",
    "SF_RATE_LIMIT_PAUSE", "SF_CHECKPOINT_EVERY", "SF_MAX_WORKERS", "DOC_DIR",
)


def make_field(name: str, field_type: str = "string", **overrides: Any) -> Dict[str, Any]:
    field = {
        "name": name,
        "label": name,
        "type": field_type,
        "nillable": True,
        "updateable": True,
        "createable": True,
        "calculated": False,
        "defaultValue": None,
        "defaultValueFormula": None,
    }
    field.update(overrides)
    return field


def make_describe(name: str, fields: Optional[List[Dict[str, Any]]] = None, **overrides: Any) -> Dict[str, Any]:
    describe = {
        "name": name,
        "label": name,
        "labelPlural": f"{name}s",
        "keyPrefix": "001",
        "custom": name.endswith("__c"),
        "createable": True,
        "updateable": True,
        "deletable": True,
        "queryable": True,
        "searchable": True,
        "nameFields": ["Name"],
        "fields": fields if fields is not None else [
            make_field("Id", "id", nillable=False, updateable=False, createable=False),
            make_field("Name", nillable=False, length=255),
        ],
        "childRelationships": [],
    }
    describe.update(overrides)
    return describe


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Callable[..., Settings]:
    """Factory for Settings built from an environment without Salesforce variables."""
    for name in SF_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    def factory(**env: str) -> Settings:
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return Settings()

    return factory


@pytest.fixture
def account_document() -> Dict[str, Any]:
    return {
        "name": "Account",
        "label": "Account",
        "description": "Represents an individual account, which is an organization involved with your business.",
        "module": "Sales Cloud",
        "sourceUrl": "https://developer.salesforce.com/docs/object_reference/sforce_api_objects_account.htm",
        "keyPrefix": "001",
        "properties": {
            "Id": {"type": "string", "format": "salesforce-id", "description": "Unique record identifier"},
            "Name": {"type": "string", "maxLength": 255, "description": "Name of the account"},
            "AnnualRevenue": {"type": "number", "minimum": -1e16, "maximum": 1e16, "description": "Estimated annual revenue"},
            "Region__c": {"type": "string", "description": "Sales region"},
        },
    }


@pytest.fixture
def store(tmp_path, account_document) -> FileService:
    """A merged-layout store holding Account and Contact plus a fresh index."""
    file_service = FileService(str(tmp_path))
    file_service.write_json(file_service.object_path("Account"), {"Account": account_document})
    file_service.write_json(file_service.object_path("Contact"), {
        "Contact": {
            "name": "Contact",
            "label": "Contact",
            "description": "Represents a contact, which is a person associated with an account.",
            "module": "Sales Cloud",
            "properties": {
                "Id": {"type": "string", "format": "salesforce-id"},
                "AccountId": {"type": "string", "format": "salesforce-id", "x-object": "Account"},
                "Email": {"type": "string", "format": "email", "description": "The email"},
            },
        }
    })
    file_service.rebuild_index()
    return file_service
