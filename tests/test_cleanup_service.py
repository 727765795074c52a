import pytest

from services.cleanup_service import CleanupService, field_name_to_label, is_redundant_description


@pytest.mark.parametrize("field_name, label", [
    ("Name", "Name"),
    ("LastModifiedById", "Last Modified By ID"),
    ("BillingURL", "Billing URL"),
    ("APIVersion", "API Version"),
    ("NumberOfEmployees", "Number Of Employees"),
])
def test_field_name_to_label(field_name, label) -> None:
    assert field_name_to_label(field_name) == label


def test_is_redundant_description() -> None:
    assert is_redundant_description("AccountNumber", "Account Number")
    assert is_redundant_description("AccountNumber", "The account number ")
    assert is_redundant_description("OwnerId", "Owner ID")
    assert not is_redundant_description("AccountNumber", "Number assigned to the account")
    assert not is_redundant_description("AccountNumber", "")
    assert not is_redundant_description("AccountNumber", None)


def test_remove_custom_fields(store) -> None:
    result = CleanupService(store).remove_custom_fields()

    assert result == {"changes": 1, "files": 1}
    assert "Region__c" not in store.read_object_file("Account")["Account"]["properties"]


def test_clean_min_max(store) -> None:
    result = CleanupService(store).clean_min_max()

    assert result == {"changes": 2, "files": 1}
    revenue = store.read_object_file("Account")["Account"]["properties"]["AnnualRevenue"]
    assert revenue == {"type": "number", "description": "Estimated annual revenue"}


def test_clean_redundant_descriptions(store) -> None:
    result = CleanupService(store).clean_redundant_descriptions()

    assert result == {"changes": 1, "files": 1}
    contact = store.read_object_file("Contact")["Contact"]
    assert "description" not in contact["properties"]["Email"]
    account = store.read_object_file("Account")["Account"]
    assert account["properties"]["Name"]["description"] == "Name of the account"


def test_clean_unwanted_objects(store) -> None:
    for name in ("AccountHistory", "CaseShare", "Event", "ContactFeed"):
        store.save_merged({"name": name, "properties": {}})

    deleted = CleanupService(store).clean_unwanted_objects()

    assert deleted == {"History": 1, "Event": 1, "Feed": 1, "Share": 1}
    assert store.read_object_file("AccountHistory") == {}
    assert store.read_object_file("Account") != {}


def test_unchanged_store_is_not_rewritten(store) -> None:
    path = store.object_path("Contact")
    before = open(path, encoding="utf-8").read()

    CleanupService(store).remove_custom_fields()

    assert open(path, encoding="utf-8").read() == before
