import pytest

from services.converter_service import ConverterService
from tests.conftest import make_describe, make_field


@pytest.fixture
def converter() -> ConverterService:
    return ConverterService()


@pytest.mark.parametrize("field_type, expected", [
    ("string", ("string", None)),
    ("EMAIL", ("string", "email")),
    ("url", ("string", "uri")),
    ("reference", ("string", "salesforce-id")),
    ("int", ("integer", None)),
    ("currency", ("number", "currency")),
    ("DateTime", ("string", "date-time")),
    ("base64", ("string", "byte")),
    ("address", ("object", None)),
    ("somethingNew", ("string", None)),
    (None, ("string", None)),
])
def test_map_field_type(field_type, expected) -> None:
    assert ConverterService.map_field_type(field_type) == expected


def test_picklist_keeps_only_active_values(converter) -> None:
    field = make_field("Rating", "picklist", picklistValues=[
        {"value": "Hot", "active": True},
        {"value": "Retired", "active": False},
        {"value": "Cold", "active": True},
    ])
    assert converter.convert_field(field)["enum"] == ["Hot", "Cold"]


def test_picklist_without_active_values_has_no_enum(converter) -> None:
    field = make_field("Rating", "multipicklist", picklistValues=[{"value": "Old", "active": False}])
    assert "enum" not in converter.convert_field(field)


def test_reference_arity(converter) -> None:
    single = converter.convert_field(make_field("AccountId", "reference", referenceTo=["Account"]))
    poly = converter.convert_field(make_field("WhoId", "reference", referenceTo=["Account", "Contact"]))
    none = converter.convert_field(make_field("Orphan", "reference", referenceTo=[]))

    assert single["x-object"] == "Account"
    assert "x-objects" not in single
    assert poly["x-objects"] == ["Account", "Contact"]
    assert "x-object" not in poly
    assert "x-object" not in none and "x-objects" not in none


def test_step_kept_for_scale_8_and_dropped_for_scale_9(converter) -> None:
    scale_8 = converter.convert_field(make_field("Rate", "double", precision=18, scale=8))
    scale_9 = converter.convert_field(make_field("Rate", "double", precision=18, scale=9))

    assert scale_8["multipleOf"] == 10 ** -8
    assert "multipleOf" not in scale_9
    assert "maximum" in scale_9


def test_numeric_bounds_are_symmetric(converter) -> None:
    prop = converter.convert_field(make_field("Discount", "percent", precision=5, scale=2))
    assert prop["maximum"] == 10 ** 3 - 10 ** -2
    assert prop["minimum"] == -prop["maximum"]
    assert prop["multipleOf"] == 10 ** -2
    assert prop["format"] == "percent"


def test_zero_scale_has_bounds_but_no_step(converter) -> None:
    prop = converter.convert_field(make_field("Employees", "double", precision=8, scale=0))
    assert prop["maximum"] == 10 ** 8 - 1
    assert "multipleOf" not in prop


def test_integer_without_precision_has_no_bounds(converter) -> None:
    prop = converter.convert_field(make_field("NumberOfEmployees", "int", precision=0, scale=0, digits=8))
    assert prop["type"] == "integer"
    assert "maximum" not in prop and "minimum" not in prop


def test_step_does_not_depend_on_precision(converter) -> None:
    prop = converter.convert_field(make_field("Rate", "double", precision=0, scale=8))
    assert prop["multipleOf"] == 10 ** -8
    assert "maximum" not in prop


@pytest.mark.parametrize("calculated, updateable, read_only", [
    (True, True, True),
    (False, False, True),
    (True, False, True),
    (False, True, False),
])
def test_read_only(converter, calculated, updateable, read_only) -> None:
    prop = converter.convert_field(make_field("F", calculated=calculated, updateable=updateable))
    assert prop.get("readOnly", False) is read_only


def test_help_text_becomes_description(converter) -> None:
    with_help = converter.convert_field(make_field("Name", inlineHelpText="Legal name"))
    without_help = converter.convert_field(make_field("Name", inlineHelpText=""))

    assert with_help["description"] == "Legal name"
    assert "description" not in without_help


def test_string_length_and_flags(converter) -> None:
    prop = converter.convert_field(make_field(
        "External_Key__c", length=80, externalId=True, unique=True, permissionable=False, nillable=False
    ))
    assert prop["maxLength"] == 80
    assert prop["externalId"] is True
    assert prop["unique"] is True
    assert prop["permissionable"] is False
    assert prop["nullable"] is False
    assert "autoNumber" not in prop


def test_required_fields_need_all_four_conditions() -> None:
    fields = [
        make_field("Name", nillable=False),
        make_field("Optional", nillable=True),
        make_field("Formula", nillable=False, calculated=True),
        make_field("Defaulted", nillable=False, defaultValue="x"),
        make_field("DefaultedByFormula", nillable=False, defaultValueFormula="TODAY()"),
        make_field("SystemOnly", nillable=False, createable=False),
    ]
    assert ConverterService.required_fields(fields) == ["Name"]


def test_extract_icon() -> None:
    url = "https://acme.my.salesforce.com/img/icon/t4v35/standard/account_120.png"
    assert ConverterService.extract_icon(url) == "standard/account_120.png"
    assert ConverterService.extract_icon("https://example.com/logo.png") is None
    assert ConverterService.extract_icon(None) is None


def test_convert_object(converter) -> None:
    describe = make_describe(
        "Account",
        themeInfo={"color": "7F8DE1", "iconUrl": "https://acme.my.salesforce.com/img/icon/t4v35/standard/account_120.png"},
        childRelationships=[
            {"childSObject": "Contact", "field": "AccountId", "relationshipName": "Contacts", "cascadeDelete": False},
            {"childSObject": "AccountFeed", "field": "ParentId", "relationshipName": "Feeds"},
            {"childSObject": "Hidden", "field": "X", "deprecatedAndHidden": True},
            {"childSObject": "", "field": "Y"},
        ],
    )
    document = converter.convert_object(describe)

    assert document["name"] == "Account"
    assert document["description"] == "Accounts - Account"
    assert set(document["properties"]) == {"Id", "Name"}
    assert document["required"] == ["Name"]
    assert document["keyPrefix"] == "001"
    assert document["nameField"] == "Name"
    assert document["iconUrl"] == "standard/account_120.png"
    assert document["iconColor"] == "7F8DE1"
    assert document["queryable"] is True
    assert document["childRelationships"] == [
        {"childObject": "Contact", "field": "AccountId", "relationshipName": "Contacts", "cascadeDelete": False}
    ]


def test_malformed_icon_is_omitted(converter) -> None:
    document = converter.convert_object(make_describe("Account", themeInfo={"iconUrl": "https://cdn/logo.png"}))
    assert "iconUrl" not in document


def test_convert_object_without_metadata(converter) -> None:
    document = converter.convert_object(make_describe("Account"), include_metadata=False)
    assert "keyPrefix" not in document
    assert "createable" not in document
    assert document["required"] == ["Name"]


def test_convert_many_keys_by_name(converter) -> None:
    documents = converter.convert_many([make_describe("Account"), make_describe("Contact")])
    assert list(documents) == ["Account", "Contact"]
