"""Tests for automatic header → field mapping and manual overrides."""
import pytest

from app.imports.errors import MissingRequiredFieldError, UnknownColumnError
from app.imports.fields import CONTACT_FIELDS, EXPENSE_FIELDS, ORDER_FIELDS, RECIPE_FIELDS
from app.imports.mapping import UNMAPPED, field_forms, propose_mapping


# ─── Tests ────────────────────────────────────────────────────────────────────

def test_exported_labels_map_back_exactly():
    """Every order label as a header maps to its own field by exact match."""
    headers = [spec.label for spec in ORDER_FIELDS]
    mapping = propose_mapping(headers, ORDER_FIELDS)
    for spec in ORDER_FIELDS:
        assert mapping.source_for(spec.key) == spec.label
        assert mapping.matched_by[spec.key] == "exact"


def test_key_with_spaces_matches():
    """'order number' (key with underscores as spaces) matches case-insensitively."""
    mapping = propose_mapping(["ORDER NUMBER", "Event date"], ORDER_FIELDS)
    assert mapping.source_for("order_number") == "ORDER NUMBER"
    assert mapping.source_for("event_date") == "Event date"


def test_exact_match_beats_substring_regardless_of_column_order():
    """'Name' wins over 'Customer Name' for the recipe name in either order."""
    for headers in (["Customer Name", "Name"], ["Name", "Customer Name"]):
        mapping = propose_mapping(headers, RECIPE_FIELDS)
        assert mapping.source_for("name") == "Name"


def test_alias_matches_bake_diary_spelling():
    """The misspelt 'Recipies' header feeds the recipe name."""
    mapping = propose_mapping(["Recipies", "Category", "Servings", "Custom Price"], RECIPE_FIELDS)
    assert mapping.source_for("name") == "Recipies"
    assert mapping.source_for("total_cost") == "Custom Price"
    assert mapping.source_for("description") is None


def test_header_contained_in_field_form():
    """A truncated header like 'Serv' still matches 'servings'."""
    mapping = propose_mapping(["Name", "Serv"], RECIPE_FIELDS)
    assert mapping.source_for("servings") == "Serv"
    assert mapping.matched_by["servings"] == "header_within"


def test_one_column_feeds_one_field():
    """A bare 'Name' column goes to the first contact name field only."""
    mapping = propose_mapping(["Name"], CONTACT_FIELDS)
    assert mapping.source_for("first_name") == "Name"
    assert mapping.source_for("last_name") is None
    assert mapping.source_for("business_name") is None


def test_unmatched_headers_leave_fields_unmapped():
    """Headers with nothing in common produce an empty mapping."""
    mapping = propose_mapping(["Foo", "Bar"], RECIPE_FIELDS)
    assert all(value is None for value in mapping.as_dict().values())


def test_propose_mapping_is_idempotent():
    """Two passes over the same headers agree."""
    headers = ["Order #", "Customer", "Event Date", "Total", "Deposit", "Status"]
    first = propose_mapping(headers, ORDER_FIELDS)
    second = propose_mapping(headers, ORDER_FIELDS)
    assert first.as_dict() == second.as_dict()
    first.reapply()
    assert first.as_dict() == second.as_dict()


def test_manual_override_survives_reapply():
    """A field set by hand keeps its column when the automatic pass reruns."""
    mapping = propose_mapping(["Name", "Title"], RECIPE_FIELDS)
    mapping.assign("name", "Title")
    mapping.reapply()
    assert mapping.source_for("name") == "Title"
    assert mapping.matched_by["name"] == "manual"


def test_manual_unmap_survives_reapply():
    """Clearing a field by hand is also a manual choice."""
    mapping = propose_mapping(["Name", "Category"], RECIPE_FIELDS)
    mapping.assign("category", UNMAPPED)
    mapping.reapply()
    assert not mapping.is_mapped("category")


def test_assign_unknown_column_raises():
    """Overrides must name a column that exists in the upload."""
    mapping = propose_mapping(["Name"], RECIPE_FIELDS)
    with pytest.raises(UnknownColumnError):
        mapping.assign("name", "Recipe Title")


def test_assign_unknown_field_raises():
    """Overrides must name a field of the target."""
    mapping = propose_mapping(["Name"], RECIPE_FIELDS)
    with pytest.raises(KeyError):
        mapping.assign("colour", "Name")


def test_validate_names_missing_required_labels():
    """An unmapped required field fails validation with its label."""
    mapping = propose_mapping(["Category", "Servings"], RECIPE_FIELDS)
    with pytest.raises(MissingRequiredFieldError) as exc_info:
        mapping.validate()
    assert str(exc_info.value) == "Missing required fields: Name"
    assert exc_info.value.labels == ["Name"]


def test_validate_passes_when_required_fields_mapped():
    """No exception once every required field has a column."""
    mapping = propose_mapping(["Name"], RECIPE_FIELDS)
    mapping.validate()


def test_field_forms_include_key_label_and_aliases():
    """Forms are lower-cased and de-duplicated, key form first."""
    spec = RECIPE_FIELDS[0]
    forms = field_forms(spec)
    assert forms[0] == "name"
    assert "recipies" in forms
    assert len(forms) == len(set(forms))


def test_expense_gross_amount_column_is_not_taken_by_vat():
    """'Amount (Incl VAT)' feeds the amount; the VAT field stays unmapped."""
    headers = ["Date", "Description", "Category", "Amount (Incl VAT)", "Supplier", "Payment"]
    mapping = propose_mapping(headers, EXPENSE_FIELDS)
    assert mapping.source_for("amount") == "Amount (Incl VAT)"
    assert mapping.source_for("vat") is None
    assert mapping.source_for("payment_source") == "Payment"
