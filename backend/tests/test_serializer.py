"""Tests for CSV/JSON export and the export → import round trip."""
import json
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.exports.serializer import (
    build_backup_envelope,
    export_filename,
    format_value,
    media_type,
    serialize,
)
from app.imports.fields import get_target
from app.imports.mapping import propose_mapping
from app.imports.coercion import build_records
from app.imports.tokenizer import tokenize


# ─── Helpers ──────────────────────────────────────────────────────────────────

EXPORTED_AT = datetime(2025, 5, 19, 9, 30, tzinfo=timezone.utc)


def _make_order(**overrides):
    order = {
        "order_number": "BD-1001",
        "contact_name": "Sarah Jones",
        "contact_email": "sarah@example.com",
        "event_type": "Birthday",
        "event_date": date(2025, 6, 1),
        "status": "Confirmed",
        "delivery_type": "Delivery",
        "delivery_address": "1 High St, Bath",
        "delivery_fee": Decimal("5.00"),
        "total_amount": Decimal("65.00"),
        "deposit_amount": Decimal("20.00"),
        "deposit_paid": True,
        "theme": 'Unicorn "sparkle"',
        "notes": "Gluten free\nNo nuts",
        "created_at": date(2025, 5, 1),
    }
    order.update(overrides)
    return order


# ─── Tests ────────────────────────────────────────────────────────────────────

def test_format_value_per_kind():
    """Decimals plain, dates ISO, booleans lower-case, None empty."""
    assert format_value(Decimal("14.10")) == "14.10"
    assert format_value(Decimal("1E+2")) == "100"
    assert format_value(date(2025, 5, 19)) == "2025-05-19"
    assert format_value(True) == "true"
    assert format_value(None) == ""
    assert format_value(12) == "12"


def test_csv_quotes_only_when_needed():
    """Plain cells are bare; delimiter, quote and line breaks force quoting."""
    specs = get_target("order_items").fields
    item = {"order_number": "BD-1001", "name": "Cake, large", "description": 'say "hi"',
            "quantity": 1, "price": Decimal("45.00")}
    body = serialize([item], specs, "csv").decode("utf-8")
    assert body.split("\r\n")[1] == 'BD-1001,"Cake, large","say ""hi""",1,45.00'

    item["description"] = "two\nlines"
    body = serialize([item], specs, "csv").decode("utf-8")
    assert '"two\nlines"' in body


def test_csv_header_uses_labels_and_crlf():
    """The header row is the target's labels; lines end with CRLF."""
    specs = get_target("recipes").fields
    body = serialize([], specs, "csv").decode("utf-8")
    assert body == "Name,Category,Servings,Total Cost,Description\r\n"


def test_csv_template_ignores_records():
    """template=True writes the header only."""
    specs = get_target("orders").fields
    body = serialize([_make_order()], specs, "csv", template=True).decode("utf-8")
    assert body.count("\r\n") == 1


def test_round_trip_reproduces_raw_values():
    """tokenize(serialize(R)) gives back every cell, including awkward ones."""
    target = get_target("orders")
    orders = [_make_order(), _make_order(order_number="BD-1002", notes='He said "ok", fine')]
    table = tokenize(serialize(orders, target.fields, "csv").decode("utf-8"))

    assert table.total_rows == 2
    assert table.rows[0].get("Delivery Address") == "1 High St, Bath"
    assert table.rows[0].get("Theme") == 'Unicorn "sparkle"'
    assert table.rows[0].get("Notes") == "Gluten free\nNo nuts"
    assert table.rows[1].get("Notes") == 'He said "ok", fine'
    for spec in target.fields:
        assert table.rows[0].get(spec.label) == format_value(orders[0][spec.key])


def test_round_trip_reproduces_typed_values():
    """Re-importing an export yields the same typed values."""
    target = get_target("orders")
    order = _make_order(theme="Rustic", notes="Three tiers")
    table = tokenize(serialize([order], target.fields, "csv").decode("utf-8"))
    record = build_records(table.rows, propose_mapping(table.headers, target.fields), target)[0]

    for key, value in order.items():
        assert record[key] == value


def test_json_export_is_an_envelope():
    """JSON mode wraps the entity in the versioned backup envelope."""
    specs = get_target("recipes").fields
    recipe = {"name": "Sponge", "category": "Cakes", "servings": 12,
              "total_cost": Decimal("18.50"), "description": ""}
    payload = json.loads(serialize([recipe], specs, "json", exported_at=EXPORTED_AT, entity="recipes"))

    assert payload["version"] == "1.0"
    assert payload["exportDate"] == "2025-05-19T09:30:00+00:00"
    assert payload["data"]["recipes"][0]["total_cost"] == "18.50"
    assert payload["data"]["recipes"][0]["servings"] == 12


def test_json_template_has_empty_section():
    """A JSON template carries the envelope with no records."""
    specs = get_target("contacts").fields
    payload = json.loads(serialize([{"first_name": "x"}], specs, "json", template=True, entity="contacts"))
    assert payload["data"] == {"contacts": []}


def test_json_keeps_nested_items():
    """Order items ride along with their order in JSON."""
    specs = get_target("orders").fields
    order = _make_order(items=[{"name": "Cupcakes", "quantity": 12, "price": Decimal("15.00")}])
    payload = json.loads(serialize([order], specs, "json", entity="orders"))
    assert payload["data"]["orders"][0]["items"][0]["name"] == "Cupcakes"


def test_backup_envelope_sections():
    """The full backup carries every section under data."""
    envelope = build_backup_envelope({"contacts": [], "recipes": [{"name": "Sponge"}]}, EXPORTED_AT)
    assert envelope["version"] == "1.0"
    assert set(envelope["data"]) == {"contacts", "recipes"}


def test_unknown_format_raises():
    """Only csv and json are supported."""
    with pytest.raises(ValueError):
        serialize([], get_target("recipes").fields, "xlsx")


def test_export_filename_and_media_type():
    """<product>-export-<entity|all>-<date>.<ext> and matching MIME types."""
    assert export_filename("orders", "csv", date(2025, 5, 19)) == "bakehouse-export-orders-2025-05-19.csv"
    assert export_filename(None, "json", date(2025, 5, 19)) == "bakehouse-export-all-2025-05-19.json"
    assert media_type("csv") == "text/csv"
    assert media_type("json") == "application/json"


def test_round_trip_unescapes_quotes_in_text_twice():
    """Quote pairs inside text values do not survive a re-import unchanged."""
    target = get_target("orders")
    order = _make_order(theme='"Sparkle"', notes='a""b')
    table = tokenize(serialize([order], target.fields, "csv").decode("utf-8"))
    record = build_records(table.rows, propose_mapping(table.headers, target.fields), target)[0]

    assert table.rows[0].get("Notes") == 'a""b'
    assert record["notes"] == 'a"b'
    assert record["theme"] == "Sparkle"
