from __future__ import annotations

import pytest

from core.contracts import Found, NotFound, PropertySpec
from pipeline.values import cleanup_value, normalize_reply, to_extracted_value, to_value_map
from utils.exceptions import ExtractionError

SCHEMA = [
    PropertySpec(name="Breite (in mm)", order_index=0),
    PropertySpec(name="Gewicht", order_index=1),
    PropertySpec(name="Brandschutzklasse", order_index=2),
]


@pytest.mark.parametrize(
    "raw",
    ["n/a", "N/A", "not specified", "nicht angegeben", "Nicht explizit angegeben", "k.a.", "-", "  ", None, "unknown."],
)
def test_placeholders_become_empty(raw) -> None:
    assert cleanup_value(raw) == ""


def test_real_negated_values_survive() -> None:
    assert cleanup_value("nicht brennbar") == "nicht brennbar"
    assert cleanup_value(' "550 mm" ') == "550 mm"


def test_to_extracted_value_handles_shapes() -> None:
    assert to_extracted_value("550") == Found(value="550")
    assert to_extracted_value(550) == Found(value="550")
    assert to_extracted_value(12.5) == Found(value="12.5")
    assert to_extracted_value(12.0) == Found(value="12")
    assert to_extracted_value({"value": "A2", "sources": ["datasheet"], "consistencyHint": "high"}) == Found(
        value="A2", sources=["datasheet"]
    )
    assert isinstance(to_extracted_value({"value": "n/a"}), NotFound)
    assert isinstance(to_extracted_value(["550"]), NotFound)
    assert isinstance(to_extracted_value(True), NotFound)


def test_normalize_reply_covers_every_property() -> None:
    values = normalize_reply({"Breite (in mm)": "550", "Unbekannt": "x", "Gewicht": "nicht verfügbar"}, SCHEMA)
    assert list(values) == ["Breite (in mm)", "Gewicht", "Brandschutzklasse"]
    assert to_value_map(values, SCHEMA) == {"Breite (in mm)": "550", "Gewicht": "", "Brandschutzklasse": ""}


def test_normalize_reply_rejects_non_objects() -> None:
    with pytest.raises(ExtractionError):
        normalize_reply(["550"], SCHEMA)
