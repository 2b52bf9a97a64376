from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.contracts import (
    AcquiredContent,
    AcquisitionMethod,
    PipelineResult,
    ProductIdentity,
    PropertyResult,
    PropertySpec,
    validate_schema,
)
from utils.exceptions import InvalidInputError


def test_product_identity_trims_and_normalizes_article_number() -> None:
    identity = ProductIdentity(article_number="  ", product_name="  Bosch Serie 6  ")
    assert identity.product_name == "Bosch Serie 6"
    assert identity.article_number is None
    assert identity.label() == "Bosch Serie 6"

    with_article = ProductIdentity(article_number=" A123 ", product_name="Bosch Serie 6")
    assert with_article.label() == "A123 Bosch Serie 6"


def test_product_identity_requires_name() -> None:
    with pytest.raises(ValidationError):
        ProductIdentity(article_number="A123", product_name="   ")


def test_validate_schema_orders_by_index_and_keeps_ties_stable() -> None:
    schema = [
        PropertySpec(name="Höhe", order_index=2),
        PropertySpec(name="Breite", order_index=1),
        PropertySpec(name="Tiefe", order_index=1),
    ]
    ordered = validate_schema(schema)
    assert [spec.name for spec in ordered] == ["Breite", "Tiefe", "Höhe"]


def test_validate_schema_rejects_empty_and_duplicates() -> None:
    with pytest.raises(InvalidInputError):
        validate_schema([])
    with pytest.raises(InvalidInputError) as exc_info:
        validate_schema([PropertySpec(name="Breite"), PropertySpec(name="Breite")])
    assert exc_info.value.details["name"] == "Breite"


def test_property_result_enforces_consistency_law() -> None:
    ok = PropertyResult(name="Breite", value="550", confidence=80, is_consistent=True, consistency_count=2)
    assert ok.is_consistent

    with pytest.raises(ValidationError):
        PropertyResult(name="Breite", value="550", confidence=30, is_consistent=True, consistency_count=1)
    with pytest.raises(ValidationError):
        PropertyResult(name="Breite", value="550", confidence=80, is_consistent=False, consistency_count=3)


def test_acquired_content_length_follows_text() -> None:
    content = AcquiredContent(
        source_url="https://example.com",
        method=AcquisitionMethod.PLAIN_FETCH,
        text="x" * 42,
        success=True,
        content_length=7,
    )
    assert content.content_length == 42
    with pytest.raises(ValidationError):
        content.text = "changed"


def test_pipeline_result_counts_found_properties() -> None:
    result = PipelineResult(
        identity=ProductIdentity(product_name="Widget"),
        properties={
            "a": PropertyResult(name="a", value="1", confidence=30, consistency_count=1),
            "b": PropertyResult(name="b"),
        },
    )
    assert result.found_count() == 1
