"""Search query construction from a product identity."""

from __future__ import annotations

from core.contracts import ProductIdentity

SPEC_TERMS = "specifications OR datenblatt OR technical OR eigenschaften"


def build_search_query(identity: ProductIdentity) -> str:
    return f"{identity.label()} {SPEC_TERMS}"
