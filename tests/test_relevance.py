from __future__ import annotations

from core.contracts import CandidateSource, ProductIdentity
from pipeline.relevance import RelevanceScorer, clean_page_title, find_conflicting_products


def _scorer(**overrides) -> RelevanceScorer:
    params = {"threshold": 35, "fallback_top_n": 3, "sibling_penalty": 15}
    params.update(overrides)
    return RelevanceScorer(**params)


def test_exact_article_and_name_in_title_passes() -> None:
    identity = ProductIdentity(article_number="A123", product_name="Bosch Serie 6 WAU28T40")
    result = _scorer().score_text(
        "Technische Daten: Breite 60 cm, Höhe 85 cm.",
        identity,
        url="https://shop.example.com/p/a123",
        title="A123 Bosch Serie 6 WAU28T40 - jetzt kaufen bei Example",
    )
    assert result.score >= 90
    assert result.passed
    assert any("article number" in detail for detail in result.details)


def test_word_overlap_scores_partial_name_matches() -> None:
    identity = ProductIdentity(product_name="Hettich Schubkastenführung Quadro")
    result = _scorer().score_text("Quadro Schubkastenführung von Hettich, Traglast 30 kg", identity)
    assert result.score == 35
    assert result.passed


def test_sibling_variant_is_penalized_without_exact_name() -> None:
    identity = ProductIdentity(product_name="Bosch Serie 6 Trockner")
    text = "Bosch Serie 8 Trockner mit Wärmepumpe, Energieeffizienz A+++"
    penalized = _scorer().score_text(text, identity)
    neutral = _scorer(sibling_penalty=0).score_text(text, identity)
    assert penalized.score == neutral.score - 15
    assert any("conflicting products" in detail for detail in penalized.details)


def test_conflicting_products_ignore_the_target_itself() -> None:
    assert find_conflicting_products("Bosch Serie 6 ist ein Trockner", "Bosch Serie 6") == []
    assert find_conflicting_products("Bosch Serie 8 Trockner", "Bosch Serie 6") == ["Bosch Serie 8"]


def test_clean_page_title_strips_shop_suffixes() -> None:
    assert clean_page_title("Bosch WAU28T40 Waschmaschine - jetzt kaufen bei OTTO") == "Bosch WAU28T40 Waschmaschine"
    assert clean_page_title("Quadro V6 Führung | Beschlagshop") == "Quadro V6 Führung"
    assert clean_page_title("Spülmaschine SMV4 – versandkostenfrei!") == "Spülmaschine SMV4"
    assert clean_page_title("WAU28T40") == "WAU28T40"


def test_rank_sorts_descending_and_filters() -> None:
    identity = ProductIdentity(article_number="A123", product_name="Widget Pro")
    candidates = [
        CandidateSource(url="https://a.example/1", raw_text="nothing relevant here"),
        CandidateSource(url="https://a.example/2", raw_text="Widget Pro, article A123, 230 V"),
        CandidateSource(url="https://a.example/3", raw_text="Widget Pro datasheet"),
    ]
    ranked = _scorer().rank(candidates, identity)
    assert [item.url for item in ranked.scored] == [
        "https://a.example/2",
        "https://a.example/3",
        "https://a.example/1",
    ]
    assert [item.url for item in ranked.passed] == ["https://a.example/2", "https://a.example/3"]
    assert not ranked.low_confidence
    assert candidates[1].relevance_score == 0.0


def test_rank_falls_back_to_top_n_with_low_confidence() -> None:
    identity = ProductIdentity(product_name="Quantum Flux Capacitor")
    candidates = [CandidateSource(url=f"https://b.example/{index}", raw_text="unrelated page") for index in range(4)]
    ranked = _scorer(fallback_top_n=2).rank(candidates, identity)
    assert ranked.low_confidence
    assert [item.url for item in ranked.passed] == ["https://b.example/0", "https://b.example/1"]
    assert all(item.passed for item in ranked.passed)
    assert all("low-confidence fallback" in item.details for item in ranked.passed)
    assert len(ranked.scored) == 4


def test_regex_special_characters_are_matched_literally() -> None:
    identity = ProductIdentity(article_number="X.1+", product_name="Acme (Turbo+ 2.0 [v*]")

    exact = _scorer().score_text("Acme (Turbo+ 2.0 [v*] Datenblatt, Artikel X.1+", identity)
    assert exact.score == 90
    assert exact.passed

    lookalike = _scorer().score_text("Acme Turbo 2 0 v, Artikel X11+", identity)
    assert lookalike.score < 50
    assert not any("article number" in detail for detail in lookalike.details)

    sibling_text = "Zubehör für Acme (Turbo+ 3.0 Max"
    penalized = _scorer().score_text(sibling_text, identity)
    neutral = _scorer(sibling_penalty=0).score_text(sibling_text, identity)
    assert penalized.score == neutral.score - 15


def test_conflicting_products_with_regex_special_name() -> None:
    name = "Acme (Turbo+ 2.0 [v*]"
    text = "Acme (Turbo+ 2.0 [v*] Datenblatt\nZubehör für Acme (Turbo+ 3.0 Max"

    conflicts = find_conflicting_products(text, name)

    assert len(conflicts) == 1
    assert conflicts[0].startswith("Acme (Turbo+ 3")
