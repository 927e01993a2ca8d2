import json
import pytest

from expense_matcher.domain.enums import BuiltInCategory
from expense_matcher.domain.models import BuiltIn, Custom, as_category
from expense_matcher.vocabulary import (
    LEARNED_SOURCE_NAME,
    LEARNED_TERM_WEIGHT,
    VocabularySource,
    VocabularyStore,
    VocabularyTerm,
    build_curated_source,
    build_custom_source,
    build_regional_source,
    consolidate,
    load_default_sources,
    sources_from_config,
)
from expense_matcher.vocabulary.providers import parse_term

COFFEE = BuiltIn(BuiltInCategory.COFFEE)
ELECTRONICS = BuiltIn(BuiltInCategory.ELECTRONICS)


@pytest.fixture
def high_source() -> VocabularySource:
    return VocabularySource(
        name="high",
        priority=100,
        terms={COFFEE: (VocabularyTerm("starbucks", 1.0, "high", variations=("starbuck",)),)},
    )


@pytest.fixture
def low_source() -> VocabularySource:
    return VocabularySource(
        name="low",
        priority=10,
        terms={
            COFFEE: (
                VocabularyTerm("Starbucks", 0.5, "low", variations=("sbux",), context_clues=("latte",)),
                VocabularyTerm("cafe", 0.7, "low"),
            ),
        },
    )


@pytest.mark.unit
class TestVocabularyTerm:

    def test_weight_must_be_within_unit_interval(self):
        with pytest.raises(ValueError):
            VocabularyTerm("coffee", weight=1.5)

    def test_surface_forms_are_normalized_and_deduplicated(self):
        term = VocabularyTerm("Star-Bucks", variations=("star bucks", "STARBUCKS"))

        assert term.key == "star bucks"
        assert term.surface_forms == ("star bucks", "starbucks")


@pytest.mark.unit
class TestConsolidation:
    """Test the priority fold over sources"""

    def test_higher_priority_fixes_weight_and_source(self, high_source, low_source):
        # Act
        snapshot = consolidate([low_source, high_source])

        # Assert
        term = snapshot.find(COFFEE, "starbucks")
        assert term.weight == 1.0
        assert term.source == "high"

    def test_lower_priority_contributes_variations_and_context(self, high_source, low_source):
        snapshot = consolidate([high_source, low_source])

        term = snapshot.find(COFFEE, "STARBUCKS")
        assert term.variations == ("starbuck", "sbux")
        assert term.context_clues == ("latte",)

    def test_each_term_appears_once_per_category(self, high_source, low_source):
        snapshot = consolidate([high_source, low_source])

        keys = [term.key for term in snapshot.terms_for(COFFEE)]
        assert keys == ["starbucks", "cafe"]
        assert len(snapshot) == 2

    def test_input_order_does_not_matter_across_priorities(self, high_source, low_source):
        assert consolidate([high_source, low_source]) == consolidate([low_source, high_source])

    def test_equal_priority_keeps_input_order(self):
        first = VocabularySource("a", 50, {COFFEE: (VocabularyTerm("tea", 0.4, "a"),)})
        second = VocabularySource("b", 50, {COFFEE: (VocabularyTerm("tea", 0.9, "b"),)})

        assert consolidate([first, second]).find(COFFEE, "tea").source == "a"
        assert consolidate([second, first]).find(COFFEE, "tea").source == "b"

    def test_consolidation_is_idempotent(self, high_source, low_source):
        first = consolidate([high_source, low_source])
        second = consolidate([high_source, low_source])

        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_terms_that_normalize_to_nothing_are_dropped(self):
        source = VocabularySource("x", 1, {COFFEE: (VocabularyTerm("!!!"),)})

        assert COFFEE not in consolidate([source])

    def test_sources_are_read_only(self, high_source):
        with pytest.raises(TypeError):
            high_source.terms[ELECTRONICS] = ()


@pytest.mark.unit
class TestVocabularyStoreLearning:

    def test_add_learned_term(self, small_store: VocabularyStore):
        # Act
        added = small_store.add_learned_term("XYZ Widget", "Electronics")

        # Assert
        assert added
        term = small_store.snapshot.find(ELECTRONICS, "xyz widget")
        assert term.source == LEARNED_SOURCE_NAME
        assert term.weight == LEARNED_TERM_WEIGHT
        assert small_store.contains("xyz widget", ELECTRONICS)

    def test_add_learned_term_is_idempotent(self, small_store: VocabularyStore):
        small_store.add_learned_term("xyz widget", "Electronics")
        size = len(small_store)
        version = small_store.version

        assert not small_store.add_learned_term("xyz widget", "Electronics")
        assert not small_store.add_learned_term("  XYZ widget!", BuiltInCategory.ELECTRONICS)
        assert len(small_store) == size
        assert small_store.version == version

    def test_known_base_term_is_not_learned_again(self, small_store: VocabularyStore):
        assert not small_store.add_learned_term("Coffee", "Coffee")
        assert small_store.learned_terms() == []

    def test_invalid_input_is_ignored(self, small_store: VocabularyStore):
        assert not small_store.add_learned_term("", "Coffee")
        assert not small_store.add_learned_term("widget", "")
        assert not small_store.add_learned_term("widget", 42)

    def test_custom_category_terms(self, small_store: VocabularyStore):
        small_store.add_learned_term("kibble", "Pet Supplies")

        assert small_store.contains("kibble", Custom("Pet Supplies"))
        assert Custom("Pet Supplies") in small_store.snapshot.categories

    def test_remove_learned_term(self, small_store: VocabularyStore):
        small_store.add_learned_term("xyz widget", "Electronics")

        assert small_store.remove_learned_term("xyz widget", "Electronics")
        assert not small_store.contains("xyz widget", "Electronics")
        assert not small_store.remove_learned_term("xyz widget", "Electronics")

    def test_base_terms_cannot_be_removed(self, small_store: VocabularyStore):
        assert not small_store.remove_learned_term("coffee", "Coffee")
        assert small_store.contains("coffee", "Coffee")

    def test_learned_source_outranks_base_sources(self, small_store: VocabularyStore):
        sources = small_store.sources

        assert sources[-1].name == LEARNED_SOURCE_NAME
        assert sources[-1].priority > max(s.priority for s in sources[:-1])

    def test_seeded_learned_terms(self):
        store = VocabularyStore(
            [build_curated_source("test", 100, {"Coffee": {"primary": ["coffee"]}})],
            learned_terms=[("cold one", "Alcohol & Tobacco")],
        )

        assert store.learned_terms() == [("cold one", as_category("Alcohol & Tobacco"))]

    def test_external_learned_source_joins_learned_table(self):
        learned = VocabularySource(LEARNED_SOURCE_NAME, 999, {COFFEE: (VocabularyTerm("joe"),)})

        store = VocabularyStore([learned])

        assert store.learned_terms() == [("joe", COFFEE)]
        assert [s.name for s in store.sources] == [LEARNED_SOURCE_NAME]


@pytest.mark.unit
class TestProviders:

    def test_parse_term_from_dict(self):
        term = parse_term(
            {"term": "McDonald's", "variations": ["Mickey D's"], "context": ["Fries"]},
            0.9,
            "curated",
        )

        assert term.term == "mcdonalds"
        assert term.variations == ("mickey ds",)
        assert term.context_clues == ("fries",)

    def test_parse_term_rejects_unknown_shape(self):
        with pytest.raises(ValueError):
            parse_term(42, 1.0, "curated")

    def test_curated_tiers_set_weights(self):
        source = build_curated_source("c", 100, {"Coffee": {"primary": ["coffee"], "actions": ["coffee run"]}})

        weights = {term.term: term.weight for term in source.terms[COFFEE]}
        assert weights == {"coffee": 1.0, "coffee run": 0.6}

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError, match="Unknown vocabulary tier"):
            build_curated_source("c", 100, {"Coffee": {"favourites": ["coffee"]}})

    def test_regional_terms_carry_region(self):
        source = build_regional_source("r", 60, {"asian": {"Food & Dining": {"dishes": ["ramen"]}}})

        (term,) = source.terms[BuiltIn(BuiltInCategory.FOOD_DINING)]
        assert term.region == "asian"
        assert term.weight == 0.85

    def test_custom_source_includes_label(self):
        source = build_custom_source({"Pet Supplies": ["dog food", "vet"]})

        terms = [term.term for term in source.terms[Custom("Pet Supplies")]]
        assert terms == ["pet supplies", "dog food", "vet"]

    def test_unknown_source_type_raises(self):
        with pytest.raises(ValueError, match="Unknown vocabulary source type"):
            sources_from_config({"sources": [{"name": "x", "type": "remote", "priority": 1}]})

    def test_bundled_sources(self):
        sources = load_default_sources(custom_categories={})

        assert [s.name for s in sources] == ["curated", "regional", "multilingual"]
        curated = sources[0]
        assert len(curated.terms) == len(BuiltInCategory)
