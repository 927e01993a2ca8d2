import pytest
from datetime import datetime
from typing import List

from expense_matcher.categorization import AbbreviationExpander, ClassificationEngine, LearningEvent
from expense_matcher.domain.enums import BuiltInCategory, MatchAlgorithm
from expense_matcher.domain.models import CATCH_ALL, BuiltIn, Custom

COFFEE = BuiltIn(BuiltInCategory.COFFEE)
FOOD = BuiltIn(BuiltInCategory.FOOD_DINING)
SHOPPING = BuiltIn(BuiltInCategory.SHOPPING)
ELECTRONICS = BuiltIn(BuiltInCategory.ELECTRONICS)

AFTERNOON = 15


@pytest.mark.unit
class TestEmptyInput:

    @pytest.mark.parametrize("description", ["", "   ", "!!! ...", None])
    def test_empty_input_goes_to_catch_all(self, small_engine: ClassificationEngine, description):
        result = small_engine.classify(description, hour=AFTERNOON)

        assert result.category == CATCH_ALL
        assert result.confidence == 0.0
        assert result.explanation == "Empty input"
        assert result.algorithm == MatchAlgorithm.CATCH_ALL


@pytest.mark.unit
class TestExactPhase:

    def test_exact_term(self, small_engine: ClassificationEngine):
        result = small_engine.classify("Starbucks", hour=AFTERNOON)

        assert result.category == COFFEE
        assert result.confidence == pytest.approx(0.95)
        assert result.algorithm == MatchAlgorithm.EXACT
        assert result.matched_terms == ("starbucks",)

    def test_whole_word_substring(self, small_engine: ClassificationEngine):
        result = small_engine.classify("team lunch downtown", hour=AFTERNOON)

        assert result.category == FOOD
        assert result.confidence == pytest.approx(0.95)
        assert result.algorithm == MatchAlgorithm.SUBSTRING

    def test_abbreviation_then_substring(self, small_engine: ClassificationEngine):
        """Test that 'sbux coffee run' lands on Coffee"""
        result = small_engine.classify("sbux coffee run", hour=AFTERNOON)

        assert result.category == COFFEE
        assert result.confidence == pytest.approx(0.95)

    def test_abbreviation_then_exact(self, small_engine: ClassificationEngine):
        result = small_engine.classify("amzn", hour=AFTERNOON)

        assert result.category == SHOPPING
        assert result.algorithm == MatchAlgorithm.EXACT
        assert result.matched_terms == ("amazon",)

    def test_unexpanded_text_wins_over_expansion(self, small_engine: ClassificationEngine):
        result = small_engine.classify("amzn latte", hour=AFTERNOON)

        assert result.category == COFFEE
        assert result.matched_terms == ("latte",)
        assert result.explanation == "Contains 'latte'"

    def test_alternatives_hold_other_categories(self, small_engine: ClassificationEngine):
        result = small_engine.classify("laptop from amazon", hour=AFTERNOON)

        categories = {result.category} | {alternative.category for alternative in result.alternatives}
        assert categories == {ELECTRONICS, SHOPPING}
        assert len(result.alternatives) == 1


@pytest.mark.unit
class TestSweepPhase:

    def test_typo_is_found_by_fuzzy_and_phonetic(self, small_engine: ClassificationEngine):
        """Test that 'starbcks' reaches Coffee and both matchers agree"""

        # Act
        result = small_engine.classify("starbcks", hour=AFTERNOON)

        # Assert
        assert result.category == COFFEE
        assert result.algorithm == MatchAlgorithm.FUZZY
        fuzzy = (1 - 1 / 9) * 0.8 * 0.9
        assert result.confidence == pytest.approx(fuzzy * 1.1)
        assert "phonetic" in result.explanation

    def test_semantic_match(self, small_engine: ClassificationEngine):
        result = small_engine.classify("hungry", hour=AFTERNOON)

        assert result.category == FOOD
        assert result.algorithm == MatchAlgorithm.SEMANTIC
        assert result.confidence == pytest.approx(0.6)

    def test_fused_confidence_is_at_least_best_single_algorithm(self, small_engine: ClassificationEngine):
        """Test that agreement between matchers never lowers a category's confidence"""

        # Act
        report = small_engine.debug_match("starbcks lattee laptp", hour=8)

        # Assert
        assert report.fused
        for fused in report.fused:
            singles = [c.confidence for c in report.candidates if c.category == fused.category]
            assert fused.confidence >= max(singles)

    def test_debug_report_keeps_every_stage(self, small_engine: ClassificationEngine):
        # Act
        report = small_engine.debug_match("starbcks", hour=AFTERNOON)

        # Assert
        assert report.normalized == "starbcks"
        assert report.variants == ["starbcks"]
        assert report.exact_hits == []
        algorithms = {c.algorithm for c in report.candidates if c.category == COFFEE}
        assert {MatchAlgorithm.FUZZY, MatchAlgorithm.PHONETIC} <= algorithms
        assert report.fused[0].supporting_algorithms[0] == MatchAlgorithm.FUZZY
        assert report.result == small_engine.classify("starbcks", hour=AFTERNOON)

    def test_fused_confidence_never_exceeds_one(self, small_engine: ClassificationEngine):
        report = small_engine.debug_match("starbcks lattee laptp", hour=8)

        assert all(0.0 <= c.confidence <= 1.0 for c in report.fused)
        assert all(0.0 <= c.score <= 1.0 for c in report.candidates)
        confidences = [c.confidence for c in report.fused]
        assert confidences == sorted(confidences, reverse=True)


@pytest.mark.unit
class TestFallback:

    def test_morning_phrase_suggests_coffee(self, small_engine: ClassificationEngine):
        result = small_engine.classify("grab something quick", hour=8)

        assert result.category == COFFEE
        assert result.confidence == pytest.approx(0.4)
        assert result.algorithm == MatchAlgorithm.FALLBACK

    def test_large_amount_suggests_shopping(self, small_engine: ClassificationEngine):
        result = small_engine.classify("mystery 250 dollars", hour=AFTERNOON)

        assert result.category == SHOPPING
        assert result.confidence == pytest.approx(0.3)

    def test_small_amount_suggests_food(self, small_engine: ClassificationEngine):
        result = small_engine.classify("mystery $12", hour=AFTERNOON)

        assert result.category == FOOD
        assert result.algorithm == MatchAlgorithm.FALLBACK

    def test_nothing_matches(self, small_engine: ClassificationEngine):
        result = small_engine.classify("qwxz zzv", hour=AFTERNOON)

        assert result.category == CATCH_ALL
        assert result.confidence == pytest.approx(0.05)
        assert result.algorithm == MatchAlgorithm.CATCH_ALL
        assert result.explanation == "No confident match"

    def test_hour_comes_from_clock_when_missing(self, small_store):
        # Arrange
        engine = ClassificationEngine(
            vocabulary=small_store,
            abbreviations=AbbreviationExpander({}),
            clock=lambda: datetime(2025, 1, 1, 8, 0),
        )

        # Act
        result = engine.classify("grab something quick")

        # Assert
        assert result.category == COFFEE
        assert result.algorithm == MatchAlgorithm.FALLBACK


@pytest.mark.unit
class TestLearning:

    def test_correction_is_used_immediately(self, small_engine: ClassificationEngine):
        # Act
        changed = small_engine.learn_from_correction("xyz widget", "Electronics")
        result = small_engine.classify("xyz widget", hour=AFTERNOON)

        # Assert
        assert changed
        assert result.category == ELECTRONICS
        assert result.confidence == pytest.approx(0.98)
        assert result.algorithm == MatchAlgorithm.LEARNED

    def test_learned_abbreviation_generalizes(self, small_engine: ClassificationEngine):
        small_engine.learn_from_correction("xyz widget", "Electronics")

        result = small_engine.classify("xyz gadget", hour=AFTERNOON)

        assert result.category == ELECTRONICS
        assert result.confidence == pytest.approx(0.95)

    def test_repeated_correction_changes_nothing(self, small_engine: ClassificationEngine):
        small_engine.learn_from_correction("xyz widget", "Electronics")
        stats = small_engine.get_stats()

        assert not small_engine.learn_from_correction("XYZ  widget", ELECTRONICS)
        assert small_engine.get_stats() == stats

    def test_hundred_repeated_corrections_do_not_grow_tables(self, small_engine: ClassificationEngine):
        # Arrange
        events: List[LearningEvent] = []
        small_engine.on_learn = events.append
        small_engine.learn_from_correction("xyz widget", "Electronics")
        stats = small_engine.get_stats()
        learned = small_engine.abbreviations.learned
        terms = small_engine.vocabulary.learned_terms()

        # Act
        for _ in range(100):
            small_engine.learn_from_correction("xyz widget", "Electronics")

        # Assert
        assert small_engine.get_stats() == stats
        assert small_engine.abbreviations.learned == learned
        assert small_engine.vocabulary.learned_terms() == terms
        assert len(events) == 1

    def test_unrelated_correction_keeps_existing_matches(self, small_engine: ClassificationEngine):
        """Test that 'my latte' stays Coffee after teaching an unrelated phrase"""

        # Arrange
        before = small_engine.classify("my latte", hour=AFTERNOON)

        # Act
        small_engine.learn_from_correction("me my new zara top", "Clothes")

        # Assert
        after = small_engine.classify("my latte", hour=AFTERNOON)
        assert before.category == COFFEE
        assert after == before
        assert small_engine.classify("new latte", hour=AFTERNOON).category == COFFEE
        assert "my" not in small_engine.abbreviations
        assert "me" not in small_engine.abbreviations
        assert small_engine.abbreviations.expansions_for("zara") == ("clothes",)

    def test_correction_moves_term_to_new_category(self, small_engine: ClassificationEngine):
        small_engine.learn_from_correction("xyz widget", "Electronics")

        assert small_engine.learn_from_correction("xyz widget", "Shopping")

        assert small_engine.classify("xyz widget", hour=AFTERNOON).category == SHOPPING
        assert not small_engine.vocabulary.contains("xyz widget", "Electronics")
        assert small_engine.vocabulary.contains("xyz widget", "Shopping")

    def test_moved_term_forgets_old_abbreviations(self, small_engine: ClassificationEngine):
        # Arrange
        events: List[LearningEvent] = []
        small_engine.learn_from_correction("xyz widget", "Electronics")
        small_engine.on_learn = events.append

        # Act
        small_engine.learn_from_correction("xyz widget", "Shopping")

        # Assert
        assert small_engine.abbreviations.expansions_for("xyz") == ("shopping",)
        assert events == [LearningEvent(
            term="xyz widget",
            category=SHOPPING,
            abbreviations=("xyz",),
            previous_category=ELECTRONICS,
            forgotten_abbreviations=("xyz",),
        )]

    def test_learning_event_is_emitted(self, small_engine: ClassificationEngine):
        # Arrange
        events: List[LearningEvent] = []
        small_engine.on_learn = events.append

        # Act
        small_engine.learn_from_correction("xyz widget", "Electronics")
        small_engine.learn_from_correction("xyz widget", "Electronics")

        # Assert
        assert events == [LearningEvent(term="xyz widget", category=ELECTRONICS, abbreviations=("xyz",))]

    def test_invalid_corrections_are_ignored(self, small_engine: ClassificationEngine):
        assert not small_engine.learn_from_correction("", "Coffee")
        assert not small_engine.learn_from_correction("widget", None)
        assert not small_engine.learn_from_correction("widget", "   ")
        assert small_engine.learned_patterns == {}

    def test_custom_category(self, small_engine: ClassificationEngine):
        small_engine.learn_from_correction("kibble", "Pet Supplies")

        assert small_engine.classify("kibble", hour=AFTERNOON).category == Custom("Pet Supplies")

    def test_learned_patterns_from_constructor(self, small_store):
        engine = ClassificationEngine(
            vocabulary=small_store,
            abbreviations=None,
            learned_patterns={"Sbux Coffee Run": "Food & Dining"},
        )

        assert engine.classify("sbux coffee run", hour=AFTERNOON).category == FOOD


@pytest.mark.unit
class TestDeterminism:

    def test_same_input_same_result(self, small_engine: ClassificationEngine):
        first = small_engine.classify("starbcks latte", hour=8)
        second = small_engine.classify("starbcks latte", hour=8)

        assert first == second

    def test_classify_many(self, small_engine: ClassificationEngine):
        results = small_engine.classify_many(["starbucks", "", "amzn"], hour=AFTERNOON)

        assert [r.category for r in results] == [COFFEE, CATCH_ALL, SHOPPING]

    def test_stats(self, small_engine: ClassificationEngine):
        stats = small_engine.get_stats()

        assert stats["categories"] == 4
        assert stats["learned_terms"] == 0
        assert stats["abbreviations"] == 2


@pytest.mark.unit
class TestBundledVocabulary:
    """Spot checks against the shipped vocabulary"""

    @pytest.mark.parametrize("description, category", [
        ("Starbucks", COFFEE),
        ("sbux coffee run", COFFEE),
        ("amzn", SHOPPING),
        ("mcds", FOOD),
        ("uber ride home", BuiltIn(BuiltInCategory.TRANSPORTATION)),
    ])
    def test_known_descriptions(self, default_engine: ClassificationEngine, description, category):
        result = default_engine.classify(description, hour=AFTERNOON)

        assert result.category == category
        assert result.confidence >= 0.9

    @pytest.mark.parametrize("description", [
        "starbcks", "grab something quick", "zzzz", "netflix subscription", "new running shoes $120",
    ])
    def test_results_are_well_formed(self, default_engine: ClassificationEngine, description):
        result = default_engine.classify(description, hour=8)

        assert 0.0 <= result.confidence <= 1.0
        assert result.explanation
        assert len(result.alternatives) <= default_engine.config.max_results - 1
        assert result.category not in {a.category for a in result.alternatives}

    def test_custom_categories_join_the_vocabulary(self):
        engine = ClassificationEngine.create(custom_categories={"Pet Supplies": ["dog food", "vet"]})

        result = engine.classify("dog food", hour=AFTERNOON)

        assert result.category == Custom("Pet Supplies")
        assert result.algorithm == MatchAlgorithm.EXACT
