import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from expense_matcher.categorization.abbreviations import AbbreviationExpander
from expense_matcher.categorization.config import EngineConfig
from expense_matcher.categorization.context import ContextAnalyzer
from expense_matcher.categorization.models import (
    ClassificationResult,
    DebugReport,
    LearningEvent,
    MatchCandidate,
)
from expense_matcher.domain.enums import MatchAlgorithm
from expense_matcher.domain.models import CATCH_ALL, Category, as_category
from expense_matcher.matching.phonetic import compare_keys, phonetic_keys
from expense_matcher.matching.scoring import (
    contains_phrase,
    edit_distance_match,
    exact_or_substring_score,
    normalize,
    word_windows,
)
from expense_matcher.matching.semantic import DEFAULT_LEXICON, SemanticLexicon
from expense_matcher.vocabulary.models import VocabularyTerm
from expense_matcher.vocabulary.providers import load_default_sources
from expense_matcher.vocabulary.store import CategoryValue, VocabularyStore

logger = logging.getLogger(__name__)

LearningListener = Callable[[LearningEvent], None]

# Never learned as abbreviations
FUNCTION_WORDS = frozenset({
    "a", "an", "and", "at", "by", "for", "from", "in", "is", "it", "me", "my",
    "of", "on", "or", "our", "the", "to", "us", "we", "with", "your",
})


@dataclass(frozen=True)
class _IndexedForm:
    """One surface form (term or variation) of a vocabulary term"""
    category: Category
    term: VocabularyTerm
    form: str
    words: Tuple[str, ...]
    keys: Tuple[str, str]


class ClassificationEngine:
    """
    Classifies short expense descriptions into categories.

    Pipeline:
    1. Learned patterns from earlier corrections (terminal)
    2. Abbreviation expansion into text variants
    3. Exact and whole-word substring matching, variants in order (terminal)
    4. Fuzzy, phonetic, semantic and context matching over every variant
    5. Fusion per category with an agreement bonus
    6. Fallback heuristics, then the catch-all category

    The engine owns its vocabulary, abbreviation and learned-pattern state.
    Reads are safe to run concurrently; learning must be serialized.

    Usage:
        # Production - loads bundled vocabulary and rules
        engine = ClassificationEngine()

        # Testing - inject a small vocabulary
        store = VocabularyStore([build_curated_source("test", 100, {...})])
        engine = ClassificationEngine(vocabulary=store, abbreviations=AbbreviationExpander({}))

        result = engine.classify("sbux coffee run", hour=8)
    """

    def __init__(
        self,
        vocabulary: Optional[VocabularyStore] = None,
        abbreviations: Optional[AbbreviationExpander] = None,
        context: Optional[ContextAnalyzer] = None,
        config: Optional[EngineConfig] = None,
        learned_patterns: Optional[Mapping[str, CategoryValue]] = None,
        clock: Callable[[], datetime] = datetime.now,
        on_learn: Optional[LearningListener] = None,
        lexicon: SemanticLexicon = DEFAULT_LEXICON,
    ):
        """
        Initialize the engine.

        Args:
            vocabulary: Vocabulary store. If None, loads the bundled sources.
            abbreviations: Abbreviation expander. If None, loads abbreviations.json.
            context: Context analyzer. If None, loads context.json.
            config: Engine constants. If None, loads engine.json.
            learned_patterns: Previously learned normalized input -> category
            clock: Source of the current time when no hour is given
            on_learn: Called with a LearningEvent after each effective correction
            lexicon: Word clusters used for semantic matching
        """
        self.vocabulary = vocabulary if vocabulary is not None else VocabularyStore(load_default_sources())
        self.abbreviations = abbreviations if abbreviations is not None else AbbreviationExpander()
        self.context = context if context is not None else ContextAnalyzer()
        self.config = config if config is not None else EngineConfig.load()
        self.on_learn = on_learn
        self._clock = clock
        self._lexicon = lexicon

        self._learned_patterns: Dict[str, Category] = {}
        for text, category in (learned_patterns or {}).items():
            key = normalize(text)
            if key:
                self._learned_patterns[key] = as_category(category)

        self._index: Tuple[_IndexedForm, ...] = ()
        self._forms_by_category: Dict[Category, Set[str]] = {}
        self._words_by_category: Dict[Category, Set[str]] = {}
        self._index_version: Optional[int] = None

    @classmethod
    def create(
        cls,
        custom_categories: Optional[Mapping[str, Sequence[str]]] = None,
        learned_terms: Iterable[Tuple[str, CategoryValue]] = (),
        learned_abbreviations: Optional[Mapping[str, Sequence[str]]] = None,
        on_learn: Optional[LearningListener] = None,
    ) -> "ClassificationEngine":
        """
        Build an engine from bundled config plus previously learned state.

        Every learned term also becomes a learned pattern, so corrections
        survive a restart.

        Args:
            custom_categories: User-defined categories. If None, loads from ConfigLoader.
            learned_terms: Persisted (term, category) pairs
            learned_abbreviations: Persisted token -> expansions
            on_learn: Learning listener

        Returns:
            ClassificationEngine
        """
        learned_terms = list(learned_terms)
        store = VocabularyStore(
            load_default_sources(custom_categories=custom_categories),
            learned_terms=learned_terms,
        )
        return cls(
            vocabulary=store,
            abbreviations=AbbreviationExpander(learned=learned_abbreviations),
            learned_patterns={term: category for term, category in learned_terms},
            on_learn=on_learn,
        )

    @property
    def learned_patterns(self) -> Dict[str, Category]:
        """Copy of the learned-pattern table"""
        return dict(self._learned_patterns)

    def classify(self, description: Optional[str], hour: Optional[int] = None) -> ClassificationResult:
        """
        Classify one description.

        Never raises for "no match": low-confidence input falls back to
        context heuristics and finally to the catch-all category.

        Args:
            description: Free-text expense description
            hour: Hour of day 0-23. If None, read from the clock.

        Returns:
            ClassificationResult
        """
        return self._classify(description, hour)

    def classify_many(
        self,
        descriptions: Iterable[Optional[str]],
        hour: Optional[int] = None,
    ) -> List[ClassificationResult]:
        """Classify several descriptions at the same hour"""
        if hour is None:
            hour = self._clock().hour
        return [self._classify(description, hour) for description in descriptions]

    def debug_match(self, description: Optional[str], hour: Optional[int] = None) -> DebugReport:
        """
        Classify a description and keep every intermediate result.

        Returns:
            DebugReport with variants, exact hits, raw and fused candidates
        """
        if hour is None:
            hour = self._clock().hour
        report = DebugReport(
            description=description or "",
            normalized=normalize(description),
            hour=hour,
        )
        report.result = self._classify(description, hour, report)
        return report

    def learn_from_correction(self, text: Optional[str], category: Optional[CategoryValue]) -> bool:
        """
        Learn that a description belongs to a category.

        Registers short unknown tokens as abbreviations of the category
        label, forgets the ones learned for a previous category, stores the input as a learned pattern and as a learned
        vocabulary term, and moves it away from any category it was
        previously learned for. Repeating a correction changes nothing.

        Args:
            text: Description the user corrected
            category: Category it belongs to

        Returns:
            True if any learned state changed
        """
        key = normalize(text)
        if not key or category is None:
            logger.debug("Ignoring correction with empty input: %r -> %r", text, category)
            return False
        try:
            resolved = as_category(category)
        except (TypeError, ValueError):
            logger.debug("Ignoring correction with invalid category: %r", category)
            return False

        self._ensure_index()
        known_forms = self._forms_by_category.get(resolved, set())
        expansion = normalize(resolved.label)
        tokens = [
            token for token in key.split()
            if self.config.abbreviation_min_length <= len(token) <= self.config.abbreviation_max_length
            and token not in FUNCTION_WORDS
        ]

        previous = self._learned_patterns.get(key)
        forgotten: List[str] = []
        if previous is not None and previous != resolved:
            old_expansion = normalize(previous.label)
            forgotten = [
                token for token in tokens
                if self.abbreviations.forget_abbreviation(token, old_expansion)
            ]

        abbreviations: List[str] = []
        for token in tokens:
            if any(token in form or form in token for form in known_forms):
                continue
            if self.abbreviations.learn_abbreviation(token, expansion):
                abbreviations.append(token)

        changed = bool(abbreviations) or bool(forgotten)

        if self._learned_patterns.get(key) != resolved:
            self._learned_patterns[key] = resolved
            changed = True

        for term, learned_category in self.vocabulary.learned_terms():
            if term == key and learned_category != resolved:
                changed |= self.vocabulary.remove_learned_term(term, learned_category)

        changed |= self.vocabulary.add_learned_term(key, resolved)

        if changed:
            logger.info("Learned '%s' as %s", key, resolved)
            if self.on_learn is not None:
                self.on_learn(LearningEvent(
                    term=key,
                    category=resolved,
                    abbreviations=tuple(abbreviations),
                    previous_category=previous if previous != resolved else None,
                    forgotten_abbreviations=tuple(forgotten),
                ))

        return changed

    def get_stats(self) -> Dict[str, Any]:
        """Sizes of the engine's vocabulary and learned tables"""
        snapshot = self.vocabulary.snapshot
        return {
            "vocabulary_terms": len(snapshot),
            "categories": len(snapshot.categories),
            "sources": len(self.vocabulary.sources),
            "learned_terms": len(self.vocabulary.learned_terms()),
            "learned_patterns": len(self._learned_patterns),
            "abbreviations": len(self.abbreviations),
            "learned_abbreviations": len(self.abbreviations.learned),
        }

    def __repr__(self) -> str:
        return f"ClassificationEngine({self.vocabulary!r}, {self.abbreviations!r})"

    def _classify(
        self,
        description: Optional[str],
        hour: Optional[int],
        report: Optional[DebugReport] = None,
    ) -> ClassificationResult:
        normalized = normalize(description)
        if not normalized:
            return ClassificationResult(
                category=CATCH_ALL,
                confidence=0.0,
                explanation="Empty input",
                algorithm=MatchAlgorithm.CATCH_ALL,
                trace=("empty input",),
            )

        if hour is None:
            hour = self._clock().hour

        learned = self._learned_patterns.get(normalized)
        if learned is not None:
            return ClassificationResult(
                category=learned,
                confidence=self.config.learned_confidence,
                explanation=f"Learned from a previous correction of '{normalized}'",
                algorithm=MatchAlgorithm.LEARNED,
                matched_terms=(normalized,),
                trace=("learned pattern",),
            )

        self._ensure_index()
        variants = self.abbreviations.expand(normalized)
        trace = [f"variants: {variants}"]
        if report is not None:
            report.variants = list(variants)

        exact_hits: List[Tuple[float, MatchCandidate]] = []
        for variant in variants:
            exact_hits = self._exact_hits(variant, variants[0])
            if exact_hits:
                break
        if report is not None:
            report.exact_hits = [candidate for _, candidate in exact_hits]
        if exact_hits:
            return self._exact_result(exact_hits, trace)
        trace.append("exact: no hit")

        candidates: List[MatchCandidate] = []
        for variant in variants:
            variant_candidates = self._sweep(variant)
            boosts = self.context.analyze(variant, hour)
            if report is not None:
                for category, boost in boosts.items():
                    report.context_boosts[category] = max(report.context_boosts.get(category, 0.0), boost)
            variant_candidates.extend(self._context_candidates(variant, boosts, variant_candidates))
            candidates.extend(variant_candidates)
        trace.append(f"candidates: {len(candidates)}")

        fused = self._fuse(candidates)
        if report is not None:
            report.candidates = candidates
            report.fused = fused
        trace.append(f"fused: {[(str(c.category), round(c.confidence, 3)) for c in fused[:self.config.max_results]]}")

        if fused and fused[0].confidence >= self.config.confidence_floor:
            top = fused[0]
            explanation = top.explanation
            if len(top.algorithms) > 1:
                explanation += f" (agreed by {', '.join(a.value for a in top.algorithms)})"
            return ClassificationResult(
                category=top.category,
                confidence=top.confidence,
                explanation=explanation,
                algorithm=top.algorithm,
                matched_terms=(top.matched_term,) if top.matched_term else (),
                alternatives=tuple(fused[1:self.config.max_results]),
                trace=tuple(trace),
            )

        guess = self.context.fallback_guess(description, hour)
        if guess is not None:
            trace.append("fallback guess")
            return ClassificationResult(
                category=guess.category,
                confidence=guess.confidence,
                explanation=guess.explanation,
                algorithm=MatchAlgorithm.FALLBACK,
                alternatives=self._alternatives(fused, exclude=guess.category),
                trace=tuple(trace),
            )

        trace.append("catch-all")
        return ClassificationResult(
            category=CATCH_ALL,
            confidence=self.config.catch_all_confidence,
            explanation="No confident match",
            algorithm=MatchAlgorithm.CATCH_ALL,
            alternatives=self._alternatives(fused, exclude=CATCH_ALL),
            trace=tuple(trace),
        )

    def _alternatives(self, fused: List[MatchCandidate], exclude: Category) -> Tuple[MatchCandidate, ...]:
        kept = [candidate for candidate in fused if candidate.category != exclude]
        return tuple(kept[:self.config.max_results - 1])

    def _ensure_index(self) -> None:
        """Rebuild the surface-form index when the vocabulary changed"""
        if self._index_version == self.vocabulary.version:
            return

        index: List[_IndexedForm] = []
        forms_by_category: Dict[Category, Set[str]] = {}
        words_by_category: Dict[Category, Set[str]] = {}

        for category, term in self.vocabulary.snapshot.items():
            for form in term.surface_forms:
                words = tuple(form.split())
                index.append(_IndexedForm(category, term, form, words, phonetic_keys(form)))
                forms_by_category.setdefault(category, set()).add(form)
                words_by_category.setdefault(category, set()).update(words)

        self._index = tuple(index)
        self._forms_by_category = forms_by_category
        self._words_by_category = words_by_category
        self._index_version = self.vocabulary.version
        logger.debug("Indexed %d surface forms", len(index))

    def _exact_hits(self, variant: str, original: str) -> List[Tuple[float, MatchCandidate]]:
        """Every exact or whole-word substring hit on one variant, with its ranking weight"""
        hits: List[Tuple[float, MatchCandidate]] = []
        for entry in self._index:
            if entry.form == variant:
                score, algorithm = 1.0, MatchAlgorithm.EXACT
                explanation = f"Exact match on '{entry.form}'"
            elif contains_phrase(variant, entry.form):
                score, algorithm = exact_or_substring_score(variant, entry.form), MatchAlgorithm.SUBSTRING
                explanation = f"Contains '{entry.form}'"
            elif variant in entry.form:
                score = exact_or_substring_score(variant, entry.form)
                if score < self.config.min_substring_score:
                    continue
                algorithm = MatchAlgorithm.SUBSTRING
                explanation = f"Partial match on '{entry.form}'"
            else:
                continue

            candidate = MatchCandidate(
                category=entry.category,
                score=score,
                confidence=self.config.exact_confidence,
                algorithm=algorithm,
                matched_term=entry.term.term,
                matched_text=variant,
                original_text=original,
                explanation=explanation,
            )
            hits.append((score * entry.term.weight, candidate))
        return hits

    def _exact_result(
        self,
        hits: List[Tuple[float, MatchCandidate]],
        trace: List[str],
    ) -> ClassificationResult:
        ranked = sorted(hits, key=lambda hit: hit[0], reverse=True)
        best = ranked[0][1]

        alternatives: List[MatchCandidate] = []
        seen = {best.category}
        for _, candidate in ranked[1:]:
            if candidate.category not in seen:
                seen.add(candidate.category)
                alternatives.append(candidate)

        trace.append(f"exact: {best.matched_term!r} -> {best.category}")
        return ClassificationResult(
            category=best.category,
            confidence=best.confidence,
            explanation=best.explanation,
            algorithm=best.algorithm,
            matched_terms=(best.matched_term,),
            alternatives=tuple(alternatives[:self.config.max_results - 1]),
            trace=tuple(trace),
        )

    def _sweep(self, variant: str) -> List[MatchCandidate]:
        """Best fuzzy, phonetic and semantic candidate per category for one variant"""
        config = self.config
        tokens = variant.split()
        windows_by_size: Dict[int, List[str]] = {}
        related_tokens = [token for token in tokens if token in self._lexicon]
        best: Dict[Tuple[Category, MatchAlgorithm], MatchCandidate] = {}

        def offer(candidate: MatchCandidate) -> None:
            key = (candidate.category, candidate.algorithm)
            current = best.get(key)
            if current is None or candidate.confidence > current.confidence:
                best[key] = candidate

        for entry in self._index:
            size = len(entry.words)
            windows = windows_by_size.get(size)
            if windows is None:
                windows = list(dict.fromkeys([*word_windows(tokens, size), variant]))
                windows_by_size[size] = windows

            weight = entry.term.weight
            for window in windows:
                if window == entry.form:
                    continue

                match = edit_distance_match(window, entry.form)
                if match is not None and match[0] > config.min_fuzzy_score:
                    score, distance = match
                    offer(MatchCandidate(
                        category=entry.category,
                        score=score,
                        confidence=score * config.fuzzy_discount * weight,
                        algorithm=MatchAlgorithm.FUZZY,
                        matched_term=entry.term.term,
                        matched_text=window,
                        original_text=variant,
                        explanation=f"'{window}' is {distance} edit(s) from '{entry.form}'",
                    ))

                shorter, longer = sorted((len(window), len(entry.form)))
                if shorter < config.min_phonetic_length or shorter / longer < config.min_phonetic_length_ratio:
                    continue
                sound = compare_keys(phonetic_keys(window), entry.keys)
                if sound.similar:
                    offer(MatchCandidate(
                        category=entry.category,
                        score=sound.confidence,
                        confidence=sound.confidence * config.phonetic_discount * weight,
                        algorithm=MatchAlgorithm.PHONETIC,
                        matched_term=entry.term.term,
                        matched_text=window,
                        original_text=variant,
                        explanation=f"'{window}' sounds like '{entry.form}'",
                    ))

            for token in related_tokens:
                for word in entry.words:
                    similarity = self._lexicon.similarity(token, word)
                    if similarity <= config.min_semantic_similarity:
                        continue
                    offer(MatchCandidate(
                        category=entry.category,
                        score=similarity,
                        confidence=similarity * config.semantic_discount * weight,
                        algorithm=MatchAlgorithm.SEMANTIC,
                        matched_term=entry.term.term,
                        matched_text=token,
                        original_text=variant,
                        explanation=f"'{token}' is related to '{word}'",
                    ))

        return list(best.values())

    def _context_candidates(
        self,
        variant: str,
        boosts: Mapping[Category, float],
        variant_candidates: List[MatchCandidate],
    ) -> List[MatchCandidate]:
        """
        Context boosts become candidates only when something else in the
        text points at the same category.
        """
        if not boosts:
            return []

        action = self.context.action_boosts(variant)
        matched = {candidate.category for candidate in variant_candidates}
        tokens = [t for t in variant.split() if len(t) >= self.config.min_context_token_length]

        candidates: List[MatchCandidate] = []
        for category, boost in boosts.items():
            if boost <= 0:
                continue
            words = self._words_by_category.get(category, set())
            if category not in action and category not in matched and not any(t in words for t in tokens):
                continue

            confidence = min(1.0, boost)
            candidates.append(MatchCandidate(
                category=category,
                score=confidence,
                confidence=confidence,
                algorithm=MatchAlgorithm.CONTEXT,
                matched_text=variant,
                original_text=variant,
                explanation=f"Time and activity context suggest {category}",
            ))
        return candidates

    def _fuse(self, candidates: List[MatchCandidate]) -> List[MatchCandidate]:
        """
        Merge candidates per category.

        The best candidate survives; every extra distinct algorithm that
        agreed on the category adds the agreement bonus.
        """
        best: Dict[Category, MatchCandidate] = {}
        algorithms: Dict[Category, List[MatchAlgorithm]] = {}

        for candidate in candidates:
            current = best.get(candidate.category)
            if current is None or candidate.confidence > current.confidence:
                best[candidate.category] = candidate
            seen = algorithms.setdefault(candidate.category, [])
            if candidate.algorithm not in seen:
                seen.append(candidate.algorithm)

        fused: List[MatchCandidate] = []
        for category, candidate in best.items():
            agreeing = algorithms[category]
            ordered = (candidate.algorithm,) + tuple(a for a in agreeing if a != candidate.algorithm)
            bonus = 1 + self.config.agreement_bonus * (len(ordered) - 1)
            fused.append(replace(
                candidate,
                confidence=min(1.0, candidate.confidence * bonus),
                supporting_algorithms=ordered,
            ))

        fused.sort(key=lambda candidate: candidate.confidence, reverse=True)
        return fused
