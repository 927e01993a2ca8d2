import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from expense_matcher.config.settings import ConfigLoader
from expense_matcher.matching.scoring import normalize

logger = logging.getLogger(__name__)


class AbbreviationExpander:
    """
    Expands short tokens ("sbux", "amzn") into candidate full forms.

    Holds a static table loaded at construction and a learned table that
    grows from user corrections. Static expansions are tried first.

    Example:
        ```
        expander = AbbreviationExpander({"sbux": ["starbucks"]})
        expander.expand("sbux run")
        # ['sbux run', 'starbucks run']
        ```
    """

    def __init__(
        self,
        static: Optional[Mapping[str, Sequence[str]]] = None,
        learned: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        """
        Initialize the expander.

        Args:
            static: Token -> expansions. If None, loads abbreviations.json.
            learned: Previously learned token -> expansions
        """
        if static is None:
            static = ConfigLoader.load_abbreviations_config()

        self._static: Dict[str, Tuple[str, ...]] = {}
        for token, expansions in static.items():
            key = normalize(token)
            cleaned = tuple(e for e in (normalize(x) for x in expansions) if e)
            if key and cleaned:
                self._static[key] = cleaned

        self._learned: Dict[str, List[str]] = {}
        for token, expansions in (learned or {}).items():
            for expansion in expansions:
                self._add_learned(token, expansion)

    def expansions_for(self, token: str) -> Tuple[str, ...]:
        """Static expansions followed by learned ones, without duplicates"""
        key = normalize(token)
        combined = list(self._static.get(key, ()))
        for expansion in self._learned.get(key, ()):
            if expansion not in combined:
                combined.append(expansion)
        return tuple(combined)

    def expand(self, text: str) -> List[str]:
        """
        Produce text variants with abbreviations expanded.

        Each mapped token yields one variant per expansion, with only that
        token replaced. When several tokens are mapped, one extra variant
        replaces every one of them with its first expansion. The unexpanded
        (normalized) text is always the first variant.

        Args:
            text: Input text

        Returns:
            Deduplicated list of normalized variants
        """
        original = normalize(text)
        variants: List[str] = [original]
        if not original:
            return variants

        tokens = original.split()
        fully_expanded = list(tokens)
        mapped_count = 0

        for index, token in enumerate(tokens):
            expansions = self.expansions_for(token)
            if not expansions:
                continue

            mapped_count += 1
            fully_expanded[index] = expansions[0]
            for expansion in expansions:
                replaced = tokens[:index] + [expansion] + tokens[index + 1:]
                variant = " ".join(replaced)
                if variant not in variants:
                    variants.append(variant)

        if mapped_count > 1:
            variant = " ".join(fully_expanded)
            if variant not in variants:
                variants.append(variant)

        return variants

    def learn_abbreviation(self, token: str, expansion: str) -> bool:
        """
        Remember a new expansion for a token.

        Args:
            token: Short form
            expansion: Full form

        Returns:
            True if the table changed
        """
        added = self._add_learned(token, expansion)
        if added:
            logger.info("Learned abbreviation '%s' -> '%s'", normalize(token), normalize(expansion))
        return added

    def forget_abbreviation(self, token: str, expansion: str) -> bool:
        """
        Drop a learned expansion. Static expansions are never dropped.

        Returns:
            True if the table changed
        """
        key = normalize(token)
        value = normalize(expansion)
        existing = self._learned.get(key)
        if not existing or value not in existing:
            return False

        existing.remove(value)
        if not existing:
            del self._learned[key]
        logger.info("Forgot abbreviation '%s' -> '%s'", key, value)
        return True

    @property
    def learned(self) -> Dict[str, Tuple[str, ...]]:
        """Copy of the learned table, for persistence"""
        return {token: tuple(expansions) for token, expansions in self._learned.items()}

    def __contains__(self, token: str) -> bool:
        key = normalize(token)
        return key in self._static or key in self._learned

    def __len__(self) -> int:
        return len(set(self._static) | set(self._learned))

    def __repr__(self) -> str:
        return f"AbbreviationExpander({len(self._static)} static, {len(self._learned)} learned)"

    def _add_learned(self, token: str, expansion: str) -> bool:
        key = normalize(token)
        value = normalize(expansion)
        if not key or not value or key == value:
            return False

        if value in self._static.get(key, ()):
            return False

        existing = self._learned.setdefault(key, [])
        if value in existing:
            return False

        existing.append(value)
        return True
