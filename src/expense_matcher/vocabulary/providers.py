"""
Builders that turn vocabulary tables into VocabularySource instances.

Tables are plain mappings, usually read from vocabulary.json. A term entry is
either a string or an object:

    {"term": "mcdonalds", "variations": ["mcdonald", "mickey ds"], "context": ["burger"]}
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from expense_matcher.config.settings import ConfigLoader
from expense_matcher.domain.models import Category, as_category
from expense_matcher.matching.scoring import normalize
from expense_matcher.vocabulary.models import VocabularySource, VocabularyTerm

logger = logging.getLogger(__name__)

TIER_WEIGHTS: Mapping[str, float] = {
    "primary": 1.0,
    "brands": 0.9,
    "secondary": 0.75,
    "actions": 0.6,
}

REGIONAL_TIER_WEIGHTS: Mapping[str, float] = {
    "brands": 0.9,
    "restaurants": 0.9,
    "dishes": 0.85,
    "keywords": 0.75,
    "ingredients": 0.6,
}

CUSTOM_SOURCE_NAME = "custom"
CUSTOM_PRIORITY = 200
CUSTOM_LABEL_WEIGHT = 1.0
CUSTOM_KEYWORD_WEIGHT = 0.9


def parse_term(
    entry: Any,
    weight: float,
    source: str,
    region: Optional[str] = None,
) -> Optional[VocabularyTerm]:
    """
    Build a VocabularyTerm from a table entry.

    Args:
        entry: Term string or dict with 'term', 'variations', 'context'
        weight: Weight of the tier the entry came from
        source: Name of the source
        region: Optional region tag

    Returns:
        VocabularyTerm, or None for an entry that normalizes to nothing

    Raises:
        ValueError: If the entry has an unsupported shape
    """
    if isinstance(entry, str):
        text, variations, context = entry, [], []
    elif isinstance(entry, Mapping) and "term" in entry:
        text = entry["term"]
        variations = entry.get("variations", [])
        context = entry.get("context", [])
    else:
        raise ValueError(f"Unsupported vocabulary entry in '{source}': {entry!r}")

    term = normalize(text)
    if not term:
        return None

    return VocabularyTerm(
        term=term,
        weight=weight,
        source=source,
        variations=tuple(v for v in (normalize(v) for v in variations) if v),
        context_clues=tuple(c for c in (normalize(c) for c in context) if c),
        region=region,
    )


def _append_tiers(
    bucket: List[VocabularyTerm],
    tiers: Mapping[str, Sequence[Any]],
    weights: Mapping[str, float],
    source: str,
    region: Optional[str] = None,
) -> None:
    for tier, entries in tiers.items():
        if tier not in weights:
            raise ValueError(
                f"Unknown vocabulary tier '{tier}' in source '{source}'. "
                f"Expected one of: {', '.join(weights)}"
            )
        for entry in entries:
            term = parse_term(entry, weights[tier], source, region)
            if term is not None:
                bucket.append(term)


def build_curated_source(
    name: str,
    priority: int,
    categories: Mapping[str, Mapping[str, Sequence[Any]]],
    tier_weights: Mapping[str, float] = TIER_WEIGHTS,
) -> VocabularySource:
    """
    Build a source from per-category tiered term tables.

    Args:
        name: Source name
        priority: Source priority
        categories: {"Coffee": {"primary": [...], "brands": [...]}}
        tier_weights: Weight per tier name

    Returns:
        VocabularySource
    """
    terms: Dict[Category, List[VocabularyTerm]] = {}
    for label, tiers in categories.items():
        bucket = terms.setdefault(as_category(label), [])
        _append_tiers(bucket, tiers, tier_weights, name)

    return VocabularySource(name=name, priority=priority, terms=terms)


def build_regional_source(
    name: str,
    priority: int,
    regions: Mapping[str, Mapping[str, Mapping[str, Sequence[Any]]]],
    tier_weights: Mapping[str, float] = REGIONAL_TIER_WEIGHTS,
) -> VocabularySource:
    """
    Build a source from regional or cultural tables. Every term gets a
    region tag.

    Args:
        name: Source name
        priority: Source priority
        regions: {"asian": {"Food & Dining": {"dishes": [...], "brands": [...]}}}
        tier_weights: Weight per tier name

    Returns:
        VocabularySource
    """
    terms: Dict[Category, List[VocabularyTerm]] = {}
    for region, categories in regions.items():
        for label, tiers in categories.items():
            bucket = terms.setdefault(as_category(label), [])
            _append_tiers(bucket, tiers, tier_weights, name, region=region)

    return VocabularySource(name=name, priority=priority, terms=terms)


def build_custom_source(
    custom_categories: Mapping[str, Sequence[str]],
    priority: int = CUSTOM_PRIORITY,
) -> VocabularySource:
    """
    Build a source for user-defined categories.

    The label itself becomes a term so the category can be matched by name.

    Args:
        custom_categories: {"Pet Supplies": ["dog food", "vet"]}
        priority: Source priority

    Returns:
        VocabularySource
    """
    terms: Dict[Category, List[VocabularyTerm]] = {}
    for label, keywords in custom_categories.items():
        try:
            category = as_category(label)
        except ValueError:
            logger.warning("Skipping custom category with an empty label")
            continue

        bucket = terms.setdefault(category, [])
        label_term = parse_term(label, CUSTOM_LABEL_WEIGHT, CUSTOM_SOURCE_NAME)
        if label_term is not None:
            bucket.append(label_term)
        for keyword in keywords:
            term = parse_term(keyword, CUSTOM_KEYWORD_WEIGHT, CUSTOM_SOURCE_NAME)
            if term is not None:
                bucket.append(term)

    return VocabularySource(name=CUSTOM_SOURCE_NAME, priority=priority, terms=terms)


_BUILDERS = {
    "curated": lambda spec: build_curated_source(spec["name"], spec["priority"], spec["categories"]),
    "regional": lambda spec: build_regional_source(spec["name"], spec["priority"], spec["regions"]),
}


def sources_from_config(config: Mapping[str, Any]) -> List[VocabularySource]:
    """
    Build every source described by a vocabulary config.

    Config format:
        {
            "sources": [
                {"name": "curated", "type": "curated", "priority": 100, "categories": {...}},
                {"name": "regional", "type": "regional", "priority": 60, "regions": {...}}
            ]
        }

    Raises:
        ValueError: If a source has an unknown type
    """
    sources: List[VocabularySource] = []
    for spec in config.get("sources", []):
        source_type = spec.get("type", "curated")
        builder = _BUILDERS.get(source_type)
        if builder is None:
            raise ValueError(f"Unknown vocabulary source type '{source_type}' for '{spec.get('name')}'")
        sources.append(builder(spec))
    return sources


def load_default_sources(
    custom_categories: Optional[Mapping[str, Sequence[str]]] = None,
    use_defaults: bool = True,
) -> List[VocabularySource]:
    """
    Load the bundled vocabulary plus user-defined categories.

    Args:
        custom_categories: Custom categories. If None, loads from ConfigLoader.
        use_defaults: Whether to include the bundled vocabulary tables

    Returns:
        List of vocabulary sources
    """
    sources: List[VocabularySource] = []

    if use_defaults:
        sources.extend(sources_from_config(ConfigLoader.load_vocabulary_config()))

    if custom_categories is None:
        custom_categories = ConfigLoader.load_custom_categories()
    if custom_categories:
        sources.append(build_custom_source(custom_categories))

    logger.debug("Loaded vocabulary sources: %s", sources)
    return sources


