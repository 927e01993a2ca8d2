"""
Coarse meaning-based similarity over a small curated lexicon.

Each word gets a binary vector with one slot per semantic cluster; two words
are compared by cosine similarity. Words outside the lexicon score 0.
"""
import math
from typing import Dict, Mapping, Sequence, Tuple

SEMANTIC_CLUSTERS: Mapping[str, Tuple[str, ...]] = {
    "food": (
        "eat", "meal", "hungry", "taste", "flavor", "delicious", "restaurant",
        "kitchen", "cook", "dinner", "lunch", "breakfast", "snack", "food",
    ),
    "drink": (
        "coffee", "tea", "beverage", "liquid", "thirsty", "sip", "cup", "mug",
        "drink", "latte", "espresso", "juice",
    ),
    "shopping": (
        "buy", "purchase", "store", "mall", "retail", "spend", "money", "cart",
        "shop", "shopping", "sale", "deal",
    ),
    "fitness": (
        "exercise", "workout", "gym", "health", "strong", "muscle", "run",
        "lift", "fitness", "yoga", "training",
    ),
    "technology": (
        "computer", "software", "digital", "online", "internet", "app", "tech",
        "gadget", "device", "laptop", "phone",
    ),
    "entertainment": (
        "fun", "enjoy", "watch", "play", "movie", "game", "music", "show",
        "concert", "cinema", "online",
    ),
    "travel": (
        "trip", "journey", "vacation", "flight", "hotel", "destination",
        "explore", "holiday", "run",
    ),
    "home": (
        "house", "furniture", "decor", "clean", "organize", "room", "space",
        "garden", "kitchen",
    ),
}


class SemanticLexicon:
    """
    Indicator vectors for every word in a set of clusters.

    A word listed in several clusters gets a 1 in each of them, so the
    cosine between two words can fall strictly between 0 and 1.
    """

    def __init__(self, clusters: Mapping[str, Sequence[str]] = SEMANTIC_CLUSTERS):
        self.cluster_names: Tuple[str, ...] = tuple(clusters)
        self._vectors: Dict[str, Tuple[int, ...]] = {}

        members: Dict[str, set] = {}
        for name, words in clusters.items():
            for word in words:
                members.setdefault(word.lower(), set()).add(name)

        for word, names in members.items():
            self._vectors[word] = tuple(
                1 if cluster in names else 0 for cluster in self.cluster_names
            )

    def __contains__(self, word: str) -> bool:
        return word.lower() in self._vectors

    def __len__(self) -> int:
        return len(self._vectors)

    def similarity(self, word_a: str, word_b: str) -> float:
        """Cosine similarity between two words, 0 when either is unknown"""
        vec_a = self._vectors.get(word_a.lower())
        vec_b = self._vectors.get(word_b.lower())
        if vec_a is None or vec_b is None:
            return 0.0

        dot = sum(x * y for x, y in zip(vec_a, vec_b))
        magnitude = math.sqrt(sum(vec_a)) * math.sqrt(sum(vec_b))
        if magnitude == 0:
            return 0.0
        return dot / magnitude


DEFAULT_LEXICON = SemanticLexicon()


def semantic_similarity(word_a: str, word_b: str) -> float:
    """
    Cosine similarity between two words in the default lexicon.

    Example:
        >>> semantic_similarity("coffee", "tea")
        1.0
        >>> semantic_similarity("coffee", "laptop")
        0.0
    """
    return DEFAULT_LEXICON.similarity(word_a, word_b)
