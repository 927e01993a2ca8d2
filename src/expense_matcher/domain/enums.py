from enum import Enum


class BuiltInCategory(Enum):
    """Closed set of spending categories shipped with the engine"""
    FOOD_DINING = "Food & Dining"
    COFFEE = "Coffee"
    SHOPPING = "Shopping"
    CLOTHES = "Clothes"
    ELECTRONICS = "Electronics"
    ENTERTAINMENT = "Entertainment"
    TRANSPORTATION = "Transportation"
    ALCOHOL_TOBACCO = "Alcohol & Tobacco"
    BEAUTY_WELLNESS = "Beauty & Wellness"
    BOOKS_EDUCATION = "Books & Education"
    GAMING = "Gaming"
    GIFTS_CHARITY = "Gifts & Charity"
    HEALTH_MEDICAL = "Health & Medical"
    HOBBIES_CRAFTS = "Hobbies & Crafts"
    HOME_GARDEN = "Home & Garden"
    SPORTS_FITNESS = "Sports & Fitness"
    SUBSCRIPTIONS = "Subscriptions"
    TRAVEL = "Travel"
    OTHER = "Other" # catch-all


class MatchAlgorithm(Enum):
    """Which matcher produced a candidate or decided a result"""
    LEARNED = "learned_pattern"
    EXACT = "exact"
    SUBSTRING = "substring"
    FUZZY = "fuzzy"
    PHONETIC = "phonetic"
    SEMANTIC = "semantic"
    CONTEXT = "context"
    FALLBACK = "contextual_fallback"
    CATCH_ALL = "catch_all"
