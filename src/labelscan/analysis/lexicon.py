"""Bilingual allergen and diet lexicon.

Maps canonical keys (e.g. ``milk``) to the Korean and English surface forms
that appear on labels, and resolves free-form user input to those keys.
Terms the lexicon does not know pass through as custom keys.
"""

from dataclasses import dataclass
from typing import Optional, Union

from labelscan.models import DietType

# Canonical allergen key -> label synonyms
LEXICON: dict[str, tuple[str, ...]] = {
    "milk": (
        "milk",
        "whey",
        "casein",
        "lactose",
        "cheese",
        "butter",
        "cream",
        "yogurt",
        "우유",
        "유청",
        "카제인",
        "유당",
        "치즈",
        "버터",
        "크림",
        "요거트",
    ),
    "egg": ("egg", "albumen", "ovalbumin", "계란", "난류", "난백", "난황"),
    "peanut": ("peanut", "groundnut", "땅콩"),
    "soy": ("soy", "soya", "soybean", "lecithin", "대두", "콩", "레시틴"),
    "wheat": ("wheat", "gluten", "flour", "밀", "글루텐", "밀가루"),
    "buckwheat": ("buckwheat", "메밀"),
    "sesame": ("sesame", "참깨", "깨"),
    "fish": ("fish", "생선", "어류"),
    "shellfish": (
        "shellfish",
        "shrimp",
        "crab",
        "lobster",
        "새우",
        "게",
        "랍스터",
        "조개",
        "갑각류",
    ),
    "pork": ("pork", "lard", "돼지고기", "돈육", "라드"),
    "beef": ("beef", "쇠고기", "소고기", "우육"),
    "chicken": ("chicken", "닭고기", "계육"),
    "alcohol": (
        "alcohol",
        "ethanol",
        "wine",
        "beer",
        "소주",
        "맥주",
        "와인",
        "주류",
        "알코올",
        "에탄올",
    ),
}

# Diet concepts without an allergen entry
DIET_SYNONYMS: dict[str, tuple[str, ...]] = {
    "meat": ("meat", "육류", "고기", "육", "육가공", "육수"),
    "gelatin": ("gelatin", "젤라틴"),
    "honey": ("honey", "꿀"),
}

DIET_RULES: dict[DietType, tuple[str, ...]] = {
    DietType.NONE: (),
    DietType.VEGAN: (
        "milk",
        "egg",
        "honey",
        "gelatin",
        "meat",
        "fish",
        "shellfish",
        "pork",
        "beef",
        "chicken",
    ),
    DietType.VEGETARIAN: (
        "meat",
        "fish",
        "shellfish",
        "gelatin",
        "pork",
        "beef",
        "chicken",
    ),
    DietType.HALAL: ("pork", "alcohol", "lard"),
}

# Common user expressions
CURATED_ALIASES: dict[str, str] = {
    "우유함유": "milk",
    "땅콩함유": "peanut",
    "소": "beef",
}


def _build_alias_map() -> dict[str, str]:
    # Diet concepts are not user allergens; "고기" stays a custom term
    aliases: dict[str, str] = {}
    for key, synonyms in LEXICON.items():
        for synonym in synonyms:
            aliases[synonym.lower()] = key
        aliases[key.lower()] = key
    aliases.update(CURATED_ALIASES)
    return aliases


USER_TERM_ALIAS: dict[str, str] = _build_alias_map()


@dataclass(frozen=True)
class KnownAllergen:
    """User term resolved to a lexicon key."""

    key: str

    @property
    def synonyms(self) -> tuple[str, ...]:
        return synonyms_for(self.key)


@dataclass(frozen=True)
class CustomTerm:
    """User term the lexicon does not know; matched literally."""

    term: str

    @property
    def key(self) -> str:
        return self.term

    @property
    def synonyms(self) -> tuple[str, ...]:
        return (self.term,)


AllergenTerm = Union[KnownAllergen, CustomTerm]


def synonyms_for(key: str) -> tuple[str, ...]:
    """Surface forms for a canonical key; unknown keys match themselves."""
    return LEXICON.get(key) or DIET_SYNONYMS.get(key) or (key,)


def canonicalize_user_allergen(term: Optional[str]) -> Optional[str]:
    """Canonical key for a user-supplied allergen term.

    Args:
        term: Free-form user input in Korean or English.

    Returns:
        Canonical key, the lowercased term itself when unknown, or None for blank input.
    """
    cleaned = str(term or "").strip().lower()
    if not cleaned:
        return None
    return USER_TERM_ALIAS.get(cleaned, cleaned)


def resolve_allergen(term: Optional[str]) -> Optional[AllergenTerm]:
    """Resolve a user term to a known allergen or a custom term."""
    cleaned = str(term or "").strip().lower()
    if not cleaned:
        return None
    key = USER_TERM_ALIAS.get(cleaned)
    if key is not None:
        return KnownAllergen(key)
    return CustomTerm(cleaned)


def forbidden_keys(diet_type: DietType) -> tuple[str, ...]:
    """Canonical keys a diet forbids."""
    return DIET_RULES.get(diet_type, ())
