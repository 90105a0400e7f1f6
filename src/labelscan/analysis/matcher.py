"""Allergen and diet matching against recognized label text.

Exact matching runs over a haystack of the normalized raw text plus the
extracted ingredient tokens. Allergies fall back to a conservative
edit-distance match to survive single-character OCR errors; diet rules use
exact matching only.
"""

import re
from typing import Iterable, Optional

from rapidfuzz.distance import Levenshtein

from labelscan.analysis.extractor import normalize_lower, unique_casefold
from labelscan.analysis.lexicon import forbidden_keys, resolve_allergen, synonyms_for
from labelscan.models import DietType, MatchKind, MatchRecord

ALLERGY_REASON = "사용자 알레르기"
DIET_REASON = "식이 규칙({diet})"

# Fuzzy matching limits; loosening them quickly adds false positives
FUZZY_MAX_DISTANCE = 1
FUZZY_HANGUL_MIN_LEN = 2
FUZZY_HANGUL_MAX_LEN = 5
FUZZY_LATIN_MIN_LEN = 3

_HANGUL_TOKEN = re.compile(r"^[가-힣]+$")
_LATIN_TOKEN = re.compile(r"^[a-z]+$")
_HAS_LATIN = re.compile(r"[a-z]", re.IGNORECASE)
_HAS_HANGUL = re.compile(r"[가-힣]")
_TOKEN_SPLIT = re.compile(r"[^0-9a-z가-힣]+")


def is_hangul_token(token: str) -> bool:
    return bool(_HANGUL_TOKEN.match(token))


def is_latin_token(token: str) -> bool:
    return bool(_LATIN_TOKEN.match(token))


def build_haystack(raw_text: str, ingredients: Iterable[str]) -> str:
    """Lowercased raw text joined with the extracted tokens."""
    return f"{normalize_lower(raw_text)} | {normalize_lower(' | '.join(ingredients))}"


def find_exact_hit(haystack: str, synonyms: Iterable[str]) -> Optional[str]:
    """First synonym present in the haystack.

    Latin-only synonyms must sit on ASCII word boundaries so "milk" does not
    match inside "milkweed"; anything containing Hangul matches as a substring.

    Returns:
        The matching synonym (lowercased), or None.
    """
    for synonym in synonyms:
        query = str(synonym).strip().lower()
        if not query:
            continue
        if _HAS_LATIN.search(query) and not _HAS_HANGUL.search(query):
            pattern = rf"(?<![0-9A-Za-z_]){re.escape(query)}(?![0-9A-Za-z_])"
            if re.search(pattern, haystack, re.IGNORECASE):
                return query
        elif query in haystack:
            return query
    return None


def build_fuzzy_tokens(raw_text: str, ingredients: Iterable[str]) -> list[str]:
    """Candidate tokens for fuzzy matching.

    Keeps Hangul tokens of 2-5 characters and Latin tokens of 3+ characters.
    """
    merged = f"{normalize_lower(raw_text)}\n{normalize_lower(' '.join(ingredients))}"
    tokens = [t for t in _TOKEN_SPLIT.split(merged) if t]

    kept = []
    for token in tokens:
        if is_hangul_token(token):
            if FUZZY_HANGUL_MIN_LEN <= len(token) <= FUZZY_HANGUL_MAX_LEN:
                kept.append(token)
        elif is_latin_token(token):
            if len(token) >= FUZZY_LATIN_MIN_LEN:
                kept.append(token)
    return unique_casefold(kept)


def find_fuzzy_hit(tokens: list[str], synonyms: Iterable[str]) -> Optional[str]:
    """First candidate token within edit distance 1 of a synonym.

    Two-character Hangul words are excluded on both sides ("대한" vs "대두").

    Returns:
        The recognized token that matched, not the synonym.
    """
    for synonym in synonyms:
        syn = normalize_lower(str(synonym))
        if not syn:
            continue

        syn_hangul = is_hangul_token(syn)
        syn_latin = is_latin_token(syn)
        if not syn_hangul and not syn_latin:
            continue
        if syn_hangul and len(syn) <= 2:
            continue
        if syn_latin and len(syn) <= 2:
            continue

        for token in tokens:
            if syn_hangul and (not is_hangul_token(token) or len(token) <= 2):
                continue
            if syn_latin and not is_latin_token(token):
                continue
            if abs(len(token) - len(syn)) > 1:
                continue
            if Levenshtein.distance(token, syn, score_cutoff=FUZZY_MAX_DISTANCE) <= FUZZY_MAX_DISTANCE:
                return token
    return None


def match_allergens(
    raw_text: str,
    ingredients: list[str],
    allergens: Iterable[str],
) -> list[MatchRecord]:
    """Match the profile's allergens against the label.

    Args:
        raw_text: Recognized label text.
        ingredients: Extracted ingredient tokens.
        allergens: User-supplied allergen terms (any language).

    Returns:
        One ALLERGY record per matched canonical key.
    """
    haystack = build_haystack(raw_text, ingredients)
    fuzzy_tokens = build_fuzzy_tokens(raw_text, ingredients)

    matches = []
    seen = set()
    for term in allergens:
        allergen = resolve_allergen(term)
        if allergen is None or allergen.key in seen:
            continue
        seen.add(allergen.key)

        hit = find_exact_hit(haystack, allergen.synonyms)
        if hit is None:
            hit = find_fuzzy_hit(fuzzy_tokens, allergen.synonyms)
        if hit is not None:
            matches.append(
                MatchRecord(
                    kind=MatchKind.ALLERGY,
                    term=allergen.key,
                    hit=hit,
                    reason=ALLERGY_REASON,
                )
            )
    return matches


def match_diet(
    raw_text: str,
    ingredients: list[str],
    diet_type: DietType,
) -> list[MatchRecord]:
    """Match the diet's forbidden concepts against the label (exact only).

    Returns:
        One DIET record per forbidden key found.
    """
    keys = forbidden_keys(diet_type)
    if not keys:
        return []

    haystack = build_haystack(raw_text, ingredients)
    matches = []
    for key in keys:
        hit = find_exact_hit(haystack, synonyms_for(key))
        if hit is not None:
            matches.append(
                MatchRecord(
                    kind=MatchKind.DIET,
                    term=key,
                    hit=hit,
                    reason=DIET_REASON.format(diet=diet_type.value),
                )
            )
    return matches
