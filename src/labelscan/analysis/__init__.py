"""Text analysis engine for labelscan.

Pure, synchronous functions over recognized text:
- extractor - normalization and ingredient token extraction
- lexicon - bilingual allergen/diet synonyms and user term canonicalization
- matcher - exact and fuzzy allergen matching, diet rule matching
- analyzer - quality gate, product classification and risk aggregation
"""

from .analyzer import analyze, classify_product, extract_evidence_lines, text_quality
from .extractor import normalize, parse_ingredients
from .lexicon import (
    CustomTerm,
    KnownAllergen,
    canonicalize_user_allergen,
    resolve_allergen,
)
from .matcher import match_allergens, match_diet

__all__ = [
    "analyze",
    "classify_product",
    "extract_evidence_lines",
    "text_quality",
    "normalize",
    "parse_ingredients",
    "CustomTerm",
    "KnownAllergen",
    "canonicalize_user_allergen",
    "resolve_allergen",
    "match_allergens",
    "match_diet",
]
