"""Label analysis - quality gate, product classification and risk aggregation.

``analyze`` is a pure function of the recognized text and a profile
snapshot. Illegible text, non-food products and uncertain classifications
are normal results carrying a user-facing message, not errors.
"""

import logging
import re
from typing import Any, Optional

from labelscan.analysis.extractor import normalize, normalize_lower, parse_ingredients, unique_casefold
from labelscan.analysis.matcher import match_allergens, match_diet
from labelscan.models import (
    AnalysisResult,
    ProductCategory,
    ProfileSnapshot,
    RiskLevel,
    TextQuality,
)

logger = logging.getLogger(__name__)

MIN_QUALITY_SCORE = 30
MIN_SIGNAL_SCORE = 2

MAX_EVIDENCE_LINES = 6
MIN_EVIDENCE_LINES = 2
MIN_COMMAS_FOR_EVIDENCE = 3

MESSAGE_LOW_QUALITY = (
    "인식된 글자가 너무 적습니다. 원재료명·함유 부분이 화면 2/3 이상 차지하도록 가까이 촬영하세요."
)
MESSAGE_NON_FOOD = "비식품으로 판단되어 성분 분석을 수행하지 않았습니다."
MESSAGE_UNKNOWN = (
    "식품 여부를 확정하기 어렵습니다. 원재료명/영양정보가 선명하게 보이도록 다시 촬영해 주세요."
)

FOOD_SIGNALS = [
    "ingredients",
    "nutrition",
    "allergen",
    "contains",
    "kcal",
    "calories",
    "serving",
    "원재료",
    "원재료명",
    "영양",
    "영양정보",
    "알레르기",
    "함유",
    "포함",
    "나트륨",
    "탄수화물",
    "단백질",
    "지방",
    "당류",
    "열량",
]

NON_FOOD_SIGNALS = [
    "wipe",
    "disinfect",
    "external use",
    "do not ingest",
    "keep out of reach",
    "물티슈",
    "세정",
    "소독",
    "살균",
    "외용",
    "먹지",
    "섭취",
    "사용방법",
    "주의사항",
    "화장품",
    "샴푸",
    "바디",
    "세탁",
    "세제",
]

EVIDENCE_KEYWORDS = [
    "원재료",
    "원재료명",
    "함유",
    "포함",
    "알레르기",
    "알레르겐",
    "영양",
    "ingredients",
    "contains",
    "allergen",
    "nutrition",
]

_HANGUL = re.compile(r"[가-힣]")
_LATIN = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"[0-9]")


def text_quality(raw_text: str) -> TextQuality:
    """Legibility of recognized text: hangul*2 + latin + digits."""
    text = str(raw_text or "")
    hangul = len(_HANGUL.findall(text))
    alpha = len(_LATIN.findall(text))
    digit = len(_DIGIT.findall(text))
    return TextQuality(hangul=hangul, alpha=alpha, digit=digit, score=hangul * 2 + alpha + digit)


def classify_product(raw_text: str) -> ProductCategory:
    """Classify a label as food, non-food or unknown from keyword signals."""
    text = normalize_lower(raw_text)
    food_score = sum(1 for k in FOOD_SIGNALS if k in text)
    non_food_score = sum(1 for k in NON_FOOD_SIGNALS if k in text)

    if non_food_score >= MIN_SIGNAL_SCORE and non_food_score > food_score:
        return ProductCategory.NON_FOOD
    if food_score >= MIN_SIGNAL_SCORE and food_score >= non_food_score:
        return ProductCategory.FOOD
    return ProductCategory.UNKNOWN


def extract_evidence_lines(raw_text: str) -> list[str]:
    """Lines a user can check against the verdict.

    Prefers lines naming ingredients, allergens or nutrition; falls back to
    comma-heavy lines, which are usually ingredient lists.
    """
    lines = [line.strip() for line in normalize(raw_text).split("\n") if line.strip()]

    picked = []
    for line in lines:
        low = line.lower()
        if any(k in low for k in EVIDENCE_KEYWORDS):
            picked.append(line)
            if len(picked) >= MAX_EVIDENCE_LINES:
                break

    if len(picked) < MIN_EVIDENCE_LINES:
        comma_heavy = [line for line in lines if line.count(",") >= MIN_COMMAS_FOR_EVIDENCE]
        picked.extend(comma_heavy[:MIN_EVIDENCE_LINES])

    return unique_casefold(picked)[:MAX_EVIDENCE_LINES]


def analyze(raw_text: str, profile: Optional[Any] = None) -> AnalysisResult:
    """Judge a recognized label against a profile.

    Args:
        raw_text: Text returned by recognition.
        profile: ProfileSnapshot, mapping, or None (no restrictions).

    Returns:
        AnalysisResult with category, ingredients, matches and risk level.
    """
    profile = ProfileSnapshot.from_raw(profile)
    quality = text_quality(raw_text)

    if quality.score < MIN_QUALITY_SCORE:
        logger.debug("Quality score %d below threshold", quality.score)
        return AnalysisResult(
            category=ProductCategory.UNKNOWN,
            risk_level=RiskLevel.UNKNOWN,
            quality=quality,
            message=MESSAGE_LOW_QUALITY,
        )

    category = classify_product(raw_text)

    if category == ProductCategory.NON_FOOD:
        return AnalysisResult(
            category=category,
            risk_level=RiskLevel.NOT_APPLICABLE,
            quality=quality,
            message=MESSAGE_NON_FOOD,
        )

    if category != ProductCategory.FOOD:
        return AnalysisResult(
            category=category,
            risk_level=RiskLevel.UNKNOWN,
            quality=quality,
            message=MESSAGE_UNKNOWN,
        )

    ingredients = parse_ingredients(raw_text)
    allergy_matches = match_allergens(raw_text, ingredients, profile.allergens)
    diet_matches = match_diet(raw_text, ingredients, profile.diet_type)

    if allergy_matches:
        risk = RiskLevel.HIGH
    elif diet_matches:
        risk = RiskLevel.MEDIUM
    else:
        risk = RiskLevel.SAFE

    logger.debug(
        "Analyzed %d ingredients: %d allergy, %d diet matches",
        len(ingredients), len(allergy_matches), len(diet_matches),
    )
    return AnalysisResult(
        category=category,
        ingredients=ingredients,
        matches=allergy_matches + diet_matches,
        risk_level=risk,
        quality=quality,
        evidence_lines=extract_evidence_lines(raw_text),
    )
