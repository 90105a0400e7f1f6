"""Ingredient extraction from recognized label text.

Pulls candidate ingredient tokens out of ingredient lists, "contains" lines
and allergen notices. Matching later scans both these tokens and the full
raw text, so extraction favours recall and filters out label vocabulary
that is never an ingredient.
"""

import re

MAX_TOKENS = 250
MAX_TOKEN_LENGTH = 30
MIN_CONTAINS_SPAN = 2
MAX_CONTAINS_SPAN = 120

# Label vocabulary that is never an ingredient
STOPWORDS = frozenset(
    [
        # Section and nutrition vocabulary
        "원재료", "원재료명", "영양", "영양정보", "영양성분", "알레르기", "알레르겐", "함유", "포함",
        "나트륨", "탄수화물", "단백질", "지방", "당류", "열량", "칼로리", "포화지방", "트랜스지방", "콜레스테롤",
        # Manufacturing and distribution
        "대한", "대한민국", "한국", "제조", "제조원", "판매원", "고객", "상담", "유통", "보관", "냉장", "냉동",
        "식품유형", "내용량", "중량", "용량", "규격", "원산지", "수입", "수입원", "유통기한", "소비기한",
        # Quantity qualifiers
        "기타", "등", "및", "이상", "이하", "미만", "약", "정도", "함량", "기준", "일일", "권장",
    ]
)

_BRACKETS = re.compile(r"[（）()［］\[\]【】]")
_BULLETS = re.compile(r"[·•]")

_ENGLISH_INGREDIENTS = re.compile(r"ingredients\s*[:：]\s*([^\n]+)", re.IGNORECASE)
_KOREAN_INGREDIENTS = re.compile(r"원\s*재\s*료\s*명?\s*[:：]?\s*([^\n]+)")
_CONTAINS_SUFFIX = re.compile(r"([가-힣A-Za-z0-9,\s/]+?)\s*(?:함유|포함)")
_KOREAN_ALLERGY = re.compile(r"알레르[기겐][^\n:：]*[:：]\s*([^\n]+)")
_ENGLISH_ALLERGY = re.compile(r"allerg(?:y|ens?)\s*[:：]\s*([^\n]+)", re.IGNORECASE)
_ENGLISH_CONTAINS = re.compile(r"contains\s*[:：]?\s*([^\n]+)", re.IGNORECASE)

_SPLIT_LIST = re.compile(r"[,;/\n]")
_NON_TOKEN_CHARS = re.compile(r"[^0-9A-Za-z가-힣]")
_HANGUL_OR_DIGIT = re.compile(r"[가-힣0-9]")


def normalize(text: str) -> str:
    """Normalize recognized text for extraction and matching.

    Replaces no-break spaces, drops bracket characters, turns middle-dot
    bullets into commas and collapses whitespace. Line breaks survive as a
    single newline; blank lines are dropped. Idempotent.
    """
    text = str(text or "").replace("\u00a0", " ")
    text = _BRACKETS.sub(" ", text)
    text = _BULLETS.sub(",", text)
    lines = (" ".join(line.split()) for line in text.splitlines())
    return "\n".join(line for line in lines if line).strip()


def normalize_lower(text: str) -> str:
    """Lowercased ``normalize``."""
    return normalize(text).lower()


def unique_casefold(items: list[str]) -> list[str]:
    """Drop case-insensitive duplicates, keeping first-seen order and spelling."""
    out = []
    seen = set()
    for item in items:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            out.append(item)
    return out


def find_ingredient_chunks(text: str) -> list[str]:
    """Text spans likely to list ingredients.

    Args:
        text: Normalized label text.

    Returns:
        Chunks from all four heuristics, in heuristic order.
    """
    chunks = []

    # Explicit English list
    match = _ENGLISH_INGREDIENTS.search(text)
    if match:
        chunks.append(match.group(1))

    # 원재료명 label, tolerant of OCR-inserted spaces
    match = _KOREAN_INGREDIENTS.search(text)
    if match:
        chunks.append(match.group(1))

    # "밀, 대두, 돼지고기 함유" style spans, every occurrence
    for match in _CONTAINS_SUFFIX.finditer(text):
        left = match.group(1).strip()
        if MIN_CONTAINS_SPAN <= len(left) <= MAX_CONTAINS_SPAN:
            chunks.append(left)

    # Allergen notices
    for pattern in (_KOREAN_ALLERGY, _ENGLISH_ALLERGY, _ENGLISH_CONTAINS):
        match = pattern.search(text)
        if match:
            chunks.append(match.group(1))

    return chunks


def _keep_token(token: str) -> bool:
    if token in STOPWORDS:
        return False
    # Single Latin letters are OCR debris; single Hangul or digits are kept
    if len(token) == 1 and not _HANGUL_OR_DIGIT.match(token):
        return False
    return True


def parse_ingredients(raw_text: str) -> list[str]:
    """Extract ingredient tokens from recognized label text.

    Args:
        raw_text: Text as returned by recognition.

    Returns:
        Up to 250 case-insensitively unique tokens in first-seen order.
    """
    chunks = find_ingredient_chunks(normalize(raw_text))

    tokens = []
    for part in _SPLIT_LIST.split(",".join(chunks)):
        for word in part.split():
            token = _NON_TOKEN_CHARS.sub("", word)
            if 1 <= len(token) <= MAX_TOKEN_LENGTH:
                tokens.append(token)

    cleaned = [t for t in tokens if _keep_token(t)]
    return unique_casefold(cleaned)[:MAX_TOKENS]
