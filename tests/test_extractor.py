"""Tests for text normalization and ingredient extraction."""

from labelscan.analysis.extractor import (
    MAX_TOKENS,
    find_ingredient_chunks,
    normalize,
    parse_ingredients,
)


class TestNormalize:
    """Tests for text normalization."""

    def test_cleans_label_punctuation(self):
        """No-break spaces, brackets and bullets are normalized; blank lines dropped."""
        text = "원재료명\u00a0:  밀가루(국산)·설탕\n\n  우유  "
        assert normalize(text) == "원재료명 : 밀가루 국산 ,설탕\n우유"

    def test_idempotent(self):
        """Normalizing twice changes nothing."""
        text = "Ingredients:\u00a0Sugar [cane],  Milk • Soy\n\n\nContains: milk"
        once = normalize(text)
        assert normalize(once) == once

    def test_empty(self):
        assert normalize("") == ""
        assert normalize(None) == ""


class TestFindIngredientChunks:
    """Tests for chunk heuristics."""

    def test_korean_label_with_ocr_spaces(self):
        """원재료명 is found even with spaces inserted between syllables."""
        chunks = find_ingredient_chunks("원 재 료 명 : 밀가루, 설탕\n영양정보")
        assert chunks == ["밀가루, 설탕"]

    def test_every_contains_span(self):
        """Each 함유/포함 span is collected."""
        chunks = find_ingredient_chunks("밀, 대두 함유\n땅콩 포함")
        assert chunks == ["밀, 대두", "땅콩"]

    def test_english_sections(self):
        """English ingredient, allergen and contains lines are collected."""
        text = "Ingredients: sugar, cocoa butter\nAllergens: milk\nContains: soy"
        chunks = find_ingredient_chunks(text)

        assert "sugar, cocoa butter" in chunks
        assert "milk" in chunks
        assert "soy" in chunks


class TestParseIngredients:
    """Tests for ingredient tokenization."""

    def test_korean_ingredient_line(self):
        """Tokens come out in label order."""
        assert parse_ingredients("원재료명: 밀가루, 대두, 우유") == ["밀가루", "대두", "우유"]

    def test_contains_line(self):
        """Single Hangul ingredients such as 밀 are kept."""
        assert parse_ingredients("밀, 대두, 돼지고기 함유") == ["밀", "대두", "돼지고기"]

    def test_stopwords_removed(self):
        """Label vocabulary never becomes an ingredient."""
        tokens = parse_ingredients("원재료명: 설탕, 나트륨, 기타, 원산지")
        assert tokens == ["설탕"]

    def test_single_latin_letter_dropped(self):
        """Lone Latin letters are OCR debris."""
        assert parse_ingredients("Ingredients: sugar, a, salt") == ["sugar", "salt"]

    def test_case_insensitive_unique(self):
        """Duplicates differing only in case keep the first spelling."""
        assert parse_ingredients("Ingredients: Milk, milk, MILK, whey") == ["Milk", "whey"]

    def test_token_cap(self):
        """At most 250 tokens are returned."""
        text = "Ingredients: " + ", ".join(f"item{i}" for i in range(400))
        tokens = parse_ingredients(text)

        assert len(tokens) == MAX_TOKENS
        assert tokens[0] == "item0"

    def test_no_ingredient_section(self):
        """Text without any ingredient cue yields nothing."""
        assert parse_ingredients("맛있는 과자 선물세트") == []
