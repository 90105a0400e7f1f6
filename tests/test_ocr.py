"""Tests for the recognition engine adapter and handle."""

from unittest.mock import patch

import numpy as np
import pytest
import pytesseract

from conftest import FakeEngine

from labelscan.errors import EngineError
from labelscan.models import EngineOutput
from labelscan.pipeline.stage_ocr import EngineHandle, TesseractEngine, parse_tesseract_data


def tesseract_rows(rows):
    """Build an image_to_data DICT from (text, conf, line) tuples."""
    data = {key: [] for key in ("text", "conf", "left", "top", "width", "height", "block_num", "par_num", "line_num")}
    for i, (text, conf, line) in enumerate(rows):
        data["text"].append(text)
        data["conf"].append(conf)
        data["left"].append(10 * i)
        data["top"].append(20 * line)
        data["width"].append(40)
        data["height"].append(18)
        data["block_num"].append(1)
        data["par_num"].append(1)
        data["line_num"].append(line)
    return data


class TestParseTesseractData:
    """Tests for image_to_data parsing."""

    def test_words_and_lines(self):
        """Words become boxes; lines are joined with newlines."""
        data = tesseract_rows([
            ("", -1, 0),
            ("원재료명:", 91, 1),
            ("밀가루,", 88, 1),
            ("우유", 75.5, 2),
        ])
        output = parse_tesseract_data(data)

        assert output.text == "원재료명: 밀가루,\n우유"
        assert [w.text for w in output.words] == ["원재료명:", "밀가루,", "우유"]
        assert output.words[2].confidence == pytest.approx(0.755)
        assert output.words[1].bbox.x == 20

    def test_blank_and_negative_confidence_skipped(self):
        """Whitespace words and structural rows are dropped."""
        data = tesseract_rows([("   ", 90, 1), ("milk", -1, 1), ("egg", "96", 1)])
        output = parse_tesseract_data(data)

        assert [w.text for w in output.words] == ["egg"]
        assert output.text == "egg"

    def test_empty_data(self):
        assert parse_tesseract_data({}) == EngineOutput()


class TestTesseractEngine:
    """Tests for the Tesseract adapter."""

    def test_build_config(self):
        """PSM and OEM are passed along with extra config."""
        engine = TesseractEngine(psm=6, oem=1, config="-c preserve_interword_spaces=1")
        assert engine._build_config() == "--psm 6 --oem 1 -c preserve_interword_spaces=1"

    @patch("labelscan.pipeline.stage_ocr.pytesseract.get_languages")
    def test_configure_sets_language(self, mock_languages):
        """Installed languages are joined for Tesseract."""
        mock_languages.return_value = ["eng", "kor", "osd"]
        engine = TesseractEngine()
        engine.configure(["kor", "eng"])

        assert engine.language == "kor+eng"

    @patch("labelscan.pipeline.stage_ocr.pytesseract.get_languages")
    def test_configure_missing_language(self, mock_languages):
        """A language that is not installed raises EngineError."""
        mock_languages.return_value = ["eng"]
        with pytest.raises(EngineError, match="kor"):
            TesseractEngine().configure(["kor", "eng"])

    @patch("labelscan.pipeline.stage_ocr.pytesseract.image_to_data")
    def test_recognize_parses_output(self, mock_image_to_data):
        """Recognition passes the language and config to Tesseract."""
        mock_image_to_data.return_value = tesseract_rows([("Ingredients:", 93, 1)])
        engine = TesseractEngine(psm=6, oem=1)
        engine.language = "kor+eng"

        output = engine.recognize(np.zeros((30, 40, 3), dtype=np.uint8))

        assert output.text == "Ingredients:"
        _, kwargs = mock_image_to_data.call_args
        assert kwargs["lang"] == "kor+eng"
        assert kwargs["config"] == "--psm 6 --oem 1"

    @patch("labelscan.pipeline.stage_ocr.pytesseract.image_to_data")
    def test_recognize_wraps_errors(self, mock_image_to_data):
        """Tesseract failures surface as EngineError."""
        mock_image_to_data.side_effect = pytesseract.TesseractError(1, "bad image")
        with pytest.raises(EngineError):
            TesseractEngine().recognize(np.zeros((30, 40), dtype=np.uint8))


class TestEngineHandle:
    """Tests for serialized engine access."""

    @pytest.mark.asyncio
    async def test_reconfigures_only_on_language_change(self):
        """The same language set is configured once."""
        engine = FakeEngine()
        handle = EngineHandle(engine)
        image = np.zeros((10, 10), dtype=np.uint8)

        await handle.recognize(image, ["kor", "eng"])
        await handle.recognize(image, ["kor", "eng"])
        await handle.configure(["kor", "eng"])
        assert engine.configure_calls == [["kor", "eng"]]

        await handle.recognize(image, ["eng"])
        assert engine.configure_calls == [["kor", "eng"], ["eng"]]
        assert handle.language_key == "eng"

    @pytest.mark.asyncio
    async def test_recognition_errors_wrapped(self):
        """Unexpected engine exceptions become EngineError."""

        def explode(image):
            raise ValueError("corrupt model")

        handle = EngineHandle(FakeEngine(responder=explode))
        with pytest.raises(EngineError, match="corrupt model"):
            await handle.recognize(np.zeros((10, 10), dtype=np.uint8), ["eng"])

    @pytest.mark.asyncio
    async def test_failed_configuration_retried(self):
        """A failed configuration is attempted again on the next call."""
        engine = FakeEngine()
        calls = []

        def flaky_configure(languages):
            calls.append(languages)
            if len(calls) == 1:
                raise OSError("traineddata missing")

        engine.configure = flaky_configure
        handle = EngineHandle(engine)

        with pytest.raises(EngineError):
            await handle.configure(["kor"])
        assert handle.language_key is None

        await handle.configure(["kor"])
        assert handle.language_key == "kor"
        assert len(calls) == 2
