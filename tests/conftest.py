"""Pytest configuration and fixtures."""

import threading
from typing import Callable, Optional

import numpy as np
import pytest

from labelscan.models import BoundingBox, EngineOutput, RecognizedWord
from labelscan.pipeline import EngineHandle, RecognitionOrchestrator, RequestCache


def make_word(text: str, x: float, y: float, w: float = 60, h: float = 20, conf: float = 0.9) -> RecognizedWord:
    """Build a recognized word with a pixel box."""
    return RecognizedWord(text=text, bbox=BoundingBox(x=x, y=y, width=w, height=h), confidence=conf)


class FakeEngine:
    """Scripted recognition engine.

    ``responder`` maps the image passed to ``recognize`` to an EngineOutput.
    When ``gate`` is set, ``recognize`` blocks until it is released.
    """

    def __init__(
        self,
        responder: Optional[Callable[[np.ndarray], EngineOutput]] = None,
        gate: Optional[threading.Event] = None,
    ):
        self.responder = responder or (lambda image: EngineOutput())
        self.gate = gate
        self.configure_calls: list[list[str]] = []
        self.recognized_shapes: list[tuple] = []
        self.started = threading.Event()

    def configure(self, languages: list[str]) -> None:
        self.configure_calls.append(list(languages))

    def recognize(self, image: np.ndarray) -> EngineOutput:
        self.recognized_shapes.append(image.shape)
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return self.responder(image)


@pytest.fixture
def label_image():
    """Synthetic 1600x1200 BGR photo."""
    image = np.full((1200, 1600, 3), 200, dtype=np.uint8)
    image[300:700, 400:1200] = 40
    return image


@pytest.fixture
def small_image():
    """Synthetic 400x300 BGR photo (no downscaling needed)."""
    return np.full((300, 400, 3), 180, dtype=np.uint8)


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def cache():
    return RequestCache(default_ttl=600)


@pytest.fixture
def orchestrator_factory(cache):
    """Build an orchestrator around a fake engine with an isolated cache."""

    def _make(engine: FakeEngine, **kwargs) -> RecognitionOrchestrator:
        return RecognitionOrchestrator(EngineHandle(engine), cache=cache, **kwargs)

    return _make


@pytest.fixture
def food_label_text():
    """Legible Korean food label with ingredient and allergen lines."""
    return (
        "제품명 고소한 크래커\n"
        "원재료명: 밀가루, 우유, 대두, 설탕, 식물성유지, 정제소금\n"
        "영양정보 총 내용량 100g 열량 480kcal\n"
        "나트륨 300mg 탄수화물 60g 당류 12g 단백질 8g\n"
        "알레르기 유발물질: 밀, 우유, 대두 함유"
    )
