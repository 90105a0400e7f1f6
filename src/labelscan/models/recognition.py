"""Recognition-side models: requests, words, regions and results."""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from labelscan.cancellation import CancellationToken
from labelscan.config import settings

from .base import BoundingBox, FrozenModel, Orientation, RoiMethod


class RecognizedWord(FrozenModel):
    """Single word from the recognition engine."""

    text: str
    bbox: BoundingBox
    confidence: float = Field(..., ge=0.0, le=1.0)


class EngineOutput(FrozenModel):
    """Raw output of one recognition engine call.

    Word boxes are in the pixel space of the image that was recognized.
    """

    text: str = ""
    words: list[RecognizedWord] = Field(default_factory=list)


class RegionOfInterest(FrozenModel):
    """Crop region in original-image pixel space."""

    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    method: RoiMethod
    rotation: Orientation = Field(default=Orientation.DEG_0)

    @classmethod
    def full_image(
        cls,
        width: int,
        height: int,
        method: RoiMethod = RoiMethod.FALLBACK,
    ) -> "RegionOfInterest":
        """Region covering the whole image."""
        return cls(x=0, y=0, width=max(1, width), height=max(1, height), method=method)

    def with_rotation(self, rotation: Orientation) -> "RegionOfInterest":
        """Copy of this region with the selected rotation recorded."""
        return self.model_copy(update={"rotation": rotation})


class RecognitionOptions(FrozenModel):
    """Per-request processing switches."""

    use_smart_roi: bool = True
    use_auto_rotate: bool = True
    force_refresh: bool = Field(
        default=False, description="Skip the cache lookup; the result is still stored"
    )


class RecognitionRequest(BaseModel):
    """One recognition request. Immutable once issued.

    ``request_key`` must be a pure function of image content, pipeline version
    and profile version (see ``labelscan.pipeline.request_key``).
    """

    request_key: str = Field(..., min_length=1)
    image: Any = Field(..., description="File path, encoded bytes, or decoded BGR array")
    languages: list[str] = Field(default_factory=lambda: settings.language_list)
    options: RecognitionOptions = Field(default_factory=RecognitionOptions)
    cancel_token: Optional[CancellationToken] = None

    @field_validator("languages", mode="before")
    @classmethod
    def _split_languages(cls, value: Any) -> Any:
        """Accept "kor+eng" style strings; empty means English."""
        if value is None:
            return ["eng"]
        if isinstance(value, str):
            value = value.split("+")
        langs = [str(v).strip() for v in value if str(v).strip()]
        return langs or ["eng"]

    class Config:
        frozen = True
        arbitrary_types_allowed = True


class RecognitionResult(FrozenModel):
    """Final output of the recognition pipeline; cached verbatim."""

    raw_text: str
    words: list[RecognizedWord] = Field(default_factory=list, max_length=300)
    roi: RegionOfInterest
    preview_image: bytes = Field(default=b"", description="JPEG of the processed crop")

    @property
    def has_preview(self) -> bool:
        """Whether a preview image was produced."""
        return bool(self.preview_image)
