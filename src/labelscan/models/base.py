"""Base models and common types for labelscan."""

from enum import Enum

from pydantic import BaseModel, Field


class Orientation(int, Enum):
    """Clockwise rotation applied to an image before recognition."""

    DEG_0 = 0
    DEG_90 = 90
    DEG_180 = 180
    DEG_270 = 270


class RoiMethod(str, Enum):
    """How the region of interest was chosen."""

    KEYWORD = "KEYWORD"
    DENSITY = "DENSITY"
    FALLBACK = "FALLBACK"
    FULL = "FULL"


class PipelineState(str, Enum):
    """States of a single recognition request."""

    INIT = "init"
    LOW_RES_SCAN = "low_res_scan"
    ROI_SELECT = "roi_select"
    CROP_ENHANCE = "crop_enhance"
    ROTATION_SEARCH = "rotation_search"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ProductCategory(str, Enum):
    """Product classification derived from label text."""

    FOOD = "FOOD"
    NON_FOOD = "NON_FOOD"
    UNKNOWN = "UNKNOWN"


class RiskLevel(str, Enum):
    """Aggregated risk of a product for a profile."""

    SAFE = "SAFE"
    MEDIUM = "MEDIUM"  # diet conflict only
    HIGH = "HIGH"  # allergy conflict
    NOT_APPLICABLE = "NOT_APPLICABLE"
    UNKNOWN = "UNKNOWN"


class DietType(str, Enum):
    """Diet restrictions a profile can carry."""

    NONE = "NONE"
    VEGAN = "VEGAN"
    VEGETARIAN = "VEGETARIAN"
    HALAL = "HALAL"


class MatchKind(str, Enum):
    """Kind of profile conflict."""

    ALLERGY = "ALLERGY"
    DIET = "DIET"


class BoundingBox(BaseModel):
    """Axis-aligned box in absolute pixel coordinates."""

    x: float = Field(..., description="Left edge X coordinate")
    y: float = Field(..., description="Top edge Y coordinate")
    width: float = Field(..., ge=0, description="Box width")
    height: float = Field(..., ge=0, description="Box height")

    @property
    def x2(self) -> float:
        """Right edge X coordinate."""
        return self.x + self.width

    @property
    def y2(self) -> float:
        """Bottom edge Y coordinate."""
        return self.y + self.height

    @classmethod
    def union(cls, boxes: list["BoundingBox"]) -> "BoundingBox":
        """Smallest box enclosing all given boxes."""
        if not boxes:
            raise ValueError("Cannot build the union of zero boxes")
        x0 = min(b.x for b in boxes)
        y0 = min(b.y for b in boxes)
        x1 = max(b.x2 for b in boxes)
        y1 = max(b.y2 for b in boxes)
        return cls(x=x0, y=y0, width=x1 - x0, height=y1 - y0)

    class Config:
        frozen = True


class FrozenModel(BaseModel):
    """Base class for immutable result models."""

    class Config:
        frozen = True
