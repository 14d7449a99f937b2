from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PillPosition(BaseModel):
    """Centre of one pill, as a percentage of image width / height."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)


class CountResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)
    confidence: ConfidenceTier
    notes: str
    pills: List[PillPosition]


# -----------------------------------
# Request bodies
# -----------------------------------

class CountPillsRequest(BaseModel):
    image: Optional[str] = None


class ContributionRequest(BaseModel):
    image: Optional[str] = None
    ai_count: int = Field(ge=0)
    corrected_count: int = Field(ge=0)
    confidence: str
    notes: Optional[str] = None


class BulkUploadEntry(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    image: Optional[str] = None
    count: Optional[str] = None


class BulkUploadRequest(BaseModel):
    items: List[BulkUploadEntry]


# -----------------------------------
# Response bodies
# -----------------------------------

class TrainingRecordResponse(BaseModel):
    image_path: str
    ai_count: int
    corrected_count: Optional[int]
    ai_confidence: str
    notes: Optional[str]
    created_at: str


class BulkUploadItemStatus(BaseModel):
    id: str
    status: str
    error: Optional[str] = None


class BulkUploadResponse(BaseModel):
    done: int
    error: int
    pending: int
    items: List[BulkUploadItemStatus]


class TrainingStatsResponse(BaseModel):
    count: int
