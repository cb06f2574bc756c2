"""
Generation job models for the video fallback orchestrator.

A GenerationJob lives for one generation request: candidates are tried in
order, the accepted one is polled until a terminal status, then the job is
discarded.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.PENDING, JobStatus.PROCESSING)


class InputShape(str, Enum):
    """How a candidate model expects the frame geometry"""
    ASPECT_RATIO = "aspect_ratio"  # {"aspect_ratio": "16:9"}
    DIMENSIONS = "dimensions"  # {"width": 512, "height": 320}
    RATIO_PIXELS = "ratio_pixels"  # {"ratio": "1280:768"}


class ProviderCandidate(BaseModel):
    """One (provider, model, input shape) entry in the fallback order"""
    provider: str
    model: str
    input_shape: InputShape = InputShape.ASPECT_RATIO

    @property
    def label(self) -> str:
        return f"{self.provider}:{self.model}"


class GenerationRequest(BaseModel):
    """Parsed video generation request"""
    prompt: str
    aspect_ratio: str = "16:9"  # "16:9" or "9:16"
    keyframe_image: Optional[str] = None


class JobStatusUpdate(BaseModel):
    """Normalized result of one status poll"""
    status: JobStatus
    output_urls: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class GenerationJob(BaseModel):
    """State of one in-flight generation request"""
    provider_candidates: List[ProviderCandidate] = Field(default_factory=list)
    active_provider_id: Optional[str] = None
    remote_job_id: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(ge=0, le=100, default=0)
    attempts: int = 0
    output_urls: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    def advance_progress(self, value: int) -> bool:
        """Raise progress to value. Returns False when it would not increase."""
        value = max(0, min(100, int(value)))
        if value <= self.progress:
            return False
        self.progress = value
        return True
