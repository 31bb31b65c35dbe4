# backend/model.py
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

PLACEHOLDER = "{artwork_subject}"

PredictionStatus = Literal["starting", "queued", "processing", "succeeded", "failed", "canceled"]

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


class MockupSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    prompt: str
    size: Tuple[int, int]

    @field_validator("type")
    @classmethod
    def _type_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("type must not be empty")
        return v

    @field_validator("prompt")
    @classmethod
    def _prompt_has_placeholder(cls, v: str) -> str:
        if PLACEHOLDER not in v:
            raise ValueError(f"prompt must contain the {PLACEHOLDER} placeholder")
        return v

    @field_validator("size")
    @classmethod
    def _size_positive(cls, v: Tuple[int, int]) -> Tuple[int, int]:
        if v[0] <= 0 or v[1] <= 0:
            raise ValueError("size must be a pair of positive integers")
        return v


class PredictionHandle(BaseModel):
    """Provider view of one prediction. Unknown provider fields are ignored."""

    id: str
    status: PredictionStatus
    output: Optional[Union[List[Any], str]] = None
    error: Optional[str] = None
    logs: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def first_output(self) -> Optional[str]:
        if isinstance(self.output, str):
            return self.output or None
        if self.output:
            first = self.output[0]
            return first if isinstance(first, str) and first else None
        return None


# ---------- Progress events ----------

class QueuedEvent(BaseModel):
    type: str
    status: Literal["queued"] = "queued"
    id: str


class ProcessingEvent(BaseModel):
    type: str
    status: Literal["processing"] = "processing"
    provider_status: str
    logs: Optional[str] = None
    metrics: Optional[Dict[str, Any]] = None


class SucceededEvent(BaseModel):
    type: str
    status: Literal["succeeded"] = "succeeded"
    filename: str
    preview: str


class ErrorEvent(BaseModel):
    type: str
    status: Literal["error"] = "error"
    error: str


class BatchCompleteEvent(BaseModel):
    status: Literal["complete"] = "complete"
    session_id: str
    total: int
    succeeded: List[str]
    failed: List[str]


ProgressEvent = Annotated[
    Union[QueuedEvent, ProcessingEvent, SucceededEvent, ErrorEvent],
    Field(discriminator="status"),
]

StreamEvent = Annotated[
    Union[QueuedEvent, ProcessingEvent, SucceededEvent, ErrorEvent, BatchCompleteEvent],
    Field(discriminator="status"),
]


@dataclass
class JobResult:
    filename: str
    data: bytes


@dataclass
class BatchResult:
    session_id: str
    archive: bytes
    succeeded: List[str]
    failed: List[str]


# ---------- API ----------

class SessionResponse(BaseModel):
    session_id: str


class GenerateResponse(BaseModel):
    gen_id: str
    zip: str
    succeeded: List[str]
    failed: List[str]
