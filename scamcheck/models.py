"""Pydantic models for verdicts, history entries and the HTTP API."""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Any, Dict, List, Literal


MAX_MESSAGE_LENGTH: int = 2000


class Verdict(BaseModel):
    """Offline pattern-check verdict. Field names are the wire contract."""

    verdict: Literal["scam", "suspicious"]
    confidence: int = Field(..., ge=0, le=100)
    risk_level: Literal["high", "medium", "low"]
    reasons: List[str] = Field(default_factory=list)
    explanation: str
    action_recommended: str
    isOffline: bool = True


class AnalysisResult(BaseModel):
    """Classifier result. Superset of ``Verdict`` returned by the remote model."""

    model_config = ConfigDict(extra="ignore")

    verdict: Literal["scam", "suspicious", "likely_legitimate", "unknown"]
    confidence: int = Field(default=0)
    risk_level: Literal["high", "medium", "low", "unknown"] = Field(default="unknown")
    reasons: List[str] = Field(default_factory=list)
    detected_tactics: List[str] = Field(default_factory=list)
    explanation: str = Field(default="")
    action_recommended: str = Field(default="")
    isOffline: bool = Field(default=False)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        """Coerce to an int clipped to [0, 100]."""
        if value is None:
            return 0
        if isinstance(value, str):
            value = value.strip().rstrip("%")
        return int(round(min(max(float(value), 0.0), 100.0)))

    @classmethod
    def from_verdict(cls, verdict: Verdict) -> "AnalysisResult":
        return cls(**verdict.model_dump())


class AnalyzeRequest(BaseModel):
    """Incoming payload on POST /analyze."""

    model_config = ConfigDict(extra="ignore")

    message: str = Field(..., max_length=MAX_MESSAGE_LENGTH)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message is required")
        return value


class HistoryEntry(BaseModel):
    """One saved scan, most recent first in the store."""

    model_config = ConfigDict(extra="ignore")

    id: str
    timestamp: str
    message: str
    result: Dict[str, Any] = Field(default_factory=dict)


class Statistics(BaseModel):
    totalScans: int = 0
    scamsDetected: int = 0
    suspiciousCount: int = 0
    safeCount: int = 0
    historyCount: int = 0


class HistoryExport(BaseModel):
    """Backup document produced by export and accepted by import."""

    model_config = ConfigDict(extra="ignore")

    exportDate: str = ""
    version: str = "1.0.0"
    statistics: Statistics = Field(default_factory=Statistics)
    history: List[HistoryEntry]
