"""
Purpose:
- Pydantic models for analyze in/out so the API is self-documenting and stable.
- ListingReport field constraints are the report invariants; the normalizer
  only ever builds instances that satisfy them.
"""

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

TITLE_MAX = 120
SUMMARY_MAX = 500
VALUE_MAX = 80
LIST_MAX = 8
QUESTIONS_MIN = 3

class ListingReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    vehicle_title: str = Field(..., min_length=1, max_length=TITLE_MAX)
    lens_score: int = Field(..., ge=0, le=100, description="0 = walk away, 100 = great buy")
    summary: str = Field(..., max_length=SUMMARY_MAX)
    market_value_estimate: str = Field(..., max_length=VALUE_MAX, description='e.g. "$28k-$33k" or "Unknown"')
    red_flags: List[str] = Field(default_factory=list, max_length=LIST_MAX)
    questions_to_ask: List[str] = Field(..., min_length=QUESTIONS_MIN, max_length=LIST_MAX)

class ListingRequest(BaseModel):
    """Decoded analyze request: base64 payloads in caller order."""
    images: List[str] = Field(..., min_length=1)
    mime_type: str = "image/jpeg"

class AnalyzeResponse(BaseModel):
    data: ListingReport

class ErrorBody(BaseModel):
    error: str
    message: Optional[str] = None
    raw: Optional[str] = None
