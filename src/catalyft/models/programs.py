"""Request models for the program and session functions."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class GenerateSessionsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    programId: Optional[Any] = None


class CreateProgramRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    templateId: Optional[Any] = None
    athleteUuid: Optional[str] = None


class GenerateFinishersRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_id: Optional[str] = None


class AdjustSetRequest(BaseModel):
    """Live metric reading sent by the session screen."""

    model_config = ConfigDict(extra="ignore")

    session_uuid: Optional[str] = None
    athlete_uuid: Optional[str] = None
    metric: Optional[str] = None
    value: Optional[float] = None


class WeeklySummaryRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    debug: bool = False
