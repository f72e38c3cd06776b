# backend/mentorship/schemas/lifecycle.py
from typing import List

from pydantic import BaseModel, Field


class MinimumCheckSummary(BaseModel):
    confirmed: int = 0
    cancelled: int = 0
    errors: List[str] = Field(default_factory=list)


class ReminderSummary(BaseModel):
    day: int = 0
    hour: int = 0
    errors: List[str] = Field(default_factory=list)


class CompletionSummary(BaseModel):
    count: int = 0
    errors: List[str] = Field(default_factory=list)


class LifecycleRunResponse(BaseModel):
    minimum_checks: MinimumCheckSummary
    reminders: ReminderSummary
    call_reminders: ReminderSummary
    completed: CompletionSummary
    skipped_passes: List[str]
    errors: List[str]
    timestamp: str
