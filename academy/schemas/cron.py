from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class CronResult(BaseModel):
    """Summary every batch job returns; failed record ids land in ``errors``."""

    task: str
    success: bool = True
    message: str = ""
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: List[str] = []
    notifications_sent: Optional[int] = None
    timestamp: datetime


class DailyCronResult(BaseModel):
    success: bool
    message: str
    timestamp: datetime
    results: List[CronResult]
