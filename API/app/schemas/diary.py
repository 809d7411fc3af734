from datetime import datetime, timezone

from pydantic import BaseModel, Field

from app.schemas.homework import Subject


class DiaryEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    subject: Subject
    section: str
    input_text: str
    image: str | None = None
    result_content: str
    supplementary_steps: str | None = None
