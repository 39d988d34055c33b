from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional, List

from ..utils.timezone import to_naive_utc


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ExamCreate(CamelModel):
    exam_name: str = Field(min_length=1)
    total_questions: int = Field(gt=0)
    duration: int = Field(gt=0)
    live_date: datetime
    dead_date: datetime
    exam_code: str = ""

    @field_validator("live_date", "dead_date")
    @classmethod
    def normalize_to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_window(self):
        if self.dead_date <= self.live_date:
            raise ValueError("deadDate must be after liveDate")
        return self


class Exam(CamelModel):
    exam_id: str
    exam_name: str
    total_questions: int
    duration: int
    live_date: datetime
    dead_date: datetime
    requires_code: bool
    teacher_id: Optional[int] = None


class VerifyCodeRequest(CamelModel):
    exam_code: Optional[str] = None


class QuestionOption(CamelModel):
    option_text: str


class Question(CamelModel):
    id: int
    exam_id: str
    question: str
    options: List[QuestionOption] = []

    @field_validator("options", mode="before")
    @classmethod
    def hide_answers(cls, value):
        # students never see which option is correct
        return [{"option_text": option.get("optionText", option.get("option_text", ""))} for option in value or []]


class ExamAttempt(CamelModel):
    exam_id: str
    user_id: int
    started_at: datetime
    completed_at: Optional[datetime] = None
