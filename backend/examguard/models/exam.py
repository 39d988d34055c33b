from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from ..core.database import Base


def _new_exam_id() -> str:
    return str(uuid.uuid4())


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String, unique=True, index=True, nullable=False, default=_new_exam_id)
    exam_name = Column(String, nullable=False)
    total_questions = Column(Integer, nullable=False)
    duration = Column(Integer, nullable=False)                  # minutes
    live_date = Column(DateTime, nullable=False)
    dead_date = Column(DateTime, nullable=False)
    exam_code = Column(String, default="")                      # empty means public
    teacher_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    questions = relationship("Question", back_populates="exam", order_by="Question.id")

    @property
    def requires_code(self) -> bool:
        return bool(self.exam_code and self.exam_code.strip())


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String, ForeignKey("exams.exam_id"), index=True, nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSON, default=list)                        # [{"optionText": ..., "isCorrect": ...}]

    exam = relationship("Exam", back_populates="questions")


class ExamAttempt(Base):
    __tablename__ = "exam_attempts"
    __table_args__ = (
        UniqueConstraint("exam_id", "user_id", name="uq_exam_attempts_exam_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="attempts")

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def __repr__(self):
        return f"<ExamAttempt exam={self.exam_id} user={self.user_id} completed={self.is_completed}>"
