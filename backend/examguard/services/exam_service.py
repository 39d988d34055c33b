from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, List
import logging

from ..models.exam import Exam, Question
from ..models.user import User
from ..schemas.exam import ExamCreate

logger = logging.getLogger(__name__)


class ExamNotFoundError(LookupError):
    pass


class ExamService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_exam(self, exam_id: str) -> Optional[Exam]:
        result = await self.db.execute(select(Exam).filter(Exam.exam_id == exam_id.strip()))
        return result.scalars().first()

    async def require_exam(self, exam_id: str) -> Exam:
        exam = await self.get_exam(exam_id)
        if exam is None:
            raise ExamNotFoundError("Exam not found")
        return exam

    async def list_exams(self) -> List[Exam]:
        result = await self.db.execute(select(Exam).order_by(Exam.live_date.desc()))
        return list(result.scalars().all())

    async def create_exam(self, exam_data: ExamCreate, teacher: User) -> Exam:
        exam = Exam(
            exam_name=exam_data.exam_name,
            total_questions=exam_data.total_questions,
            duration=exam_data.duration,
            live_date=exam_data.live_date,
            dead_date=exam_data.dead_date,
            exam_code=exam_data.exam_code or "",
            teacher_id=teacher.id,
        )
        self.db.add(exam)
        await self.db.commit()
        await self.db.refresh(exam)
        logger.info(f"Exam created exam={exam.exam_id} teacher={teacher.id}")
        return exam

    async def get_questions(self, exam_id: str) -> List[Question]:
        result = await self.db.execute(
            select(Question).filter(Question.exam_id == exam_id.strip()).order_by(Question.id)
        )
        return list(result.scalars().all())


def verify_exam_code(exam: Exam, submitted_code: Optional[str]) -> bool:
    """Public exams (no stored code) always pass; otherwise exact, case-sensitive match."""
    if not exam.requires_code:
        return True
    return submitted_code == exam.exam_code
