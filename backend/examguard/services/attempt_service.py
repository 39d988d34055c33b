from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from enum import Enum
from typing import Optional, Callable, List
import logging

from ..models.exam import Exam, ExamAttempt
from ..utils.timezone import utc_now, format_display_time

logger = logging.getLogger(__name__)


class AttemptState(str, Enum):
    NONE = "none"
    STARTED = "started"
    COMPLETED = "completed"


class ExamWindowError(Exception):
    """Question access outside [liveDate, deadDate]."""

    NOT_STARTED = "not_started"
    ENDED = "ended"

    def __init__(self, bound: str, boundary: datetime):
        self.bound = bound
        self.boundary = boundary
        message = "Exam not started yet" if bound == self.NOT_STARTED else "Exam has ended"
        super().__init__(message)


class AttemptCompletedError(Exception):
    def __init__(self, attempt: ExamAttempt):
        self.attempt = attempt
        super().__init__("You have already completed this exam")


class AttemptNotFoundError(LookupError):
    pass


def attempt_state(attempt: Optional[ExamAttempt]) -> AttemptState:
    if attempt is None:
        return AttemptState.NONE
    return AttemptState.COMPLETED if attempt.is_completed else AttemptState.STARTED


def check_exam_window(exam: Exam, now: datetime) -> None:
    if exam.live_date is not None and now < exam.live_date:
        raise ExamWindowError(ExamWindowError.NOT_STARTED, exam.live_date)
    if exam.dead_date is not None and now > exam.dead_date:
        raise ExamWindowError(ExamWindowError.ENDED, exam.dead_date)


class SessionAttemptTracker:
    """
    One attempt per (exam, user): NONE -> STARTED -> COMPLETED.

    The unique constraint on exam_attempts is what makes the first start safe
    under concurrent requests; losing the insert race means "already started".
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    async def get_attempt(self, exam_id: str, user_id: int) -> Optional[ExamAttempt]:
        result = await self.db.execute(
            select(ExamAttempt)
            .filter(ExamAttempt.exam_id == exam_id, ExamAttempt.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_state(self, exam_id: str, user_id: int) -> AttemptState:
        return attempt_state(await self.get_attempt(exam_id, user_id))

    async def list_attempts(self, user_id: int) -> List[ExamAttempt]:
        result = await self.db.execute(
            select(ExamAttempt)
            .filter(ExamAttempt.user_id == user_id)
            .order_by(ExamAttempt.started_at.desc())
        )
        return list(result.scalars().all())

    async def authorize_question_access(self, exam: Exam, user_id: int) -> ExamAttempt:
        """
        Gate a question-list request. Returns the started attempt, creating it
        on first access.

        Raises:
            ExamWindowError: now is outside the exam window (checked first, regardless of attempt state)
            AttemptCompletedError: the attempt was already submitted
        """
        now = self.clock()
        try:
            check_exam_window(exam, now)
        except ExamWindowError as e:
            logger.info(
                f"Question access rejected exam={exam.exam_id} user={user_id} "
                f"reason={e.bound} boundary={format_display_time(e.boundary)}"
            )
            raise

        attempt = await self.get_attempt(exam.exam_id, user_id)
        if attempt is None:
            attempt = await self._start_attempt(exam.exam_id, user_id, now)

        if attempt.is_completed:
            raise AttemptCompletedError(attempt)
        return attempt

    async def _start_attempt(self, exam_id: str, user_id: int, now: datetime) -> ExamAttempt:
        attempt = ExamAttempt(exam_id=exam_id, user_id=user_id, started_at=now)
        self.db.add(attempt)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            existing = await self.get_attempt(exam_id, user_id)
            if existing is None:
                raise
            logger.info(f"Attempt already started concurrently exam={exam_id} user={user_id}")
            return existing

        await self.db.refresh(attempt)
        logger.info(f"Attempt started exam={exam_id} user={user_id}")
        return attempt

    async def complete(self, exam_id: str, user_id: int) -> ExamAttempt:
        """Set completed_at exactly once. A second submission is rejected."""
        attempt = await self.get_attempt(exam_id, user_id)
        if attempt is None:
            raise AttemptNotFoundError(f"No attempt for exam {exam_id}")
        if attempt.is_completed:
            raise AttemptCompletedError(attempt)

        result = await self.db.execute(
            update(ExamAttempt)
            .where(ExamAttempt.id == attempt.id, ExamAttempt.completed_at.is_(None))
            .values(completed_at=self.clock())
        )
        await self.db.commit()

        attempt = await self.get_attempt(exam_id, user_id)
        if result.rowcount == 0:
            # another submission won the race
            raise AttemptCompletedError(attempt)

        logger.info(f"Attempt completed exam={exam_id} user={user_id}")
        return attempt
