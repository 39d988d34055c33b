"""
Tests for the session attempt tracker and the question/submit gate
"""

import asyncio
from datetime import timedelta

import pytest

from examguard.models import ExamAttempt
from examguard.services.attempt_service import (
    AttemptCompletedError,
    AttemptNotFoundError,
    AttemptState,
    ExamWindowError,
    SessionAttemptTracker,
)


class TestSessionAttemptTracker:

    @pytest.mark.asyncio
    async def test_first_access_starts_attempt(self, session_factory, exam, student):
        async with session_factory() as db:
            tracker = SessionAttemptTracker(db)
            assert await tracker.get_state(exam.exam_id, student.id) == AttemptState.NONE

            attempt = await tracker.authorize_question_access(exam, student.id)
            assert attempt.completed_at is None
            assert await tracker.get_state(exam.exam_id, student.id) == AttemptState.STARTED

            resumed = await tracker.authorize_question_access(exam, student.id)
            assert resumed.id == attempt.id

    @pytest.mark.asyncio
    async def test_concurrent_first_access_creates_one_attempt(self, session_factory, seed, exam, student):
        async def access():
            async with session_factory() as db:
                attempt = await SessionAttemptTracker(db).authorize_question_access(exam, student.id)
                return attempt.id

        first, second = await asyncio.gather(access(), access())

        assert first == second
        assert seed.count(ExamAttempt, exam_id=exam.exam_id, user_id=student.id) == 1

    @pytest.mark.asyncio
    async def test_completed_attempt_is_rejected(self, session_factory, seed, exam, student):
        seed.attempt(exam.exam_id, student.id, completed=True)

        async with session_factory() as db:
            with pytest.raises(AttemptCompletedError):
                await SessionAttemptTracker(db).authorize_question_access(exam, student.id)

    @pytest.mark.asyncio
    async def test_window_is_checked_before_attempt_state(self, session_factory, seed, exam, student):
        seed.attempt(exam.exam_id, student.id, completed=True)
        after_end = exam.dead_date + timedelta(seconds=1)

        async with session_factory() as db:
            tracker = SessionAttemptTracker(db, clock=lambda: after_end)
            with pytest.raises(ExamWindowError) as exc_info:
                await tracker.authorize_question_access(exam, student.id)

        assert exc_info.value.bound == ExamWindowError.ENDED
        assert exc_info.value.boundary == exam.dead_date
        assert str(exc_info.value) == "Exam has ended"

    @pytest.mark.asyncio
    async def test_before_live_date(self, session_factory, exam, student):
        before_start = exam.live_date - timedelta(minutes=5)

        async with session_factory() as db:
            tracker = SessionAttemptTracker(db, clock=lambda: before_start)
            with pytest.raises(ExamWindowError) as exc_info:
                await tracker.authorize_question_access(exam, student.id)
            assert await tracker.get_state(exam.exam_id, student.id) == AttemptState.NONE

        assert exc_info.value.bound == ExamWindowError.NOT_STARTED

    @pytest.mark.asyncio
    async def test_window_bounds_are_inclusive(self, session_factory, exam, student):
        async with session_factory() as db:
            tracker = SessionAttemptTracker(db, clock=lambda: exam.dead_date)
            attempt = await tracker.authorize_question_access(exam, student.id)
        assert attempt is not None

    @pytest.mark.asyncio
    async def test_complete_sets_completed_at_once(self, session_factory, exam, student):
        async with session_factory() as db:
            tracker = SessionAttemptTracker(db)
            await tracker.authorize_question_access(exam, student.id)
            completed = await tracker.complete(exam.exam_id, student.id)
            assert completed.completed_at is not None

            with pytest.raises(AttemptCompletedError) as exc_info:
                await tracker.complete(exam.exam_id, student.id)
            assert exc_info.value.attempt.completed_at == completed.completed_at
            assert await tracker.get_state(exam.exam_id, student.id) == AttemptState.COMPLETED

    @pytest.mark.asyncio
    async def test_complete_without_attempt(self, session_factory, exam, student):
        async with session_factory() as db:
            with pytest.raises(AttemptNotFoundError):
                await SessionAttemptTracker(db).complete(exam.exam_id, student.id)


class TestSessionGateEndpoints:

    def test_unknown_exam(self, client, student_headers):
        response = client.get("/api/v1/exam/questions/does-not-exist", headers=student_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Exam not found"}

    def test_requires_authentication(self, client, exam):
        assert client.get(f"/api/v1/exam/questions/{exam.exam_id}").status_code == 401

    def test_ended_exam(self, client, seed, student_headers, teacher):
        exam = seed.exam(teacher_id=teacher.id, live_in=timedelta(hours=-3), ends_in=timedelta(hours=-1))
        response = client.get(f"/api/v1/exam/questions/{exam.exam_id}", headers=student_headers)

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "Exam has ended"
        assert body["endedAt"] == exam.dead_date.isoformat()

    def test_questions_hide_answers(self, client, exam, student_headers):
        response = client.get(f"/api/v1/exam/questions/{exam.exam_id}", headers=student_headers)

        assert response.status_code == 200
        questions = response.json()
        assert [q["question"] for q in questions] == ["2 + 2 = ?", "Capital of France?"]
        assert questions[0]["options"] == [{"optionText": "4"}, {"optionText": "5"}]

    def test_full_session_lifecycle(self, client, seed, teacher, student, student_headers):
        exam = seed.exam(teacher_id=teacher.id, live_in=timedelta(hours=1), ends_in=timedelta(hours=3))
        seed.question(exam.exam_id)
        questions_url = f"/api/v1/exam/questions/{exam.exam_id}"

        response = client.get(questions_url, headers=student_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Exam not started yet"
        assert response.json()["startsAt"] == exam.live_date.isoformat()
        assert seed.count(ExamAttempt, exam_id=exam.exam_id) == 0

        seed.reschedule(exam.exam_id, live_in=timedelta(minutes=-1), ends_in=timedelta(hours=2))
        response = client.get(questions_url, headers=student_headers)
        assert response.status_code == 200
        assert len(response.json()) == 1
        assert seed.count(ExamAttempt, exam_id=exam.exam_id, user_id=student.id) == 1

        # resuming does not create a second attempt
        assert client.get(questions_url, headers=student_headers).status_code == 200
        assert seed.count(ExamAttempt, exam_id=exam.exam_id) == 1

        response = client.post(f"/api/v1/exam/{exam.exam_id}/submit", headers=student_headers)
        assert response.status_code == 200
        completed_at = response.json()["completedAt"]
        assert completed_at is not None

        response = client.get(questions_url, headers=student_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "You have already completed this exam"}

        response = client.post(f"/api/v1/exam/{exam.exam_id}/submit", headers=student_headers)
        assert response.status_code == 409
        assert response.json()["completedAt"] == completed_at

    def test_submit_without_attempt(self, client, exam, student_headers):
        response = client.post(f"/api/v1/exam/{exam.exam_id}/submit", headers=student_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Exam was never started"

    def test_attempts_are_per_user(self, client, seed, exam, student_headers, headers_for):
        other = seed.user(email="other@example.com", name="Other")
        other_headers = headers_for(other)

        client.get(f"/api/v1/exam/questions/{exam.exam_id}", headers=student_headers)
        client.post(f"/api/v1/exam/{exam.exam_id}/submit", headers=student_headers)

        response = client.get(f"/api/v1/exam/questions/{exam.exam_id}", headers=other_headers)
        assert response.status_code == 200

    def test_my_attempts(self, client, exam, student_headers):
        assert client.get("/api/v1/users/me/attempts", headers=student_headers).json() == []

        client.get(f"/api/v1/exam/questions/{exam.exam_id}", headers=student_headers)
        attempts = client.get("/api/v1/users/me/attempts", headers=student_headers).json()
        assert len(attempts) == 1
        assert attempts[0]["examId"] == exam.exam_id
        assert attempts[0]["completedAt"] is None
