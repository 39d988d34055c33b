from .user import User
from .exam import Exam, Question, ExamAttempt
from .cheating_log import CheatingLog, CheatingLogScreenshot

__all__ = [
    "User",
    "Exam",
    "Question",
    "ExamAttempt",
    "CheatingLog",
    "CheatingLogScreenshot",
]
