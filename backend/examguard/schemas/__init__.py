from .auth import Token
from .user import User, UserCreate
from .exam import ExamCreate, Exam, VerifyCodeRequest, Question, ExamAttempt
from .cheating_log import CheatingLogReport, Evidence, MissingIdentityError, serialize_cheating_log

__all__ = [
    "Token",
    "User",
    "UserCreate",
    "ExamCreate",
    "Exam",
    "VerifyCodeRequest",
    "Question",
    "ExamAttempt",
    "CheatingLogReport",
    "Evidence",
    "MissingIdentityError",
    "serialize_cheating_log",
]
