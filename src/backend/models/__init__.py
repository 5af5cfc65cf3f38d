"""Database models module."""

from models.admin_user import AdminUser
from models.response import Response
from models.survey import Question, QuestionOption, Survey

__all__ = [
    "AdminUser",
    "Survey",
    "Question",
    "QuestionOption",
    "Response",
]
