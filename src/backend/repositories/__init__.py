"""Repository modules for database access."""

from repositories.admin_user_repository import AdminUserRepository
from repositories.response_repository import ResponseRepository, ResponseRow
from repositories.survey_repository import SurveyRepository

__all__ = [
    "AdminUserRepository",
    "ResponseRepository",
    "ResponseRow",
    "SurveyRepository",
]
