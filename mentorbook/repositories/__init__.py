"""
Repository Layer.

All data access goes through repositories. Services call repositories,
never the document store directly.
"""

from mentorbook.repositories.base_repository import BaseRepository
from mentorbook.repositories.mentor_repository import MentorRepository
from mentorbook.repositories.session_repository import SessionRepository
from mentorbook.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "MentorRepository",
    "SessionRepository",
    "UserRepository",
]
