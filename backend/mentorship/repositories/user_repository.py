# backend/mentorship/repositories/user_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.user import MentorProfile, User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_mentor_profile(self, user_id: str) -> Optional[MentorProfile]:
        return self.db.query(MentorProfile).filter(MentorProfile.user_id == user_id).first()
