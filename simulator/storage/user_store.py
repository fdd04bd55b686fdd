import hashlib
import logging
from typing import Dict, List, Optional

from ..exceptions import ValidationConflictError
from ..models.user import UserProfile

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class UserStore:
    """用户存储（内存），按 user_id 索引"""

    def __init__(self):
        self._store: Dict[str, UserProfile] = {}

    def save(self, user: UserProfile) -> UserProfile:
        self._store[user.user_id] = user.model_copy(deep=True)
        logger.info(f"保存用户: {user.user_id}")
        return user.model_copy(deep=True)

    def create_user(
        self,
        user_id: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        password: str = "password123",
    ) -> UserProfile:
        if user_id in self._store:
            raise ValidationConflictError(
                f"User '{user_id}' already exists",
                remediation="Choose a different user ID or modify the existing user.",
            )
        user = UserProfile(
            user_id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=hash_password(password),
        )
        return self.save(user)

    def get_by_user_id(self, user_id: str) -> Optional[UserProfile]:
        user = self._store.get(user_id)
        return user.model_copy(deep=True) if user else None

    def list_all(self) -> List[UserProfile]:
        return [u.model_copy(deep=True) for u in self._store.values()]

    def delete(self, user_id: str) -> bool:
        if user_id in self._store:
            del self._store[user_id]
            logger.info(f"删除用户: {user_id}")
            return True
        return False
