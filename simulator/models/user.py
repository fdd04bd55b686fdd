from datetime import datetime, timezone
from typing import List, Optional
import uuid

from pydantic import Field

from .mapping import CamelModel


class UserProfile(CamelModel):
    """用户账号"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str = Field(..., description="用户名")
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password_hash: Optional[str] = Field(None, exclude=True)
    namespaces: List[str] = Field(default_factory=list, description="已分配的工作区")
    default_namespace: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip() or self.user_id
