from datetime import datetime, timezone
from typing import List, Optional
import uuid

from pydantic import Field

from .mapping import CamelModel


class Namespace(CamelModel):
    """工作区"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="工作区ID")
    name: str = Field(..., description="工作区名称（小写、连字符）")
    display_name: Optional[str] = Field(None, description="显示名称")
    description: Optional[str] = None
    members: List[str] = Field(default_factory=list, description="成员 userId")
    owner: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    active: bool = True

    @property
    def label(self) -> str:
        return self.display_name or self.name
