# blogdesk/models/user.py
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

class Role(str, Enum):
    EDITOR = "editor"
    ADMIN = "admin"

class Identity(BaseModel):
    """Signed-in user as reported by the identity provider"""
    id: str
    emails: List[str] = []
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    public_metadata: Dict[str, Any] = {}

    @property
    def primary_email(self) -> str:
        return self.emails[0] if self.emails else ""

class AdminUser(BaseModel):
    """Dashboard user that passed a role check"""
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None
    role: Role
