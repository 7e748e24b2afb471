# blogdesk/models/base.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict

class TimeStampedModel(BaseModel):
    """Row with creation and last-update timestamps"""
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def last_modified(self) -> datetime:
        # rows that were never updated carry updated_at = NULL
        return self.updated_at or self.created_at
