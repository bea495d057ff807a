from typing import Optional

from pydantic import BaseModel, Field


class ProfileUpdate(BaseModel):
    """Profile update request"""

    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
