from pydantic import BaseModel, ConfigDict
from typing import Optional

UNKNOWN_NAME = "Unknown"


class ProfileSummary(BaseModel):
    """Display profile for a counterpart, sender or reviewer."""

    id: int
    full_name: str
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def unknown(cls, user_id: int) -> "ProfileSummary":
        return cls(id=user_id, full_name=UNKNOWN_NAME)
