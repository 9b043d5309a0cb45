from sqlalchemy import Column, Integer, String, TIMESTAMP
from sqlalchemy.orm import relationship

from skillswap_core.database import Base
from skillswap_core.models.common import utcnow


# ---------------- USER (PROFILE TABLE) ----------------
# Identity lives with the auth provider; this row only carries what the
# exchange needs to render a counterpart.
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    avatar_url = Column(String(500))
    created_at = Column(TIMESTAMP, default=utcnow, nullable=False)

    posts = relationship("SkillPost", back_populates="owner")
