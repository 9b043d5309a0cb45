"""Badge criteria variants and badge read models.

Criteria are stored as JSON on ``skill_badges.criteria``. The tagged form is::

    {"kind": "sessions_taught", "minimum": 5, "min_avg_rating": 4.5}

Older catalog rows use an untyped threshold map instead
(``{"sessions_taught": 5, "min_rating": 4.5}``); ``parse_criteria`` accepts both.
A legacy map naming several thresholds is met when any one of them is met, and
parses to ``AnyOf``.
"""

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class SessionsTaught(BaseModel):
    kind: Literal["sessions_taught"] = "sessions_taught"
    minimum: int = Field(..., ge=1)
    min_avg_rating: Optional[float] = Field(None, ge=1, le=5)


class SessionsLearned(BaseModel):
    kind: Literal["sessions_learned"] = "sessions_learned"
    minimum: int = Field(..., ge=1)


class FiveStarReviews(BaseModel):
    kind: Literal["five_star_reviews"] = "five_star_reviews"
    minimum: int = Field(..., ge=1)


SingleCriteria = Annotated[
    Union[SessionsTaught, SessionsLearned, FiveStarReviews],
    Field(discriminator="kind"),
]


class AnyOf(BaseModel):
    kind: Literal["any_of"] = "any_of"
    options: List[SingleCriteria] = Field(..., min_length=1)


BadgeCriteria = Annotated[
    Union[SessionsTaught, SessionsLearned, FiveStarReviews, AnyOf],
    Field(discriminator="kind"),
]

_criteria_adapter = TypeAdapter(BadgeCriteria)

# Legacy key -> variant, in the order the old evaluator checked them.
_LEGACY_KEYS = ("sessions_taught", "sessions_learned", "five_star_reviews")


def _legacy_option(key: str, threshold: Any, raw: dict) -> SingleCriteria:
    if key == "sessions_taught":
        return SessionsTaught(minimum=int(threshold), min_avg_rating=raw.get("min_rating") or None)
    if key == "sessions_learned":
        return SessionsLearned(minimum=int(threshold))
    return FiveStarReviews(minimum=int(threshold))


def parse_criteria(raw: Any) -> Optional[BadgeCriteria]:
    """Turn a stored criteria blob into a variant, or None when it has no usable threshold."""
    if not raw or not isinstance(raw, dict):
        return None
    if "kind" in raw:
        return _criteria_adapter.validate_python(raw)

    options = [_legacy_option(key, raw[key], raw) for key in _LEGACY_KEYS if raw.get(key)]
    if not options:
        return None
    if len(options) == 1:
        return options[0]
    return AnyOf(options=options)


def dump_criteria(criteria: BadgeCriteria) -> dict:
    return criteria.model_dump(exclude_none=True)


class UserStats(BaseModel):
    """Aggregates a badge is judged against."""

    user_id: int
    sessions_taught: int = 0
    sessions_learned: int = 0
    five_star_reviews: int = 0
    total_reviews: int = 0
    average_rating: float = 0.0


class BadgeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    criteria: Optional[Any] = None

    model_config = ConfigDict(from_attributes=True)


class BadgeProgress(BadgeResponse):
    earned: bool = False
    earned_at: Optional[datetime] = None


class BadgeOverview(BaseModel):
    stats: UserStats
    badges: List[BadgeProgress] = []
