"""Typed badge criteria.

``badges.criteria`` stores a small tagged JSON object such as
``{"type": "total_activities", "count": 5}``. It is parsed into one of the
models below; anything unrecognised or malformed becomes ``UnknownCriteria``,
which is never eligible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from gtg.gamification.stats_service import UserStats


@dataclass
class CriteriaContext:
    """Everything a criterion may be evaluated against."""

    stats: UserStats
    activity_type_names: dict[int, str] = field(default_factory=dict)
    streak: int = 0


class _CountCriteria(BaseModel):
    count: int = Field(ge=1)

    @property
    def target(self) -> int:
        return self.count

    def current_value(self, ctx: CriteriaContext) -> int:
        raise NotImplementedError

    def is_eligible(self, ctx: CriteriaContext) -> bool:
        return self.current_value(ctx) >= self.target


class TotalActivitiesCriteria(_CountCriteria):
    type: Literal["total_activities"]

    def current_value(self, ctx: CriteriaContext) -> int:
        return ctx.stats.total_activities


class SpecificActivityCriteria(_CountCriteria):
    type: Literal["specific_activity"]
    activity_type_id: int

    def current_value(self, ctx: CriteriaContext) -> int:
        name = ctx.activity_type_names.get(self.activity_type_id)
        if name is None:
            return 0
        return ctx.stats.activities_by_type.get(name, 0)


class LikesReceivedCriteria(_CountCriteria):
    type: Literal["likes_received"]

    def current_value(self, ctx: CriteriaContext) -> int:
        return ctx.stats.likes_received


class LikesGivenCriteria(_CountCriteria):
    type: Literal["likes_given"]

    def current_value(self, ctx: CriteriaContext) -> int:
        return ctx.stats.likes_given


class ConsecutiveDaysCriteria(BaseModel):
    type: Literal["consecutive_days"]
    days: int = Field(ge=1)

    @property
    def target(self) -> int:
        return self.days

    def current_value(self, ctx: CriteriaContext) -> int:
        return ctx.streak

    def is_eligible(self, ctx: CriteriaContext) -> bool:
        return ctx.streak >= self.days


class UnknownCriteria(BaseModel):
    type: Literal["unknown"] = "unknown"
    raw: dict[str, Any] = {}

    @property
    def target(self) -> int:
        return 0

    def current_value(self, ctx: CriteriaContext) -> int:  # noqa: ARG002
        return 0

    def is_eligible(self, ctx: CriteriaContext) -> bool:  # noqa: ARG002
        return False


KnownCriteria = Annotated[
    Union[
        TotalActivitiesCriteria,
        SpecificActivityCriteria,
        LikesReceivedCriteria,
        LikesGivenCriteria,
        ConsecutiveDaysCriteria,
    ],
    Field(discriminator="type"),
]
BadgeCriteria = Union[
    TotalActivitiesCriteria,
    SpecificActivityCriteria,
    LikesReceivedCriteria,
    LikesGivenCriteria,
    ConsecutiveDaysCriteria,
    UnknownCriteria,
]

_adapter: TypeAdapter[Any] = TypeAdapter(KnownCriteria)


def parse_criteria(raw: Any) -> BadgeCriteria:  # noqa: ANN401
    """Parse a stored criteria descriptor. Never raises."""
    try:
        return _adapter.validate_python(raw)
    except PydanticValidationError:
        return UnknownCriteria(raw=raw if isinstance(raw, dict) else {"value": raw})


def progress_percent(current: int, target: int) -> float:
    if target <= 0:
        return 0.0
    return min(100.0, round(current / target * 100, 2))
