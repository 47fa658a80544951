"""Pydantic schemas for achievements."""

from pydantic import BaseModel

from .models import Achievement


class AchievementResponse(BaseModel):
    """Achievement badge."""

    title: str
    description: str
    achieved: bool

    @classmethod
    def from_entity(cls, entity: Achievement) -> "AchievementResponse":
        return cls(
            title=entity.title,
            description=entity.description,
            achieved=entity.achieved,
        )


class AchievementListResponse(BaseModel):
    """All achievements with an achieved/total summary."""

    items: list[AchievementResponse]
    achieved: int
    total: int
