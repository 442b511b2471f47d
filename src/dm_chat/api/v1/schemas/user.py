from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from dm_chat.domain.entities.user import User


class UserSummaryResponse(BaseModel):
    id: str = Field(alias="_id")
    full_name: str = Field(alias="fullName")
    email: str
    profile_pic: str = Field(default="", alias="profilePic")
    online: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_entity(cls, user: User, *, online: bool) -> UserSummaryResponse:
        return cls(
            id=user.id,
            full_name=user.full_name,
            email=user.email,
            profile_pic=user.profile_pic,
            online=online,
        )
