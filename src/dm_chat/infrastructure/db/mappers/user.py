from __future__ import annotations

from dm_chat.domain.entities.user import User
from dm_chat.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        full_name=model.full_name,
        email=model.email,
        profile_pic=model.profile_pic,
        created_at=model.created_at,
    )


def entity_to_model(entity: User) -> UserModel:
    return UserModel(
        id=entity.id,
        full_name=entity.full_name,
        email=entity.email,
        profile_pic=entity.profile_pic,
        created_at=entity.created_at,
    )
