from __future__ import annotations

from dm_service.domain.entities.user import UserProfile
from dm_service.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> UserProfile:
    return UserProfile(
        user_id=model.user_id,
        name=model.name,
        avatar_url=model.profile_picture,
    )
