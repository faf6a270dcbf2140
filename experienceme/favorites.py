"""
Favorite toggling. State is always re-read from the store after a change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from experienceme.db import DataClient, DuplicateEntryError, ExperienceRecord

logger = logging.getLogger(__name__)


@dataclass
class FavoriteState:
    experience_id: str
    is_favorited: bool
    favorite_ids: list[str]


def is_favorited(db: DataClient, user_id: str, experience_id: str) -> bool:
    return db.get_favorite(user_id, experience_id) is not None


def toggle_favorite(db: DataClient, user_id: str, experience_id: str) -> FavoriteState:
    """
    Delete the favorite row if it exists, insert it otherwise, then report
    what the store now holds.
    """
    if is_favorited(db, user_id, experience_id):
        db.remove_favorite(user_id, experience_id)
    else:
        try:
            db.add_favorite(user_id, experience_id)
        except DuplicateEntryError:
            # A concurrent toggle inserted the same pair; the store already holds one row.
            logger.info("Favorite %s/%s already present", user_id, experience_id)
    favorite_ids = db.list_favorite_experience_ids(user_id)
    return FavoriteState(
        experience_id=experience_id,
        is_favorited=experience_id in favorite_ids,
        favorite_ids=favorite_ids,
    )


def list_favorites(db: DataClient, user_id: str) -> list[ExperienceRecord]:
    """The user's favorited experiences that are still publicly visible."""
    ids = db.list_favorite_experience_ids(user_id)
    if not ids:
        return []
    return [exp for exp in db.list_experiences_by_ids(ids) if exp.is_public()]
