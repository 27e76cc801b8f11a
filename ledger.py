"""
Relationship ledger: likes between users and the matches derived from them.

A like is a directed edge stored once per (liker, liked) pair. A match is
never stored; it is recomputed from the edges on every read.
"""

from typing import List

from loguru import logger

from errors import InvalidLike, UserNotFound
from schemas import LikeResult, User
from storage import Storage


def has_like(storage: Storage, liker_id: str, liked_id: str) -> bool:
    return storage.has_like(liker_id, liked_id)


def create_like(storage: Storage, liker_id: str, liked_id: str) -> LikeResult:
    if liker_id == liked_id:
        raise InvalidLike("Cannot like yourself")
    if storage.get_user(liked_id) is None:
        raise UserNotFound(liked_id)

    # the store rejects a second edge for the same pair with DuplicateLike
    like = storage.create_like(liker_id, liked_id)
    is_match = has_like(storage, liked_id, liker_id)
    if is_match:
        logger.info(f"Match between {liker_id} and {liked_id}")
    else:
        logger.info(f"{liker_id} liked {liked_id}")
    return LikeResult(like=like, is_match=is_match)


def get_matches(storage: Storage, user_id: str) -> List[User]:
    """Users who liked 'user_id' and were liked back, in the order 'user_id' liked them."""
    liked_me = set(storage.get_liker_ids(user_id))
    match_ids = [i for i in storage.get_liked_ids(user_id) if i in liked_me]
    if not match_ids:
        return []
    matches = storage.get_users(match_ids)
    if len(matches) < len(match_ids):
        logger.warning(f"Dropped {len(match_ids) - len(matches)} unresolved match ids for user {user_id}")
    return matches
