"""
Conversation index over the flat message table.

A conversation is every message whose {sender, receiver} equals a fixed
pair of users, in either direction, ordered by creation time and then by
insertion sequence. Nothing about a conversation is stored beyond the
messages themselves.
"""

from typing import Iterable, List, Optional

from loguru import logger

from errors import InvalidMessage, UserNotFound
from schemas import MESSAGE_TYPES, Message, User
from storage import Storage


def validate_message(message_type: str, text: Optional[str], image_url: Optional[str]) -> None:
    if message_type not in MESSAGE_TYPES:
        raise InvalidMessage("Invalid message type")
    if message_type in ("text", "emoji") and not text:
        raise InvalidMessage("Text is required for text/emoji messages")
    if message_type == "image" and not image_url:
        raise InvalidMessage("Image URL is required for image messages")


def create_message(storage: Storage, sender_id: str, receiver_id: str, message_type: str = "text",
                   text: Optional[str] = None, image_url: Optional[str] = None) -> Message:
    validate_message(message_type, text, image_url)
    if sender_id == receiver_id:
        raise InvalidMessage("Cannot send a message to yourself")
    if storage.get_user(receiver_id) is None:
        raise UserNotFound(receiver_id)

    if message_type == "image":
        text = text or ""  # optional caption
    else:
        image_url = None
    message = storage.create_message(sender_id, receiver_id, message_type, text=text, image_url=image_url)
    logger.debug(f"Message {message.id} ({message_type}) from {sender_id} to {receiver_id}")
    return message


def get_conversation(storage: Storage, user_a: str, user_b: str) -> List[Message]:
    return storage.get_conversation(user_a, user_b)


def get_user_conversations(storage: Storage, user_id: str) -> List[str]:
    """Distinct ids this user has sent to or received from, most recent first."""
    return storage.get_partner_ids(user_id)


def resolve_partners(storage: Storage, partner_ids: Iterable[str]) -> List[User]:
    partner_ids = list(partner_ids)
    partners = storage.get_users(partner_ids)
    dropped = len(partner_ids) - len(partners)
    if dropped:
        logger.warning(f"Dropped {dropped} conversation partner ids that did not resolve to a user")
    return partners
