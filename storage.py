"""
Storage collaborators for users, likes, messages and sessions.

'Storage' is the interface the ledger, the conversation index and the
session layer talk to. 'MongoStorage' is the production backend (pymongo);
'InMemoryStorage' backs tests and local runs without DATABASE_URL. Both
enforce the same uniqueness rules: one user per email, one like per
(liker, liked) pair, one session per token.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import DuplicateLike, EmailAlreadyRegistered
from schemas import Like, Message, Session, User


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_str_id(doc):
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, datetime):
            doc[k] = _aware(v)
    return doc


class Storage(ABC):
    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    def create_user(self, fields: dict) -> User:
        """Persist a user. 'fields' carries the already-hashed password."""
        pass

    @abstractmethod
    def get_users_by_gender(self, gender: str, exclude_user_id: str) -> List[User]:
        pass

    @abstractmethod
    def get_users(self, user_ids: Iterable[str]) -> List[User]:
        """Users for the given ids, in the given order. Unknown ids are skipped."""
        pass

    # Likes

    @abstractmethod
    def create_like(self, liker_id: str, liked_id: str) -> Like:
        """Insert a like edge; raises DuplicateLike if the pair already exists."""
        pass

    @abstractmethod
    def has_like(self, liker_id: str, liked_id: str) -> bool:
        pass

    @abstractmethod
    def get_liker_ids(self, user_id: str) -> List[str]:
        """Ids of users who liked 'user_id'."""
        pass

    @abstractmethod
    def get_liked_ids(self, user_id: str) -> List[str]:
        """Ids of users 'user_id' liked, oldest like first."""
        pass

    # Messages

    @abstractmethod
    def create_message(self, sender_id: str, receiver_id: str, message_type: str,
                       text: Optional[str] = None, image_url: Optional[str] = None) -> Message:
        pass

    @abstractmethod
    def get_conversation(self, user_a: str, user_b: str) -> List[Message]:
        """Messages between the two users in either direction, oldest first."""
        pass

    @abstractmethod
    def get_partner_ids(self, user_id: str) -> List[str]:
        """Distinct counterparts of 'user_id', most recent exchange first."""
        pass

    # Sessions

    @abstractmethod
    def create_session(self, session: Session) -> Session:
        pass

    @abstractmethod
    def get_session(self, token: str) -> Optional[Session]:
        pass

    @abstractmethod
    def delete_session(self, token: str) -> bool:
        pass


class InMemoryStorage(Storage):
    """Process-local storage. Each mutation holds the instance lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self.users: Dict[str, User] = {}
        self.likes: List[Like] = []
        self.messages: List[Message] = []
        self.sessions: Dict[str, Session] = {}

    def get_user(self, user_id):
        return self.users.get(user_id)

    def get_user_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    def create_user(self, fields):
        with self._lock:
            if self.get_user_by_email(fields["email"]):
                raise EmailAlreadyRegistered()
            user = User(id=str(ObjectId()), created_at=_now(), **fields)
            self.users[user.id] = user
            return user

    def get_users_by_gender(self, gender, exclude_user_id):
        return [u for u in self.users.values() if u.gender == gender and u.id != exclude_user_id]

    def get_users(self, user_ids):
        return [self.users[i] for i in user_ids if i in self.users]

    def create_like(self, liker_id, liked_id):
        with self._lock:
            if self.has_like(liker_id, liked_id):
                raise DuplicateLike()
            like = Like(id=str(ObjectId()), liker_id=liker_id, liked_id=liked_id, created_at=_now())
            self.likes.append(like)
            return like

    def has_like(self, liker_id, liked_id):
        return any(l.liker_id == liker_id and l.liked_id == liked_id for l in self.likes)

    def get_liker_ids(self, user_id):
        return [l.liker_id for l in self.likes if l.liked_id == user_id]

    def get_liked_ids(self, user_id):
        return [l.liked_id for l in self.likes if l.liker_id == user_id]

    def create_message(self, sender_id, receiver_id, message_type, text=None, image_url=None):
        with self._lock:
            message = Message(
                id=str(ObjectId()),
                sender_id=sender_id,
                receiver_id=receiver_id,
                text=text,
                type=message_type,
                image_url=image_url,
                created_at=_now(),
                seq=len(self.messages) + 1,
            )
            self.messages.append(message)
            return message

    def get_conversation(self, user_a, user_b):
        pair = {user_a, user_b}
        found = [m for m in self.messages if {m.sender_id, m.receiver_id} == pair]
        return sorted(found, key=lambda m: (m.created_at, m.seq))

    def get_partner_ids(self, user_id):
        partners: List[str] = []
        for m in sorted(self.messages, key=lambda m: (m.created_at, m.seq), reverse=True):
            if m.sender_id == user_id:
                partner = m.receiver_id
            elif m.receiver_id == user_id:
                partner = m.sender_id
            else:
                continue
            if partner not in partners:
                partners.append(partner)
        return partners

    def create_session(self, session):
        with self._lock:
            self.sessions[session.token] = session
            return session

    def get_session(self, token):
        return self.sessions.get(token)

    def delete_session(self, token):
        with self._lock:
            return self.sessions.pop(token, None) is not None


class MongoStorage(Storage):
    """pymongo-backed storage. Uniqueness is enforced by indexes created in ensure_indexes()."""

    def __init__(self, database: Database):
        self.db = database
        self.ensure_indexes()

    def ensure_indexes(self):
        self.db["user"].create_index([("email", ASCENDING)], unique=True)
        self.db["like"].create_index([("liker_id", ASCENDING), ("liked_id", ASCENDING)], unique=True)
        self.db["like"].create_index([("liked_id", ASCENDING)])
        self.db["message"].create_index([("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("seq", ASCENDING)])
        self.db["message"].create_index([("receiver_id", ASCENDING)])
        self.db["session"].create_index([("token", ASCENDING)], unique=True)

    def _find_user(self, query) -> Optional[User]:
        doc = self.db["user"].find_one(query)
        return User(**to_str_id(doc)) if doc else None

    def get_user(self, user_id):
        if not ObjectId.is_valid(user_id):
            return None
        return self._find_user({"_id": ObjectId(user_id)})

    def get_user_by_email(self, email):
        return self._find_user({"email": email})

    def create_user(self, fields):
        try:
            user_id = create_document("user", fields, database=self.db)
        except DuplicateKeyError:
            raise EmailAlreadyRegistered()
        return self.get_user(user_id)

    def get_users_by_gender(self, gender, exclude_user_id):
        query = {"gender": gender}
        if ObjectId.is_valid(exclude_user_id):
            query["_id"] = {"$ne": ObjectId(exclude_user_id)}
        return [User(**to_str_id(d)) for d in self.db["user"].find(query)]

    def get_users(self, user_ids):
        ids = [i for i in user_ids if ObjectId.is_valid(i)]
        docs = self.db["user"].find({"_id": {"$in": [ObjectId(i) for i in ids]}})
        by_id = {u.id: u for u in (User(**to_str_id(d)) for d in docs)}
        return [by_id[i] for i in ids if i in by_id]

    def create_like(self, liker_id, liked_id):
        try:
            like_id = create_document("like", {"liker_id": liker_id, "liked_id": liked_id}, database=self.db)
        except DuplicateKeyError:
            raise DuplicateLike()
        return Like(**to_str_id(self.db["like"].find_one({"_id": ObjectId(like_id)})))

    def has_like(self, liker_id, liked_id):
        return self.db["like"].find_one({"liker_id": liker_id, "liked_id": liked_id}) is not None

    def get_liker_ids(self, user_id):
        cursor = self.db["like"].find({"liked_id": user_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        return [d["liker_id"] for d in cursor]

    def get_liked_ids(self, user_id):
        cursor = self.db["like"].find({"liker_id": user_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)])
        return [d["liked_id"] for d in cursor]

    def _next_seq(self, name: str) -> int:
        counter = self.db["counter"].find_one_and_update(
            {"_id": name}, {"$inc": {"seq": 1}}, upsert=True, return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    def create_message(self, sender_id, receiver_id, message_type, text=None, image_url=None):
        doc = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "text": text,
            "type": message_type,
            "image_url": image_url,
            "seq": self._next_seq("message"),
        }
        msg_id = create_document("message", doc, database=self.db)
        return Message(**to_str_id(self.db["message"].find_one({"_id": ObjectId(msg_id)})))

    def get_conversation(self, user_a, user_b):
        cursor = self.db["message"].find({
            "$or": [
                {"sender_id": user_a, "receiver_id": user_b},
                {"sender_id": user_b, "receiver_id": user_a},
            ]
        }).sort([("created_at", ASCENDING), ("seq", ASCENDING)])
        return [Message(**to_str_id(d)) for d in cursor]

    def get_partner_ids(self, user_id):
        sent = self.db["message"].find({"sender_id": user_id}, {"receiver_id": 1, "seq": 1})
        received = self.db["message"].find({"receiver_id": user_id}, {"sender_id": 1, "seq": 1})
        latest: Dict[str, int] = {}
        for partner, seq in [(d["receiver_id"], d["seq"]) for d in sent] + [(d["sender_id"], d["seq"]) for d in received]:
            latest[partner] = max(seq, latest.get(partner, 0))
        return sorted(latest, key=lambda p: latest[p], reverse=True)

    def create_session(self, session):
        self.db["session"].insert_one(session.model_dump())
        return session

    def get_session(self, token):
        doc = self.db["session"].find_one({"token": token}, {"_id": 0})
        if not doc:
            return None
        doc["created_at"] = _aware(doc["created_at"])
        doc["expires_at"] = _aware(doc["expires_at"])
        return Session(**doc)

    def delete_session(self, token):
        return self.db["session"].delete_one({"token": token}).deleted_count > 0
