from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import select, func, or_, and_, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .models import (
    ROLE_ADMIN,
    ROLE_AI,
    DirectMessageModel,
    MessageModel,
    SyslogModel,
    UserModel,
)

logger = logging.getLogger("uvicorn.error")


# --------------------------
# Users
# --------------------------

# PUBLIC_INTERFACE
def create_user(
    db: Session,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: str = ROLE_AI,
    avatar_color: Optional[str] = None,
) -> UserModel:
    """Create a new user row.

    Raises IntegrityError (after rolling back) when the email is already taken.
    """
    user = UserModel(
        email=email.strip().lower(),
        password=password,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role,
        avatar_color=avatar_color,
        joined=datetime.utcnow(),
        benchmark_score=0,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(user)
    return user


# PUBLIC_INTERFACE
def get_user(db: Session, user_id: int) -> Optional[UserModel]:
    """Fetch a user by id."""
    return db.get(UserModel, user_id)


# PUBLIC_INTERFACE
def get_user_by_email(db: Session, email: str) -> Optional[UserModel]:
    """Fetch a user by email."""
    stmt = select(UserModel).where(func.lower(UserModel.email) == email.strip().lower())
    return db.execute(stmt).scalars().first()


# PUBLIC_INTERFACE
def list_users(db: Session) -> List[UserModel]:
    """All users, oldest first."""
    return list(db.execute(select(UserModel).order_by(UserModel.id)).scalars().all())


def count_users(db: Session) -> int:
    return db.execute(select(func.count(UserModel.id))).scalar_one()


# PUBLIC_INTERFACE
def ensure_default_admin(db: Session, email: str, password: str) -> Optional[UserModel]:
    """Create the default admin if no admin exists. Returns the new row or None.

    When a non-admin account already owns the email the seed is skipped.
    """
    existing = db.execute(select(UserModel).where(UserModel.role == ROLE_ADMIN)).scalars().first()
    if existing:
        return None
    try:
        return create_user(
            db,
            email=email,
            password=password,
            first_name="System",
            last_name="Administrator",
            role=ROLE_ADMIN,
            avatar_color="#ff4d4d",
        )
    except IntegrityError:
        logger.warning(f"Default admin not created: {email} is already registered as an agent")
        return None


# PUBLIC_INTERFACE
def update_profile(db: Session, user: UserModel, fields: Dict[str, Any]) -> UserModel:
    """Apply editable profile fields to a user."""
    for key in ("model_name", "context_size", "temperature", "skills", "bio", "avatar_color"):
        if key in fields:
            setattr(user, key, fields[key])
    db.commit()
    db.refresh(user)
    return user


# PUBLIC_INTERFACE
def set_benchmark_score(db: Session, user: UserModel, score: int) -> UserModel:
    """Store the latest benchmark score for a user."""
    user.benchmark_score = score
    db.commit()
    db.refresh(user)
    return user


# PUBLIC_INTERFACE
def delete_user(db: Session, user_id: int) -> Tuple[bool, List[str]]:
    """Delete a user with their messages, replies to those messages and DMs.

    Returns (deleted, attachment_paths) so the caller can remove files from disk.
    """
    user = db.get(UserModel, user_id)
    if user is None:
        return False, []
    own_ids = select(MessageModel.id).where(MessageModel.user_id == user_id)
    doomed = db.execute(
        select(MessageModel).where(or_(MessageModel.user_id == user_id, MessageModel.parent_id.in_(own_ids)))
    ).scalars().all()
    paths = [m.file_path for m in doomed if m.file_path]
    doomed_ids = [m.id for m in doomed]
    if doomed_ids:
        # replies first, then top-level rows
        db.execute(delete(MessageModel).where(MessageModel.parent_id.in_(doomed_ids)))
        db.execute(delete(MessageModel).where(MessageModel.id.in_(doomed_ids)))
    db.execute(
        delete(DirectMessageModel).where(
            or_(DirectMessageModel.sender_id == user_id, DirectMessageModel.recipient_id == user_id)
        )
    )
    db.delete(user)
    db.commit()
    return True, paths


# --------------------------
# Messages
# --------------------------

# PUBLIC_INTERFACE
def create_message(
    db: Session,
    user_id: int,
    content: str,
    msg_type: str = "chat",
    parent_id: Optional[int] = None,
    file_path: Optional[str] = None,
    file_type: Optional[str] = None,
    is_ghost: bool = False,
) -> MessageModel:
    """Insert a message. A reply to a reply is attached to the top-level message."""
    if parent_id is not None:
        parent = db.get(MessageModel, parent_id)
        if parent is None:
            raise LookupError(f"parent message {parent_id} not found")
        if parent.parent_id is not None:
            parent_id = parent.parent_id
    msg = MessageModel(
        user_id=user_id,
        content=content,
        msg_type=msg_type,
        parent_id=parent_id,
        timestamp=datetime.utcnow(),
        integrity=100,
        file_path=file_path,
        file_type=file_type,
        is_ghost=is_ghost,
    )
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


def get_message(db: Session, message_id: int) -> Optional[MessageModel]:
    return db.get(MessageModel, message_id)


def count_messages(db: Session) -> int:
    return db.execute(select(func.count(MessageModel.id))).scalar_one()


# PUBLIC_INTERFACE
def list_feed(db: Session, limit: int = 100) -> List[Tuple[MessageModel, List[MessageModel]]]:
    """Top-level messages newest first, each with its replies oldest first."""
    stmt = (
        select(MessageModel)
        .options(joinedload(MessageModel.author))
        .where(MessageModel.parent_id.is_(None))
        .order_by(MessageModel.timestamp.desc(), MessageModel.id.desc())
        .limit(limit)
    )
    posts = list(db.execute(stmt).scalars().all())
    if not posts:
        return []
    replies_stmt = (
        select(MessageModel)
        .options(joinedload(MessageModel.author))
        .where(MessageModel.parent_id.in_([p.id for p in posts]))
        .order_by(MessageModel.timestamp.asc(), MessageModel.id.asc())
    )
    grouped: Dict[int, List[MessageModel]] = {p.id: [] for p in posts}
    for reply in db.execute(replies_stmt).scalars().all():
        grouped[reply.parent_id].append(reply)
    return [(p, grouped[p.id]) for p in posts]


# PUBLIC_INTERFACE
def adjust_integrity(db: Session, message_id: int, delta: int) -> Optional[MessageModel]:
    """Move a message's integrity counter by delta, never below zero."""
    msg = db.get(MessageModel, message_id)
    if msg is None:
        return None
    msg.integrity = max(0, (msg.integrity or 0) + delta)
    db.commit()
    db.refresh(msg)
    return msg


# PUBLIC_INTERFACE
def delete_message(db: Session, message_id: int) -> Tuple[bool, List[str]]:
    """Delete a message and its replies. Returns (deleted, attachment_paths)."""
    msg = db.get(MessageModel, message_id)
    if msg is None:
        return False, []
    replies = db.execute(select(MessageModel).where(MessageModel.parent_id == message_id)).scalars().all()
    paths = [m.file_path for m in [msg, *replies] if m.file_path]
    db.execute(delete(MessageModel).where(MessageModel.parent_id == message_id))
    db.delete(msg)
    db.commit()
    return True, paths


# PUBLIC_INTERFACE
def list_legacy_attachment_rows(db: Session) -> List[MessageModel]:
    """Messages holding an inline attachment and no file reference."""
    stmt = (
        select(MessageModel)
        .where(and_(MessageModel.image_data.is_not(None), MessageModel.image_data != ""))
        .where(or_(MessageModel.file_path.is_(None), MessageModel.file_path == ""))
        .order_by(MessageModel.id)
    )
    return list(db.execute(stmt).scalars().all())


# --------------------------
# Direct messages
# --------------------------

# PUBLIC_INTERFACE
def send_direct_message(db: Session, sender_id: int, recipient_id: int, content: str) -> DirectMessageModel:
    """Insert a direct message."""
    dm = DirectMessageModel(
        sender_id=sender_id,
        recipient_id=recipient_id,
        content=content,
        timestamp=datetime.utcnow(),
        is_read=False,
    )
    db.add(dm)
    db.commit()
    db.refresh(dm)
    return dm


# PUBLIC_INTERFACE
def list_conversation(db: Session, user_id: int, other_id: int) -> List[DirectMessageModel]:
    """Both directions of a DM thread, oldest first."""
    stmt = (
        select(DirectMessageModel)
        .where(
            or_(
                and_(DirectMessageModel.sender_id == user_id, DirectMessageModel.recipient_id == other_id),
                and_(DirectMessageModel.sender_id == other_id, DirectMessageModel.recipient_id == user_id),
            )
        )
        .order_by(DirectMessageModel.timestamp.asc(), DirectMessageModel.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


# PUBLIC_INTERFACE
def mark_thread_read(db: Session, reader_id: int, other_id: int) -> int:
    """Mark messages from other_id to reader_id as read. Returns the row count."""
    result = db.execute(
        update(DirectMessageModel)
        .where(DirectMessageModel.sender_id == other_id)
        .where(DirectMessageModel.recipient_id == reader_id)
        .where(DirectMessageModel.is_read.is_(False))
        .values(is_read=True)
    )
    db.commit()
    return result.rowcount or 0


def count_unread(db: Session, user_id: int) -> int:
    stmt = select(func.count(DirectMessageModel.id)).where(
        DirectMessageModel.recipient_id == user_id, DirectMessageModel.is_read.is_(False)
    )
    return db.execute(stmt).scalar_one()


# PUBLIC_INTERFACE
def inbox_summary(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """One entry per counterpart: {user, last, unread}, most recent thread first."""
    stmt = (
        select(DirectMessageModel)
        .where(or_(DirectMessageModel.sender_id == user_id, DirectMessageModel.recipient_id == user_id))
        .order_by(DirectMessageModel.timestamp.desc(), DirectMessageModel.id.desc())
    )
    threads: Dict[int, Dict[str, Any]] = {}
    for dm in db.execute(stmt).scalars().all():
        other_id = dm.recipient_id if dm.sender_id == user_id else dm.sender_id
        entry = threads.get(other_id)
        if entry is None:
            entry = {"user": get_user(db, other_id), "last": dm, "unread": 0}
            threads[other_id] = entry
        if dm.recipient_id == user_id and not dm.is_read:
            entry["unread"] += 1
    return [t for t in threads.values() if t["user"] is not None]


# --------------------------
# System log
# --------------------------

# PUBLIC_INTERFACE
def add_syslog_entry(db: Session, level: str, text: str) -> SyslogModel:
    """Append a line to the system log table."""
    entry = SyslogModel(timestamp=datetime.utcnow(), level=level.upper(), text=text)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


# PUBLIC_INTERFACE
def list_syslog(db: Session, limit: int = 200) -> List[SyslogModel]:
    """Latest system log lines, newest first."""
    stmt = select(SyslogModel).order_by(SyslogModel.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())
