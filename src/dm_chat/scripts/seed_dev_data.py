"""Create the schema and seed development users plus a short conversation."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from dm_chat.domain.entities.user import User
from dm_chat.infrastructure.db.base import Base
from dm_chat.infrastructure.db.models import MessageModel, UserModel  # noqa: F401
from dm_chat.infrastructure.db.repositories.user import UserWriterRepo
from dm_chat.infrastructure.db.session import AsyncSessionLocal, engine
from dm_chat.infrastructure.db.uow import SqlAlchemyUoW

logger = logging.getLogger(__name__)

USERS = [
    ("u1", "alice@example.com", "Alice Example"),
    ("u2", "bob@example.com", "Bob Example"),
    ("u3", "carol@example.com", "Carol Example"),
]

CONVERSATION = [
    ("u1", "u2", "Привет! Как дела?"),
    ("u2", "u1", "Hi Alice, all good here."),
    ("u1", "u2", "Great, talk later."),
]


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready")

    async with AsyncSessionLocal() as session:
        users = UserWriterRepo(session)
        now = datetime.now(timezone.utc)
        for user_id, email, full_name in USERS:
            await users.add(
                User(id=user_id, full_name=full_name, email=email, profile_pic="", created_at=now)
            )

        uow = SqlAlchemyUoW(session)
        for sender_id, receiver_id, content in CONVERSATION:
            await uow.messages_w.append(sender_id, receiver_id, content, None)

        await uow.commit()
        logger.info("Seeded %d users and %d messages", len(USERS), len(CONVERSATION))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
