"""Translate driver-level failures into application errors."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from dm_chat.application.exceptions import TransportError, ValidationError

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        # A row the write depends on is gone (e.g. a user removed meanwhile).
        logger.warning("Message store %s rejected by constraint: %s", operation, exc.orig)
        raise ValidationError("Message references an unknown user") from exc
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Message store %s failed: %s", operation, exc)
        raise TransportError(f"Message store unavailable ({operation})") from exc
