from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from storefront.realtime.hub import get_realtime_hub

logger = logging.getLogger(__name__)

_PENDING_KEY = "storefront.realtime.pending"


def enqueue_event(session: Session, channel: str, event_name: str, payload: dict[str, Any]) -> None:
    """Queue a broadcast that is sent only once ``session`` commits."""
    session.info.setdefault(_PENDING_KEY, []).append((channel, event_name, dict(payload)))


def pending_events(session: Session) -> list[tuple[str, str, dict[str, Any]]]:
    return list(session.info.get(_PENDING_KEY, []))


@event.listens_for(Session, "after_commit")
def _broadcast_after_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    if not pending:
        return
    hub = get_realtime_hub()
    for channel, event_name, payload in pending:
        hub.broadcast(channel, event_name, payload)


@event.listens_for(Session, "after_soft_rollback")
def _discard_after_rollback(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(_PENDING_KEY, [])
    if dropped:
        logger.debug("dropped %s realtime event(s) on rollback", len(dropped))
