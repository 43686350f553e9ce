import uuid
from datetime import datetime
from typing import Type

from core.date_helper import utcnow
from models.enums import ActorKind


def record_transition(
    entity,
    history_cls: Type,
    status,
    *,
    actor_id: uuid.UUID | None,
    note: str = "",
    now: datetime | None = None,
):
    """Set ``entity.status`` and append the matching history row.

    ``actor_id=None`` means the system acted; the row is tagged
    ``ActorKind.SYSTEM`` instead of carrying a bare null.
    Entry timestamps never go backwards, even if the clock does.
    """
    now = now or utcnow()
    history = entity.history
    if history and history[-1].at and history[-1].at > now:
        now = history[-1].at

    entity.status = status
    entry = history_cls(
        status=status,
        at=now,
        by_id=actor_id,
        actor_kind=ActorKind.USER if actor_id else ActorKind.SYSTEM,
        note=str(note or ""),
    )
    history.append(entry)
    return entry
