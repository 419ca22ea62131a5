"""Reconciling optimistic messages with confirmed feed snapshots."""

from collections import defaultdict, deque
from dataclasses import replace
from datetime import datetime, timezone

from ..models import ChatMessage, MergeKey

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(message: ChatMessage) -> datetime:
    ts = message.timestamp
    if ts is None:
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def pending_by_key(messages: list[ChatMessage]) -> dict[MergeKey, deque[ChatMessage]]:
    """Optimistic entries grouped by (sender_id, body), in list order."""
    pending: dict[MergeKey, deque[ChatMessage]] = defaultdict(deque)
    for message in messages:
        if message.is_optimistic:
            pending[message.merge_key].append(message)
    return pending


def confirm(optimistic: ChatMessage, confirmed: ChatMessage) -> ChatMessage:
    """The confirmed message, wearing the optimistic entry's id."""
    return replace(
        confirmed,
        id=optimistic.id,
        confirmed_id=confirmed.id,
        is_optimistic=False,
    )


def merge_messages(
    previous: list[ChatMessage], incoming: list[ChatMessage]
) -> list[ChatMessage]:
    """
    Merge a full confirmed snapshot into the current message list.

    Each confirmed message whose (sender_id, body) matches a pending
    optimistic entry replaces the earliest such entry and keeps its id, so
    views keyed on id do not re-mount it. Optimistic entries nobody claimed
    stay in the list. Messages confirmed by an earlier snapshot are
    recognised by ``confirmed_id`` and keep their local id as well. The
    result is ordered by timestamp (stable).

    Identical text sent twice by the same sender is matched first-in,
    first-out; nothing else distinguishes the two.

    Args:
        previous: Current in-memory list (may contain optimistic entries).
        incoming: Full confirmed snapshot from the message feed.

    Returns:
        New merged list; inputs are not mutated.
    """
    if not previous:
        return list(incoming)

    pending = pending_by_key(previous)
    # Entries confirmed by an earlier snapshot keep their local id
    settled = {m.confirmed_id: m for m in previous if m.confirmed_id}

    merged: list[ChatMessage] = []
    for message in incoming:
        if message.is_optimistic:
            continue
        queue = pending.get(message.merge_key)
        if message.id in settled:
            merged.append(confirm(settled[message.id], message))
        elif queue:
            merged.append(confirm(queue.popleft(), message))
        else:
            merged.append(message)

    for queue in pending.values():
        merged.extend(queue)

    merged.sort(key=_sort_key)
    return merged
