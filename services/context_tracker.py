"""
Links a new message to the sender's previous turn.

A message continues the conversation when the same sender (same user id, or
same channel address for unresolved senders) had an interaction within the
recency window and the package that answered it left the exchange open by
returning a non-empty route. Continuations are sent back to that package with
its previous route, so a package can ask a follow-up question and receive the
answer. A package ends the exchange by answering with an empty route; the next
message is then routed from scratch.
"""

import datetime as _dt
import logging
import sqlite3
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from services.database import connect, utcnow
from shared.models import Lookup, Message

logger = logging.getLogger(__name__)


class ContextTracker:
    """
    Decide whether a message continues the previous exchange.

    Args:
        db_path (str): SQLite store holding the interactions table
        window_seconds (int): How old the previous turn may be and still count
        clock (Callable): Returns the current aware datetime; injectable for tests
    """

    def __init__(self, db_path: str, window_seconds: int = 300, clock: Callable[[], _dt.datetime] = utcnow):
        self.db_path = db_path
        self.window = _dt.timedelta(seconds=window_seconds)
        self.clock = clock

    def previous_interaction(self, message: Message) -> Optional[Dict[str, Any]]:
        """Most recent interaction of the same sender, or None. Storage errors propagate."""
        msg_input = message.input
        if msg_input.user_id:
            query = "SELECT * FROM interactions WHERE user_id = ? ORDER BY id DESC LIMIT 1"
            params = (msg_input.user_id,)
        elif msg_input.flex_id:
            query = ("SELECT * FROM interactions WHERE user_id = 0 AND flexid = ? AND flexidtype = ? "
                     "ORDER BY id DESC LIMIT 1")
            params = (msg_input.flex_id, int(msg_input.flex_id_type))
        else:
            return None

        with connect(self.db_path) as con:
            row = con.execute(query, params).fetchone()
        return dict(row) if row is not None else None

    def add_context(self, message: Message) -> Lookup[Message]:
        """
        Annotate `message` with its previous turn.

        Returns:
            Lookup[Message]: FOUND with a copy of the message marked as a
            continuation; ABSENT when there is nothing to continue (anonymous
            sender, no prior turn, prior turn too old, unhandled or closed);
            FAILED on storage errors or an unreadable timestamp. Timestamps
            without a timezone are read as UTC. The original message is never
            modified.
        """
        if message.input.is_anonymous:
            return Lookup.absent()
        try:
            previous = self.previous_interaction(message)
        except sqlite3.Error as e:
            return Lookup.failed(e)

        # An empty route means the package closed the exchange.
        if previous is None or not previous["package_name"] or not previous["route"]:
            return Lookup.absent()

        try:
            created_at = _dt.datetime.fromisoformat(previous["created_at"])
        except (TypeError, ValueError) as e:
            return Lookup.failed(e)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=_dt.timezone.utc)
        if self.clock() - created_at > self.window:
            logger.debug(f"[ContextTracker] Previous turn {previous['id']} is outside the window")
            return Lookup.absent()

        context = dict(message.context)
        context.update({
            "package_name": previous["package_name"],
            "route": previous["route"],
            "previous_sentence": previous["sentence"],
            "previous_reply": previous["reply"],
        })
        return Lookup.found(replace(message, continuation=True, context=context))
