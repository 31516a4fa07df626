"""
Resolves the sender of a message to a known user.

Lookup order: the numeric user id when it is non-zero, otherwise the channel
address (FlexId + FlexIdType). "No such user" is an ordinary ABSENT result;
storage failures come back as FAILED so the orchestrator can log them and
carry on with an unresolved user.
"""

import logging
import sqlite3
from typing import Optional

from services.database import connect
from shared.models import FlexIdType, Input, Lookup, User

logger = logging.getLogger(__name__)


def _row_to_user(row) -> User:
    return User(id=int(row["id"]), name=row["name"], email=row["email"], created_at=row["created_at"])


class UserResolver:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def get_user(self, message_input: Input) -> Lookup[User]:
        """Look up the sender of `message_input`. Never mutates the input."""
        return self.lookup(
            user_id=message_input.user_id,
            flex_id=message_input.flex_id,
            flex_id_type=message_input.flex_id_type,
        )

    def lookup(
        self,
        user_id: int = 0,
        flex_id: Optional[str] = None,
        flex_id_type: FlexIdType = FlexIdType.NONE
    ) -> Lookup[User]:
        if not user_id and not flex_id:
            return Lookup.absent()
        try:
            with connect(self.db_path) as con:
                if user_id:
                    row = con.execute(
                        "SELECT id, name, email, created_at FROM users WHERE id = ?",
                        (int(user_id),),
                    ).fetchone()
                else:
                    row = con.execute(
                        """
                        SELECT u.id, u.name, u.email, u.created_at
                        FROM users u JOIN user_flexids f ON f.user_id = u.id
                        WHERE f.flexid = ? AND f.flexidtype = ?
                        """,
                        (flex_id, int(flex_id_type)),
                    ).fetchone()
        except sqlite3.Error as e:
            return Lookup.failed(e)

        if row is None:
            logger.debug(f"[UserResolver] No user for uid={user_id} flexid={flex_id!r} type={int(flex_id_type)}")
            return Lookup.absent()
        return Lookup.found(_row_to_user(row))
