"""
Persists the outcome of every completed request.

Each request produces exactly one row in `interactions`: the structured input,
the reply, the package that answered (empty when none did) and its route. Rows
are the audit trail, the source the context tracker reads the previous turn
from, and training material for later.

A failed write is fatal for the request: callers get InteractionLogError and
must not send the reply.
"""

import json
import logging
import sqlite3

from monitoring.metrics import track_errors
from services.database import connect, utcnow
from shared.errors import InteractionLogError
from shared.models import Input, InteractionRecord

logger = logging.getLogger(__name__)


class InteractionLogger:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def save(self, message_input: Input, reply: str, package_name: str, route: str) -> int:
        """Write one interaction record and return its row id."""
        return self.save_record(InteractionRecord(
            input=message_input,
            reply=reply,
            package_name=package_name or "",
            route=route or "",
        ))

    @track_errors('storage', 'interaction_logger')
    def save_record(self, record: InteractionRecord) -> int:
        si = record.input.structured_input
        try:
            with connect(self.db_path) as con:
                cur = con.execute(
                    """
                    INSERT INTO interactions (
                        user_id, flexid, flexidtype, command, confidence, scores,
                        sentence, reply, package_name, route, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.input.user_id,
                        record.input.flex_id,
                        int(record.input.flex_id_type),
                        si.command,
                        si.confidence,
                        json.dumps([[label, prob] for label, prob in si.scores]),
                        si.sentence,
                        record.reply,
                        record.package_name,
                        record.route,
                        utcnow().isoformat(),
                    ),
                )
                row_id = int(cur.lastrowid)
        except sqlite3.Error as e:
            raise InteractionLogError(f"could not save interaction: {e}") from e

        logger.debug(f"[InteractionLogger] Saved interaction {row_id} (package={record.package_name!r})")
        return row_id
