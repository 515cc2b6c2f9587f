"""SQLite database manager for debate history."""

import json
import sqlite3
import logging
from pathlib import Path
from typing import Any, TypedDict
from contextlib import contextmanager
from datetime import datetime

from ..models import Intervention, InterruptionRecord, PhaseTransitionEvent, Utterance
from ..types import (
    DebatePhase,
    InterruptionOutcome,
    InterruptSource,
    InterventionStatus,
    InterventionType,
    Speaker,
    TransitionKind,
)
from .schema import SchemaManager

logger = logging.getLogger(__name__)


class DebateRecord(TypedDict):
    """Row of the debates table."""

    id: str
    proposition: str
    format: str
    lively: bool
    config: dict[str, Any]
    created_at: str


class DatabaseManager:
    """Manages SQLite connections and queries for utterances, interventions and transitions."""

    def __init__(self, db_path: str | Path = "debates.db"):
        self.db_path = Path(db_path)
        self.schema_manager = SchemaManager()
        self._init_database()

    def _init_database(self):
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._get_connection() as conn:
            cursor = conn.cursor()
            self.schema_manager.initialize_database_schema(cursor)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=10.0)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    # Debates

    def create_debate(
        self, debate_id: str, proposition: str, format_name: str, lively: bool, config: dict[str, Any]
    ) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT INTO debates (id, proposition, format, lively, config) VALUES (?, ?, ?, ?, ?)",
                (debate_id, proposition, format_name, int(lively), json.dumps(config)),
            )
            conn.commit()

    def get_debate(self, debate_id: str) -> DebateRecord | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM debates WHERE id = ?", (debate_id,)).fetchone()
        if row is None:
            return None
        return DebateRecord(
            id=row["id"],
            proposition=row["proposition"],
            format=row["format"],
            lively=bool(row["lively"]),
            config=json.loads(row["config"]),
            created_at=str(row["created_at"]),
        )

    # Utterances

    def insert_utterance(self, utterance: Utterance) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO utterances (debate_id, timestamp_ms, phase, speaker, content, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    utterance.debate_id,
                    utterance.timestamp_ms,
                    utterance.phase.value,
                    utterance.speaker.value,
                    utterance.content,
                    json.dumps(utterance.metadata),
                ),
            )
            conn.commit()
            utterance_id = cursor.lastrowid
        if utterance_id is None:
            raise RuntimeError("Failed to get utterance ID from database")
        return utterance_id

    def get_utterance(self, utterance_id: int) -> Utterance | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM utterances WHERE id = ?", (utterance_id,)).fetchone()
        return self._row_to_utterance(row) if row else None

    def list_utterances(self, debate_id: str) -> list[Utterance]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM utterances WHERE debate_id = ? ORDER BY timestamp_ms, id",
                (debate_id,),
            ).fetchall()
        return [self._row_to_utterance(row) for row in rows]

    def count_utterances(self, debate_id: str, phase: DebatePhase | None = None) -> int:
        query = "SELECT COUNT(*) FROM utterances WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if phase is not None:
            query += " AND phase = ?"
            params.append(phase.value)
        with self._get_connection() as conn:
            return conn.execute(query, params).fetchone()[0]

    def update_utterance_content(
        self, utterance_id: int, content: str, metadata: dict[str, Any]
    ) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE utterances SET content = ?, metadata = ? WHERE id = ?",
                (content, json.dumps(metadata), utterance_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_utterance(self, row: sqlite3.Row) -> Utterance:
        return Utterance(
            id=row["id"],
            debate_id=row["debate_id"],
            timestamp_ms=row["timestamp_ms"],
            phase=DebatePhase(row["phase"]),
            speaker=Speaker(row["speaker"]),
            content=row["content"],
            metadata=json.loads(row["metadata"]),
        )

    # Interventions

    def insert_intervention(
        self,
        debate_id: str,
        timestamp_ms: int,
        intervention_type: InterventionType,
        content: str,
        directed_to: Speaker | None,
    ) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO interventions (debate_id, timestamp_ms, intervention_type, content, directed_to, status)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    debate_id,
                    timestamp_ms,
                    intervention_type.value,
                    content,
                    directed_to.value if directed_to else None,
                    InterventionStatus.QUEUED.value,
                ),
            )
            conn.commit()
            intervention_id = cursor.lastrowid
        if intervention_id is None:
            raise RuntimeError("Failed to get intervention ID from database")
        return intervention_id

    def get_intervention(self, intervention_id: int) -> Intervention | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM interventions WHERE id = ?", (intervention_id,)
            ).fetchone()
        return self._row_to_intervention(row) if row else None

    def answer_intervention(self, intervention_id: int, response: str, response_timestamp_ms: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE interventions SET response = ?, response_timestamp_ms = ?, status = ?
                WHERE id = ?
                """,
                (response, response_timestamp_ms, InterventionStatus.COMPLETED.value, intervention_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def update_intervention_status(self, intervention_id: int, status: InterventionStatus) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE interventions SET status = ? WHERE id = ?",
                (status.value, intervention_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def list_interventions(
        self,
        debate_id: str,
        status: InterventionStatus | None = None,
        intervention_type: InterventionType | None = None,
        directed_to: Speaker | None = None,
    ) -> list[Intervention]:
        query = "SELECT * FROM interventions WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if intervention_type is not None:
            query += " AND intervention_type = ?"
            params.append(intervention_type.value)
        if directed_to is not None:
            query += " AND directed_to = ?"
            params.append(directed_to.value)
        query += " ORDER BY timestamp_ms, id"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_intervention(row) for row in rows]

    def delete_interventions(self, debate_id: str) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM interventions WHERE debate_id = ?", (debate_id,))
            conn.commit()
            return cursor.rowcount

    def _row_to_intervention(self, row: sqlite3.Row) -> Intervention:
        return Intervention(
            id=row["id"],
            debate_id=row["debate_id"],
            timestamp_ms=row["timestamp_ms"],
            intervention_type=InterventionType(row["intervention_type"]),
            content=row["content"],
            directed_to=Speaker(row["directed_to"]) if row["directed_to"] else None,
            response=row["response"],
            response_timestamp_ms=row["response_timestamp_ms"],
            status=InterventionStatus(row["status"]),
        )

    # Phase transitions

    def insert_phase_transition(self, event: PhaseTransitionEvent) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO phase_transitions (
                    debate_id, kind, from_phase, to_phase, speaker, occurred_at,
                    phase_elapsed_ms, total_elapsed_ms, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.debate_id,
                    event.kind.value,
                    event.from_phase.value,
                    event.to_phase.value,
                    event.speaker.value,
                    event.timestamp.isoformat(),
                    event.phase_elapsed_ms,
                    event.total_elapsed_ms,
                    event.error,
                ),
            )
            conn.commit()
            return cursor.lastrowid or 0

    def list_phase_transitions(self, debate_id: str) -> list[PhaseTransitionEvent]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM phase_transitions WHERE debate_id = ? ORDER BY id",
                (debate_id,),
            ).fetchall()
        return [
            PhaseTransitionEvent(
                debate_id=row["debate_id"],
                kind=TransitionKind(row["kind"]),
                from_phase=DebatePhase(row["from_phase"]),
                to_phase=DebatePhase(row["to_phase"]),
                speaker=Speaker(row["speaker"]),
                timestamp=datetime.fromisoformat(row["occurred_at"]),
                phase_elapsed_ms=row["phase_elapsed_ms"],
                total_elapsed_ms=row["total_elapsed_ms"],
                error=row["error"],
            )
            for row in rows
        ]

    # Lively mode

    def insert_interruption(self, record: InterruptionRecord) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO interruptions (
                    id, debate_id, requested_at_ms, phase, interrupter, interrupted_speaker,
                    source, content, outcome, score, relevance, contradiction, reason
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.debate_id,
                    record.requested_at_ms,
                    record.phase.value,
                    record.interrupter.value,
                    record.interrupted_speaker.value,
                    record.source.value,
                    record.content,
                    record.outcome.value,
                    record.score,
                    record.relevance,
                    record.contradiction,
                    record.reason,
                ),
            )
            conn.commit()

    def list_interruptions(
        self, debate_id: str, outcome: InterruptionOutcome | None = None
    ) -> list[InterruptionRecord]:
        query = "SELECT * FROM interruptions WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if outcome is not None:
            query += " AND outcome = ?"
            params.append(outcome.value)
        query += " ORDER BY requested_at_ms, rowid"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            InterruptionRecord(
                id=row["id"],
                debate_id=row["debate_id"],
                requested_at_ms=row["requested_at_ms"],
                phase=DebatePhase(row["phase"]),
                interrupter=Speaker(row["interrupter"]),
                interrupted_speaker=Speaker(row["interrupted_speaker"]),
                source=InterruptSource(row["source"]),
                content=row["content"],
                outcome=InterruptionOutcome(row["outcome"]),
                score=row["score"],
                relevance=row["relevance"],
                contradiction=row["contradiction"],
                reason=row["reason"],
            )
            for row in rows
        ]

    def save_lively_settings(self, debate_id: str, settings: dict[str, Any]) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO lively_settings (debate_id, settings, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(debate_id) DO UPDATE SET
                    settings = excluded.settings, updated_at = CURRENT_TIMESTAMP
                """,
                (debate_id, json.dumps(settings)),
            )
            conn.commit()

    def load_lively_settings(self, debate_id: str) -> dict[str, Any] | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT settings FROM lively_settings WHERE debate_id = ?", (debate_id,)
            ).fetchone()
        return json.loads(row["settings"]) if row else None


def get_database_path(configured: str | None = None) -> Path:
    """Resolve the database file path; AGORA_DB_PATH overrides the configured value."""
    import os

    return Path(os.environ.get("AGORA_DB_PATH") or configured or "debates.db")
