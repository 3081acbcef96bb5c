"""Rule store for LinkPure.

This module provides SQLite-based persistence for the user's rule list.
The rule engine never touches the store: callers read the current rule
list from here and pass it to the resolver, and pass edited or imported
records back in. List order is significant and kept in a position column.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Optional, Sequence

from linkpure.core.exceptions import DuplicateIdError, RuleNotFoundError, StorageError
from linkpure.core.models import RuleRecord, RuleTestCase


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class RuleStore:
    """SQLite store for an ordered rule list.

    Rules are serialized column by column, with JSON for list fields.
    """

    def __init__(self, db_path: Path):
        """Initialize store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def init_db(self) -> None:
        """Create the schema if needed.

        Raises:
            StorageError: If the schema cannot be created
        """
        try:
            conn = self._get_connection()
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version >= SCHEMA_VERSION:
                return

            conn.execute("""
                CREATE TABLE IF NOT EXISTS rules (
                    id TEXT PRIMARY KEY,
                    position INTEGER NOT NULL,
                    regex_filter TEXT NOT NULL,
                    regex_substitution TEXT,
                    remove_params TEXT NOT NULL DEFAULT '[]',
                    enabled INTEGER NOT NULL DEFAULT 1,
                    tests TEXT NOT NULL DEFAULT '[]'
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_rules_position ON rules(position)")
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            conn.commit()
            logger.info(f"Initialized rule store at {self.db_path}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize rule store: {e}") from e

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_rules(self) -> list[RuleRecord]:
        """Return all rules in list order.

        Raises:
            StorageError: If retrieval fails
        """
        try:
            rows = self._get_connection().execute(
                "SELECT * FROM rules ORDER BY position"
            ).fetchall()
            return [self._row_to_rule(row) for row in rows]
        except (sqlite3.Error, ValueError) as e:
            raise StorageError(f"Failed to list rules: {e}") from e

    def enabled_rules(self) -> list[RuleRecord]:
        """Return the enabled rules in list order."""
        return [rule for rule in self.list_rules() if rule.enabled]

    def get_rule(self, rule_id: str) -> Optional[RuleRecord]:
        try:
            row = self._get_connection().execute(
                "SELECT * FROM rules WHERE id = ?", (rule_id,)
            ).fetchone()
            return self._row_to_rule(row) if row else None
        except (sqlite3.Error, ValueError) as e:
            raise StorageError(f"Failed to retrieve rule {rule_id}: {e}") from e

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert_rule(self, rule: RuleRecord, *, prepend: bool = True) -> None:
        """Add a rule at the top (default) or bottom of the list.

        Raises:
            DuplicateIdError: If a rule with the same id exists
            StorageError: If the insert fails
        """
        self.insert_rules([rule], prepend=prepend)

    def insert_rules(self, rules: Sequence[RuleRecord], *, prepend: bool = True) -> None:
        """Add several rules in one transaction, keeping their order.

        Either every rule is stored or none is.

        Raises:
            DuplicateIdError: If any id already exists or repeats
            StorageError: If the insert fails
        """
        if not rules:
            return

        conn = self._get_connection()
        try:
            ids = [rule.id for rule in rules]
            if len(set(ids)) != len(ids):
                raise DuplicateIdError("Rules to insert contain repeated ids")

            placeholders = ",".join("?" for _ in ids)
            existing = conn.execute(
                f"SELECT id FROM rules WHERE id IN ({placeholders})", ids
            ).fetchall()
            if existing:
                taken = ", ".join(row["id"] for row in existing)
                raise DuplicateIdError(f"Rule id already exists: {taken}")

            low, high = conn.execute(
                "SELECT MIN(position), MAX(position) FROM rules"
            ).fetchone()
            if prepend:
                start = (low if low is not None else 0) - len(rules)
            else:
                start = (high if high is not None else -1) + 1

            for offset, rule in enumerate(rules):
                conn.execute(
                    """
                    INSERT INTO rules (
                        id, position, regex_filter, regex_substitution,
                        remove_params, enabled, tests
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    self._insert_params(rule, start + offset),
                )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to insert rules: {e}") from e

    def update_rule(self, rule: RuleRecord) -> None:
        """Replace the rule with the same id, keeping its position.

        Raises:
            RuleNotFoundError: If no rule has this id
            StorageError: If the update fails
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE rules SET
                    regex_filter = ?,
                    regex_substitution = ?,
                    remove_params = ?,
                    enabled = ?,
                    tests = ?
                WHERE id = ?
                """,
                (*self._rule_columns(rule), rule.id),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to update rule {rule.id}: {e}") from e

        if cursor.rowcount == 0:
            raise RuleNotFoundError(f"Rule not found: {rule.id}")

    def set_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a rule.

        Raises:
            RuleNotFoundError: If no rule has this id
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "UPDATE rules SET enabled = ? WHERE id = ?",
                (int(enabled), rule_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to toggle rule {rule_id}: {e}") from e

        if cursor.rowcount == 0:
            raise RuleNotFoundError(f"Rule not found: {rule_id}")

    def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule by id.

        Returns:
            True if a rule was deleted, False if none matched
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM rules WHERE id = ?", (rule_id,))
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to delete rule {rule_id}: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        self.init_db()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def _rule_columns(rule: RuleRecord) -> tuple:
        return (
            rule.match_pattern,
            rule.substitution,
            json.dumps(rule.remove_params),
            int(rule.enabled),
            json.dumps([case.to_dict() for case in rule.tests]),
        )

    def _insert_params(self, rule: RuleRecord, position: int) -> tuple:
        return (rule.id, position, *self._rule_columns(rule))

    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> RuleRecord:
        tests = [
            RuleTestCase(from_url=case["from"], to_url=case["to"])
            for case in json.loads(row["tests"])
        ]
        return RuleRecord(
            id=row["id"],
            match_pattern=row["regex_filter"],
            substitution=row["regex_substitution"],
            remove_params=json.loads(row["remove_params"]),
            enabled=bool(row["enabled"]),
            tests=tests,
        )
