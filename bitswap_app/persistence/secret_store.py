"""Secret persistence layer scoped per identity.

Losing a secret before the counter-leg is claimed means losing funds, so
every write is committed before the commitment is handed out, and every
storage failure is raised rather than swallowed.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog

from ..errors import CommitmentReuseError, PersistenceError


@dataclass
class StoredCommitment:
    """Stored commitment metadata. Never carries the secret itself."""
    identity: str
    commitment_hash: str
    created_at: str


class SecretStore:
    """SQLite-based secret persistence keyed by (identity, commitment hash)."""

    def __init__(self, db_path: str = "secrets.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("secret.store")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS secrets (
                    identity TEXT NOT NULL,
                    commitment_hash TEXT NOT NULL,
                    secret TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (identity, commitment_hash)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_secrets_created_at ON secrets(created_at)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.IntegrityError:
            if conn:
                conn.rollback()
            raise
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", db_path=str(self.db_path), error=str(e))
            raise PersistenceError(f"Database error: {e}", operation="connect",
                                   target=str(self.db_path)) from e
        finally:
            if conn:
                conn.close()

    def store_secret(self, identity: str, commitment_hash: bytes, secret: bytes) -> None:
        """
        Persist a secret. Each (identity, commitment) is written at most once.

        Raises:
            CommitmentReuseError: If the commitment was already stored
            PersistenceError: If the write could not be committed
        """
        hash_hex = commitment_hash.hex()

        with self._lock:
            try:
                with self._get_connection() as conn:
                    conn.execute("""
                        INSERT INTO secrets (identity, commitment_hash, secret, created_at)
                        VALUES (?, ?, ?, ?)
                    """, (
                        identity,
                        hash_hex,
                        secret.hex(),
                        datetime.now(timezone.utc).isoformat(),
                    ))
                    conn.commit()
            except sqlite3.IntegrityError as e:
                raise CommitmentReuseError(
                    "Commitment already stored for this identity",
                    commitment_hash=hash_hex,
                ) from e

        self.logger.info("Secret stored", identity=identity, commitment_hash=hash_hex)

    def get_secret(self, identity: str, commitment_hash: bytes) -> Optional[bytes]:
        """Return the stored secret, or None if this identity has none for the hash."""
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT secret FROM secrets WHERE identity = ? AND commitment_hash = ?
            """, (identity, commitment_hash.hex())).fetchone()

        if row is None:
            return None
        return bytes.fromhex(row["secret"])

    def has_commitment(self, identity: str, commitment_hash: bytes) -> bool:
        """True if a secret is stored for the commitment."""
        with self._get_connection() as conn:
            count = conn.execute("""
                SELECT COUNT(*) FROM secrets WHERE identity = ? AND commitment_hash = ?
            """, (identity, commitment_hash.hex())).fetchone()[0]
        return count > 0

    def purge_secret(self, identity: str, commitment_hash: bytes) -> bool:
        """Delete a secret once its swap is settled. Returns True if one was removed."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    DELETE FROM secrets WHERE identity = ? AND commitment_hash = ?
                """, (identity, commitment_hash.hex()))
                conn.commit()
                deleted = cursor.rowcount > 0

        if deleted:
            self.logger.info("Secret purged", identity=identity,
                             commitment_hash=commitment_hash.hex())
        return deleted

    def list_commitments(self, identity: str) -> list[StoredCommitment]:
        """All commitments stored for an identity, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT identity, commitment_hash, created_at FROM secrets
                WHERE identity = ? ORDER BY created_at
            """, (identity,)).fetchall()

        return [self._row_to_stored_commitment(row) for row in rows]

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics."""
        with self._get_connection() as conn:
            total_count = conn.execute("SELECT COUNT(*) FROM secrets").fetchone()[0]

            by_identity = {}
            for row in conn.execute("""
                SELECT identity, COUNT(*) as count FROM secrets GROUP BY identity
            """):
                by_identity[row[0]] = row[1]

        return {
            "total_secrets": total_count,
            "secrets_by_identity": by_identity,
        }

    def _row_to_stored_commitment(self, row: sqlite3.Row) -> StoredCommitment:
        """Convert database row to StoredCommitment object."""
        return StoredCommitment(
            identity=row["identity"],
            commitment_hash=row["commitment_hash"],
            created_at=row["created_at"],
        )
