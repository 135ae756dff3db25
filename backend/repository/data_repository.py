"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from backend.domain.constraints import validate_room
from backend.domain.models import AuditEntry, Room
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


SYNTHETIC_ROOMS: tuple[Room, ...] = (
    Room("STD", "Standard Queen", 129.0, 0.72, (139.0, 125.0, 149.0)),
    Room("DLX", "Deluxe King", 179.0, 0.64, (189.0, 175.0, 199.0)),
    Room("TWN", "Twin Room", 119.0, 0.48, (109.0, 115.0)),
    Room("FAM", "Family Suite", 249.0, 0.55, (259.0, 239.0, 269.0)),
    Room("EXE", "Executive Suite", 329.0, 0.81, (349.0, 339.0)),
    Room("ECO", "Economy Single", 79.0, 0.37, ()),
)


class RepositoryError(RuntimeError):
    """Raised when the room collection or audit log cannot be read or written."""


class StaleCollectionError(RepositoryError):
    """Raised when the room collection changed since it was loaded."""


@dataclass(frozen=True)
class RoomSnapshot:
    """Room collection together with the version it was read at."""

    rooms: list[Room]
    version: int


class DataRepository:
    """Encapsulates SQLite access so pricing logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        current_price REAL NOT NULL CHECK (current_price > 0),
                        occupancy REAL NOT NULL CHECK (occupancy BETWEEN 0 AND 1),
                        position INTEGER NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS CompetitorPrices (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id TEXT NOT NULL,
                        position INTEGER NOT NULL,
                        price REAL NOT NULL CHECK (price > 0),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE CASCADE
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS CollectionState (
                        id INTEGER PRIMARY KEY CHECK (id = 1),
                        version INTEGER NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS AuditLog (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        recorded_at TEXT NOT NULL,
                        operator TEXT NOT NULL,
                        prompt TEXT,
                        intent TEXT NOT NULL,
                        applied_count INTEGER NOT NULL,
                        payload TEXT NOT NULL
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_competitor_prices_room_position
                    ON CompetitorPrices(room_id, position);
                    """
                )

                cursor.execute(
                    "INSERT OR IGNORE INTO CollectionState (id, version) VALUES (1, 0);"
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Database initialization failed: {exc}") from exc

    def seed_synthetic_rooms(self) -> int:
        """Seed the demo room collection only when the Rooms table is empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                room_count = int(cursor.fetchone()["count"])
            if room_count > 0:
                logger.info("Room collection already present; skipping seed")
                return 0
        except sqlite3.Error as exc:
            raise RepositoryError(f"Synthetic room seeding failed: {exc}") from exc

        self.replace_rooms(list(SYNTHETIC_ROOMS))
        logger.info("Synthetic seed completed with %s rooms", len(SYNTHETIC_ROOMS))
        return len(SYNTHETIC_ROOMS)

    def _read_rooms(self, cursor: sqlite3.Cursor) -> list[Room]:
        cursor.execute(
            """
            SELECT id, name, current_price, occupancy
            FROM Rooms
            ORDER BY position ASC, id ASC;
            """
        )
        room_rows = cursor.fetchall()

        cursor.execute(
            """
            SELECT room_id, price
            FROM CompetitorPrices
            ORDER BY room_id ASC, position ASC;
            """
        )
        prices_by_room: dict[str, list[float]] = {}
        for row in cursor.fetchall():
            prices_by_room.setdefault(str(row["room_id"]), []).append(float(row["price"]))

        return [
            Room(
                room_id=str(row["id"]),
                name=str(row["name"]),
                current_price=float(row["current_price"]),
                occupancy=float(row["occupancy"]),
                competitor_prices=tuple(prices_by_room.get(str(row["id"]), ())),
            )
            for row in room_rows
        ]

    @staticmethod
    def _read_version(cursor: sqlite3.Cursor) -> int:
        cursor.execute("SELECT version FROM CollectionState WHERE id = 1;")
        row = cursor.fetchone()
        return 0 if row is None else int(row["version"])

    def load_rooms(self) -> list[Room]:
        """Load the full room collection in display order."""
        return self.load_snapshot().rooms

    def load_snapshot(self) -> RoomSnapshot:
        """Read rooms and collection version inside one transaction."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                rooms = self._read_rooms(cursor)
                version = self._read_version(cursor)
            return RoomSnapshot(rooms=rooms, version=version)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to load room collection: {exc}") from exc

    def get_collection_version(self) -> int:
        try:
            with self._connect() as conn:
                return self._read_version(conn.cursor())
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to read collection version: {exc}") from exc

    def replace_rooms(
        self,
        rooms: Sequence[Room],
        expected_version: Optional[int] = None,
    ) -> int:
        """Persist the full collection (not a diff) and return the new version.

        When ``expected_version`` is given the write only happens if no other
        writer bumped the version since that snapshot was taken.
        """
        for room in rooms:
            try:
                validate_room(room)
            except ValueError as exc:
                raise RepositoryError(str(exc)) from exc

        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                if expected_version is None:
                    cursor.execute(
                        "UPDATE CollectionState SET version = version + 1 WHERE id = 1;"
                    )
                else:
                    cursor.execute(
                        """
                        UPDATE CollectionState
                        SET version = version + 1
                        WHERE id = 1 AND version = ?;
                        """,
                        (expected_version,),
                    )
                    if cursor.rowcount != 1:
                        conn.rollback()
                        raise StaleCollectionError(
                            "Room collection changed since it was loaded "
                            f"(expected version {expected_version})"
                        )

                cursor.execute("DELETE FROM CompetitorPrices;")
                cursor.execute("DELETE FROM Rooms;")
                cursor.executemany(
                    """
                    INSERT INTO Rooms (id, name, current_price, occupancy, position)
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    [
                        (room.room_id, room.name, room.current_price, room.occupancy, position)
                        for position, room in enumerate(rooms)
                    ],
                )
                cursor.executemany(
                    """
                    INSERT INTO CompetitorPrices (room_id, position, price)
                    VALUES (?, ?, ?);
                    """,
                    [
                        (room.room_id, position, price)
                        for room in rooms
                        for position, price in enumerate(room.competitor_prices)
                    ],
                )
                version = self._read_version(cursor)
                conn.commit()
            logger.info(
                "Room collection persisted | rooms=%s | version=%s",
                len(rooms),
                version,
            )
            return version
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to persist room collection: {exc}") from exc

    def append_audit_entry(self, entry: AuditEntry) -> int:
        """Append one audit record and return its row id."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO AuditLog (
                        recorded_at,
                        operator,
                        prompt,
                        intent,
                        applied_count,
                        payload
                    )
                    VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        entry.recorded_at,
                        entry.operator,
                        entry.prompt,
                        entry.intent,
                        len(entry.applied),
                        json.dumps(entry.to_dict()),
                    ),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to append audit entry: {exc}") from exc

    def list_audit_entries(self, limit: int = 50) -> list[dict[str, Any]]:
        """Return the most recent audit entries, newest first."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT payload FROM AuditLog ORDER BY id DESC LIMIT ?;",
                    (limit,),
                )
                return [json.loads(row["payload"]) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to read audit log: {exc}") from exc

    def count_audit_entries(self) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM AuditLog;")
                return int(cursor.fetchone()["count"])
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to count audit entries: {exc}") from exc
