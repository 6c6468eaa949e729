"""
Storage Module

SQLite persistence for raw device tracks and generated reports, via
aiosqlite. The engine never touches this module; the pipeline reads
ordered tracks from it and writes finished reports back.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from .models import LocationMethod, LocationPoint


logger = logging.getLogger(__name__)


def encode_time(dt: datetime) -> str:
    """Encode a timestamp as a lexically sortable UTC string."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def decode_time(value: str | None) -> datetime | None:
    """Decode a stored timestamp; None stays None."""
    if value is None:
        return None
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TrackRecord:
    """A stored track row; location fields may be missing."""
    id: int
    device_id: int
    latitude: float | None
    longitude: float | None
    device_time: datetime | None
    motion: bool | None
    method: str | None
    accuracy: float | None

    @property
    def is_locatable(self) -> bool:
        """True when the row carries coordinates and a device time."""
        return (
            self.latitude is not None
            and self.longitude is not None
            and self.device_time is not None
        )

    def to_point(self) -> LocationPoint:
        """
        Convert to a LocationPoint.

        Unknown methods count as GPS and a missing motion flag as stationary.
        """
        return LocationPoint(
            latitude=self.latitude,
            longitude=self.longitude,
            timestamp=self.device_time,
            motion=bool(self.motion),
            method=LocationMethod.WIFI if self.method == "wifi" else LocationMethod.GPS,
            accuracy=self.accuracy,
        )


class TrackStore:
    """
    SQLite-backed store for device tracks and AI reports.
    """

    def __init__(self, db_path: str | Path = ".data/track_report.db"):
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables if needed."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS tracks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_id INTEGER NOT NULL,
                    latitude REAL,
                    longitude REAL,
                    device_time TEXT,
                    motion INTEGER,
                    method TEXT,
                    accuracy REAL
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_tracks_device_time
                ON tracks(device_id, device_time)
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS ai_reports (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_id INTEGER NOT NULL,
                    summary TEXT NOT NULL,
                    confidence INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            await db.commit()

        self._initialized = True
        logger.info(f"Track store initialized at {self.db_path}")

    async def add_track(
        self,
        device_id: int,
        latitude: float | None = None,
        longitude: float | None = None,
        device_time: datetime | None = None,
        motion: bool | None = None,
        method: str | None = None,
        accuracy: float | None = None,
    ) -> int:
        """
        Record one track sample.

        Returns:
            Row id of the new track
        """
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO tracks
                (device_id, latitude, longitude, device_time, motion, method, accuracy)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    device_id,
                    latitude,
                    longitude,
                    encode_time(device_time) if device_time else None,
                    None if motion is None else int(motion),
                    method,
                    accuracy,
                ),
            )
            await db.commit()
            return cursor.lastrowid

    async def add_point(self, device_id: int, point: LocationPoint) -> int:
        """Record a validated location point as a track."""
        return await self.add_track(
            device_id,
            latitude=point.latitude,
            longitude=point.longitude,
            device_time=point.timestamp,
            motion=point.motion,
            method=point.method.value if point.method else None,
            accuracy=point.accuracy,
        )

    async def fetch_tracks(
        self,
        device_id: int,
        start: datetime,
        end: datetime,
    ) -> list[TrackRecord]:
        """
        Tracks of a device within [start, end], oldest first.

        Rows without a device time never match a range.
        """
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                """
                SELECT id, device_id, latitude, longitude, device_time, motion, method, accuracy
                FROM tracks
                WHERE device_id = ? AND device_time >= ? AND device_time <= ?
                ORDER BY device_time ASC, id ASC
                """,
                (device_id, encode_time(start), encode_time(end)),
            ) as cursor:
                rows = await cursor.fetchall()

        records = [
            TrackRecord(
                id=row[0],
                device_id=row[1],
                latitude=row[2],
                longitude=row[3],
                device_time=decode_time(row[4]),
                motion=None if row[5] is None else bool(row[5]),
                method=row[6],
                accuracy=row[7],
            )
            for row in rows
        ]
        logger.debug(f"Fetched {len(records)} tracks for device {device_id}")
        return records

    async def save_report(
        self,
        device_id: int,
        summary: dict[str, Any],
        confidence: int,
    ) -> int:
        """
        Persist a structured report.

        Returns:
            Row id of the stored report
        """
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO ai_reports (device_id, summary, confidence, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    device_id,
                    json.dumps(summary, default=str),
                    confidence,
                    encode_time(datetime.now(timezone.utc)),
                ),
            )
            await db.commit()
            report_id = cursor.lastrowid

        logger.info(f"Stored report {report_id} for device {device_id}")
        return report_id

    async def get_report(self, report_id: int) -> dict[str, Any] | None:
        """Load a stored report, or None if it does not exist."""
        await self.initialize()

        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT id, device_id, summary, confidence, created_at FROM ai_reports WHERE id = ?",
                (report_id,),
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return None

        return {
            "id": row[0],
            "device_id": row[1],
            "summary": json.loads(row[2]),
            "confidence": row[3],
            "created_at": decode_time(row[4]),
        }
