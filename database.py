# database.py (quiz scores, SQLite)
import json
import logging
import os
import sqlite3
import time
from contextlib import closing
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class ScoreStoreError(Exception):
    """The score database (or a legacy score file) could not be read or written."""


def now_millis():
    return int(time.time() * 1000)


def iso_timestamp(millis=None):
    """UTC ISO-8601 with milliseconds and a trailing Z, e.g. 2025-01-31T12:00:00.123Z."""
    if millis is None:
        millis = now_millis()
    moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis % 1000:03d}Z"


def _connect(db_file):
    return sqlite3.connect(db_file, timeout=10)


def init_db(db_file, legacy_file=None):
    """Create the scores table and import a legacy scores.json when the table is empty."""
    try:
        with closing(_connect(db_file)) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id INTEGER NOT NULL,
                    score TEXT,
                    date TEXT NOT NULL
                )
            """)
            conn.commit()
            count = cursor.execute("SELECT COUNT(*) FROM scores").fetchone()[0]
    except sqlite3.Error as e:
        raise ScoreStoreError(f"cannot initialize {db_file}: {e}") from e

    if count == 0 and legacy_file and os.path.exists(legacy_file):
        imported = import_legacy_scores(db_file, legacy_file)
        logger.info("Imported %d scores from %s", imported, legacy_file)


def import_legacy_scores(db_file, legacy_file):
    """Load a JSON array of {id, score, date} records, keeping their order."""
    try:
        with open(legacy_file, "r", encoding="utf-8") as f:
            records = json.load(f)
    except (OSError, ValueError) as e:
        raise ScoreStoreError(f"cannot read legacy scores {legacy_file}: {e}") from e
    if not isinstance(records, list):
        raise ScoreStoreError(f"legacy scores {legacy_file} is not a JSON array")

    rows = []
    for record in records:
        if not isinstance(record, dict) or "id" not in record:
            raise ScoreStoreError(f"legacy scores {legacy_file} has a malformed record: {record!r}")
        try:
            record_id = int(record["id"])
        except (TypeError, ValueError) as e:
            raise ScoreStoreError(f"legacy scores {legacy_file} has a bad id: {record['id']!r}") from e
        rows.append((
            record_id,
            json.dumps(record.get("score")),
            record.get("date") or iso_timestamp(record_id),
        ))

    try:
        with closing(_connect(db_file)) as conn, conn:
            conn.executemany(
                "INSERT INTO scores (id, score, date) VALUES (?, ?, ?)", rows
            )
    except sqlite3.Error as e:
        raise ScoreStoreError(f"cannot import legacy scores: {e}") from e
    return len(rows)


def add_score(db_file, score):
    """Append one record and return it. The score value is stored as-is (any JSON value)."""
    millis = now_millis()
    record = {"id": millis, "score": score, "date": iso_timestamp(millis)}
    try:
        with closing(_connect(db_file)) as conn, conn:
            conn.execute(
                "INSERT INTO scores (id, score, date) VALUES (?, ?, ?)",
                (record["id"], json.dumps(score), record["date"]),
            )
    except (sqlite3.Error, TypeError) as e:
        raise ScoreStoreError(f"cannot save score: {e}") from e
    logger.info("Saved score %s", record["id"])
    return record


def get_scores(db_file):
    """All records in the order they were saved."""
    try:
        with closing(_connect(db_file)) as conn:
            rows = conn.execute(
                "SELECT id, score, date FROM scores ORDER BY seq"
            ).fetchall()
    except sqlite3.Error as e:
        raise ScoreStoreError(f"cannot read scores: {e}") from e

    try:
        return [
            {"id": row[0], "score": json.loads(row[1]), "date": row[2]}
            for row in rows
        ]
    except ValueError as e:
        raise ScoreStoreError(f"corrupt score value in {db_file}: {e}") from e


def export_scores(db_file, json_file):
    """Write every record to json_file as a pretty-printed array. Returns the count."""
    scores = get_scores(db_file)
    try:
        with open(json_file, "w", encoding="utf-8") as f:
            json.dump(scores, f, indent=2)
    except OSError as e:
        raise ScoreStoreError(f"cannot write {json_file}: {e}") from e
    return len(scores)
