"""
Persistence for per-user AppData documents plus the immutable update helpers
the rest of the application uses to change them.

The helpers never mutate their input; each returns a new AppData for the
caller to save.
"""

import logging
import threading
import uuid
from dataclasses import replace

import psycopg2
import psycopg2.extras
from psycopg2.extras import Json

from coach.models import AppData, Exercise, ExerciseLog

logger = logging.getLogger(__name__)


# --- Immutable update helpers ---

def default_app_data() -> AppData:
    return AppData()


def generate_id() -> str:
    return str(uuid.uuid4())


def get_exercise_by_name(data: AppData, name: str) -> Exercise | None:
    wanted = name.strip().lower()
    for exercise in data.exercises:
        if exercise.name.lower() == wanted:
            return exercise
    return None


def get_exercise_by_id(data: AppData, exercise_id: str) -> Exercise | None:
    return next((e for e in data.exercises if e.id == exercise_id), None)


def get_exercise_names(data: AppData) -> list[str]:
    return [exercise.name for exercise in data.exercises]


def add_exercise(data: AppData, exercise: Exercise) -> AppData:
    return replace(data, exercises=data.exercises + (exercise,))


def add_log_to_exercise(data: AppData, exercise_id: str, log: ExerciseLog) -> AppData:
    """Appends a log; the very first log ever recorded also sets first_log_date."""
    exercises = tuple(
        replace(exercise, logs=exercise.logs + (log,)) if exercise.id == exercise_id else exercise
        for exercise in data.exercises
    )
    metadata = data.metadata
    if not metadata.first_log_date:
        metadata = replace(metadata, first_log_date=log.timestamp)
    return replace(data, exercises=exercises, metadata=metadata)


def mark_welcome_seen(data: AppData) -> AppData:
    return replace(data, user_preferences=replace(data.user_preferences, has_seen_welcome=True))


def complete_onboarding(data: AppData, user_name: str | None = None) -> AppData:
    preferences = replace(data.user_preferences, has_completed_onboarding=True, has_seen_welcome=True)
    if user_name:
        preferences = replace(preferences, user_name=user_name)
    return replace(data, user_preferences=preferences)


def record_deload(data: AppData, deload_date: str) -> AppData:
    return replace(data, metadata=replace(data.metadata, last_deload_date=deload_date))


# --- Stores ---

class AppDataStore:
    """Loads and saves one AppData document per user."""

    def load(self, user_id: str) -> AppData:
        raise NotImplementedError

    def save(self, user_id: str, data: AppData) -> None:
        raise NotImplementedError


class InMemoryAppDataStore(AppDataStore):
    def __init__(self):
        self._documents = {}
        self._lock = threading.Lock()

    def load(self, user_id: str) -> AppData:
        with self._lock:
            raw = self._documents.get(str(user_id))
        return AppData.from_dict(raw) if raw is not None else default_app_data()

    def save(self, user_id: str, data: AppData) -> None:
        with self._lock:
            self._documents[str(user_id)] = data.to_dict()


class PostgresAppDataStore(AppDataStore):
    """
    Stores each user's AppData as a JSONB document in the `app_data` table.

    Args:
        get_connection: Callable returning a pooled psycopg2 connection.
        release_connection: Callable returning that connection to the pool.
    """

    def __init__(self, get_connection, release_connection):
        self._get_connection = get_connection
        self._release_connection = release_connection

    def load(self, user_id: str) -> AppData:
        conn = None
        try:
            conn = self._get_connection()
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute("SELECT data FROM app_data WHERE user_id = %s;", (str(user_id),))
                row = cur.fetchone()
            if not row or row['data'] is None:
                return default_app_data()
            return AppData.from_dict(row['data'])
        except psycopg2.Error as e:
            logger.error(f"Database error loading app data for user {user_id}: {e}", exc_info=True)
            raise
        except (KeyError, TypeError, ValueError) as e:
            # Unparseable documents load as defaults.
            logger.error(f"Stored app data for user {user_id} could not be parsed: {e}", exc_info=True)
            return default_app_data()
        finally:
            if conn:
                self._release_connection(conn)

    def save(self, user_id: str, data: AppData) -> None:
        conn = None
        try:
            conn = self._get_connection()
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app_data (user_id, data, updated_at)
                    VALUES (%s, %s, NOW())
                    ON CONFLICT (user_id) DO UPDATE SET data = EXCLUDED.data, updated_at = NOW();
                    """,
                    (str(user_id), Json(data.to_dict())),
                )
            conn.commit()
        except psycopg2.Error as e:
            logger.error(f"Database error saving app data for user {user_id}: {e}", exc_info=True)
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                self._release_connection(conn)


__all__ = [
    "AppDataStore",
    "InMemoryAppDataStore",
    "PostgresAppDataStore",
    "add_exercise",
    "add_log_to_exercise",
    "complete_onboarding",
    "default_app_data",
    "generate_id",
    "get_exercise_by_id",
    "get_exercise_by_name",
    "get_exercise_names",
    "mark_welcome_seen",
    "record_deload",
]
