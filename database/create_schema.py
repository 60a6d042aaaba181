import psycopg2
import os
import sys
from urllib.parse import urlparse

# Database connection details
DATABASE_URL = os.getenv("DATABASE_URL")
DB_NAME_FALLBACK = os.getenv("POSTGRES_DB", "coach")
DB_USER_FALLBACK = os.getenv("POSTGRES_USER", "user")
DB_PASSWORD_FALLBACK = os.getenv("POSTGRES_PASSWORD", "password")
DB_HOST_FALLBACK = os.getenv("POSTGRES_HOST", "localhost")
DB_PORT_FALLBACK = os.getenv("POSTGRES_PORT", "5432")

FALLBACK_PARAMS = {
    'dbname': DB_NAME_FALLBACK,
    'user': DB_USER_FALLBACK,
    'password': DB_PASSWORD_FALLBACK,
    'host': DB_HOST_FALLBACK,
    'port': DB_PORT_FALLBACK
}

conn_params = dict(FALLBACK_PARAMS)
_db_connection_method = f"POSTGRES_* variables to host '{DB_HOST_FALLBACK}'"
if DATABASE_URL:
    try:
        url = urlparse(DATABASE_URL)
        conn_params = {
            'dbname': url.path[1:],
            'user': url.username,
            'password': url.password,
            'host': url.hostname,
            'port': url.port or 5432
        }
        _db_connection_method = f"DATABASE_URL to host '{url.hostname}'"
    except Exception as e:
        print(f"Warning: Could not parse DATABASE_URL ('{DATABASE_URL}'): {e}. Falling back to POSTGRES_* variables.")


# One JSONB document per user holding exercises, logs, preferences and metadata.
SQL_COMMANDS = """
CREATE TABLE IF NOT EXISTS app_data (
    user_id UUID PRIMARY KEY,
    data JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_app_data_first_log_date
    ON app_data ((data->'metadata'->>'first_log_date'));

-- Social: public profiles, friend requests and the shared activity feed.
CREATE TABLE IF NOT EXISTS profiles (
    user_id UUID PRIMARY KEY,
    username VARCHAR(30),
    slug VARCHAR(32) NOT NULL UNIQUE,
    last_active TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS friendships (
    id UUID PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    friend_id UUID NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    status VARCHAR(16) NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'accepted')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (user_id, friend_id),
    CHECK (user_id <> friend_id)
);

CREATE INDEX IF NOT EXISTS idx_friendships_friend_id ON friendships (friend_id);

CREATE TABLE IF NOT EXISTS activities (
    id UUID PRIMARY KEY,
    user_id UUID NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
    workout_type TEXT NOT NULL,
    duration INTEGER CHECK (duration >= 0),
    summary TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_activities_user_created
    ON activities (user_id, created_at DESC);
"""

def create_schema():
    conn = None
    try:
        print(f"Attempting to connect using {_db_connection_method}.")
        conn = psycopg2.connect(**conn_params)
        print(f"Successfully connected to database '{conn_params.get('dbname')}' on host '{conn_params.get('host')}'.")
        with conn.cursor() as cur:
            cur.execute(SQL_COMMANDS)
            print("Schema creation commands executed.")
        conn.commit()
        print("Schema created successfully (or already existed).")
    except psycopg2.OperationalError as e:
        print(f"Error connecting to the database using method '{_db_connection_method}': {e}")
        print("Please ensure PostgreSQL is running and accessible, "
              "and that the target database exists with appropriate permissions.")
        sys.exit(1)
    except psycopg2.Error as e:
        print(f"Error during database operation (using '{_db_connection_method}'): {e}")
        if conn:
            conn.rollback()
        sys.exit(1)
    finally:
        if conn:
            conn.close()
            print("Database connection closed.")

if __name__ == "__main__":
    print("Attempting to create/update database schema...")
    create_schema()
    print("Script finished.")
