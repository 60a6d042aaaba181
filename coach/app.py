from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException
import psycopg2
import psycopg2.pool
import os
from urllib.parse import urlparse
import logging
import atexit
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from coach.social import InMemorySocialStore, PostgresSocialStore
from coach.storage import InMemoryAppDataStore, PostgresAppDataStore

app = Flask(__name__)

# Configure logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
# Use app.logger directly as it's configured by Flask
logger = app.logger

# --- Rate Limiter Configuration ---
RATELIMIT_STORAGE_URL = os.getenv("RATELIMIT_STORAGE_URL", "memory://")
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri=RATELIMIT_STORAGE_URL,
    strategy="fixed-window",
    enabled=os.getenv("RATELIMIT_ENABLED", "true").lower() != "false",
)
limiter.init_app(app)


# --- Database Connection Pool Configuration ---
MIN_DB_CONNECTIONS = 1
MAX_DB_CONNECTIONS = 10
db_pool = None

def get_db_connection_params():
    """Determines database connection parameters."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        try:
            url = urlparse(database_url)
            return {
                'dbname': url.path[1:],
                'user': url.username,
                'password': url.password,
                'host': url.hostname,
                'port': url.port or 5432
            }
        except Exception as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}. Falling back to POSTGRES_* vars.")

    return {
        'dbname': os.getenv("POSTGRES_DB"),
        'user': os.getenv("POSTGRES_USER"),
        'password': os.getenv("POSTGRES_PASSWORD"),
        'host': os.getenv("POSTGRES_HOST"),
        'port': os.getenv("POSTGRES_PORT", "5432")
    }

def init_db_pool():
    """Initializes the database connection pool when connection parameters are complete."""
    global db_pool
    if db_pool is None:
        params = get_db_connection_params()
        if not all(params.values()):
            logger.warning("Database connection parameters are incomplete. Pool not initialized.")
            return
        try:
            logger.info(f"Initializing database connection pool for host '{params.get('host')}' db '{params.get('dbname')}'")
            db_pool = psycopg2.pool.SimpleConnectionPool(
                MIN_DB_CONNECTIONS,
                MAX_DB_CONNECTIONS,
                **params
            )
            logger.info("Database connection pool initialized successfully.")
        except psycopg2.OperationalError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

init_db_pool()

@atexit.register
def close_db_pool():
    global db_pool
    if db_pool:
        logger.info("Closing database connection pool.")
        db_pool.closeall()
        db_pool = None


# --- Database Connection Helper ---
def get_db_connection():
    """Gets a connection from the database pool."""
    if db_pool is None:
        logger.error("Database pool is not initialized. Attempting to re-initialize.")
        init_db_pool()
        if db_pool is None:
            logger.critical("Failed to re-initialize database pool. Cannot get connection.")
            raise psycopg2.OperationalError("Database pool not available.")
    try:
        return db_pool.getconn()
    except psycopg2.pool.PoolError as e:
        logger.error(f"Failed to get connection from pool: {e}")
        raise

def release_db_connection(conn):
    """Releases a connection back to the database pool."""
    if db_pool and conn:
        try:
            db_pool.putconn(conn)
        except psycopg2.pool.PoolError as e:
            logger.error(f"Error releasing connection back to pool: {e}")


# --- Stores ---
if db_pool is not None:
    app.config['APP_DATA_STORE'] = PostgresAppDataStore(get_db_connection, release_db_connection)
    app.config['SOCIAL_STORE'] = PostgresSocialStore(get_db_connection, release_db_connection)
else:
    logger.warning("No database configured; app and social data are kept in memory for this process only.")
    app.config['APP_DATA_STORE'] = InMemoryAppDataStore()
    app.config['SOCIAL_STORE'] = InMemorySocialStore()

def get_store():
    """Returns the store configured for the running app (tests swap it via app.config)."""
    return current_app.config['APP_DATA_STORE']


def get_social_store():
    return current_app.config['SOCIAL_STORE']


@app.errorhandler(Exception)
def handle_exception(e):
    """Generic exception handler."""
    if isinstance(e, HTTPException):
        return jsonify(error=e.description), e.code
    app.logger.error(f"Unhandled exception: {e}", exc_info=True)
    if isinstance(e, psycopg2.pool.PoolError):
        return jsonify(error="Database pool error"), 503
    if isinstance(e, psycopg2.OperationalError):
        return jsonify(error="Database connection error"), 503
    return jsonify(error="An internal server error occurred"), 500


@app.route('/health', methods=['GET'])
@limiter.exempt
def health_check():
    return jsonify(status="healthy", service="coach", database=db_pool is not None), 200


# Import blueprints after the pool and store are set up
from .blueprints.workouts import workouts_bp  # noqa: E402
from .blueprints.analytics import analytics_bp  # noqa: E402
from .blueprints.calculators import calculators_bp  # noqa: E402
from .blueprints.social import social_bp  # noqa: E402

app.register_blueprint(workouts_bp)
app.register_blueprint(analytics_bp)
app.register_blueprint(calculators_bp)
app.register_blueprint(social_bp)
