import pytest
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

# Tests always run against the in-memory store without rate limits.
os.environ["RATELIMIT_ENABLED"] = "false"
for var in ("DATABASE_URL", "POSTGRES_HOST"):
    os.environ.pop(var, None)

from coach.app import app
from coach.social import InMemorySocialStore
from coach.storage import InMemoryAppDataStore

@pytest.fixture()
def client():
    app.config.update(
        TESTING=True,
        APP_DATA_STORE=InMemoryAppDataStore(),
        SOCIAL_STORE=InMemorySocialStore(),
    )
    with app.test_client() as client:
        yield client
