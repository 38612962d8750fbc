# tests/conftest.py
import pytest
from fastapi.testclient import TestClient
import os
import sys
import logging
import uuid

# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Point the app at a throwaway SQLite file before anything imports the settings
TEST_DB_FILE = "./test_ilaw.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_FILE}"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))


def _remove_test_db():
    if os.path.exists(TEST_DB_FILE):
        try:
            os.remove(TEST_DB_FILE)
            logger.info(f"Removed test database: {TEST_DB_FILE}")
        except OSError as e:
            logger.error(f"Error removing {TEST_DB_FILE}: {e}")


# --- TestClient Fixture ---
@pytest.fixture(scope="session")
def client():
    """
    One TestClient for the whole session. Entering it runs the app lifespan,
    which creates the tables in the fresh test database.
    """
    _remove_test_db()
    # Import app here, after DATABASE_URL is set
    from ilaw.main import app
    logger.info("Creating TestClient instance for the session.")
    with TestClient(app) as c:
        yield c
    _remove_test_db()


# --- Entity helpers ---
# The database lives for the whole session, so every helper creates uniquely named rows.

def _unique(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def make_user(client: TestClient):
    def _make_user(role: str = "student", approval_status: str = "approved", grade_level: str = "Grade 3") -> dict:
        username = _unique(role)
        response = client.post("/users/", json={
            "username": username,
            "email": f"{username}@school.test",
            "first_name": "Test",
            "last_name": "User",
            "role": role,
            "grade_level": grade_level,
            "approval_status": approval_status,
        })
        assert response.status_code == 201, response.text
        return response.json()
    return _make_user


@pytest.fixture
def make_book(client: TestClient):
    def _make_book(
        book_type: str = "educational",
        subject: str = "Science",
        grade: str = "Grade 3",
        title: str = None,
        quiz_mode: str = "retry",
    ) -> dict:
        response = client.post("/books/", json={
            "title": title or _unique("Book"),
            "description": "A book used by the test suite.",
            "type": book_type,
            "subject": subject,
            "grade": grade,
            "quiz_mode": quiz_mode,
        })
        assert response.status_code == 201, response.text
        return response.json()
    return _make_book


@pytest.fixture
def make_badge(client: TestClient):
    def _make_badge(**fields) -> dict:
        payload = {"name": _unique("Badge"), "description": "Awarded in tests"}
        payload.update(fields)
        response = client.post("/badges/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _make_badge
