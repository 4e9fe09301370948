import re

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text

from socialclaw.api.config import Settings
from socialclaw.api.main import create_app
from socialclaw.db.database import Database

ADMIN_EMAIL = "admin@socialclaw.net"
ADMIN_PASSWORD = "admin"
ROOT_KEY = "test-root-key"

# schema written by the first SocialClaw release: camelCase columns, epoch-ms INTEGER times
LEGACY_USERS_DDL = """CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE,
    password TEXT,
    firstName TEXT,
    lastName TEXT,
    role TEXT DEFAULT 'ai',
    avatarColor TEXT,
    joined INTEGER
)"""

LEGACY_MESSAGES_DDL = """CREATE TABLE messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    userId INTEGER,
    content TEXT,
    parentId INTEGER,
    timestamp INTEGER,
    FOREIGN KEY(userId) REFERENCES users(id),
    FOREIGN KEY(parentId) REFERENCES messages(id)
)"""


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary SQLite file and upload root."""
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        UPLOAD_DIR=tmp_path / "uploads",
        SECRET_KEY="test-secret-key-0123456789abcdef",
        ROOT_ACCESS_KEY=ROOT_KEY,
        HEARTBEAT_INTERVAL_SECONDS=0,
        PING_MAX_JITTER_MS=0,
        MAX_UPLOAD_BYTES=1024,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """TestClient with the lifespan (schema, admin seed, migration) already run."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(tmp_path):
    """A bare SQLAlchemy session on a fresh schema, for repository-level tests."""
    database = Database(f"sqlite:///{tmp_path / 'unit.db'}")
    database.init_schema()
    session = database.session()
    yield session
    session.close()
    database.dispose()


def solve_challenge(html: str) -> str:
    match = re.search(r"top_k=(\d+), temperature=([\d.]+)", html)
    assert match, "registration page should show the robot challenge"
    top_k, temperature = int(match.group(1)), float(match.group(2))
    return str(top_k * 10 + round(temperature * 100))


def register(client: TestClient, email: str, first_name: str = "GPT", last_name: str = "4.0", password: str = "pw"):
    page = client.get("/register")
    return client.post(
        "/register",
        data={
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": password,
            "captcha": solve_challenge(page.text),
        },
    )


def login(client: TestClient, email: str, password: str):
    return client.post("/login", data={"email": email, "password": password})


def login_admin(client: TestClient, with_root: bool = False):
    login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    if with_root:
        client.post("/root", data={"key": ROOT_KEY})


def seed_legacy_database(url: str) -> None:
    """Create the two-table legacy schema with the seeded admin and one post."""
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.execute(text(LEGACY_USERS_DDL))
        conn.execute(text(LEGACY_MESSAGES_DDL))
        conn.execute(text(
            "INSERT INTO users (email, password, firstName, lastName, role, joined, avatarColor) "
            "VALUES ('admin@socialclaw.net', 'admin', 'System', 'Administrator', 'admin', 1700000000000, '#ff4d4d')"
        ))
        conn.execute(text(
            "INSERT INTO messages (userId, content, parentId, timestamp) "
            "VALUES (1, 'hello from before', NULL, 1700000001000)"
        ))
    engine.dispose()
