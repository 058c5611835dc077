"""
Pytest fixtures for LiveScorerX testing.
Provides reusable test fixtures for database, app, clients, and test data.
"""

import os
import sys
import tempfile
import shutil
from pathlib import Path
from datetime import datetime, timezone

import pytest
import yaml
from werkzeug.security import generate_password_hash

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Enforce test-safe startup before importing app module.
TEST_SESSION_ROOT = Path(tempfile.mkdtemp(prefix="livescorerx_pytest_"))
os.environ.setdefault(
    "LIVESCORERX_TEST_DB_URI",
    f"sqlite:///{(TEST_SESSION_ROOT / 'session_bootstrap.db').as_posix()}",
)

from app import create_app, db
from database.models import User, Team as DBTeam, Player as DBPlayer
from engine import lifecycle
from engine.ball_processor import BallProcessor
from engine.scoring_models import Delivery


@pytest.fixture(scope="session", autouse=True)
def _session_artifact_cleanup():
    """Remove the temporary session directory once the run is over."""
    yield
    shutil.rmtree(TEST_SESSION_ROOT, ignore_errors=True)


# ==================== Application Fixtures ====================

@pytest.fixture(scope="function")
def test_config(tmp_path):
    """Create a temporary config file for testing."""
    config_path = tmp_path / "config.yaml"
    config_data = {
        "app": {
            "secret_key": "test-secret-key-for-testing-only-12345",
        },
        "database": {
            "uri": "sqlite:///:memory:",
        },
        "scoring": {
            "max_retries": 3,
            "recent_balls_window": 12,
        },
        "logging": {
            "level": "DEBUG",
            "file": str(tmp_path / "logs" / "execution.log"),
        },
    }

    config_path.write_text(yaml.safe_dump(config_data, sort_keys=False), encoding="utf-8")
    return config_path


@pytest.fixture(scope="function")
def app(test_config, tmp_path, monkeypatch):
    """Create and configure a test Flask application instance."""
    monkeypatch.setenv("LIVESCORERX_CONFIG_PATH", str(test_config))
    test_db_file = tmp_path / "pytest_app.db"
    monkeypatch.setenv("LIVESCORERX_TEST_DB_URI", f"sqlite:///{test_db_file.as_posix()}")

    app = create_app()
    app.config.update({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "LOGIN_DISABLED": False,
    })

    # Create application context
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Create a test client for the app."""
    return app.test_client()


# ==================== User Fixtures ====================

def _make_user(email, password, is_admin=False, is_banned=False, display_name="Test User"):
    user = User(
        id=email,
        password_hash=generate_password_hash(password),
        display_name=display_name,
        is_admin=is_admin,
        is_banned=is_banned,
        created_at=datetime.now(timezone.utc),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope="function")
def regular_user(app):
    """Create a regular (non-admin) test user."""
    return _make_user("testuser@example.com", "Password123!")


@pytest.fixture(scope="function")
def other_user(app):
    """A second regular user who owns nothing in the default fixtures."""
    return _make_user("other@example.com", "Other123!", display_name="Other User")


@pytest.fixture(scope="function")
def admin_user(app):
    """Create an admin test user."""
    return _make_user("admin@example.com", "Admin123!", is_admin=True, display_name="Admin User")


@pytest.fixture(scope="function")
def banned_user(app):
    """Create a banned test user."""
    return _make_user("banned@example.com", "Banned123!", is_banned=True, display_name="Banned User")


# ==================== Authentication Helpers ====================

@pytest.fixture(scope="function")
def authenticated_client(client, regular_user):
    """Return a client logged in as a regular user."""
    with client:
        client.post("/login", json={
            "email": regular_user.id,
            "password": "Password123!",
        })
        yield client


@pytest.fixture(scope="function")
def admin_client(client, admin_user):
    """Return a client logged in as an admin user."""
    with client:
        client.post("/login", json={
            "email": admin_user.id,
            "password": "Admin123!",
        })
        yield client


@pytest.fixture(scope="function")
def other_client(client, other_user):
    """Return a client logged in as a user who does not own the test teams."""
    with client:
        client.post("/login", json={
            "email": other_user.id,
            "password": "Other123!",
        })
        yield client


# ==================== Team Fixtures ====================

def _make_team(user, name, short_code, player_count=11):
    team = DBTeam(user_id=user.id, name=name, short_code=short_code)
    db.session.add(team)
    db.session.flush()
    for i in range(player_count):
        db.session.add(DBPlayer(
            team_id=team.id,
            name=f"{short_code} Player {i + 1}",
            role="Bowler" if i >= 6 else "Batsman",
        ))
    db.session.commit()
    return team


@pytest.fixture(scope="function")
def test_team(regular_user):
    """Create a test team with eleven players owned by the regular user."""
    return _make_team(regular_user, "Test Team", "TST")


@pytest.fixture(scope="function")
def test_team_2(regular_user):
    """Create a second test team for match scenarios."""
    return _make_team(regular_user, "Test Team 2", "TT2")


def player_ids(team):
    """Player ids of a team as the engine sees them (strings, squad order)."""
    return [str(p.id) for p in team.players]


@pytest.fixture(scope="function")
def live_match_id(authenticated_client, test_team, test_team_2):
    """A 2-over match created through the API; test_team bats first."""
    response = authenticated_client.post("/api/matches", json={
        "team1_id": test_team.id,
        "team2_id": test_team_2.id,
        "overs": 2,
        "toss_winner": test_team.id,
        "toss_decision": "bat",
        "venue": "Eden Gardens",
    })
    assert response.status_code == 201
    return response.get_json()["match_id"]


# ==================== Pure engine helpers ====================

BATTERS = [f"A{i}" for i in range(1, 12)]
BOWLERS = [f"B{i}" for i in range(1, 12)]


@pytest.fixture
def make_match():
    """Factory for an in-memory match with team A batting and A1/A2 at the crease."""
    def _make(total_overs=20, **kwargs):
        match = lifecycle.new_match(
            "m1", "A", "B", total_overs,
            team_names={"A": "Alpha", "B": "Bravo"},
            **kwargs,
        )
        state = match.current.current_state
        state.on_strike, state.off_strike = "A1", "A2"
        return match
    return _make


def bowl(match, runs=0, bowler="B1", roster=None, **fields):
    """Process one delivery built from keyword fields; returns the BallEvent."""
    payload = {"runs": runs, "bowler_id": bowler}
    payload.update(fields)
    return BallProcessor(match, roster=roster).process(Delivery.from_payload(payload))


def bowl_over(match, bowler, runs=(0, 0, 0, 0, 0, 0)):
    """Six legal deliveries from one bowler."""
    for r in runs:
        bowl(match, runs=r, bowler=bowler)


def next_batter(match, incoming):
    """Fill whichever crease slot a wicket left empty."""
    state = match.current.current_state
    if state.on_strike is None:
        state.on_strike = incoming
    else:
        state.off_strike = incoming


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
