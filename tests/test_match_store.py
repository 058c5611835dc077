"""
Tests for database/match_store.py
Version-checked saves against the real matches table.
"""

import pytest

from database import db
from database.match_store import MatchStore
from database.models import Match as DBMatch
from engine.errors import ConcurrentUpdateConflict, MatchNotFound
from engine.live_scoring import LiveScoringService


@pytest.fixture
def stored_match_id(regular_user, test_team, test_team_2):
    """A freshly inserted match at version 1."""
    service = LiveScoringService(MatchStore(db.session))
    return service.create_match(test_team.id, test_team_2.id, 2, user_id=regular_user.id).match_id


class TestSaveMatch:
    def test_save_bumps_version_and_mirrors_columns(self, stored_match_id):
        store = MatchStore(db.session)
        match, version = store.load_match(stored_match_id)
        assert version == 1
        match.venue = "Wankhede"
        assert store.save_match(match, version) == 2

        row = db.session.get(DBMatch, stored_match_id)
        assert row.version == 2
        assert row.venue == "Wankhede"
        assert row.scoring_state["venue"] == "Wankhede"

    def test_stale_copy_conflicts(self, stored_match_id):
        """Two readers of the same version: the second writer loses and the row keeps the first write."""
        store = MatchStore(db.session)
        first, version = store.load_match(stored_match_id)
        second, stale = store.load_match(stored_match_id)
        assert version == stale

        first.venue = "Wankhede"
        store.save_match(first, version)

        second.venue = "Chepauk"
        with pytest.raises(ConcurrentUpdateConflict):
            store.save_match(second, stale)

        reloaded, current = store.load_match(stored_match_id)
        assert current == version + 1
        assert reloaded.venue == "Wankhede"
        row = db.session.get(DBMatch, stored_match_id)
        assert row.version == version + 1
        assert row.venue == "Wankhede"

    def test_load_unknown_match(self, app):
        with pytest.raises(MatchNotFound):
            MatchStore(db.session).load_match("no-such-match")
