import pytest

from app.session.store import Session, SessionStore


@pytest.fixture
def store(clock):
    return SessionStore(ttl_minutes=1, max_sessions=3, clock=clock)


def start(store, user, ticket=1):
    return store.set(user, {"current_ticket": ticket, "current_question_index": 1})


class TestSessionStore:
    def test_set_then_get_returns_session(self, store):
        created = start(store, "u1")
        session = store.get("u1")

        assert session is created
        assert session.current_ticket == 1
        assert session.current_question_index == 1
        assert session.correct_count == 0 and session.incorrect_count == 0

    def test_set_overwrites_without_merging(self, store):
        store.set("u1", {"current_ticket": 1, "current_question_index": 3, "correct_count": 2})
        store.set("u1", {"current_ticket": 5})

        session = store.get("u1")
        assert session.current_ticket == 5
        assert session.current_question_index == 1
        assert session.correct_count == 0
        assert len(store) == 1

    def test_expired_after_ttl(self, store, clock):
        start(store, "u1")
        clock.advance(61)
        assert store.get("u1") is None
        assert len(store) == 0  # removed on read

    def test_not_expired_exactly_at_ttl(self, store, clock):
        start(store, "u1")
        clock.advance(60)
        assert store.get("u1") is not None

    def test_get_touches_session(self, store, clock):
        start(store, "u1")
        clock.advance(50)
        assert store.get("u1").last_activity_at == clock.now
        clock.advance(50)
        assert store.get("u1") is not None
        clock.advance(61)
        assert store.get("u1") is None

    def test_has_also_touches(self, store, clock):
        start(store, "u1")
        clock.advance(50)
        assert store.has("u1")
        clock.advance(50)
        assert store.has("u1")
        assert not store.has("nobody")

    def test_update_merges_fields(self, store, clock):
        start(store, "u1")
        clock.advance(10)
        session = store.update("u1", current_question_index=2, correct_count=1)

        assert session.current_question_index == 2
        assert session.correct_count == 1
        assert session.current_ticket == 1
        assert session.last_activity_at == clock.now

    def test_update_missing_or_expired_returns_none(self, store, clock):
        assert store.update("u1", correct_count=1) is None
        start(store, "u1")
        clock.advance(120)
        assert store.update("u1", correct_count=1) is None

    def test_update_rejects_unknown_fields(self, store):
        start(store, "u1")
        with pytest.raises(TypeError):
            store.update("u1", score=3)
        with pytest.raises(TypeError):
            store.update("u1", user_id="u2")

    def test_delete(self, store):
        start(store, "u1")
        assert store.delete("u1") is True
        assert store.delete("u1") is False
        assert store.get("u1") is None

    def test_capacity_evicts_oldest_inserted(self, clock):
        store = SessionStore(ttl_minutes=1, max_sessions=2, clock=clock)
        start(store, "a")
        start(store, "b")
        start(store, "c")

        assert len(store) == 2
        assert store.get("c") is not None
        assert (store.get("a") is None) != (store.get("b") is None)

    def test_capacity_eviction_ignores_reads(self, store):
        start(store, "a")
        start(store, "b")
        start(store, "c")
        store.get("a")  # reading does not protect against capacity eviction
        start(store, "d")

        assert store.get("a") is None
        assert all(store.get(u) is not None for u in ("b", "c", "d"))

    def test_reselecting_moves_user_to_newest(self, store):
        start(store, "a")
        start(store, "b")
        start(store, "c")
        start(store, "a", ticket=2)  # replaces a, no eviction
        assert len(store) == 3
        start(store, "d")

        assert store.get("b") is None
        assert store.get("a").current_ticket == 2

    def test_size_never_exceeds_capacity(self, store):
        for i in range(20):
            start(store, f"user{i}")
            assert len(store) <= 3

    def test_sweep_removes_only_expired(self, store, clock):
        start(store, "old")
        clock.advance(40)
        start(store, "fresh")
        clock.advance(30)

        assert store.sweep() == 1
        assert len(store) == 1
        assert store.get("fresh") is not None

    def test_expiry_does_not_depend_on_sweep(self, store, clock):
        start(store, "u1")
        clock.advance(30)
        assert store.sweep() == 0
        clock.advance(31)
        # no sweep since the TTL passed; the read alone hides the session
        assert len(store) == 1
        assert store.get("u1") is None

    def test_stats(self, store):
        start(store, "u1")
        stats = store.stats()
        assert stats == {
            "active_sessions": 1,
            "max_sessions": 3,
            "ttl_minutes": 1,
            "utilization_percent": 33,
        }

    @pytest.mark.parametrize("ttl,cap", [(0, 10), (-1, 10), (10, 0)])
    def test_rejects_bad_configuration(self, ttl, cap):
        with pytest.raises(ValueError):
            SessionStore(ttl_minutes=ttl, max_sessions=cap)


def test_session_answered_property():
    session = Session(user_id="u", current_ticket=1, current_question_index=3,
                      correct_count=1, incorrect_count=1)
    assert session.answered == 2
