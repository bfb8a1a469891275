"""Tests for the in-memory session store."""

from pathlib import Path

from sendo.core.modules.session.models import CloseReason, FileMeta, SessionStatus


def _meta(name: str = "book.epub") -> FileMeta:
    return FileMeta(name=name, size=3, content_type="application/epub+zip", storage_path=Path("/tmp") / name)


class TestCreate:
    """Tests for session creation."""

    def test_new_session_defaults(self, store, clock):
        """Test that a new session is waiting, indexed, and expires after the TTL."""
        session = store.create(300)

        assert session.status == SessionStatus.WAITING
        assert session.closed_by is None
        assert session.closed_at is None
        assert session.file is None
        assert session.created_at == clock()
        assert (session.expires_at - clock()).total_seconds() == 300
        assert session.receiver_token != session.sender_token
        assert store.get_by_id(session.id) is session
        assert store.get_by_code(session.code) is session

    def test_zero_ttl_disables_expiry(self, store):
        """Test that TTL <= 0 leaves expires_at unset."""
        assert store.create(0).expires_at is None
        assert store.create(-5).expires_at is None

    def test_codes_unique_across_many_sessions(self, store):
        """Test that 10,000 live sessions never share a code."""
        sessions = [store.create(300) for _ in range(10_000)]

        assert len({s.code for s in sessions}) == 10_000
        assert len({s.id for s in sessions}) == 10_000
        assert len(store) == 10_000


class TestLookup:
    """Tests for lookups."""

    def test_missing_returns_none(self, store):
        """Test that unknown ids and codes return None instead of raising."""
        assert store.get_by_id("nope") is None
        assert store.get_by_code("ZZZZ") is None

    def test_code_lookup_is_normalized(self, store):
        """Test that codes are matched case-insensitively with surrounding spaces."""
        session = store.create(300)
        assert store.get_by_code(f" {session.code.lower()} ") is session


class TestTouch:
    """Tests for sliding expiry."""

    def test_touch_moves_expiry_forward(self, store, clock):
        """Test that touching always moves the deadline strictly forward."""
        session = store.create(300)
        previous = session.expires_at

        for _ in range(5):
            clock.advance(1)
            store.touch(session, 300)
            assert session.expires_at > previous
            assert session.last_activity_at == clock()
            previous = session.expires_at

    def test_touch_without_ttl_keeps_no_expiry(self, store, clock):
        """Test that touching with TTL disabled only records activity."""
        session = store.create(0)
        clock.advance(10)
        store.touch(session, 0)

        assert session.expires_at is None
        assert session.last_activity_at == clock()


class TestClose:
    """Tests for closing sessions."""

    def test_close_sets_reason_and_time(self, store, clock):
        """Test that closing records status, reason, and time together."""
        session = store.create(300)
        clock.advance(5)

        assert store.close(session, CloseReason.RECEIVER) is True
        assert session.status == SessionStatus.CLOSED
        assert session.closed_by == CloseReason.RECEIVER
        assert session.closed_at == clock()

    def test_first_reason_wins(self, store, clock):
        """Test that a second close neither changes the reason nor the time."""
        session = store.create(300)
        store.close(session, CloseReason.SENDER)
        closed_at = session.closed_at
        clock.advance(5)

        assert store.close(session, CloseReason.TTL) is False
        assert session.closed_by == CloseReason.SENDER
        assert session.closed_at == closed_at

    def test_closed_session_never_reopens(self, store):
        """Test that liveness updates cannot move a closed session back to connected."""
        session = store.create(300)
        store.close(session, CloseReason.RECEIVER)

        store.mark_sender_seen(session)

        assert session.status == SessionStatus.CLOSED
        assert session.sender_connected is False
        assert session.last_seen_sender is None

    def test_close_keeps_session_indexed(self, store):
        """Test that closed sessions stay readable until purged."""
        session = store.create(300)
        store.close(session, CloseReason.SENDER)
        assert store.get_by_id(session.id) is session


class TestMarkSeen:
    """Tests for liveness updates."""

    def test_sender_seen_connects(self, store, clock):
        """Test that a sender sighting connects a waiting session."""
        session = store.create(300)
        store.mark_sender_seen(session)

        assert session.status == SessionStatus.CONNECTED
        assert session.sender_connected is True
        assert session.last_seen_sender == clock()

    def test_receiver_seen(self, store, clock):
        session = store.create(300)
        clock.advance(3)
        store.mark_receiver_seen(session)

        assert session.last_seen_receiver == clock()
        assert session.status == SessionStatus.WAITING


class TestPurge:
    """Tests for removing sessions."""

    def test_purge_removes_both_indexes(self, store):
        session = store.create(300)
        store.purge(session)

        assert store.get_by_id(session.id) is None
        assert store.get_by_code(session.code) is None
        assert len(store) == 0

    def test_purge_twice_is_harmless(self, store):
        session = store.create(300)
        store.purge(session)
        store.purge(session)
        assert len(store) == 0


class TestFile:
    """Tests for file metadata."""

    def test_set_and_clear(self, store, clock):
        """Test that attaching and detaching bump activity and return the old meta."""
        session = store.create(300)
        meta = _meta()
        clock.advance(2)

        assert store.set_file(session, meta) is True
        assert session.file is meta
        assert session.last_activity_at == clock()

        clock.advance(2)
        assert store.clear_file(session) is meta
        assert session.file is None
        assert session.last_activity_at == clock()
        assert store.clear_file(session) is None

    def test_set_file_replaces(self, store):
        """Test that a second file replaces the first instead of adding to it."""
        session = store.create(300)
        store.set_file(session, _meta("a.pdf"))
        store.set_file(session, _meta("b.pdf"))
        assert session.file.name == "b.pdf"

    def test_set_file_refused_when_closed(self, store):
        """Test that a closed session never holds a file."""
        session = store.create(300)
        store.close(session, CloseReason.SENDER)

        assert store.set_file(session, _meta()) is False
        assert session.file is None


class TestSnapshot:
    """Tests for iteration snapshots."""

    def test_snapshot_survives_mutation(self, store):
        """Test that purging while iterating a snapshot is safe."""
        sessions = [store.create(300) for _ in range(5)]

        for session in store.all_sessions():
            store.purge(session)

        assert len(store) == 0
        assert len(sessions) == 5
