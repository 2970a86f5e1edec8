from datetime import datetime, timedelta, timezone

from app.core import passwords
from app.core.config import settings
from app.models.auth import AuthSession
from app.services import sessions, user_store

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_user(db, username="alice", email="alice@x.com"):
    user = user_store.create(db, username=username, email=email, password_hash=passwords.hash_password("pw123456"))
    db.commit()
    return user


class TestSessions:
    """Test cases for the session manager"""

    def test_issue_and_resolve(self, db):
        user = make_user(db)

        issued = sessions.issue(db, user.id, now=NOW)
        db.commit()

        assert issued.expires_at == NOW + timedelta(seconds=settings.SESSION_TTL_SECONDS)
        assert sessions.resolve(db, issued.token, now=NOW + timedelta(hours=1)).id == user.id

    def test_token_is_stored_hashed(self, db):
        user = make_user(db)
        issued = sessions.issue(db, user.id, now=NOW)
        db.commit()

        record = db.query(AuthSession).one()
        assert record.token_hash == sessions.hash_token(issued.token)
        assert record.token_hash != issued.token

    def test_tokens_are_unique(self, db):
        user = make_user(db)
        first = sessions.issue(db, user.id, now=NOW)
        second = sessions.issue(db, user.id, now=NOW)
        db.commit()

        assert first.token != second.token
        assert sessions.resolve(db, first.token, now=NOW).id == user.id
        assert sessions.resolve(db, second.token, now=NOW).id == user.id

    def test_unknown_token(self, db):
        assert sessions.resolve(db, "does-not-exist", now=NOW) is None
        assert sessions.resolve(db, "", now=NOW) is None
        assert sessions.resolve(db, None, now=NOW) is None

    def test_expired_session_is_deleted(self, db):
        user = make_user(db)
        issued = sessions.issue(db, user.id, now=NOW)
        db.commit()

        later = NOW + timedelta(seconds=settings.SESSION_TTL_SECONDS + 1)
        assert sessions.resolve(db, issued.token, now=later) is None
        assert db.query(AuthSession).count() == 0

    def test_revoke(self, db):
        user = make_user(db)
        issued = sessions.issue(db, user.id, now=NOW)
        db.commit()

        assert sessions.revoke(db, issued.token) is True
        db.commit()
        assert sessions.resolve(db, issued.token, now=NOW) is None
        assert sessions.revoke(db, issued.token) is False

    def test_revoke_all_keeps_current(self, db):
        user = make_user(db)
        other = make_user(db, username="bob", email="bob@x.com")
        current = sessions.issue(db, user.id, now=NOW)
        stale = sessions.issue(db, user.id, now=NOW)
        bobs = sessions.issue(db, other.id, now=NOW)
        db.commit()

        assert sessions.revoke_all_for_user(db, user.id, keep_token=current.token) == 1
        db.commit()

        assert sessions.resolve(db, current.token, now=NOW) is not None
        assert sessions.resolve(db, stale.token, now=NOW) is None
        assert sessions.resolve(db, bobs.token, now=NOW) is not None
