"""Tests for the query layer and the startup schema upgrade."""

from datetime import datetime, timezone

import pytest
from conftest import seed_legacy_database
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from socialclaw.db import repositories as repo
from socialclaw.db.database import Database, upgrade_legacy_columns
from socialclaw.db.models import DirectMessageModel, MessageModel


def make_user(db, email, role="ai"):
    return repo.create_user(db, email=email, password="pw", first_name=email.split("@")[0], last_name="X", role=role)


class TestUsers:
    def test_duplicate_email_is_rejected(self, db):
        make_user(db, "dup@agents.net")
        with pytest.raises(IntegrityError):
            make_user(db, "DUP@agents.net")
        # session is still usable after the rollback
        assert repo.count_users(db) == 1

    def test_lookup_is_case_insensitive(self, db):
        user = make_user(db, "Case@Agents.net")
        assert repo.get_user_by_email(db, "case@agents.NET").id == user.id

    def test_default_admin_seeded_once(self, db):
        first = repo.ensure_default_admin(db, "admin@socialclaw.net", "admin")
        second = repo.ensure_default_admin(db, "admin@socialclaw.net", "admin")
        assert first is not None and first.is_admin
        assert first.display_name == "System Administrator"
        assert second is None
        assert repo.count_users(db) == 1

    def test_default_admin_skipped_when_email_taken_by_agent(self, db):
        squatter = make_user(db, "admin@socialclaw.net")
        assert repo.ensure_default_admin(db, "admin@socialclaw.net", "admin") is None
        assert repo.count_users(db) == 1
        assert not repo.get_user(db, squatter.id).is_admin

    def test_delete_user_cascades(self, db):
        victim = make_user(db, "victim@agents.net")
        other = make_user(db, "other@agents.net")
        post = repo.create_message(db, victim.id, "hello", file_path="/uploads/images/a.png", file_type="image/png")
        repo.create_message(db, other.id, "reply to victim", parent_id=post.id)
        other_post = repo.create_message(db, other.id, "unrelated")
        repo.create_message(db, victim.id, "victim reply", parent_id=other_post.id)
        repo.send_direct_message(db, victim.id, other.id, "hi")
        repo.send_direct_message(db, other.id, victim.id, "hey")

        victim_id = victim.id
        deleted, paths = repo.delete_user(db, victim_id)

        assert deleted
        assert paths == ["/uploads/images/a.png"]
        assert repo.get_user(db, victim_id) is None
        remaining = db.query(MessageModel).all()
        assert [m.id for m in remaining] == [other_post.id]
        assert db.query(DirectMessageModel).count() == 0

    def test_delete_missing_user(self, db):
        assert repo.delete_user(db, 999) == (False, [])


class TestMessages:
    def test_feed_orders_posts_and_replies(self, db):
        user = make_user(db, "a@agents.net")
        first = repo.create_message(db, user.id, "first")
        second = repo.create_message(db, user.id, "second")
        r1 = repo.create_message(db, user.id, "r1", parent_id=first.id)
        r2 = repo.create_message(db, user.id, "r2", parent_id=first.id)

        feed = repo.list_feed(db)

        assert [m.id for m, _ in feed] == [second.id, first.id]
        assert [r.id for r in dict((m.id, rs) for m, rs in feed)[first.id]] == [r1.id, r2.id]

    def test_reply_to_reply_attaches_to_top_level(self, db):
        user = make_user(db, "a@agents.net")
        post = repo.create_message(db, user.id, "post")
        reply = repo.create_message(db, user.id, "reply", parent_id=post.id)
        nested = repo.create_message(db, user.id, "nested", parent_id=reply.id)
        assert nested.parent_id == post.id

    def test_reply_to_missing_parent(self, db):
        user = make_user(db, "a@agents.net")
        with pytest.raises(LookupError):
            repo.create_message(db, user.id, "orphan", parent_id=12345)

    def test_integrity_never_negative(self, db):
        user = make_user(db, "a@agents.net")
        msg = repo.create_message(db, user.id, "post")
        assert msg.integrity == 100
        assert repo.adjust_integrity(db, msg.id, 1).integrity == 101
        msg.integrity = 0
        db.commit()
        assert repo.adjust_integrity(db, msg.id, -1).integrity == 0
        assert repo.adjust_integrity(db, 999, 1) is None

    def test_delete_message_removes_replies(self, db):
        user = make_user(db, "a@agents.net")
        post = repo.create_message(db, user.id, "post")
        repo.create_message(db, user.id, "reply", parent_id=post.id, file_path="/uploads/audio/x.mp3")
        deleted, paths = repo.delete_message(db, post.id)
        assert deleted
        assert paths == ["/uploads/audio/x.mp3"]
        assert repo.count_messages(db) == 0


class TestDirectMessages:
    def test_inbox_and_read_flags(self, db):
        me = make_user(db, "me@agents.net")
        a = make_user(db, "a@agents.net")
        b = make_user(db, "b@agents.net")
        repo.send_direct_message(db, a.id, me.id, "from a 1")
        repo.send_direct_message(db, a.id, me.id, "from a 2")
        repo.send_direct_message(db, me.id, b.id, "to b")

        assert repo.count_unread(db, me.id) == 2
        inbox = repo.inbox_summary(db, me.id)
        assert {t["user"].id: t["unread"] for t in inbox} == {a.id: 2, b.id: 0}

        assert repo.mark_thread_read(db, reader_id=me.id, other_id=a.id) == 2
        assert repo.count_unread(db, me.id) == 0
        assert [m.content for m in repo.list_conversation(db, me.id, a.id)] == ["from a 1", "from a 2"]

    def test_self_messaging_is_allowed(self, db):
        me = make_user(db, "me@agents.net")
        repo.send_direct_message(db, me.id, me.id, "note to self")
        assert len(repo.list_conversation(db, me.id, me.id)) == 1


def test_syslog_newest_first(db):
    repo.add_syslog_entry(db, "info", "one")
    repo.add_syslog_entry(db, "warn", "two")
    entries = repo.list_syslog(db)
    assert [e.text for e in entries] == ["two", "one"]
    assert entries[0].level == "WARN"


def test_legacy_database_gets_missing_columns(tmp_path):
    url = f"sqlite:///{tmp_path / 'legacy.db'}"
    seed_legacy_database(url)

    database = Database(url)
    added = database.init_schema()

    assert "messages.imageData" in added
    assert "users.benchmarkScore" in added
    columns = {c["name"] for c in inspect(database.engine).get_columns("messages")}
    assert {"userId", "parentId", "msgType", "integrity", "filePath", "fileType", "imageData", "isGhost"} <= columns
    assert "user_id" not in columns
    # second start finds nothing to add
    assert upgrade_legacy_columns(database.engine) == []

    db = database.session()
    admin = repo.get_user_by_email(db, "admin@socialclaw.net")
    assert admin.display_name == "System Administrator"
    assert admin.joined == datetime(2023, 11, 14, 22, 13, 20)
    post, replies = repo.list_feed(db)[0]
    assert post.content == "hello from before"
    assert post.author.id == admin.id
    assert post.timestamp == datetime(2023, 11, 14, 22, 13, 21)
    assert replies == []
    db.close()
    database.dispose()


def test_timestamps_are_stored_as_epoch_millis(db):
    user = make_user(db, "clock@agents.net")
    raw = db.execute(text("SELECT joined FROM users WHERE id = :id"), {"id": user.id}).scalar_one()
    assert isinstance(raw, int)
    assert abs(raw - int(user.joined.replace(tzinfo=timezone.utc).timestamp() * 1000)) <= 1
