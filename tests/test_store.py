"""Tests for worktimer.store and worktimer.guard against an in-memory SQLite database."""

import unittest
from datetime import datetime, timezone

from sqlmodel import Session, SQLModel, select

from worktimer.db import init_db, make_engine
from worktimer.errors import ErrorKind, TimerError
from worktimer.guard import SessionGuard
from worktimer.models import WorkSession
from worktimer.store import ProfileStore, SessionStore


def at(hour, minute=0):
    return datetime(2026, 10, 19, hour, minute, tzinfo=timezone.utc)


class StoreTestCase(unittest.TestCase):

    def setUp(self):
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.db = Session(self.engine)
        self.store = SessionStore(self.db)
        self.guard = SessionGuard(self.store)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def count_rows(self, user_id=None):
        statement = select(WorkSession)
        if user_id is not None:
            statement = statement.where(WorkSession.user_id == user_id)
        return len(self.db.exec(statement).all())


# ──────────────────────────────────────────────────────────────────────────
# SessionStore
# ──────────────────────────────────────────────────────────────────────────

class TestSessionStore(StoreTestCase):

    def test_insert_assigns_id_and_created_at(self):
        row = self.store.insert("alice", at(10))
        self.assertIsNotNone(row.id)
        self.assertIsNotNone(row.created_at)
        self.assertEqual(row.start_time, at(10))
        self.assertIsNone(row.end_time)

    def test_times_come_back_timezone_aware(self):
        row = self.store.insert("alice", datetime(2026, 10, 19, 10, 0))
        self.db.expire_all()
        reloaded = self.db.get(WorkSession, row.id)
        self.assertEqual(reloaded.start_time.tzinfo, timezone.utc)
        self.assertEqual(reloaded.start_time, at(10))

    def test_second_open_row_is_rejected_by_index(self):
        """The unique partial index refuses a second open session even without the guard."""
        self.store.insert("alice", at(10))
        with self.assertRaises(TimerError) as ctx:
            self.store.insert("alice", at(11))
        self.assertEqual(ctx.exception.kind, ErrorKind.ALREADY_RUNNING)
        self.assertEqual(self.count_rows("alice"), 1)

    def test_open_rows_for_different_users_coexist(self):
        self.store.insert("alice", at(10))
        self.store.insert("bob", at(10))
        self.assertEqual(self.count_rows(), 2)

    def test_insert_after_close_is_allowed(self):
        first = self.store.insert("alice", at(10))
        self.store.close(first.id, "alice", at(10, 30))
        second = self.store.insert("alice", at(11))
        self.assertNotEqual(first.id, second.id)

    def test_close_sets_end_time(self):
        row = self.store.insert("alice", at(10))
        closed = self.store.close(row.id, "alice", at(10, 45))
        self.assertEqual(closed.end_time, at(10, 45))

    def test_close_other_users_session_is_not_found(self):
        row = self.store.insert("alice", at(10))
        with self.assertRaises(TimerError) as ctx:
            self.store.close(row.id, "mallory", at(11))
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)
        self.db.refresh(row)
        self.assertIsNone(row.end_time)

    def test_close_already_closed_is_not_found(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(10, 30))
        with self.assertRaises(TimerError) as ctx:
            self.store.close(row.id, "alice", at(11))
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_list_is_newest_first_and_limited(self):
        ids = []
        for hour in (9, 10, 11):
            row = self.store.insert("alice", at(hour))
            self.store.close(row.id, "alice", at(hour, 30))
            ids.append(row.id)
        self.store.insert("bob", at(9))

        rows = self.store.list("alice", 2)
        self.assertEqual([r.id for r in rows], [ids[2], ids[1]])

    def test_list_empty_user(self):
        self.assertEqual(self.store.list("nobody", 10), [])

    def test_closed_between_filters_window_and_open(self):
        inside = self.store.insert("alice", at(10))
        self.store.close(inside.id, "alice", at(10, 30))
        outside = self.store.insert("alice", at(13))
        self.store.close(outside.id, "alice", at(13, 30))
        self.store.insert("alice", at(11))  # still open

        rows = self.store.closed_between("alice", at(9), at(12))
        self.assertEqual([r.id for r in rows], [inside.id])

    def test_closed_between_bounds_are_inclusive(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(10, 5))
        self.assertEqual(len(self.store.closed_between("alice", at(10), at(10))), 1)

    def test_update_corrects_times(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(11))
        updated = self.store.update(row.id, "alice", {"start_time": at(9, 30)})
        self.assertEqual(updated.start_time, at(9, 30))
        self.assertEqual(updated.end_time, at(11))

    def test_update_end_only_cannot_precede_stored_start(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(10, 30))
        with self.assertRaises(ValueError):
            self.store.update(row.id, "alice", {"end_time": at(9)})
        self.db.refresh(row)
        self.assertEqual(row.end_time, at(10, 30))

    def test_update_start_only_cannot_follow_stored_end(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(10, 30))
        with self.assertRaises(ValueError):
            self.store.update(row.id, "alice", {"start_time": at(11)})
        self.db.refresh(row)
        self.assertEqual(row.start_time, at(10))

    def test_update_start_of_open_session_is_unchecked(self):
        row = self.store.insert("alice", at(10))
        updated = self.store.update(row.id, "alice", {"start_time": at(11)})
        self.assertEqual(updated.start_time, at(11))

    def test_update_missing_row_is_not_found(self):
        with self.assertRaises(TimerError) as ctx:
            self.store.update(999, "alice", {"end_time": at(11)})
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_update_reopening_while_another_is_open(self):
        old = self.store.insert("alice", at(9))
        self.store.close(old.id, "alice", at(9, 30))
        self.store.insert("alice", at(10))
        with self.assertRaises(TimerError) as ctx:
            self.store.update(old.id, "alice", {"end_time": None})
        self.assertEqual(ctx.exception.kind, ErrorKind.ALREADY_RUNNING)

    def test_update_rejects_unknown_fields(self):
        row = self.store.insert("alice", at(10))
        with self.assertRaises(ValueError):
            self.store.update(row.id, "alice", {"user_id": "mallory"})

    def test_delete(self):
        row = self.store.insert("alice", at(10))
        self.store.delete(row.id, "alice")
        self.assertEqual(self.count_rows(), 0)

    def test_delete_other_users_session_is_not_found(self):
        row = self.store.insert("alice", at(10))
        with self.assertRaises(TimerError) as ctx:
            self.store.delete(row.id, "mallory")
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(self.count_rows(), 1)

    def test_database_error_is_store_failure_with_driver_message(self):
        SQLModel.metadata.drop_all(self.engine)
        with self.assertRaises(TimerError) as ctx:
            self.store.list("alice", 10)
        self.assertEqual(ctx.exception.kind, ErrorKind.STORE_FAILURE)
        self.assertIn("no such table", ctx.exception.message)


# ──────────────────────────────────────────────────────────────────────────
# SessionGuard
# ──────────────────────────────────────────────────────────────────────────

class TestSessionGuard(StoreTestCase):

    def test_no_open_session_is_none_not_error(self):
        self.assertIsNone(self.guard.find_open_session("alice"))

    def test_finds_open_session(self):
        row = self.store.insert("alice", at(10))
        found = self.guard.find_open_session("alice")
        self.assertEqual(found.id, row.id)
        self.assertEqual(found.start_time, at(10))

    def test_ignores_closed_and_foreign_sessions(self):
        row = self.store.insert("alice", at(10))
        self.store.close(row.id, "alice", at(11))
        self.store.insert("bob", at(10))
        self.assertIsNone(self.guard.find_open_session("alice"))

    def test_ensure_none_open(self):
        self.guard.ensure_none_open("alice")
        self.store.insert("alice", at(10))
        with self.assertRaises(TimerError) as ctx:
            self.guard.ensure_none_open("alice")
        self.assertEqual(ctx.exception.kind, ErrorKind.ALREADY_RUNNING)

    def test_require_open(self):
        with self.assertRaises(TimerError) as ctx:
            self.guard.require_open("alice")
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_RUNNING)

    def test_query_failure_propagates(self):
        SQLModel.metadata.drop_all(self.engine)
        with self.assertRaises(TimerError) as ctx:
            self.guard.find_open_session("alice")
        self.assertEqual(ctx.exception.kind, ErrorKind.STORE_FAILURE)


# ──────────────────────────────────────────────────────────────────────────
# ProfileStore
# ──────────────────────────────────────────────────────────────────────────

class TestProfileStore(StoreTestCase):

    def test_missing_profile_is_not_found(self):
        with self.assertRaises(TimerError) as ctx:
            ProfileStore(self.db).get("alice")
        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_upsert_creates_then_updates(self):
        profiles = ProfileStore(self.db)
        created = profiles.upsert("alice", {"full_name": "Alice", "website": "https://a.example"})
        self.assertEqual(created.full_name, "Alice")
        self.assertFalse(created.unsubscribed)
        self.assertIsNotNone(created.updated_at)

        profiles.upsert("alice", {"unsubscribed": True})
        loaded = profiles.get("alice")
        self.assertEqual(loaded.full_name, "Alice")
        self.assertTrue(loaded.unsubscribed)


if __name__ == "__main__":
    unittest.main()
