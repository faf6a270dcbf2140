import unittest
from unittest.mock import MagicMock

from experienceme.db import DataAccessError, InMemoryDataClient
from experienceme.metrics import SESSION_KEY, EventKind, MetricsRecorder, source_from_param


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, minutes):
        self.now += minutes * 60


class MetricsRecorderTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDataClient()
        self.store = {}
        self.clock = FakeClock()
        self.recorder = MetricsRecorder(self.db, self.store, clock=self.clock)

    def test_two_views_within_window_record_once(self):
        self.assertTrue(self.recorder.record_once("e1", EventKind.VIEW))
        self.clock.advance(10)
        self.assertFalse(self.recorder.record_once("e1", EventKind.VIEW))
        self.assertEqual(len(self.db.events), 1)

    def test_views_outside_window_record_twice(self):
        self.recorder.record_once("e1", EventKind.VIEW)
        self.clock.advance(31)
        self.recorder.record_once("e1", EventKind.VIEW)
        self.assertEqual(len(self.db.events), 2)

    def test_window_is_per_experience_and_kind(self):
        self.recorder.record_once("e1", EventKind.VIEW)
        self.recorder.record_once("e1", EventKind.BOOKING_CLICK)
        self.recorder.record_once("e2", EventKind.VIEW)
        self.assertEqual(
            [(e.experience_id, e.event_type) for e in self.db.events],
            [("e1", "view"), ("e1", "booking_click"), ("e2", "view")],
        )
        self.assertIn("viewed_e1", self.store)
        self.assertIn("booking_e1", self.store)

    def test_expired_marks_are_dropped(self):
        self.recorder.record_once("e1", EventKind.VIEW)
        self.clock.advance(31)
        self.recorder.record_once("e2", EventKind.BOOKING_CLICK)
        self.assertNotIn("viewed_e1", self.store)
        self.assertIn("booking_e2", self.store)
        self.assertIn(SESSION_KEY, self.store)

    def test_live_marks_are_capped_oldest_first(self):
        recorder = MetricsRecorder(self.db, self.store, clock=self.clock, max_marks=3)
        for exp_id in ("e1", "e2", "e3", "e4"):
            recorder.record_once(exp_id, EventKind.VIEW)
            self.clock.advance(1)
        marks = sorted(k for k in self.store if k.startswith("viewed_"))
        self.assertEqual(marks, ["viewed_e2", "viewed_e3", "viewed_e4"])
        self.assertFalse(recorder.record_once("e4", EventKind.VIEW))

    def test_session_id_created_once(self):
        first = self.recorder.session_id()
        second = self.recorder.session_id()
        self.assertEqual(first, second)
        self.assertEqual(self.store[SESSION_KEY], first)
        self.assertEqual(list(self.db.visitor_sessions), [first])

        self.recorder.record_once("e1", EventKind.VIEW, source="Finder", user_id="u1")
        event = self.db.events[0]
        self.assertEqual(event.session_id, first)
        self.assertEqual(event.source, "finder")
        self.assertEqual(event.user_id, "u1")

    def test_failures_are_swallowed(self):
        db = MagicMock()
        db.create_visitor_session.side_effect = DataAccessError("rls")
        db.record_event.side_effect = DataAccessError("down")
        recorder = MetricsRecorder(db, self.store, clock=self.clock)
        self.assertFalse(recorder.record_once("e1", EventKind.VIEW))
        # Session id is still kept locally.
        self.assertIn(SESSION_KEY, self.store)

    def test_source_defaults_to_direct(self):
        self.assertEqual(source_from_param(None), "direct")
        self.assertEqual(source_from_param("  "), "direct")
        self.assertEqual(source_from_param("SHARE"), "share")


if __name__ == "__main__":
    unittest.main()
