import threading
import unittest

from squatcoach.counter.expiry import DisplayExpiryScheduler, ExpiryHandle
from tests.frames import ManualTimers


class ExpiryHandleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.timers = ManualTimers()
        self.handle = ExpiryHandle("snapshot", self.timers)
        self.fired = []

    def test_schedule_starts_daemon_timer_with_delay_in_seconds(self) -> None:
        self.handle.schedule(3000, lambda: self.fired.append(1))
        (timer,) = self.timers.timers
        self.assertEqual(timer.delay, 3.0)
        self.assertTrue(timer.started)
        self.assertTrue(timer.daemon)
        self.assertTrue(self.handle.pending)

        timer.fire()
        self.assertEqual(self.fired, [1])
        self.assertFalse(self.handle.pending)

    def test_rescheduling_cancels_previous_timer(self) -> None:
        self.handle.schedule(3000, lambda: self.fired.append("old"))
        self.handle.schedule(3000, lambda: self.fired.append("new"))
        old, new = self.timers.timers
        self.assertTrue(old.cancelled)
        self.assertFalse(new.cancelled)
        self.assertEqual(len(self.timers.live(3.0)), 1)

    def test_stale_callback_that_already_fired_is_ignored(self) -> None:
        self.handle.schedule(3000, lambda: self.fired.append("old"))
        old = self.timers.timers[0]
        self.handle.schedule(3000, lambda: self.fired.append("new"))
        # simulate the old thread having passed its wait before cancel landed
        old.fn()
        self.assertEqual(self.fired, [])
        self.assertTrue(self.handle.pending)

    def test_cancel_makes_pending_callback_a_noop(self) -> None:
        self.handle.schedule(2000, lambda: self.fired.append(1))
        timer = self.timers.timers[0]
        self.handle.cancel()
        self.assertTrue(timer.cancelled)
        timer.fn()
        self.assertEqual(self.fired, [])
        self.assertFalse(self.handle.pending)

    def test_callback_errors_are_contained(self) -> None:
        def boom():
            raise RuntimeError("renderer gone")

        self.handle.schedule(10, boom)
        with self.assertLogs("squatcoach.counter.expiry", level="ERROR"):
            self.timers.timers[0].fire()

    def test_real_thread_timer_fires(self) -> None:
        done = threading.Event()
        handle = ExpiryHandle("real")
        handle.schedule(10, done.set)
        self.assertTrue(done.wait(timeout=2.0))


class DisplayExpirySchedulerTests(unittest.TestCase):
    def test_two_independent_handles(self) -> None:
        timers = ManualTimers()
        sched = DisplayExpiryScheduler(3000, 2000, timers)
        hits = []
        sched.schedule_snapshot(lambda: hits.append("snapshot"))
        sched.schedule_warnings(lambda: hits.append("warnings"))
        self.assertEqual(len(timers.live(3.0)), 1)
        self.assertEqual(len(timers.live(2.0)), 1)

        timers.live(2.0)[0].fire()
        self.assertEqual(hits, ["warnings"])
        self.assertTrue(sched.snapshot.pending)

    def test_cancel_all(self) -> None:
        timers = ManualTimers()
        sched = DisplayExpiryScheduler(3000, 2000, timers)
        sched.schedule_snapshot(lambda: None)
        sched.schedule_warnings(lambda: None)
        sched.cancel_all()
        self.assertTrue(all(t.cancelled for t in timers.timers))
        self.assertFalse(sched.snapshot.pending)
        self.assertFalse(sched.warnings.pending)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
