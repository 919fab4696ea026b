import threading
import unittest

from application.dispatch import DispatchLoop


class DispatchLoopTests(unittest.TestCase):
    def setUp(self) -> None:
        self.stop_event = threading.Event()

    def tearDown(self) -> None:
        self.stop_event.set()

    def test_events_are_handled_in_arrival_order(self):
        seen = []
        loop = DispatchLoop("test", seen.append, self.stop_event, poll_interval=0.01)
        for i in range(50):
            loop.submit(i)

        loop.start()
        loop.drain()

        self.assertEqual(seen, list(range(50)))

    def test_handler_errors_do_not_stop_the_loop(self):
        seen = []

        def handler(event):
            if event == "boom":
                raise RuntimeError("handler failed")
            seen.append(event)

        loop = DispatchLoop("test", handler, self.stop_event, poll_interval=0.01)
        loop.start()
        with self.assertLogs("application.dispatch", level="ERROR") as logs:
            for event in ("a", "boom", "b"):
                loop.submit(event)
            loop.drain()

        self.assertEqual(seen, ["a", "b"])
        self.assertIn("handler failed", "\n".join(logs.output))
        self.assertTrue(loop.is_alive())

    def test_loop_exits_after_cancellation(self):
        loop = DispatchLoop("test", lambda event: None, self.stop_event, poll_interval=0.01)
        loop.start()

        self.stop_event.set()
        loop.join(2)

        self.assertFalse(loop.is_alive())

    def test_in_flight_event_finishes_before_exit(self):
        started = threading.Event()
        release = threading.Event()
        finished = []

        def handler(event):
            started.set()
            release.wait(2)
            finished.append(event)

        loop = DispatchLoop("test", handler, self.stop_event, poll_interval=0.01)
        loop.start()
        loop.submit("slow")
        self.assertTrue(started.wait(2))

        self.stop_event.set()
        release.set()
        loop.join(2)

        self.assertEqual(finished, ["slow"])
        self.assertFalse(loop.is_alive())

    def test_loops_share_one_cancellation_signal(self):
        loops = [
            DispatchLoop(name, lambda event: None, self.stop_event, poll_interval=0.01)
            for name in ("commands", "reactions")
        ]
        for loop in loops:
            loop.start()

        self.stop_event.set()
        for loop in loops:
            loop.join(2)

        self.assertFalse(any(loop.is_alive() for loop in loops))


if __name__ == "__main__":
    unittest.main()
