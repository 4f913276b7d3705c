import unittest

from runner import Ticker
from simulator import PipelineEngine


class FakeScheduler:
    """Stands in for a Tk root: records callbacks instead of running a loop."""

    def __init__(self):
        self.pending = {}
        self.delays = []
        self._next = 0

    def after(self, ms, func):
        self._next += 1
        self.pending[self._next] = func
        self.delays.append(ms)
        return self._next

    def after_cancel(self, ident):
        del self.pending[ident]

    def fire(self):
        ident = min(self.pending)
        self.pending.pop(ident)()


class TickerTest(unittest.TestCase):
    def setUp(self):
        self.engine = PipelineEngine(seed=0)
        self.engine.load_program("ADD R1, R2, R3\nSUB R4, R1, R5")
        self.sched = FakeScheduler()
        self.steps = []
        self.finished = []
        self.ticker = Ticker(self.engine, self.sched, 300,
                             on_step=self.steps.append, on_finish=self.finished.append)

    def test_runs_to_completion_and_stops(self):
        self.ticker.start()
        self.assertTrue(self.engine.state.is_running)
        while self.sched.pending:
            self.sched.fire()
        self.assertTrue(self.engine.is_complete())
        self.assertFalse(self.ticker.running)
        self.assertFalse(self.engine.state.is_running)
        self.assertEqual(len(self.finished), 1)
        self.assertEqual(self.steps[-1].current_cycle, 6)

    def test_pause_cancels_pending_tick(self):
        self.ticker.start()
        self.sched.fire()
        self.ticker.pause()
        self.assertEqual(self.sched.pending, {})
        self.assertTrue(self.engine.state.is_paused)
        self.assertEqual(self.engine.state.current_cycle, 1)

    def test_start_twice_schedules_once(self):
        self.ticker.start()
        self.ticker.start()
        self.assertEqual(len(self.sched.pending), 1)

    def test_set_interval_reschedules(self):
        self.ticker.start()
        self.ticker.set_interval(100)
        self.assertEqual(len(self.sched.pending), 1)
        self.assertEqual(self.sched.delays, [300, 100])

    def test_step_once_noop_when_complete(self):
        self.engine.run()
        self.assertIsNone(self.ticker.step_once())
        self.assertEqual(self.steps, [])


if __name__ == '__main__':
    unittest.main()
