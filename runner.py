import logging

logger = logging.getLogger(__name__)


class Ticker:
    """Calls engine.step() on a timer.

    `scheduler` is anything with Tk's `after(ms, func)` / `after_cancel(id)`
    pair. The engine stays synchronous; stopping just cancels the pending
    callback.
    """

    def __init__(self, engine, scheduler, interval_ms=600, on_step=None, on_finish=None):
        self.engine = engine
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.on_step = on_step
        self.on_finish = on_finish
        self._pending = None

    @property
    def running(self):
        return self._pending is not None

    def start(self):
        if self.running:
            return
        self.engine.set_state(is_running=True, is_paused=False)
        self._schedule()

    def stop(self):
        self._cancel()
        self.engine.set_state(is_running=False, is_paused=False)

    def pause(self):
        self._cancel()
        self.engine.set_state(is_running=False, is_paused=True)

    def set_interval(self, interval_ms):
        self.interval_ms = interval_ms
        # restart so the new interval applies to the next tick
        if self.running:
            self._cancel()
            self._schedule()

    def step_once(self):
        """Manual single step; does nothing once the program has finished."""
        if self.engine.is_complete():
            return None
        state = self.engine.step()
        if self.on_step:
            self.on_step(state)
        return state

    def _schedule(self):
        self._pending = self.scheduler.after(self.interval_ms, self._tick)

    def _cancel(self):
        if self._pending is not None:
            self.scheduler.after_cancel(self._pending)
            self._pending = None

    def _tick(self):
        self._pending = None
        if self.engine.is_complete():
            logger.info("Run finished at cycle %d", self.engine.state.current_cycle)
            self.stop()
            if self.on_finish:
                self.on_finish(self.engine.get_state())
            return
        self.step_once()
        self._schedule()
