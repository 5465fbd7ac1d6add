"""The simulation's single source of virtual time."""

from fanoutsim.core.temporal import Instant


class Clock:
    """Virtual clock shared by every entity in a simulation.

    Only the event loop moves it, and only forwards. Calling the clock
    returns the current time in milliseconds, so it can be handed to
    components that just want a ``() -> float`` time source.
    """

    def __init__(self, start_time: Instant = Instant.Epoch):
        self._now = start_time

    def __call__(self) -> float:
        return self._now.to_millis()

    @property
    def now(self) -> Instant:
        return self._now

    @property
    def now_ms(self) -> float:
        return self._now.to_millis()

    def advance_to(self, time: Instant) -> None:
        if time < self._now:
            raise ValueError(f"Clock cannot move backwards from {self._now!r} to {time!r}")
        self._now = time
