import asyncio
from reversible import define, reversible


class Timer:

    def __init__(self, duration, repeat):
        self.duration = duration
        self.repeat = repeat
        self.callbacks = []
        self.handle = None

    def then(self, callback):
        self.callbacks.append(callback)
        if self.handle is None:
            self._schedule()
        return self

    def cancel(self):
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None

    def _schedule(self):
        self.handle = asyncio.get_running_loop().call_later(self.duration, self._fire)

    def _fire(self):
        self.handle = None
        for callback in self.callbacks:
            callback()
        if self.repeat:
            self._schedule()


@define
def pause(duration, repeat=False):
    # Run the callbacks passed to .then() after `duration` seconds, or every
    # `duration` seconds if repeat is true. Undo stops the timer.
    timer = Timer(duration, repeat)
    return {"result": timer, "undo": timer.cancel}


async def main():
    ticks = []

    @reversible
    def startTicking():
        pause(0.01, repeat=True).then(lambda: ticks.append("tick"))
        pause(0.2).then(lambda: ticks.append("late"))

    call = startTicking.do()
    await asyncio.sleep(0.05)
    assert "tick" in ticks
    call.undo()
    count = len(ticks)
    await asyncio.sleep(0.25)
    assert len(ticks) == count
    assert "late" not in ticks


if __name__ == "__main__":
    asyncio.run(main())
