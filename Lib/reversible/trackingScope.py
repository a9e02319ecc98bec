from contextvars import ContextVar
import logging


logger = logging.getLogger("reversible.scope")


class TrackingScope:

    """A TrackingScope collects everything contributed by the reversible calls
    nested inside one in-flight reversible call.

    Contributions are kept per channel name, in the order they were made. The
    owning call turns them into combined values (via the channel's bucket, add
    and combine functions) once it finishes, and then seals the scope.

    A sealed scope no longer belongs to a running call, but keeps the buckets
    its owning call combined. Values that arrive late, for example from an
    asynchronous call that was started but not awaited, are added to those
    buckets, and forwarded to the scope the owning call contributed to.
    """

    def __init__(self):
        self.contributions = {}
        self.sealed = False
        self.forwardTo = None
        self.buckets = {}  # channel name -> (channel, bucket), once sealed

    def __repr__(self):
        names = ", ".join(f"{name}={len(values)}" for name, values in self.contributions.items())
        state = "sealed" if self.sealed else "open"
        return f"{self.__class__.__name__}({names}, {state})"

    def contribute(self, name, values):
        received = False
        scope = self
        while scope is not None and scope.sealed:
            if name in scope.buckets:
                channel, bucket = scope.buckets[name]
                for value in values:
                    channel.add(bucket, value)
                received = True
            scope = scope.forwardTo
        if scope is not None:
            scope.contributions.setdefault(name, []).extend(values)
        elif not received:
            logger.warning(
                "dropping %d %r contribution(s) that arrived after the receiving call failed",
                len(values), name,
            )

    def seal(self, forwardTo=None, buckets=None):
        self.sealed = True
        self.forwardTo = forwardTo
        self.buckets = dict(buckets or {})


# The scope of the reversible call that is currently running, or None when no
# reversible call is running. Every asyncio task works on its own copy.
_currentScope = ContextVar("reversible_current_scope", default=None)


def currentScope():
    return _currentScope.get()


def enter():
    """Make a fresh, empty TrackingScope current, and return the scope that
    was current before, so it can be reinstated with restore().
    """
    previous = _currentScope.get()
    _currentScope.set(TrackingScope())
    return previous


def restore(previous):
    _currentScope.set(previous)


async def until(awaitable):
    """Await a foreign awaitable (one that is not itself the result of a
    reversible call, such as asyncio.sleep()) from within an asynchronous
    reversible definition.

    While waiting, no scope is current, so reversible calls made by whatever
    runs in the meantime are not attributed to the waiting call. The waiting
    call's scope is reinstated once the awaitable has settled.

        await until(asyncio.sleep(0.5))
    """
    previous = _currentScope.get()
    _currentScope.set(None)
    try:
        return await awaitable
    finally:
        restore(previous)
