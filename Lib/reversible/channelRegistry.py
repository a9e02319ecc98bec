from dataclasses import dataclass
import inspect
import logging
import typing


logger = logging.getLogger("reversible.channels")


class ReversibleError(Exception):
    pass


def _identity(value):
    return value


@dataclass(frozen=True)
class Channel:

    """A Channel describes how values contributed by reversible calls are
    collected across a call tree. It has four fields, all callables:

    - bucket: takes no arguments and returns an empty accumulator
    - add: takes an accumulator and one contributed value, and adds the value
      to the accumulator
    - combine: turns an accumulator into the value attached to a call
    - transform: adapts the combined value for the handle returned by
      fn.do(); the default leaves the value as is

    For example, a channel collecting tagged values in call order:

        >>> tags = Channel(bucket=list, add=list.append, combine=tuple)
        >>> tags.gather(["a", "b"])
        ('a', 'b')
    """

    bucket: typing.Callable
    add: typing.Callable
    combine: typing.Callable
    transform: typing.Callable = _identity

    def fill(self, values):
        bucket = self.bucket()
        for value in values:
            self.add(bucket, value)
        return bucket

    def gather(self, values):
        return self.combine(self.fill(values))


_channels = {}


def registerChannel(name, channel):
    """Register a Channel under `name`. Reversible definitions may then
    return a raw value for that name next to "result", and every call exposes
    the combined value for it.

    The first registration for a name wins: registering a name a second time
    is ignored, as is any attempt to register the reserved name "result".
    Channels can not be unregistered.
    """
    if not isinstance(name, str):
        raise ReversibleError(f"channel name must be a string, not {name!r}")
    if not isinstance(channel, Channel):
        raise ReversibleError(f"expected a Channel for {name!r}, got {channel!r}")
    if name == "result":
        logger.debug("ignoring registration of the reserved name 'result'")
        return
    if name in _channels:
        logger.debug("channel %r is already registered, keeping the first one", name)
        return
    _channels[name] = channel
    logger.debug("registered channel %r", name)


def registeredChannels():
    return dict(_channels)


def getChannel(name):
    return _channels.get(name)


#
# The default "undo" channel. Undo actions are collected most recent first,
# so undoing a call tree runs in the reverse order of doing it.
#

def _prepend(bucket, value):
    bucket.insert(0, value)


def _combineUndoActions(bucket):
    # The bucket is read when undoing: actions of asynchronous calls that
    # finish after their caller are still added to it.

    def undoAll():
        remaining = iter(list(bucket))
        for action in remaining:
            outcome = action()
            if inspect.isawaitable(outcome):
                # From here on each action must wait for its predecessor.
                return _finishUndoActions(outcome, remaining)
        return None

    return undoAll


async def _finishUndoActions(pending, remaining):
    await pending
    for action in remaining:
        outcome = action()
        if inspect.isawaitable(outcome):
            await outcome


class UndoOnce:

    """Wrap an undo action so that only the first call performs it. Later
    calls do nothing and return None.
    """

    def __init__(self, action):
        self._action = action
        self.done = False

    def __repr__(self):
        return f"{self.__class__.__name__}({self._action!r}, done={self.done})"

    def __call__(self):
        if self.done:
            return None
        self.done = True
        return self._action()


registerChannel("undo", Channel(
    bucket=list,
    add=_prepend,
    combine=_combineUndoActions,
    transform=UndoOnce,
))
