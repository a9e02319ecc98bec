import asyncio
from collections.abc import Mapping
import functools
import inspect
import logging
import types

from .channelRegistry import ReversibleError, registeredChannels
from .trackingScope import currentScope, enter, restore


logger = logging.getLogger("reversible.calls")


class ReversibleFunction:

    """A ReversibleFunction wraps a definition: a function returning a mapping
    with the call's "result" and, optionally, a raw value for any registered
    channel, most notably an "undo" function.

        >>> log = []
        >>> @define
        ... def append(item):
        ...     log.append(item)
        ...     return {"result": len(log), "undo": log.pop}

    Reversible functions can be called like any other function:

        >>> append("a")
        1

    Calling fn.do() instead returns a handle that can undo the call:

        >>> call = append.do("b")
        >>> call.result
        2
        >>> call.undo()
        >>> log
        ['a']

    Reversible calls made while another reversible call is running are
    folded into that call, so undoing the outer call undoes the inner ones
    too, in reverse order:

        >>> @reversible
        ... def appendTwice(item):
        ...     append(item)
        ...     return append(item)
        >>> call = appendTwice.do("c")
        >>> log
        ['a', 'c', 'c']
        >>> call.undo()
        >>> log
        ['a']
        >>> call.undone
        True

    When isAsync is true, the definition returns an awaitable of the mapping.
    Calling the function then creates an asyncio task, and returns it; fn.do()
    returns an AsyncReversibleCall whose result is that task. The call's
    scope is fixed when the task is created, but the definition's body only
    starts running at the next iteration of the event loop.

    ReversibleFunction is a descriptor, so it can be used to decorate methods;
    the instance is passed on to the definition for both fn() and fn.do().
    """

    def __init__(self, definition, isAsync=False):
        # update_wrapper copies the definition's __dict__, which may hold the
        # attributes of another ReversibleFunction; set ours afterwards.
        functools.update_wrapper(self, definition)
        self._definition = definition
        self.isAsync = isAsync

    def __repr__(self):
        name = getattr(self, "__qualname__", None) or repr(self._definition)
        kind = "async " if self.isAsync else ""
        return f"<{kind}{self.__class__.__name__} {name}>"

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return ReversibleFunction(types.MethodType(self._definition, instance), self.isAsync)

    def __call__(self, *args, **kwargs):
        if self.isAsync:
            return _startAsync(self._definition, args, kwargs)
        result, combined = _runSync(self._definition, args, kwargs)
        return result

    def do(self, *args, **kwargs):
        if self.isAsync:
            call = AsyncReversibleCall()
            call.result = _startAsync(self._definition, args, kwargs, call._settle)
            return call
        result, combined = _runSync(self._definition, args, kwargs)
        return ReversibleCall(result, combined)


def define(definition, isAsync=False):
    """Turn `definition` into a ReversibleFunction. The definition must return
    a mapping with a "result" key, plus the raw value it contributes to each
    channel, for example its own "undo" function:

        @define
        def listen(target, handler):
            target.addListener(handler)
            return {"result": None, "undo": lambda: target.removeListener(handler)}

    Pass isAsync=True when the definition returns an awaitable of that mapping.
    """
    return ReversibleFunction(definition, isAsync=isAsync)


def reversible(function):
    """Turn an ordinary function, whose body calls other reversible functions,
    into a ReversibleFunction. Its undo action undoes everything the nested
    calls did, most recent first.

    Coroutine functions are detected, and produce an asynchronous
    ReversibleFunction.
    """
    if inspect.iscoroutinefunction(function):
        @functools.wraps(function)
        async def definition(*args, **kwargs):
            return {"result": await function(*args, **kwargs)}
        return ReversibleFunction(definition, isAsync=True)

    @functools.wraps(function)
    def definition(*args, **kwargs):
        return {"result": function(*args, **kwargs)}
    return ReversibleFunction(definition)


reversible.define = define


# Call handles

class _CallHandle:

    _channels = None

    def __getattr__(self, name):
        # Only reached for names that are not regular attributes.
        if name.startswith("_"):
            raise AttributeError(name)
        if self._channels is None:
            raise AttributeError(f"channel {name!r} is not available before the call has finished")
        try:
            return self._channels[name]
        except KeyError:
            raise AttributeError(
                f"{self.__class__.__name__!r} object has no attribute or channel {name!r}"
            ) from None


class ReversibleCall(_CallHandle):

    """The handle returned by fn.do() for a synchronous reversible function.
    Besides result, undo() and undone, it has an attribute for every
    registered channel, holding the channel's transformed value.
    """

    def __init__(self, result, combined):
        self.result = result
        self._channels = _transformChannels(combined)

    def __repr__(self):
        return f"{self.__class__.__name__}(result={self.result!r}, undone={self.undone})"

    def undo(self):
        """Undo the call and all reversible calls it made. Only the first
        call has an effect. If any of the collected undo actions is
        asynchronous, this returns a coroutine that must be awaited.
        """
        return self._channels["undo"]()

    @property
    def undone(self):
        return self._channels["undo"].done


class AsyncReversibleCall(_CallHandle):

    """The handle returned by fn.do() for an asynchronous reversible function.

    The result attribute is an asyncio task producing the call's result.
    Channel attributes become available once that task has finished.
    """

    def __init__(self):
        self.result = None
        self._undoTask = None

    def __repr__(self):
        state = "pending" if self._channels is None else "finished"
        return f"{self.__class__.__name__}({state}, undone={self.undone})"

    def _settle(self, combined):
        self._channels = _transformChannels(combined)

    def undo(self):
        """Schedule undoing the call, and return the task doing it. The task
        first waits for the call itself to finish. Calling undo() again
        returns the same task.
        """
        if self._undoTask is None:
            self._undoTask = asyncio.get_running_loop().create_task(self._undoWhenSettled())
        return self._undoTask

    async def _undoWhenSettled(self):
        await self.result
        outcome = self._channels["undo"]()
        if inspect.isawaitable(outcome):
            await outcome

    @property
    def undone(self):
        return self._undoTask is not None


#
# Running definitions. Each call gets a fresh TrackingScope; nested calls
# contribute to it. Once the call finishes, the channel values it collected
# are combined, and forwarded to the caller's scope, if there is one.
#

def _runSync(definition, args, kwargs):
    previous = enter()
    scope = currentScope()
    try:
        response = definition(*args, **kwargs)
        if inspect.iscoroutine(response):
            response.close()
            raise ReversibleError(
                f"{_describe(definition)} returned a coroutine, define it with isAsync=True"
            )
        result, rawValues = _unpack(definition, response)
    except BaseException:
        _discard(scope)
        raise
    finally:
        restore(previous)
    return result, _harvest(scope, rawValues, previous)


def _startAsync(definition, args, kwargs, onSettled=None):
    loop = asyncio.get_running_loop()
    previous = enter()
    scope = currentScope()
    try:
        awaitable = definition(*args, **kwargs)
        if not inspect.isawaitable(awaitable):
            raise ReversibleError(
                f"{_describe(definition)} was defined with isAsync=True, but did not return an awaitable"
            )
        # The task runs in a copy of the current context, in which `scope`
        # is the current scope.
        task = loop.create_task(_settle(definition, awaitable, scope, previous, onSettled))
    except BaseException:
        _discard(scope)
        raise
    finally:
        restore(previous)
    return task


async def _settle(definition, awaitable, scope, previous, onSettled):
    try:
        result, rawValues = _unpack(definition, await awaitable)
    except BaseException:
        _discard(scope)
        raise
    combined = _harvest(scope, rawValues, previous)
    if onSettled is not None:
        onSettled(combined)
    return result


def _unpack(definition, response):
    if not isinstance(response, Mapping) or "result" not in response:
        raise ReversibleError(
            f"{_describe(definition)} must return a mapping with a 'result' key, not {response!r}"
        )
    channels = registeredChannels()
    rawValues = {}
    for name, value in response.items():
        if name == "result" or value is None:
            continue
        if name not in channels:
            logger.debug("ignoring %r returned by %s, there is no such channel", name, _describe(definition))
            continue
        rawValues[name] = value
    return response["result"], rawValues


def _harvest(scope, rawValues, previous):
    # A call's own value comes first, then whatever its nested calls added.
    contributions = {name: [value] for name, value in rawValues.items()}
    for name, values in scope.contributions.items():
        contributions.setdefault(name, []).extend(values)
    buckets = {
        name: (channel, channel.fill(contributions.get(name, ())))
        for name, channel in registeredChannels().items()
    }
    # Late values reaching the sealed scope still end up in these buckets.
    scope.seal(previous, buckets)
    if previous is not None:
        for name, values in contributions.items():
            previous.contribute(name, values)
    return {name: channel.combine(bucket) for name, (channel, bucket) in buckets.items()}


def _discard(scope):
    logger.debug("reversible call failed, discarding %r", scope)
    scope.seal(None)


def _transformChannels(combined):
    channels = registeredChannels()
    return {name: channels[name].transform(value) for name, value in combined.items()}


def _describe(definition):
    return getattr(definition, "__qualname__", None) or repr(definition)
