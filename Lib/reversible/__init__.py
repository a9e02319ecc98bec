"""# reversible

Functions that remember how to undo themselves, including everything they
called.

A reversible function is built from a definition that returns its result
together with an undo action:

    >>> items = []
    >>> @define
    ... def add(item):
    ...     items.append(item)
    ...     return {"result": item, "undo": lambda: items.remove(item)}

Ordinary functions that call reversible functions can be made reversible as
well; undoing them undoes every nested call, in reverse order:

    >>> @reversible
    ... def addAll(*newItems):
    ...     for item in newItems:
    ...         add(item)
    ...     return len(items)

There are three ways to use a reversible function. Calling it plainly just
performs it:

    >>> addAll("a", "b")
    2

Calling it with .do() returns a handle that can undo it:

    >>> call = addAll.do("c", "d")
    >>> call.result
    4
    >>> call.undo()
    >>> items
    ['a', 'b']
    >>> call.undone
    True

And calling it from within another reversible function folds its undo action
into that function's undo action.

Coroutine functions are supported: `reversible(asyncFunction)` produces a
function that returns an asyncio task, and whose .do() handle has an undo()
that waits for the call to finish before undoing it. Use `until()` to await
things that are not reversible calls from within such a function:

    @reversible
    async def slowly():
        await until(asyncio.sleep(1))
        return addAll("e")

Besides "undo", reversible calls can collect other values across a call tree,
by registering a Channel with `registerChannel()`.
"""

from .channelRegistry import Channel, ReversibleError, UndoOnce, getChannel, registerChannel, registeredChannels
from .reversibleFunction import AsyncReversibleCall, ReversibleCall, ReversibleFunction, define, reversible
from .trackingScope import currentScope, until

__all__ = [
    "AsyncReversibleCall",
    "Channel",
    "ReversibleCall",
    "ReversibleError",
    "ReversibleFunction",
    "UndoOnce",
    "currentScope",
    "define",
    "getChannel",
    "registerChannel",
    "registeredChannels",
    "reversible",
    "until",
]

try:
    from ._version import version as __version__
except ImportError:
    __version__ = "<unknown>"
