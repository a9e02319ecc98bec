import functools
from reversible import define, reversible


class EventTarget:

    def __init__(self):
        self.listeners = {}

    def addListener(self, type, listener, once=False):
        self.listeners.setdefault(type, []).append((listener, once))

    def removeListener(self, type, listener, once=False):
        entries = self.listeners.get(type, [])
        if (listener, once) in entries:
            entries.remove((listener, once))

    def dispatch(self, type, event=None):
        for entry in list(self.listeners.get(type, [])):
            listener, once = entry
            if once:
                self.listeners[type].remove(entry)
            listener(event)


class Binding:

    """The result of when(target).does(type, **options): handlers passed to
    then() are called for every event of that type. After now(), new handlers
    are also called once right away. The options are passed on to the
    target's addListener() and removeListener().
    """

    def __init__(self, target, type, options):
        self.target = target
        self.type = type
        self.options = options
        self.handlers = []
        self.doNow = False
        self.listener = None

    def then(self, handler):
        self.handlers.append(handler)
        if self.doNow:
            handler(None)
        if self.listener is None:
            self.listener = self._dispatch
            self.target.addListener(self.type, self.listener, **self.options)
        return self

    def now(self):
        self.doNow = True
        return self

    def unbind(self):
        if self.listener is not None:
            self.target.removeListener(self.type, self.listener, **self.options)
            self.listener = None

    def _dispatch(self, event):
        for handler in self.handlers:
            handler(event)


class when:

    """Bind handlers to the events of `target`, reversibly:

        when(target).does("click").then(handler)
        when(target).clicks(once=True).then(handler)
    """

    def __init__(self, target):
        self.target = target
        self.does = define(self._does)

    def _does(self, type, **options):
        binding = Binding(self.target, type, options)
        return {"result": binding, "undo": binding.unbind}

    def __getattr__(self, name):
        if name == "observes":
            # EventTarget has no observers, so there is no reversible object.
            return None
        if name.startswith("_") or not name.endswith("s"):
            raise AttributeError(name)
        return functools.partial(self.does, name[:-1])


if __name__ == "__main__":
    button = EventTarget()
    clicks = []
    pings = []

    @reversible
    def enableCounting():
        when(button).does("click").then(lambda event: clicks.append(event))
        when(button).resets().now().then(lambda event: clicks.clear())
        when(button).does("ping", once=True).then(pings.append)

    call = enableCounting.do()
    button.dispatch("click", 1)
    button.dispatch("click", 2)
    assert clicks == [1, 2]
    button.dispatch("reset")
    assert clicks == []
    button.dispatch("ping", "first")
    button.dispatch("ping", "second")
    assert pings == ["first"]
    assert button.listeners["ping"] == []

    call.undo()
    button.dispatch("click", 3)
    assert clicks == []
    assert button.listeners == {"click": [], "reset": [], "ping": []}

    once = when(button).does.do("ping", once=True)
    once.result.then(pings.append)
    assert button.listeners["ping"] == [(once.result.listener, True)]
    once.undo()
    assert button.listeners["ping"] == []

    assert when(button).observes is None
