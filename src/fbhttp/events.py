"""
Notifications posted by communication layers and the function blocks that own them.

A layer posts LayerOpenedEvent/LayerClosedEvent as its binding changes. When an asynchronous
receive completes, the owning function block posts an InterruptEvent so the scheduler can resume it.
"""

from fbhttp.support.mixins import CommonEqualityMixin


class EventSource(object):

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        # copy so handlers may unsubscribe while being notified
        for handler in tuple(self._handlers):
            handler(*args, **kwargs)


class LayerEvent(CommonEqualityMixin):
    """ base class for layer events. """
    def __init__(self, layer):
        self.layer = layer


class LayerOpenedEvent(LayerEvent):
    """ The layer was opened successfully. """


class LayerClosedEvent(LayerEvent):
    """ The layer was closed. """


class InterruptEvent(LayerEvent):
    """ The layer completed a receive and the owning block should resume. """
