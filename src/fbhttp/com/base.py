import logging
from abc import abstractmethod

from fbhttp.events import EventSource, LayerClosedEvent, LayerOpenedEvent

logger = logging.getLogger(__name__)


class ComLayerError(Exception):
    """ Indicates an error condition within a communication layer. """


class ConfigurationError(ComLayerError):
    """ The layer parameters do not describe a usable connection. """


class BadMethodError(ConfigurationError):
    """ The request method is missing or is not one of GET, PUT or POST. """


class MissingPathError(ConfigurationError):
    """ No '/' separates the host from the path. """


class PinCountMismatchError(ConfigurationError):
    """ The number of data pins does not suit the request method. """


class NoPayloadSourceError(ConfigurationError):
    """ A PUT/POST request has neither inline data nor an input pin to send. """


class DataTypeError(ComLayerError):
    """ A payload could not be converted to or from its textual form. """


class ComResponse:
    """ The status reported by each layer operation. """
    nothing = 0
    ok = 1
    configuration_error = 2
    invalid_pin_configuration = 3
    unsupported_transport = 4
    data_type_error = 5
    send_failed = 6
    receive_failed = 7
    not_initialized = 8

    @classmethod
    def name(cls, response):
        """
        >>> ComResponse.name(ComResponse.receive_failed)
        'receive_failed'
        """
        for k, v in vars(cls).items():
            if v == response and not k.startswith('_') and isinstance(v, int):
                return k
        return str(response)


class LayerState:
    uninitialized = 'uninitialized'
    open = 'open'
    closed = 'closed'


class ConnectionState:
    disconnected = 'disconnected'
    connected = 'connected'


class ComLayer:
    """
    Binds the data pins of a communication function block to an external transport.

    Manages the open/closed cycle: send and receive are only accepted while the layer is open.
    Subclasses implement the template methods _open_connection, _close_connection and _send_data.
    """

    def __init__(self, comm_fb, handler):
        """
        :param comm_fb: the function block that owns this layer
        :param handler: the transport gateway shared by all layers
        """
        self.comm_fb = comm_fb
        self.handler = handler
        self.events = EventSource()
        self._state = LayerState.uninitialized
        self.connection_state = ConnectionState.disconnected

    @property
    def state(self):
        return self._state

    @property
    def initialized(self):
        return self._state == LayerState.open

    def open(self, param):
        """
        Opens the binding described by param. An open layer is closed first.
        :return: ComResponse.ok when the layer is usable, an error status otherwise.
        """
        if self.initialized:
            self.close()
        response = self._open_connection(param)
        if response == ComResponse.ok:
            self._state = LayerState.open
            self.events.fire(LayerOpenedEvent(self))
        return response

    def close(self):
        """ Closes the binding. Closing a closed or never opened layer does nothing more. """
        was_open = self.initialized
        self._close_connection(was_open)
        self.connection_state = ConnectionState.disconnected
        if was_open:
            self._state = LayerState.closed
            self.events.fire(LayerClosedEvent(self))

    def send(self, values):
        """
        Sends the current values of the input pins.
        :param values: the input pin values, in pin order
        """
        if not self.initialized:
            logger.error("send on a layer that is not initialized")
            return ComResponse.not_initialized
        return self._send_data(values)

    def process_interrupt(self):
        """ Called by the owning block when it handles the interrupt this layer raised. """
        return ComResponse.ok

    def _interrupt(self):
        self.comm_fb.interrupt_comm_fb(self)

    @abstractmethod
    def _open_connection(self, param):
        raise NotImplementedError

    @abstractmethod
    def _close_connection(self, was_open):
        """ Releases the transport resources. Called for every close, whether or not the layer was open. """
        raise NotImplementedError

    @abstractmethod
    def _send_data(self, values):
        raise NotImplementedError
