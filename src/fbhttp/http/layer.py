"""
The HTTP communication layer.

A client block sends a request on each send() and receives the response asynchronously through
receive_client_bytes(). A server block registers its path with the gateway, receives the request
parameters through receive_server_fields() and answers with its input value on the next send().

Both directions report completion to the owning block with an interrupt. No operation raises:
each returns a ComResponse status.
"""
import logging

from fbhttp import settings
from fbhttp.com.base import ComLayer, ComResponse, ConfigurationError, ConnectionState, DataTypeError
from fbhttp.com.commfb import ComServiceType
from fbhttp.com.datatypes import CharString, ConversionError
from fbhttp.http import parser
from fbhttp.http.params import RequestMethod, parse_client_parameters, server_descriptor

logger = logging.getLogger(__name__)

OK_STATUS = '200 OK'
BAD_REQUEST_STATUS = '400 Bad Request'


def serialize_value(value):
    """
    Converts a pin value to the text sent over HTTP. Character strings are sent as UTF-8 without a
    byte order mark, other types as their IEC literal.
    :raises DataTypeError: when the value text exceeds the size the value reports for it.
    """
    size = value.to_string_buffer_size()
    try:
        if isinstance(value, CharString):
            return value.to_utf8(size)
        return value.to_string(size)
    except ConversionError as e:
        raise DataTypeError(str(e)) from e


def serialize_first(values):
    """ Serializes the value of the single input pin. """
    if not values:
        raise DataTypeError("no input value to send")
    return serialize_value(values[0])


class ReceiveBuffer:
    """
    A fixed capacity byte buffer. Each fill replaces the content with at most capacity bytes of
    the data; the excess is dropped.
    """

    def __init__(self, capacity):
        self._buffer = bytearray(capacity)
        self.fill_size = 0

    @property
    def capacity(self):
        return len(self._buffer)

    def fill(self, data):
        count = min(len(data), self.capacity)
        self._buffer[:count] = data[:count]
        self.fill_size = count
        return count

    @property
    def content(self):
        return bytes(self._buffer[:self.fill_size])


class HttpComLayer(ComLayer):
    """
    Binds a communication function block to HTTP, as a client or as a server.
    """

    def __init__(self, comm_fb, handler, recv_buffer_size=None):
        """
        :param comm_fb: the owning block. Provides service_type, inputs, outputs and interrupt_comm_fb()
        :param handler: the HttpHandler gateway
        :param recv_buffer_size: capacity of the receive buffer. Defaults to settings.recv_buffer_size
        """
        super().__init__(comm_fb, handler)
        self.descriptor = None
        self.request = None
        self.recv_buffer = ReceiveBuffer(recv_buffer_size or settings.recv_buffer_size)

    @property
    def role(self):
        return self.comm_fb.service_type

    @property
    def host(self):
        return self.descriptor.host if self.descriptor else ''

    @property
    def port(self):
        return self.descriptor.port if self.descriptor else settings.default_port

    @property
    def path(self):
        return self.descriptor.path if self.descriptor else ''

    def _open_connection(self, param):
        role = self.role
        if role == ComServiceType.server:
            return self._open_server(param)
        if role == ComServiceType.client:
            return self._open_client(param)
        logger.error("HTTP has no %s binding, '%s' was not opened" % (role, param))
        return ComResponse.unsupported_transport

    def _open_server(self, param):
        if self.comm_fb.num_inputs != 1:
            logger.error("server '%s' needs exactly one input for the response, found %d" %
                         (param, self.comm_fb.num_inputs))
            return ComResponse.invalid_pin_configuration
        self.descriptor = server_descriptor(param.lstrip('/'))
        self.handler.add_server_path(self, self.descriptor.path)
        logger.info("server initialized on path '%s'" % self.descriptor.path)
        return ComResponse.ok

    def _open_client(self, param):
        fb = self.comm_fb
        self.connection_state = ConnectionState.disconnected
        try:
            d = parse_client_parameters(param, fb.num_inputs, fb.num_outputs)
        except ConfigurationError as e:
            logger.error("wrong parameter '%s': %s" % (param, e))
            return ComResponse.configuration_error

        try:
            if d.method == RequestMethod.get:
                self.request = parser.build_get_request(d.host, d.path)
            else:
                self.request = parser.build_put_post_request(d.host, d.path, d.inline_data or '', d.content_type,
                                                             d.method)
        except parser.MessageError as e:
            logger.error("no request can be built from '%s': %s" % (param, e))
            return ComResponse.configuration_error
        self.descriptor = d
        logger.info("client with %s request initialized. Host: %s:%d, Path: %s" % (d.method, d.host, d.port, d.path))
        return ComResponse.ok

    def _close_connection(self, was_open):
        if was_open and self.role == ComServiceType.server:
            self.handler.remove_server_path(self.descriptor.path)
        self.handler.force_close(self)

    def _send_data(self, values):
        if self.role == ComServiceType.server:
            return self._send_as_server(values)
        return self._send_as_client(values)

    def _send_as_server(self, values):
        try:
            body = serialize_first(values)
        except DataTypeError as e:
            logger.error("response of server '%s' could not be serialized: %s" % (self.path, e))
            response = None
        else:
            response = parser.build_response(OK_STATUS, self.descriptor.content_type, body)
        if response is None:
            self.handler.force_close(self)
            return ComResponse.data_type_error
        self.handler.send_server_answer(self, response)
        return ComResponse.ok

    def _send_as_client(self, values):
        if self.descriptor.payload_from_input:
            try:
                body = serialize_first(values)
            except DataTypeError as e:
                logger.error("error in data serialization: %s" % e)
                return ComResponse.data_type_error
            if not parser.patch_body(self.request, body):
                logger.error("wrong %s request when changing the data" % self.descriptor.method)
                return ComResponse.data_type_error

        if not self.handler.send_client_data(self, self.request):
            logger.error("sending request to %s:%d failed" % (self.host, self.port))
            return ComResponse.send_failed
        return ComResponse.ok

    def receive_client_bytes(self, data):
        """
        Delivers the bytes received for the last request. None or empty data signals a timeout.
        """
        if not self.initialized:
            logger.error("receive on a layer that is not initialized")
            return ComResponse.not_initialized
        if self.role != ComServiceType.client:
            logger.error("raw data delivered to server '%s', use receive_server_fields" % self.path)
            return ComResponse.nothing
        if not data:
            logger.warning("no response from %s:%d" % (self.host, self.port))
            return ComResponse.receive_failed

        self.recv_buffer.fill(data)
        response = self._handle_response(self.recv_buffer.content)
        if response == ComResponse.ok:
            self._interrupt()
        else:
            logger.error("client with host %s:%d couldn't handle the HTTP response" % (self.host, self.port))
        return response

    def _handle_response(self, raw):
        if parser.HEADER_END not in raw:
            logger.error("invalid or incomplete HTTP response")
            return ComResponse.receive_failed

        d = self.descriptor
        if d.method == RequestMethod.get:
            ok, payload = parser.parse_get_response(raw, d.expected_response)
        else:
            ok, payload = parser.parse_put_post_response(raw, d.expected_response)
        if not ok:
            return ComResponse.receive_failed
        if d.has_output_response and not self.comm_fb.outputs[0].from_text(payload):
            logger.error("response '%s' is not a valid %s" % (payload, self.comm_fb.outputs[0].type_id))
            return ComResponse.receive_failed
        return ComResponse.ok

    def receive_server_fields(self, names, values):
        """
        Delivers the parameters of a request received by the server. The values are assigned to the
        output pins in arrival order; the names are not used.
        """
        if not self.initialized:
            logger.error("receive on a layer that is not initialized")
            return ComResponse.not_initialized
        if self.role != ComServiceType.server:
            logger.error("request fields delivered to client %s:%d" % (self.host, self.port))
            return ComResponse.nothing

        values = list(values)
        outputs = self.comm_fb.outputs
        parsed = None
        if len(values) != len(outputs):
            logger.error("server with path %s received %d parameters, while it has %d outputs" %
                         (self.path, len(values), len(outputs)))
        else:
            try:
                parsed = [pin.parse_text(value) for pin, value in zip(outputs, values)]
            except ConversionError as e:
                logger.error("server with path %s received an invalid parameter: %s" % (self.path, e))

        if parsed is None:
            self._answer_bad_request()
            return ComResponse.data_type_error

        for pin, value in zip(outputs, parsed):
            pin.value = value
        self._interrupt()
        return ComResponse.ok

    def _answer_bad_request(self):
        response = parser.build_response(BAD_REQUEST_STATUS, self.descriptor.content_type, '')
        if response is None:
            self.handler.force_close_from_recv(self)
        else:
            self.handler.send_server_answer_from_recv(self, response)
