"""
Parses the layer parameter of an HTTP client into a ConnectionDescriptor.

The client parameter has the form::

    METHOD[;CONTENT_TYPE[;EXPECTED_STATUS]];HOST[:PORT]/PATH[?INLINE_DATA]

For example ``PUT;application/json;HTTP/1.1 204 No Content;plc.local:8080/api/setpoint``.
Empty CONTENT_TYPE and EXPECTED_STATUS segments keep their defaults. INLINE_DATA is only recognized
for PUT and POST, and is sent as the request body instead of an input pin value.
"""
import logging
import re

from fbhttp import settings
from fbhttp.com.base import BadMethodError, MissingPathError, NoPayloadSourceError, PinCountMismatchError
from fbhttp.com.commfb import ComServiceType
from fbhttp.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class RequestMethod:
    unset = 'UNSET'
    get = 'GET'
    put = 'PUT'
    post = 'POST'


_methods = {m: m for m in (RequestMethod.get, RequestMethod.put, RequestMethod.post)}

_leading_digits = re.compile(r'\s*\+?(\d+)')


class ConnectionDescriptor(CommonEqualityMixin, StringerMixin):
    """
    The validated configuration of one connection. Immutable once built.
    """

    def __init__(self, role, method=RequestMethod.unset, host='', port=None, path='', inline_data=None,
                 content_type=None, expected_response=None, has_output_response=False):
        self._role = role
        self._method = method
        self._host = host
        self._port = settings.default_port if port is None else port
        self._path = path
        self._inline_data = inline_data
        self._content_type = content_type or settings.default_content_type
        self._expected_response = expected_response or settings.default_expected_response
        self._has_output_response = has_output_response

    @property
    def role(self):
        return self._role

    @property
    def method(self):
        return self._method

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def path(self):
        """ the request path, or the registration key of a server. Has no leading '/'. """
        return self._path

    @property
    def inline_data(self):
        """ the request body given in the parameter, or None """
        return self._inline_data

    @property
    def content_type(self):
        return self._content_type

    @property
    def expected_response(self):
        return self._expected_response

    @property
    def has_output_response(self):
        """ True when the response payload is written to an output pin. """
        return self._has_output_response

    @property
    def sends_payload(self):
        return self._method in (RequestMethod.put, RequestMethod.post)

    @property
    def payload_from_input(self):
        """ True when each send takes the request body from the input pin. """
        return self.sends_payload and self._inline_data is None


def parse_port(digits):
    """
    Parses the port the way strtoul does: leading digits count, anything else gives 0.
    The result is truncated to 16 bits.

    >>> parse_port('8080')
    8080
    >>> parse_port('80abc')
    80
    >>> parse_port('http')
    0
    >>> parse_port('65537')
    1
    """
    match = _leading_digits.match(digits)
    return int(match.group(1)) & 0xFFFF if match else 0


def server_descriptor(path):
    """ The descriptor of a server: the path is the registration key. """
    return ConnectionDescriptor(ComServiceType.server, path=path)


def parse_client_parameters(param, num_inputs, num_outputs) -> ConnectionDescriptor:
    """
    Parses a client layer parameter.
    :param param: the layer parameter
    :param num_inputs: the number of input pins of the block
    :param num_outputs: the number of output pins of the block
    :return: the descriptor
    :raises ConfigurationError: when the parameter or the pin counts do not describe a usable request
    """
    method_segment, sep, rest = param.partition(';')
    if not sep:
        raise BadMethodError("GET, PUT or POST must be defined, but none of them was defined in '%s'" % param)

    content_type = expected_response = ''
    if ';' in rest:
        content_type, _, rest = rest.partition(';')
        if ';' in rest:
            expected_response, _, rest = rest.partition(';')

    method = _methods.get(method_segment.strip())
    if method is None:
        raise BadMethodError("GET, PUT or POST must be defined, but %s was defined instead" % method_segment)

    inline_data = None
    if method != RequestMethod.get:
        path_part, sep, query = rest.partition('?')
        if query:
            rest = path_part
            inline_data = query
            # an explicitly configured content type is kept
            if not content_type:
                content_type = settings.urlencoded_content_type

    host_part, sep, path = rest.partition('/')
    if not sep:
        raise MissingPathError("no path was found in '%s'" % param)

    host, sep, port_digits = host_part.partition(':')
    if sep:
        port = parse_port(port_digits)
    else:
        port = settings.default_port
        logger.info("no port was found in '%s', using default %d" % (param, port))

    has_output_response = _check_pins(method, inline_data, num_inputs, num_outputs)

    return ConnectionDescriptor(ComServiceType.client, method, host, port, path, inline_data,
                                content_type, expected_response, has_output_response)


def _check_pins(method, inline_data, num_inputs, num_outputs):
    """
    Validates the pin counts for the method.
    :return: True when the response is written to an output pin.
    """
    if num_outputs > 1:
        raise PinCountMismatchError("a %s request cannot have more than one output, found %d" %
                                    (method, num_outputs))
    if method == RequestMethod.get:
        if num_outputs == 0:
            raise PinCountMismatchError("a GET request without an output doesn't make sense")
        return True

    if inline_data is not None:
        if num_inputs:
            logger.warning("inline data in the parameter is used for the %s request body instead of the inputs"
                           % method)
    elif num_inputs == 0:
        raise NoPayloadSourceError("a %s request needs inline data or one input, but none is defined" % method)
    elif num_inputs > 1:
        raise PinCountMismatchError("a %s request sends one input, found %d" % (method, num_inputs))
    return num_outputs == 1
