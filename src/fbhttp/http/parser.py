r"""
Builds HTTP/1.1 requests and responses and interprets received ones, using h11 for the framing.

h11 does no I/O: messages are serialized by sending events through an h11.Connection, and received
bytes are fed to one and read back as events. Requests are kept as mutable bytearrays so the body
of a prepared PUT/POST request can be replaced in place before each send::

    PUT /api/setpoint HTTP/1.1\r\n
    Host: plc.local\r\n
    Connection: close\r\n
    Content-Type: text/html\r\n
    Content-Length: 2\r\n
    \r\n
    42
"""
import logging
import re
from urllib.parse import parse_qsl

import h11

logger = logging.getLogger(__name__)

HEADER_END = b'\r\n\r\n'
FORM_CONTENT_TYPE = b'application/x-www-form-urlencoded'

_status = re.compile(r'^(\d{3}) ([^\r\n]+)$')


class MessageError(ValueError):
    """ A message could not be built from the given parts. """


def _encode(text):
    return text.encode('utf-8') if isinstance(text, str) else bytes(text)


def _request_target(path):
    return '/' + path.lstrip('/')


def _serialize(conn, body, head_type, **head):
    try:
        data = conn.send(head_type(**head))
        if body:
            data += conn.send(h11.Data(data=body))
        data += conn.send(h11.EndOfMessage())
    except (h11.LocalProtocolError, ValueError) as e:
        raise MessageError(str(e)) from e
    return bytearray(data)


def _request(method, target, headers, body=b''):
    return _serialize(h11.Connection(our_role=h11.CLIENT), body, h11.Request,
                      method=method, target=target, headers=headers)


def build_get_request(host, path) -> bytearray:
    """
    :raises MessageError: when host or path cannot appear in a request
    """
    return _request('GET', _request_target(path), [('Host', host), ('Connection', 'close')])


def build_put_post_request(host, path, body, content_type, method) -> bytearray:
    """
    :raises MessageError: when host, path or content_type cannot appear in a request
    """
    payload = _encode(body)
    headers = [('Host', host), ('Connection', 'close'), ('Content-Type', content_type),
               ('Content-Length', str(len(payload)))]
    return _request(method, _request_target(path), headers, payload)


def _header(event, name):
    for key, value in event.headers:
        if key == name:
            return value
    return None


def patch_body(request: bytearray, body) -> bool:
    """
    Replaces the body of a prepared PUT/POST request, updating its Content-Length.
    :return: False, leaving request unchanged, when it is incomplete or has no Content-Length.
    """
    conn = h11.Connection(our_role=h11.SERVER)
    conn.receive_data(bytes(request))
    try:
        head = conn.next_event()
    except h11.RemoteProtocolError as e:
        logger.debug("prepared request is malformed: %s" % e)
        return False
    if type(head) is not h11.Request or _header(head, b'content-length') is None:
        return False

    payload = _encode(body)
    headers = [(name, str(len(payload)).encode('ascii') if name.lower() == b'content-length' else value)
               for name, value in head.headers.raw_items()]
    try:
        patched = _request(head.method, head.target, headers, payload)
    except MessageError as e:
        logger.debug("request body could not be replaced: %s" % e)
        return False
    request[:] = patched
    return True


def build_response(status, content_type, body):
    """
    Builds a response.
    :param status: the status code and reason, e.g. '200 OK'
    :return: the response as a bytearray, or None when status is malformed.
    """
    match = _status.match(status)
    if not match:
        logger.debug("malformed response status '%s'" % status)
        return None
    payload = _encode(body)
    headers = [('Content-Type', content_type), ('Content-Length', str(len(payload))), ('Connection', 'close')]
    try:
        return _serialize(h11.Connection(our_role=h11.SERVER), payload, h11.Response,
                          status_code=int(match.group(1)), reason=match.group(2), headers=headers)
    except MessageError as e:
        logger.debug("response '%s' could not be built: %s" % (status, e))
        return None


def response_reader(method='GET'):
    """
    An h11 connection ready to receive the response to a request of the given method.
    """
    conn = h11.Connection(our_role=h11.CLIENT)
    conn.send(h11.Request(method=method, target='/', headers=[('Host', 'localhost')]))
    conn.send(h11.EndOfMessage())
    return conn


def request_reader():
    """ An h11 connection ready to receive a request. """
    return h11.Connection(our_role=h11.SERVER)


def _status_text(response):
    return 'HTTP/%s %d %s' % (response.http_version.decode('ascii'), response.status_code,
                              response.reason.decode('latin-1'))


def _parse_response(raw, expected_status, method):
    """
    :return: (ok, body). The body is what arrived of it when the message is cut short.
    """
    conn = response_reader(method)
    conn.receive_data(bytes(raw))
    # everything received is in raw
    conn.receive_data(b'')
    response = None
    body = bytearray()
    try:
        while True:
            event = conn.next_event()
            if type(event) is h11.Response:
                response = event
            elif type(event) is h11.Data:
                body += event.data
            elif type(event) is h11.InformationalResponse:
                continue
            else:
                break
    except h11.RemoteProtocolError as e:
        if response is None:
            logger.info("invalid HTTP response: %s" % e)
            return False, ''
        logger.debug("response body is incomplete: %s" % e)

    if response is None:
        logger.debug("response has no status line")
        return False, ''
    status = _status_text(response)
    if status != expected_status:
        logger.info("unexpected response status '%s', expected '%s'" % (status, expected_status))
        return False, ''
    return True, bytes(body).decode('utf-8', 'replace')


def parse_get_response(raw, expected_status):
    """
    Interprets the response to a GET request.
    :return: (ok, payload) where payload is the body. ok is True iff the status line is expected_status.
    """
    return _parse_response(raw, expected_status, 'GET')


def parse_put_post_response(raw, expected_status):
    """
    Interprets the response to a PUT or POST request.
    :return: (ok, payload) where payload is the body, which may be empty.
    """
    return _parse_response(raw, expected_status, 'POST')


class HttpRequestLine:
    """ The parts of a received request that a server layer consumes. """

    def __init__(self, method, path, names=(), values=()):
        self.method = method
        self.path = path
        self.names = list(names)
        self.values = list(values)

    def __repr__(self):
        return 'HttpRequestLine(%r, %r, %r, %r)' % (self.method, self.path, self.names, self.values)


def parse_request(raw):
    """
    Parses a received request. Parameters are taken from the query string, followed by those of a
    form-encoded body, in arrival order.
    :return: an HttpRequestLine, or None when the request is incomplete or malformed.
    """
    conn = request_reader()
    conn.receive_data(bytes(raw))
    body = bytearray()
    try:
        request = conn.next_event()
        if type(request) is not h11.Request:
            logger.debug("incomplete request")
            return None
        event = conn.next_event()
        while type(event) is h11.Data:
            body += event.data
            event = conn.next_event()
    except h11.RemoteProtocolError as e:
        logger.debug("malformed request: %s" % e)
        return None
    if type(event) is not h11.EndOfMessage:
        logger.debug("incomplete request body")
        return None

    target = request.target.decode('utf-8', 'replace')
    path, _, query = target.partition('?')
    fields = parse_qsl(query, keep_blank_values=True)

    content_type = _header(request, b'content-type')
    if body and content_type and content_type.strip().lower().startswith(FORM_CONTENT_TYPE):
        fields += parse_qsl(bytes(body).decode('utf-8', 'replace'), keep_blank_values=True)

    return HttpRequestLine(request.method.decode('ascii'), path.lstrip('/'),
                           [n for n, v in fields], [v for n, v in fields])
