"""
The gateway between HTTP layers and the network.

One handler is shared by all the HTTP layers of a process. It owns the registry of server paths
and the sockets; layers never touch a socket themselves. Access from several layers, and from the
gateway's own threads, is serialized by a reentrant lock. The *_from_recv variants are for use
while the gateway is already delivering received data to the layer.
"""
import logging
import socket
import threading
from abc import abstractmethod

from fbhttp import settings
from fbhttp.com.base import ConnectionState
from fbhttp.http import parser
from fbhttp.support.loop import AsyncLoop, OneShot
from fbhttp.transport.conduit import SocketConduit
from fbhttp.transport.connector import ConnectorError, SocketConnector, TCPServerEndpoint

logger = logging.getLogger(__name__)


class HttpHandler:
    """ Keeps the registry of server paths. Subclasses provide the transport. """

    def __init__(self):
        self._lock = threading.RLock()
        self._server_paths = {}

    def add_server_path(self, layer, path):
        with self._lock:
            previous = self._server_paths.get(path)
            if previous is not None and previous is not layer:
                logger.warning("path '%s' was registered by another layer and is taken over" % path)
            self._server_paths[path] = layer

    def remove_server_path(self, path):
        with self._lock:
            self._server_paths.pop(path, None)

    def layer_for_path(self, path):
        with self._lock:
            return self._server_paths.get(path)

    @property
    def server_paths(self):
        with self._lock:
            return dict(self._server_paths)

    @abstractmethod
    def send_client_data(self, layer, request) -> bool:
        """
        Sends a client request to layer.host:layer.port. The response is delivered later
        through layer.receive_client_bytes().
        :return: True when the request was sent
        """
        raise NotImplementedError

    @abstractmethod
    def send_server_answer(self, layer, answer):
        """ Sends the answer to the request the server layer received last. """
        raise NotImplementedError

    @abstractmethod
    def send_server_answer_from_recv(self, layer, answer):
        raise NotImplementedError

    @abstractmethod
    def force_close(self, layer):
        """ Closes any connection of the layer. Does nothing for a layer without connections. """
        raise NotImplementedError

    @abstractmethod
    def force_close_from_recv(self, layer):
        raise NotImplementedError


class SocketHttpHandler(HttpHandler):
    """
    A gateway over TCP sockets.

    Client requests use one connection each. The response is read on a background thread and pushed
    to the layer; a read timeout is pushed as None.

    For servers, call start() to listen. Each accepted request is read and parsed on its own thread,
    and its parameters are delivered to the layer registered for the request path. The connection is
    held open until the layer answers, or is answered with 404 when no layer is registered for the path.
    """

    def __init__(self, connect_timeout=None, receive_timeout=None, max_message_size=None):
        super().__init__()
        self.connect_timeout = settings.connect_timeout if connect_timeout is None else connect_timeout
        self.receive_timeout = settings.receive_timeout if receive_timeout is None else receive_timeout
        self.max_message_size = max_message_size or settings.max_message_size
        self._client_conduits = {}      # layer -> conduit awaiting the response
        self._pending_answers = {}      # layer -> conduit awaiting the answer
        self._listener = None
        self._accept_loop = None

    def send_client_data(self, layer, request):
        connector = SocketConnector(TCPServerEndpoint(layer.host, layer.port), self.connect_timeout)
        try:
            conduit = connector.connect()
        except ConnectorError:
            return False
        try:
            conduit.target.settimeout(self.receive_timeout)
            conduit.write_message(request)
        except OSError as e:
            logger.warning("error sending request to %s: %s" % (connector.endpoint.key(), e))
            conduit.close()
            return False

        with self._lock:
            self._close(self._client_conduits.pop(layer, None))
            self._client_conduits[layer] = conduit
            layer.connection_state = ConnectionState.connected
        logger.debug("sent %d bytes to %s" % (len(request), connector.endpoint.key()))
        OneShot(self._receive_response, (layer, conduit), name='http-response').start()
        return True

    def _receive_response(self, layer, conduit):
        try:
            data = conduit.read_message(parser.response_reader(), self.max_message_size)
        except (OSError, ValueError) as e:
            # ValueError when the conduit was closed under the reader
            logger.info("no response from %s:%d: %s" % (layer.host, layer.port, e))
            data = None
        with self._lock:
            if self._client_conduits.get(layer) is not conduit:
                # closed, or replaced by a newer request
                conduit.close()
                return
            del self._client_conduits[layer]
            conduit.close()
            layer.connection_state = ConnectionState.disconnected
            layer.receive_client_bytes(data)

    def start(self, host='', port=0):
        """
        Listens for server requests.
        :return: the (host, port) address listened on
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
            sock.listen(5)
        except OSError:
            sock.close()
            raise
        sock.settimeout(settings.accept_timeout)
        self._listener = sock
        self._accept_loop = AsyncLoop(self._accept, name='http-accept')
        self._accept_loop.start()
        logger.info("listening for HTTP requests on %s:%d" % sock.getsockname()[:2])
        return sock.getsockname()[:2]

    def stop(self):
        """ Stops listening and closes every connection. """
        if self._accept_loop is not None:
            self._accept_loop.stop()
            self._accept_loop = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None
        with self._lock:
            for conduit in list(self._client_conduits.values()) + list(self._pending_answers.values()):
                self._close(conduit)
            self._client_conduits.clear()
            self._pending_answers.clear()

    def _accept(self):
        try:
            client, address = self._listener.accept()
        except socket.timeout:
            return
        client.settimeout(self.receive_timeout)
        logger.debug("accepted connection from %s:%d" % address[:2])
        OneShot(self._handle_request, (SocketConduit(client),), name='http-request').start()

    def _handle_request(self, conduit):
        """ Reads and dispatches one request. Only the dispatch holds the lock. """
        try:
            raw = conduit.read_message(parser.request_reader(), self.max_message_size)
        except OSError as e:
            logger.info("error reading request: %s" % e)
            conduit.close()
            return
        request = parser.parse_request(raw)
        if request is None:
            self._reply(conduit, '400 Bad Request')
            return
        with self._lock:
            layer = self._server_paths.get(request.path)
            if layer is not None:
                self._close(self._pending_answers.pop(layer, None))
                self._pending_answers[layer] = conduit
                layer.receive_server_fields(request.names, request.values)
                return
        logger.info("no server registered for path '%s'" % request.path)
        self._reply(conduit, '404 Not Found')

    def _reply(self, conduit, status):
        self._write_and_close(conduit, parser.build_response(status, settings.default_content_type, ''))

    def _write_and_close(self, conduit, data):
        try:
            conduit.write_message(data)
        except OSError as e:
            logger.warning("error sending answer: %s" % e)
        finally:
            conduit.close()

    def send_server_answer(self, layer, answer):
        with self._lock:
            self.send_server_answer_from_recv(layer, answer)

    def send_server_answer_from_recv(self, layer, answer):
        conduit = self._pending_answers.pop(layer, None)
        if conduit is None:
            logger.warning("server '%s' has no request to answer" % layer.path)
            return
        self._write_and_close(conduit, answer)

    def force_close(self, layer):
        with self._lock:
            self.force_close_from_recv(layer)

    def force_close_from_recv(self, layer):
        self._close(self._client_conduits.pop(layer, None))
        self._close(self._pending_answers.pop(layer, None))

    @staticmethod
    def _close(conduit):
        if conduit is not None:
            conduit.close()
