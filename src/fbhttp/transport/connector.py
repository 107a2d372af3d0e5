import logging
import socket

from fbhttp.transport.conduit import SocketConduit

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates a connection could not be established. """


class TCPServerEndpoint:
    """
    Describes a TCP server endpoint.
    """
    def __init__(self, hostname, port):
        self.hostname = hostname
        self.port = port

    def key(self):
        """
        >>> TCPServerEndpoint('plc.local', 8080).key()
        'plc.local:8080'
        """
        return str(self.hostname) + ':' + str(self.port)

    @property
    def address(self):
        return self.hostname, self.port


class SocketConnector:
    """
    Opens TCP connections to an endpoint.
    """
    def __init__(self, endpoint: TCPServerEndpoint, timeout=None, report_errors=True):
        """
        :param endpoint: the server to connect to
        :param timeout: the connect timeout in seconds, None to block
        :param report_errors: log connection failures as warnings rather than debug messages
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._report_errors = report_errors

    def connect(self) -> SocketConduit:
        """
        :raises ConnectorError: when the connection cannot be established
        """
        try:
            sock = socket.create_connection(self.endpoint.address, self.timeout)
            logger.debug("opened socket to %s" % self.endpoint.key())
            return SocketConduit(sock)
        except OSError as e:
            method = logger.warning if self._report_errors else logger.debug
            method("error opening socket to %s: %s" % (self.endpoint.key(), e))
            raise ConnectorError("cannot connect to %s" % self.endpoint.key()) from e
