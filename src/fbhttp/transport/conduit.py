import socket
from abc import abstractmethod
from io import IOBase

import h11

_READ_SIZE = 4096


class Conduit:
    """
    A conduit allows two-way communication. It provides a file-like input endpoint and a file-like output endpoint.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def input(self) -> IOBase:
        """ fetches the I/O stream that provides input. """
        raise NotImplementedError

    @property
    @abstractmethod
    def output(self) -> IOBase:
        """ fetches the I/O stream that provides output. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes both the input and output streams.
        """
        raise NotImplementedError

    def read_message(self, reader, limit):
        """
        Reads one HTTP message, feeding the bytes to reader, an h11.Connection, until it reports the
        end of the message. Reading stops early when the peer closes or after limit bytes.
        :param reader: see parser.request_reader() and parser.response_reader()
        :param limit: the largest number of bytes to read
        :return: the bytes of the message, or all the bytes read when it is incomplete or malformed
        """
        data = bytearray()
        eof = False
        while True:
            try:
                event = reader.next_event()
            except h11.RemoteProtocolError:
                # malformed or cut short, the parser reports which
                return bytes(data)
            if event is h11.NEED_DATA:
                if eof or len(data) >= limit:
                    return bytes(data)
                chunk = self.input.read1(min(_READ_SIZE, limit - len(data)))
                eof = not chunk
                data += chunk
                reader.receive_data(chunk)
            elif type(event) in (h11.EndOfMessage, h11.ConnectionClosed):
                unread, closed = reader.trailing_data
                return bytes(data[:len(data) - len(unread)])

    def write_message(self, data):
        self.output.write(bytes(data))
        self.output.flush()


class SocketConduit(Conduit):
    """
    A conduit that provides communication via a socket.
    """
    def __init__(self, sock: socket.socket):
        """
        :param sock: the connected socket
        """
        self.sock = sock
        self.read = sock.makefile('rb')
        self.write = sock.makefile('wb')

    @property
    def open(self) -> bool:
        return self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    @property
    def output(self):
        return self.write

    @property
    def input(self):
        return self.read

    def close(self):
        try:
            self.write.close()
        except OSError:
            # unflushed output to a peer that has gone
            pass
        self.read.close()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # the peer may have closed the socket
            pass
        finally:
            self.sock.close()
