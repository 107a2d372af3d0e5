import socket
import threading
import unittest
from unittest.mock import Mock, patch

from hamcrest import assert_that, is_, calling, raises, none

from fbhttp.com.base import ComResponse, ConnectionState
from fbhttp.com.commfb import CommFunctionBlock, ComServiceType
from fbhttp.com.datatypes import Int, String
from fbhttp.http.layer import HttpComLayer
from fbhttp.transport.handler import HttpHandler, SocketHttpHandler


def released_port():
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(('127.0.0.1', 0))
    port = s.getsockname()[1]
    s.close()
    return port


class HttpHandlerTest(unittest.TestCase):

    def test_registry(self):
        sut = HttpHandler()
        a, b = Mock(), Mock()
        sut.add_server_path(a, 'status')
        assert_that(sut.layer_for_path('status'), is_(a))
        sut.add_server_path(b, 'status')
        assert_that(sut.layer_for_path('status'), is_(b))
        paths = sut.server_paths
        sut.remove_server_path('status')
        sut.remove_server_path('status')
        assert_that(sut.layer_for_path('status'), is_(none()))
        assert_that(paths, is_({'status': b}))

    def test_abstract(self):
        sut = HttpHandler()
        assert_that(calling(sut.send_client_data).with_args(Mock(), b''), raises(NotImplementedError))
        assert_that(calling(sut.force_close).with_args(Mock()), raises(NotImplementedError))


class SocketHttpHandlerTest(unittest.TestCase):

    def setUp(self):
        self.sut = SocketHttpHandler(connect_timeout=2, receive_timeout=2)

    def test_send_client_data_connection_refused(self):
        layer = Mock(host='127.0.0.1', port=released_port())
        assert_that(self.sut.send_client_data(layer, bytearray(b'GET / HTTP/1.1\r\n\r\n')), is_(False))

    def test_answer_without_pending_request(self):
        self.sut.send_server_answer(Mock(path='status'), b'HTTP/1.1 200 OK\r\n\r\n')

    def test_answer_pending_request(self):
        layer, conduit = Mock(), Mock()
        self.sut._pending_answers[layer] = conduit
        self.sut.send_server_answer(layer, b'answer')
        conduit.write_message.assert_called_once_with(b'answer')
        conduit.close.assert_called_once_with()
        assert_that(self.sut._pending_answers, is_({}))

    def test_force_close(self):
        layer, client, pending = Mock(), Mock(), Mock()
        self.sut._client_conduits[layer] = client
        self.sut._pending_answers[layer] = pending
        self.sut.force_close(layer)
        client.close.assert_called_once_with()
        pending.close.assert_called_once_with()
        self.sut.force_close(layer)
        client.close.assert_called_once_with()

    def test_response_is_delivered(self):
        layer, conduit = Mock(), Mock()
        conduit.read_message.return_value = b'HTTP/1.1 200 OK\r\n\r\n'
        self.sut._client_conduits[layer] = conduit
        self.sut._receive_response(layer, conduit)
        layer.receive_client_bytes.assert_called_once_with(b'HTTP/1.1 200 OK\r\n\r\n')
        assert_that(layer.connection_state, is_(ConnectionState.disconnected))
        conduit.close.assert_called_once_with()

    def test_timeout_is_delivered_as_none(self):
        layer, conduit = Mock(), Mock()
        conduit.read_message.side_effect = socket.timeout('timed out')
        self.sut._client_conduits[layer] = conduit
        self.sut._receive_response(layer, conduit)
        layer.receive_client_bytes.assert_called_once_with(None)

    def test_stale_response_is_dropped(self):
        layer, conduit = Mock(), Mock()
        conduit.read_message.return_value = b'HTTP/1.1 200 OK\r\n\r\n'
        self.sut._client_conduits[layer] = Mock()
        self.sut._receive_response(layer, conduit)
        layer.receive_client_bytes.assert_not_called()
        conduit.close.assert_called_once_with()

    def test_unknown_path_is_not_found(self):
        conduit = Mock()
        conduit.read_message.return_value = b'GET /nowhere HTTP/1.1\r\nHost: x\r\n\r\n'
        self.sut._handle_request(conduit)
        answer = bytes(conduit.write_message.call_args[0][0])
        assert_that(answer.startswith(b'HTTP/1.1 404 Not Found\r\n'), is_(True))
        conduit.close.assert_called_once_with()

    def test_malformed_request(self):
        conduit = Mock()
        conduit.read_message.return_value = b'nonsense\r\n\r\n'
        self.sut._handle_request(conduit)
        answer = bytes(conduit.write_message.call_args[0][0])
        assert_that(answer.startswith(b'HTTP/1.1 400 Bad Request\r\n'), is_(True))

    def test_request_is_delivered_to_registered_layer(self):
        layer, conduit = Mock(), Mock()
        conduit.read_message.return_value = b'GET /status?a=1&b=2 HTTP/1.1\r\nHost: x\r\n\r\n'
        self.sut.add_server_path(layer, 'status')
        self.sut._handle_request(conduit)
        layer.receive_server_fields.assert_called_once_with(['a', 'b'], ['1', '2'])
        assert_that(self.sut._pending_answers[layer], is_(conduit))
        conduit.close.assert_not_called()

    def test_accepted_connection_is_read_on_its_own_thread(self):
        listener, client = Mock(), Mock()
        listener.accept.return_value = (client, ('127.0.0.1', 5000))
        self.sut._listener = listener
        with patch('fbhttp.transport.handler.OneShot') as one_shot, \
                patch('fbhttp.transport.handler.SocketConduit') as conduit:
            self.sut._accept()
        one_shot.assert_called_once_with(self.sut._handle_request, (conduit.return_value,), name='http-request')
        one_shot.return_value.start.assert_called_once_with()
        client.settimeout.assert_called_once_with(2)


class LoopbackTest(unittest.TestCase):
    """ a client and a server layer talking through one gateway """

    def setUp(self):
        self.handler = SocketHttpHandler(connect_timeout=2, receive_timeout=2)
        self.host, self.port = self.handler.start('127.0.0.1', 0)

    def tearDown(self):
        self.handler.stop()

    def serve(self, path, outputs, answer):
        fb = CommFunctionBlock(ComServiceType.server, [String(answer)], outputs)
        layer = HttpComLayer(fb, self.handler)
        fb.events += lambda event: layer.send(fb.inputs)
        assert_that(layer.open(path), is_(ComResponse.ok))
        return fb, layer

    def client(self, param, inputs=(), outputs=()):
        fb = CommFunctionBlock(ComServiceType.client, inputs, outputs)
        layer = HttpComLayer(fb, self.handler)
        received = threading.Event()
        fb.events += lambda event: received.set()
        assert_that(layer.open(param), is_(ComResponse.ok))
        return fb, layer, received

    def test_get(self):
        server_fb, server = self.serve('value', [Int()], '42')
        fb, client, received = self.client('GET;127.0.0.1:%d/value?x=5' % self.port, outputs=[String()])
        assert_that(client.send([]), is_(ComResponse.ok))
        assert_that(received.wait(5), is_(True))
        assert_that(fb.outputs[0].value, is_('42'))
        assert_that(server_fb.outputs[0].value, is_(5))

    def test_post(self):
        server_fb, server = self.serve('setpoint', [], 'accepted')
        fb, client, received = self.client('POST;127.0.0.1:%d/setpoint' % self.port, inputs=[Int()],
                                           outputs=[String()])
        assert_that(client.send([Int(-7)]), is_(ComResponse.ok))
        assert_that(received.wait(5), is_(True))
        assert_that(fb.outputs[0].value, is_('accepted'))

    def test_post_form_data(self):
        server_fb, server = self.serve('setpoint', [Int(), String()], 'ok')
        fb, client, received = self.client('POST;127.0.0.1:%d/setpoint?speed=3&mode=auto' % self.port,
                                           outputs=[String()])
        assert_that(client.send([]), is_(ComResponse.ok))
        assert_that(received.wait(5), is_(True))
        assert_that(server_fb.outputs, is_([Int(3), String('auto')]))

    def test_idle_connection_does_not_hold_up_requests(self):
        server_fb, server = self.serve('value', [Int()], '42')
        idle = socket.create_connection(('127.0.0.1', self.port))
        try:
            fb, client, received = self.client('GET;127.0.0.1:%d/value?x=5' % self.port, outputs=[String()])
            assert_that(client.send([]), is_(ComResponse.ok))
            assert_that(received.wait(1), is_(True))
            assert_that(fb.outputs[0].value, is_('42'))
        finally:
            idle.close()

    def test_unknown_path(self):
        fb, client, received = self.client('GET;127.0.0.1:%d/nowhere' % self.port, outputs=[String()])
        fb.outputs[0].value = 'unchanged'
        assert_that(client.send([]), is_(ComResponse.ok))
        assert_that(received.wait(1), is_(False))
        assert_that(fb.outputs[0].value, is_('unchanged'))

    def test_closed_server_is_not_found(self):
        server_fb, server = self.serve('value', [Int()], '42')
        server.close()
        assert_that(self.handler.layer_for_path('value'), is_(none()))

    def test_send_failed(self):
        fb, client, received = self.client('GET;127.0.0.1:%d/value' % released_port(), outputs=[String()])
        assert_that(client.send([]), is_(ComResponse.send_failed))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
