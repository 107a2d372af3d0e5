"""
Module-level defaults for the HTTP layer. The values below are overridden at import time from the
fbhttp*.cfg files beside this module (see fbhttp.config.config.load_config for the precedence).
"""
import sys

from fbhttp.config.config import configure_module

# capacity of the fixed-size receive buffer of a client layer, in bytes
recv_buffer_size = 1500

default_port = 80
default_content_type = 'text/html'
urlencoded_content_type = 'application/x-www-form-urlencoded'
default_expected_response = 'HTTP/1.1 200 OK'

# gateway socket timeouts, in seconds
connect_timeout = 5.0
receive_timeout = 10.0
accept_timeout = 0.5

# the largest HTTP message the gateway reads from a socket
max_message_size = 65536

configure_module(sys.modules[__name__], 'fbhttp')
