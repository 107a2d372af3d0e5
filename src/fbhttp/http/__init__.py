"""
The HTTP binding: parameter parsing, HTTP message building/parsing and the HTTP layer.
"""
