"""
Sockets and the process-wide gateway that HTTP layers send and receive through.
"""
