"""
The function block side of a communication layer: the block's pins and typed values, and the
layer base class with its status codes.
"""
