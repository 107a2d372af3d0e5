"""

HTTP communication layer for function block runtimes

- Communication function block: a function block whose input pins are sent and whose output pins
  receive data through a communication layer. Its service type makes it a client or a server.
- Layer: binds the block's pins to a transport. HttpComLayer binds them to HTTP requests and
  responses.
- Handler: the gateway that owns the sockets and the registry of server paths. It is shared by all
  layers of a process.

Client

The layer parameter names the method, host, port and path, e.g. "GET;plc.local:8080/api/value".
The request is prepared when the layer is opened. Each send() hands the request to the handler,
patching the body with the input value first for PUT/POST. The handler pushes the response into
receive_client_bytes(), which writes the payload to the output pin and interrupts the block.

Server

The layer parameter is the path to serve. The handler delivers the request parameters of each
request on that path to receive_server_fields(); they are assigned to the output pins in order and
the block is interrupted. The block answers with its single input value on the next send().


Status reporting

Layer operations never raise. Each returns a ComResponse; configuration errors leave the layer
uninitialized, data and transport errors leave it open.

"""
