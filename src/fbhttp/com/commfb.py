import logging
from collections import deque

from fbhttp.events import EventSource, InterruptEvent

logger = logging.getLogger(__name__)


class ComServiceType:
    """ The role a communication block plays. """
    server = 'server'
    client = 'client'
    publisher = 'publisher'
    subscriber = 'subscriber'


class CommFunctionBlock:
    """
    The owner of a communication layer, as seen by the layer: the service type, the input pins whose
    values are sent, and the output pins that receive data.

    Layers report completed receives with interrupt_comm_fb(). The interrupts are queued and an
    InterruptEvent is fired, so a scheduler can resume the block on its own thread by calling
    process_interrupts().
    """

    def __init__(self, service_type, inputs=(), outputs=()):
        """
        :param service_type: one of the ComServiceType values
        :param inputs: the typed values of the input (send data) pins
        :param outputs: the typed values of the output (receive data) pins
        """
        self.service_type = service_type
        self.inputs = list(inputs)
        self.outputs = list(outputs)
        self.events = EventSource()
        self.interrupts = deque()

    @property
    def num_inputs(self):
        return len(self.inputs)

    @property
    def num_outputs(self):
        return len(self.outputs)

    def interrupt_comm_fb(self, layer):
        self.interrupts.append(layer)
        self.events.fire(InterruptEvent(layer))

    def process_interrupts(self):
        """
        Lets each interrupting layer finish its operation.
        :return: the responses of the layers, in interrupt order
        """
        responses = []
        while self.interrupts:
            layer = self.interrupts.popleft()
            responses.append(layer.process_interrupt())
        logger.debug("processed %d interrupts" % len(responses))
        return responses
