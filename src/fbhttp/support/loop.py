import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to a given handler.
        The background thread is registered as a daemon.
    """

    def __init__(self, fn: Callable=None, args=(), name=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param name the name given to the background thread
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log

    def start(self):
        if self.background_thread is None:
            t = threading.Thread(target=self._run, name=self.name)
            t.daemon = True
            self.background_thread = t
            t.start()

    def stop(self, timeout=None):
        """ signals the loop to stop and waits for the background thread unless called from it. """
        self.stop_event.set()
        t = self.background_thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting" % self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()


class OneShot(AsyncLoop):
    """ Runs the function once on a background thread. """

    def loop(self):
        try:
            super().loop()
        finally:
            self.stop_event.set()
