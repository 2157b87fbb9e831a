from sockets.tests.mocks.transport import MockTransport, MockTransportFactory, wait_until

__all__ = ["MockTransport", "MockTransportFactory", "wait_until"]
