import uuid
import logging
import threading
from contextlib import contextmanager

_thread_locals = threading.local()


class RequestIDFilter(logging.Filter):
    def filter(self, record):
        record.request_id = get_current_request_id()
        return True


def get_current_request_id():
    return getattr(_thread_locals, 'request_id', 'no-id')


def set_current_request_id(request_id=None):
    request_id = request_id or str(uuid.uuid4())
    _thread_locals.request_id = request_id
    return request_id


@contextmanager
def request_id_scope(request_id=None):
    """Tag every log record emitted inside the block with one request id."""
    previous = getattr(_thread_locals, 'request_id', None)
    current = set_current_request_id(request_id)
    try:
        yield current
    finally:
        if previous is None:
            del _thread_locals.request_id
        else:
            _thread_locals.request_id = previous
