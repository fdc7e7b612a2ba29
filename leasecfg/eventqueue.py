"""
leasecfg/eventqueue.py - Pollable queue
"""

from collections import deque
import ctypes
import os
from typing import Any

libc = ctypes.CDLL("libc.so.6", use_errno=True)

eventfd = libc.eventfd

# From bits/eventfd.h
#
EFD_SEMAPHORE = 0o0000001
EFD_NONBLOCK = 0o0004000


class EventQueue:
    """
    A non-blocking FIFO whose readiness can be polled through ``fileno()``.

    Each ``put()`` bumps an eventfd semaphore and each ``get()`` consumes one
    count, so a thread or an event loop can wait on the descriptor and the
    queue can be fed from any thread.
    """
    def __init__(self) -> None:
        self.dq = deque()
        self.fd = eventfd(0, EFD_SEMAPHORE | EFD_NONBLOCK)
        if self.fd < 0:
            errno = ctypes.get_errno()
            raise OSError(errno, os.strerror(errno))

    def __len__(self) -> int:
        return len(self.dq)

    def fileno(self) -> int:
        return self.fd

    def close(self) -> None:
        os.close(self.fd)

    def put(self, item: Any) -> None:
        self.dq.append(item)
        os.write(self.fd, bytearray(ctypes.c_uint64(1)))

    def get(self) -> Any:
        """
        Return the oldest item. Raises ``BlockingIOError`` when empty.
        """
        os.read(self.fd, ctypes.sizeof(ctypes.c_uint64))
        return self.dq.popleft()
