"""
leasecfg/libc.py - libc calls not exposed by the standard library
"""

import ctypes
import logging
import os


logger = logging.getLogger("libc")

libc = ctypes.CDLL("libc.so.6", use_errno=True)


def setdomainname(name: str) -> None:
    "Set the NIS domain name of the host"
    data = name.encode()
    if libc.setdomainname(ctypes.c_char_p(data), ctypes.c_size_t(len(data))) < 0:
        errno = ctypes.get_errno()
        raise OSError(errno, os.strerror(errno))


def res_init() -> None:
    """
    Make the resolver of this process re-read resolv.conf.

    glibc exports res_init as __res_init.
    """
    try:
        function = libc["__res_init"]
    except AttributeError:
        function = libc["res_init"]
    if function() < 0:
        logger.error("res_init failed")
