"""
leasecfg/exceptions.py - Exceptions for leasecfg
"""


class LeasecfgException(Exception):
    pass


class InvalidArgument(LeasecfgException):
    pass


class InvalidConfig(LeasecfgException):
    pass


class KernelError(LeasecfgException):
    """
    A kernel state change was refused. ``code`` holds the errno value.
    """
    def __init__(self, code, message=None):
        self.code = code
        self.message = message
        super().__init__(code, message)

    def __str__(self):
        if self.message:
            return self.message
        return f"kernel error {self.code}"


class ReconcileError(LeasecfgException):
    pass


class AddressError(ReconcileError):
    pass
