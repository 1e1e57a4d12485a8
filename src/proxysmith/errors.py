"""Custom error types for proxysmith."""


class ProxyError(Exception):
    """Base class for all proxysmith errors."""


class UnsupportedContractSet(ProxyError):
    """Raised when a requested contract set cannot be satisfied by one proxy class."""


class SynthesisFailure(ProxyError):
    """Raised when a proxy class cannot be created for a valid contract set."""


class ProviderFailure(ProxyError):
    """Raised when an object provider cannot produce its object."""


class _CauseCarryingError(ProxyError):
    """Shared shape for errors that carry an underlying exception."""

    cause: BaseException

    def __init__(self, cause: BaseException, message: str | None = None) -> None:
        """Initialize a cause-carrying error.

        :param cause: Underlying exception.
        :param message: Optional message; defaults to a description of ``cause``.
        """
        self.cause = cause
        if message is None:
            message = f"{type(cause).__name__}: {cause}"
        super().__init__(message)


class TargetInvocationFailure(_CauseCarryingError):
    """Raised by a dispatch handler when the code it ran raised ``cause``."""


class UndeclaredDispatchFailure(_CauseCarryingError):
    """Raised by a proxy method when dispatch failed with an undeclared exception."""

    method_name: str

    def __init__(self, cause: BaseException, method_name: str) -> None:
        """Initialize an undeclared dispatch failure.

        :param cause: Undeclared exception raised during dispatch.
        :param method_name: Qualified name of the proxied method.
        """
        self.method_name = method_name
        message: str = (
            f"{method_name} raised undeclared {type(cause).__name__}: {cause}"
        )
        super().__init__(cause, message)
