from __future__ import annotations


class ContainerError(RuntimeError):
    """Base class for every error raised by the container."""


class AlreadyRegisteredError(ContainerError):
    pass


class InvalidReferenceError(ContainerError):
    pass


class ResolutionError(ContainerError):
    """Raised when an object graph cannot be built."""


class NotFoundError(ResolutionError):
    pass


class UnsupportedParametersError(ResolutionError):
    def __init__(self, target: str, detail: str) -> None:
        super().__init__(f"{detail} in the constructor of {target}.")
        self.target = target


class InvalidClosureReturnError(ResolutionError):
    """A factory produced a value that is not an object.

    `service_ids` lists the identifiers the error travelled through, innermost first.
    """

    def __init__(self, message: str, service_ids: tuple[str, ...] = ()) -> None:
        super().__init__(": ".join((message, *service_ids)))
        self.message = message
        self.service_ids = service_ids

    def with_context(self, service_id: str) -> InvalidClosureReturnError:
        return InvalidClosureReturnError(self.message, (*self.service_ids, service_id))


class CircularDependencyError(ResolutionError):
    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Circular dependency detected: {' -> '.join(chain)}")
        self.chain = chain


class TypeNotFoundError(LookupError):
    """Raised by introspectors when a class reference names no existing class."""
