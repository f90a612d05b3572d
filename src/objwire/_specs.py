from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union


if TYPE_CHECKING:
    from collections.abc import Callable

    ServiceId = str | type


@dataclass(frozen=True)
class ClassReference:
    """A class, or the dotted path of one, built through constructor injection."""

    target: type | str

    @property
    def name(self) -> str:
        return self.target if isinstance(self.target, str) else service_key(self.target)


@dataclass(frozen=True)
class Factory:
    """A zero-argument callable invoked to produce the service."""

    func: Callable[[], Any]


@dataclass(frozen=True, eq=False)
class Instance:
    """A pre-built object handed out as-is."""

    obj: object


Spec = Union[ClassReference, Factory, Instance]


def service_key(token: ServiceId) -> str:
    """Return the registry identifier for a class or a string token."""
    if isinstance(token, str):
        return token
    if inspect.isclass(token):
        return f"{token.__module__}.{token.__qualname__}"
    msg = f"Service identifiers must be strings or classes, got {token!r}"
    raise TypeError(msg)


def coerce_spec(value: object) -> Spec:
    """Wrap a raw registration value into its tagged specification.

    Strings and classes become class references, other callables become
    factories, everything else is a pre-built instance.
    """
    if isinstance(value, (ClassReference, Factory, Instance)):
        return value
    if isinstance(value, str) or inspect.isclass(value):
        return ClassReference(value)
    if callable(value):
        return Factory(value)
    return Instance(value)
