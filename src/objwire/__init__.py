"""Object-composition registry with constructor auto-wiring.

Register how to produce an object for an identifier, then resolve complete
object graphs without wiring constructor arguments by hand.

Exports:
- `Container`: registry holding transient, shared and scoped registrations and
  resolving them, auto-wiring constructor parameters from their annotations.
- `Lifetime`: Enum of the three lifetimes.
- `ClassReference`, `Factory`, `Instance`: explicit registration specifications.
- `ReflectionIntrospector` / `TypeIntrospector`: the class-inspection capability
  the container is built on, replaceable through `Container(introspector=...)`.
- The `ContainerError` hierarchy.
"""

from ._container import Container, Lifetime
from ._errors import (
    AlreadyRegisteredError,
    CircularDependencyError,
    ContainerError,
    InvalidClosureReturnError,
    InvalidReferenceError,
    NotFoundError,
    ResolutionError,
    TypeNotFoundError,
    UnsupportedParametersError,
)
from ._introspect import ConstructorParameter, ParameterKind, ReflectionIntrospector, TypeIntrospector
from ._specs import ClassReference, Factory, Instance, service_key


__all__ = [
    "AlreadyRegisteredError",
    "CircularDependencyError",
    "ClassReference",
    "ConstructorParameter",
    "Container",
    "ContainerError",
    "Factory",
    "Instance",
    "InvalidClosureReturnError",
    "InvalidReferenceError",
    "Lifetime",
    "NotFoundError",
    "ParameterKind",
    "ReflectionIntrospector",
    "ResolutionError",
    "TypeIntrospector",
    "TypeNotFoundError",
    "UnsupportedParametersError",
    "service_key",
]
