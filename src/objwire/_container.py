from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any

from ._errors import (
    AlreadyRegisteredError,
    CircularDependencyError,
    InvalidClosureReturnError,
    InvalidReferenceError,
    NotFoundError,
    TypeNotFoundError,
    UnsupportedParametersError,
)
from ._introspect import ParameterKind, ReflectionIntrospector, TypeIntrospector
from ._specs import ClassReference, Factory, Instance, coerce_spec, service_key


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._introspect import ConstructorParameter
    from ._specs import ServiceId, Spec

# Exact types treated as "not an object" when returned from a factory.
_NON_OBJECT_TYPES = frozenset({bool, int, float, complex, str, bytes, bytearray, list, tuple, dict, set, frozenset})


class Lifetime(Enum):
    TRANSIENT = "transient"
    SHARED = "shared"
    SCOPED = "scoped"


class Container:
    """Object-composition registry.

    - register class references, factories or pre-built instances per identifier
    - resolve with constructor injection driven by type annotations
    - lifetimes: transient / shared / scoped (flushable).
    """

    def __init__(self, introspector: TypeIntrospector | None = None) -> None:
        self._introspector: TypeIntrospector = introspector or ReflectionIntrospector()
        self._transient_specs: dict[str, ClassReference | Factory] = {}
        self._shared_specs: dict[str, Spec] = {}
        self._shared_cache: dict[str, object] = {}
        self._scoped_specs: dict[str, Spec] = {}
        self._scoped_cache: dict[str, object] = {}
        self._building: list[str] = []
        self._lock = threading.RLock()

    # Registration

    def register(self, service_id: ServiceId, spec: object, lifetime: Lifetime = Lifetime.TRANSIENT) -> None:
        """Register `spec` for `service_id` under the given lifetime.

        Example:
          container.register(Repository, SqlRepository, Lifetime.SHARED)
          container.register("clock", time.monotonic_ns)  # a factory
        """
        if lifetime is Lifetime.SHARED:
            self.register_shared(service_id, spec)
        elif lifetime is Lifetime.SCOPED:
            self.register_scoped(service_id, spec)
        else:
            self.register_transient(service_id, spec)

    def register_transient(self, service_id: ServiceId, spec: object) -> None:
        """Register a service built anew on every resolution.

        Class references are checked eagerly and must name an existing class.
        """
        key = service_key(service_id)
        spec = coerce_spec(spec)

        with self._lock:
            self._ensure_unregistered(key)

            if isinstance(spec, Instance):
                msg = f"Transient service {key} cannot be a pre-built instance. Register it as shared or scoped."
                raise InvalidReferenceError(msg)

            if isinstance(spec, ClassReference):
                self._ensure_constructible(spec)

            self._transient_specs[key] = spec
            logger.debug("Registered transient service %s", key)

    def register_shared(self, service_id: ServiceId, spec: object) -> None:
        """Register a service built once and reused for the container's lifetime."""
        key = service_key(service_id)
        spec = coerce_spec(spec)

        with self._lock:
            self._ensure_unregistered(key)
            _ensure_not_none(key, spec)
            self._shared_specs[key] = spec
            logger.debug("Registered shared service %s", key)

    def register_scoped(self, service_id: ServiceId, spec: object) -> None:
        """Register a service reused until its scope is flushed."""
        key = service_key(service_id)
        spec = coerce_spec(spec)

        with self._lock:
            self._ensure_unregistered(key)
            _ensure_not_none(key, spec)
            self._scoped_specs[key] = spec
            logger.debug("Registered scoped service %s", key)

    def deregister(self, service_id: ServiceId) -> None:
        """Remove a registration and any instance cached for it. Unknown ids are ignored."""
        key = service_key(service_id)

        with self._lock:
            if key in self._transient_specs:
                del self._transient_specs[key]
            elif key in self._shared_specs:
                del self._shared_specs[key]
                self._shared_cache.pop(key, None)
            elif key in self._scoped_specs:
                del self._scoped_specs[key]
                self._scoped_cache.pop(key, None)
            else:
                return

            logger.debug("Deregistered service %s", key)

    def flush_scoped_instance(self, service_id: ServiceId) -> None:
        """Drop the cached instance of a scoped service, keeping its registration."""
        key = service_key(service_id)

        with self._lock:
            if key in self._scoped_cache:
                del self._scoped_cache[key]
                logger.debug("Flushed scoped instance of %s", key)

    def flush_scope(self) -> None:
        """Drop every cached scoped instance."""
        with self._lock:
            flushed = len(self._scoped_cache)
            self._scoped_cache.clear()
            logger.debug("Flushed %d scoped instance(s)", flushed)

    @contextmanager
    def scope(self) -> Iterator[Container]:
        """Resolve scoped services within a block, flushing them all on exit.

        Example:
          with container.scope() as c:
              handler = c.resolve(RequestHandler)
        """
        try:
            yield self
        finally:
            self.flush_scope()

    def has(self, service_id: ServiceId) -> bool:
        return self.lifetime_of(service_id) is not None

    def __contains__(self, service_id: object) -> bool:
        if not isinstance(service_id, (str, type)):
            return False
        return self.has(service_id)

    def lifetime_of(self, service_id: ServiceId) -> Lifetime | None:
        key = service_key(service_id)
        with self._lock:
            if key in self._transient_specs:
                return Lifetime.TRANSIENT
            if key in self._shared_specs:
                return Lifetime.SHARED
            if key in self._scoped_specs:
                return Lifetime.SCOPED
        return None

    def _ensure_unregistered(self, key: str) -> None:
        lifetime = self.lifetime_of(key)
        if lifetime is not None:
            msg = (
                f"Service {key} is already registered as {lifetime.value} in the container. "
                "Deregister it before registering again."
            )
            raise AlreadyRegisteredError(msg)

    def _ensure_constructible(self, spec: ClassReference) -> None:
        try:
            cls = self._introspector.find_type(spec.target)
        except TypeNotFoundError as e:
            msg = f"Could not resolve {spec.name} to a class."
            raise InvalidReferenceError(msg) from e

        if self._introspector.is_interface(cls):
            msg = f"{spec.name} is an interface and cannot be instantiated."
            raise InvalidReferenceError(msg)

    # Resolution

    def resolve(self, service_id: ServiceId) -> Any:
        """Return the object registered for `service_id`.

        Shared and scoped services are built on first request and cached;
        transient services are built on every call.
        """
        key = service_key(service_id)

        with self._lock:
            lifetime = self.lifetime_of(key)
            if lifetime is None:
                msg = f"Service {key} is not registered in the container."
                raise NotFoundError(msg)

            try:
                if lifetime is Lifetime.SHARED:
                    return self._resolve_cached(key, self._shared_specs, self._shared_cache)
                if lifetime is Lifetime.SCOPED:
                    return self._resolve_cached(key, self._scoped_specs, self._scoped_cache)
                return self._resolve_spec(self._transient_specs[key])
            except InvalidClosureReturnError as e:
                raise e.with_context(key) from e

    def _resolve_cached(self, key: str, specs: dict[str, Spec], cache: dict[str, object]) -> object:
        if key not in cache:
            # Assigned only after a successful build.
            cache[key] = self._resolve_spec(specs[key])
            logger.debug("Cached instance of %s", key)
        return cache[key]

    def _resolve_spec(self, spec: Spec) -> object:
        if isinstance(spec, ClassReference):
            return self._make(spec.target)

        if isinstance(spec, Instance):
            return spec.obj

        obj = self._introspector.invoke(spec.func)
        if obj is None or type(obj) in _NON_OBJECT_TYPES:
            msg = f"Factory returned {type(obj).__name__}, not an object"
            raise InvalidClosureReturnError(msg)
        return obj

    def _make(self, target: type | str) -> object:
        """Build `target`, resolving each constructor parameter by its annotated class."""
        name = target if isinstance(target, str) else service_key(target)

        if name in self._building:
            raise CircularDependencyError([*self._building[self._building.index(name) :], name])

        try:
            cls = self._introspector.find_type(target)
            params = self._introspector.constructor_parameters(cls)
        except TypeNotFoundError as e:
            msg = f"Could not find class {name}."
            raise NotFoundError(msg) from e

        if not params:
            return self._introspector.construct(cls, [], {})

        self._building.append(name)
        try:
            args, kwargs = self._collect_arguments(name, params)
        finally:
            self._building.pop()

        return self._introspector.construct(cls, args, kwargs)

    def _collect_arguments(self, name: str, params: list[ConstructorParameter]) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        # Skipped positional-only defaults, passed explicitly only if a later slot is filled.
        pending_defaults: list[Any] = []

        for p in params:
            value = self._resolve_param(name, p)

            if value is _SKIP:
                if p.positional_only:
                    pending_defaults.append(p.default)
                continue

            if p.positional_only:
                args.extend(pending_defaults)
                pending_defaults.clear()
                args.append(value)
            else:
                kwargs[p.name] = value

        return args, kwargs

    def _resolve_param(self, name: str, p: ConstructorParameter) -> Any:
        if p.kind is ParameterKind.UNION:
            raise UnsupportedParametersError(name, f"Unsupported union parameter '{p.name}'")

        if p.kind is not ParameterKind.NAMED:
            if not p.has_default:
                raise UnsupportedParametersError(name, f"Unsupported {p.kind.value} parameter '{p.name}'")
            return _SKIP

        dep = p.annotation if isinstance(p.annotation, str) else service_key(p.annotation)

        if self.has(dep):
            return self.resolve(dep)

        try:
            dep_cls = self._introspector.find_type(p.annotation)
        except TypeNotFoundError as e:
            msg = f"Could not create service {dep} for parameter '{p.name}' of {name}."
            raise NotFoundError(msg) from e

        if self._introspector.is_abstract_or_interface(dep_cls):
            raise UnsupportedParametersError(name, f"Unregistered interface/abstract class {dep} for '{p.name}'")

        logger.debug("Auto-wiring %s for parameter '%s' of %s", dep, p.name, name)
        return self._make(dep_cls)


_SKIP = object()


def _ensure_not_none(key: str, spec: Spec) -> None:
    if isinstance(spec, Instance) and spec.obj is None:
        msg = f"Service {key} cannot be registered as None."
        raise InvalidReferenceError(msg)
