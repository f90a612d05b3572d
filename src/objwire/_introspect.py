from __future__ import annotations

import builtins
import importlib
import inspect
import logging
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, Union, get_type_hints

from ._errors import TypeNotFoundError


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable


class ParameterKind(Enum):
    NAMED = "named"  # a single class (or an unresolved dotted reference to one)
    BUILTIN = "builtin"
    UNION = "union"
    UNTYPED = "untyped"
    UNRESOLVED = "unresolved"  # an annotation that could not be evaluated


@dataclass(frozen=True)
class ConstructorParameter:
    name: str
    kind: ParameterKind
    annotation: Any = inspect.Parameter.empty
    has_default: bool = False
    default: Any = inspect.Parameter.empty
    positional_only: bool = False


class TypeIntrospector(Protocol):
    """Everything the container needs to know about classes and factories."""

    def type_exists(self, target: type | str) -> bool: ...

    def is_interface(self, cls: type) -> bool: ...

    def is_abstract_or_interface(self, cls: type) -> bool: ...

    def find_type(self, target: type | str) -> type: ...

    def constructor_parameters(self, target: type | str) -> list[ConstructorParameter]: ...

    def construct(self, cls: type, args: list[Any], kwargs: dict[str, Any]) -> object: ...

    def invoke(self, factory: Callable[[], Any]) -> object: ...


class ReflectionIntrospector:
    """`TypeIntrospector` backed by `inspect`, `typing` and `importlib`."""

    def type_exists(self, target: type | str) -> bool:
        try:
            self.find_type(target)
        except TypeNotFoundError:
            return False
        return True

    def is_interface(self, cls: type) -> bool:
        return _is_protocol(cls)

    def is_abstract_or_interface(self, cls: type) -> bool:
        return inspect.isabstract(cls) or self.is_interface(cls)

    def find_type(self, target: type | str) -> type:
        if inspect.isclass(target):
            return target
        if not isinstance(target, str) or not target:
            msg = f"{target!r} is not a class or a dotted class path"
            raise TypeNotFoundError(msg)

        found = _import_dotted(target)
        if not inspect.isclass(found):
            msg = f"{target} does not name a class"
            raise TypeNotFoundError(msg)
        return found

    def constructor_parameters(self, target: type | str) -> list[ConstructorParameter]:
        cls = self.find_type(target)

        if cls.__init__ is object.__init__ and cls.__new__ is object.__new__:
            return []

        try:
            sig = inspect.signature(cls)
        except ValueError:
            # Some C-implemented classes expose no signature at all.
            logger.debug("No signature available for %s, constructing without arguments", cls.__qualname__)
            return []

        hints = _get_init_type_hints(cls)
        params: list[ConstructorParameter] = []
        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            annotation = strip_optional(hints.get(name, p.annotation))
            params.append(
                ConstructorParameter(
                    name=name,
                    kind=classify_annotation(annotation),
                    annotation=annotation,
                    has_default=p.default is not p.empty,
                    default=p.default,
                    positional_only=p.kind is p.POSITIONAL_ONLY,
                )
            )
        return params

    def construct(self, cls: type, args: list[Any], kwargs: dict[str, Any]) -> object:
        return cls(*args, **kwargs)

    def invoke(self, factory: Callable[[], Any]) -> object:
        return factory()


def strip_optional(annotation: Any) -> Any:
    """Return `X` for `Optional[X]` / `X | None`; any other annotation unchanged."""
    if typing.get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def classify_annotation(annotation: Any) -> ParameterKind:
    """Sort a parameter annotation into the kinds the container can act on.

    A nullable single type is classified as the type itself.
    """
    if annotation is inspect.Parameter.empty:
        return ParameterKind.UNTYPED

    if isinstance(annotation, str):
        return _classify_forward_ref(annotation)

    annotation = strip_optional(annotation)
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        return ParameterKind.UNION

    if origin is not None or annotation is Any or isinstance(annotation, TypeVar):
        return ParameterKind.BUILTIN

    if inspect.isclass(annotation):
        if getattr(annotation, "__module__", "") == "builtins":
            return ParameterKind.BUILTIN
        return ParameterKind.NAMED

    return ParameterKind.BUILTIN


def _classify_forward_ref(ref: str) -> ParameterKind:
    # Only reached for annotations that could not be evaluated. A plain dotted
    # name is kept as a reference to import later.
    ref = ref.strip()
    if all(part.isidentifier() for part in ref.split(".")):
        if "." not in ref and ref in vars(builtins):
            return ParameterKind.BUILTIN
        return ParameterKind.NAMED
    return ParameterKind.UNRESOLVED


def _import_dotted(path: str) -> object:
    parts = path.split(".")
    if not all(parts):
        msg = f"{path!r} is not a dotted class path"
        raise TypeNotFoundError(msg)

    for i in range(len(parts), 0, -1):
        module_path = ".".join(parts[:i])
        try:
            found: object = importlib.import_module(module_path)
        except ModuleNotFoundError as exc:
            # Only a missing prefix of `path` means "try a shorter module"; anything
            # else is a broken import inside an existing module.
            if exc.name and not f"{module_path}.".startswith(f"{exc.name}."):
                raise
            continue

        for attr in parts[i:]:
            try:
                found = getattr(found, attr)
            except AttributeError as exc:
                msg = f"Could not find {attr!r} while looking up {path}"
                raise TypeNotFoundError(msg) from exc
        return found

    msg = f"No importable module in {path}"
    raise TypeNotFoundError(msg)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: type) -> bool:
        """Detect whether 'tp' is itself a typing.Protocol class, not an implementation of one."""
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False))


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    member = getattr(cls, "__init__" if cls.__init__ is not object.__init__ else "__new__")
    try:
        hints = get_type_hints(member)
    except TypeError:
        hints = {}
    except NameError:
        # One unevaluable annotation (e.g. a TYPE_CHECKING-only import) must not
        # cost the others their hints.
        hints = _get_hints_per_parameter(cls, member)

    return hints


def _get_hints_per_parameter(cls: type, member: Any) -> dict[str, Any]:
    globalns = getattr(inspect.unwrap(member), "__globals__", {})
    hints: dict[str, Any] = {}
    for name, annotation in getattr(member, "__annotations__", {}).items():
        try:
            hints.update(get_type_hints(types.SimpleNamespace(__annotations__={name: annotation}), globalns))
        except NameError as exc:
            logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
    return hints
