import logging
from typing import Any, Optional, TypeVar, Union

import pytest
import sample_services
from sample_services import (
    AbstractClass,
    ClassExtendingAbstractClass,
    ClassImplementingInterface,
    ClassWithPositionalOnlyParameters,
    Database,
    EmptyInterface,
    Service,
)

from objwire import (
    ConstructorParameter,
    Container,
    ParameterKind,
    ReflectionIntrospector,
    TypeNotFoundError,
)
from objwire._introspect import classify_annotation, strip_optional


T = TypeVar("T")


@pytest.mark.parametrize(
    ("annotation", "kind"),
    [
        (Database, ParameterKind.NAMED),
        (EmptyInterface, ParameterKind.NAMED),
        (int, ParameterKind.BUILTIN),
        (str, ParameterKind.BUILTIN),
        (object, ParameterKind.BUILTIN),
        (list[Database], ParameterKind.BUILTIN),
        (Any, ParameterKind.BUILTIN),
        (T, ParameterKind.BUILTIN),
        (Optional[Database], ParameterKind.NAMED),
        (Union[Database, EmptyInterface], ParameterKind.UNION),
        (Database | None, ParameterKind.NAMED),
        (Database | EmptyInterface | None, ParameterKind.UNION),
        (Optional[int], ParameterKind.BUILTIN),
        ("pkg.module.Thing", ParameterKind.NAMED),
        ("Thing | None", ParameterKind.UNRESOLVED),
        ("list[Thing]", ParameterKind.UNRESOLVED),
        ("int", ParameterKind.BUILTIN),
    ],
)
def test_classify_annotation(annotation, kind):
    assert classify_annotation(annotation) is kind


def test_strip_optional_unwraps_only_nullable_single_types():
    assert strip_optional(Optional[Database]) is Database
    assert strip_optional(Database | None) is Database
    assert strip_optional(Database) is Database
    assert strip_optional(Union[Database, EmptyInterface]) == Union[Database, EmptyInterface]


def test_classify_missing_annotation_is_untyped():
    import inspect

    assert classify_annotation(inspect.Parameter.empty) is ParameterKind.UNTYPED


class TestReflectionIntrospector:
    introspector = ReflectionIntrospector()

    def test_find_type_accepts_classes_and_dotted_paths(self):
        assert self.introspector.find_type(Database) is Database
        assert self.introspector.find_type("sample_services.Database") is Database
        assert self.introspector.find_type("collections.OrderedDict").__name__ == "OrderedDict"

    @pytest.mark.parametrize(
        "target",
        ["NonExistentClassName", "sample_services.Nope", "sample_services.DEFAULT_DATABASE", "", "a..b", 42],
    )
    def test_find_type_raises_for_unknown_targets(self, target):
        with pytest.raises(TypeNotFoundError):
            self.introspector.find_type(target)
        assert not self.introspector.type_exists(target)

    def test_type_exists(self):
        assert self.introspector.type_exists(Database)
        assert self.introspector.type_exists("sample_services.Service")

    def test_is_abstract_or_interface(self):
        assert self.introspector.is_abstract_or_interface(EmptyInterface)
        assert self.introspector.is_abstract_or_interface(AbstractClass)
        assert not self.introspector.is_abstract_or_interface(ClassExtendingAbstractClass)
        assert not self.introspector.is_abstract_or_interface(ClassImplementingInterface)

    def test_constructor_parameters_of_class_without_init_are_empty(self):
        assert self.introspector.constructor_parameters(Database) == []

    def test_constructor_parameters_in_declaration_order(self):
        params = self.introspector.constructor_parameters("sample_services.Service")

        assert [p.name for p in params] == ["repo", "name", "db"]
        assert [p.kind for p in params] == [ParameterKind.NAMED, ParameterKind.BUILTIN, ParameterKind.NAMED]
        assert params[2].annotation is Database
        assert params[2].default is None
        assert params[0].annotation is sample_services.Repository
        assert not params[0].has_default
        assert params[1].has_default
        assert params[1].default == "default"

    def test_constructor_parameters_mark_positional_only(self):
        params = self.introspector.constructor_parameters(ClassWithPositionalOnlyParameters)

        assert [p.positional_only for p in params] == [True, True, False]

    def test_constructor_parameters_of_unknown_class_raise(self):
        with pytest.raises(TypeNotFoundError):
            self.introspector.constructor_parameters("sample_services.Nope")

    def test_construct_and_invoke(self):
        svc = self.introspector.construct(Service, [], {"repo": "r", "name": "n"})

        assert (svc.repo, svc.name) == ("r", "n")
        assert isinstance(self.introspector.invoke(Database), Database)


class RecordingIntrospector(ReflectionIntrospector):
    def __init__(self):
        self.constructed = []

    def construct(self, cls, args, kwargs):
        self.constructed.append(cls)
        return super().construct(cls, args, kwargs)


def test_container_uses_injected_introspector():
    introspector = RecordingIntrospector()
    c = Container(introspector=introspector)
    c.register_transient(Service, Service)

    c.resolve(Service)

    assert introspector.constructed == [Database, sample_services.Repository, Database, Service]


class StaticIntrospector(ReflectionIntrospector):
    """Answers constructor parameters from a table instead of annotations."""

    def __init__(self, table):
        self.table = table

    def constructor_parameters(self, target):
        cls = self.find_type(target)
        return self.table.get(cls, [])


def test_container_follows_introspector_parameters():
    class Engine:
        def __init__(self, db=None):
            self.db = db

    introspector = StaticIntrospector({Engine: [ConstructorParameter("db", ParameterKind.NAMED, Database)]})
    c = Container(introspector)
    c.register_transient("engine", Engine)

    assert isinstance(c.resolve("engine").db, Database)


def test_constructor_parameters_keep_hints_next_to_unevaluable_annotation(caplog):
    from sample_deferred import UsesTypeCheckingImport

    with caplog.at_level(logging.WARNING):
        params = ReflectionIntrospector().constructor_parameters(UsesTypeCheckingImport)

    db, ctx = params
    assert (db.kind, db.annotation) == (ParameterKind.NAMED, Database)
    assert (ctx.kind, ctx.annotation) == (ParameterKind.UNRESOLVED, "Optional[Context]")
    assert "'Context' name error" in caplog.text
