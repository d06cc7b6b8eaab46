from __future__ import annotations

import contextlib
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Protocol,
    TypeVar,
    get_type_hints,
    overload,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    T = TypeVar("T")


class Lifetime(Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    SCOPED = "scoped"


@dataclass
class Registration:
    impl: type | None
    lifetime: Lifetime
    factory: Callable[[Resolver], object] | None = None
    cached_instance: object | None = None  # cached singleton


class Resolver(Protocol):
    """Anything dependencies can be resolved from: a `Container` or a `Scope`."""

    def resolve(self, token: type[T]) -> T: ...

    def is_registered(self, token: type) -> bool: ...


def _name(token: object) -> str:
    return getattr(token, "__qualname__", None) or repr(token)


class ResolutionError(RuntimeError):
    pass


class RegistrationNotFoundError(ResolutionError):
    def __init__(self, token: object, required_by: object | None = None) -> None:
        msg = f"No registration found for type {_name(token)}"
        if required_by is not None:
            msg += f" (required by {_name(required_by)})"
        super().__init__(msg)
        self.token = token
        self.required_by = required_by


class CircularDependencyError(ResolutionError):
    def __init__(self, chain: Sequence[object]) -> None:
        super().__init__(f"Circular dependency detected: {' -> '.join(_name(t) for t in chain)}")
        self.chain = list(chain)


class ScopeError(ResolutionError):
    pass


class ScopeNotActiveError(ScopeError):
    def __init__(self, token: object) -> None:
        super().__init__(
            f"Type {_name(token)} is registered as scoped and must be resolved from a scope; "
            "use Container.create_scope()"
        )
        self.token = token


class ScopeEndedError(ScopeError):
    pass


class Container:
    """Minimal DI container.

    - register types, factories or pre-built instances
    - resolve with constructor injection driven by ``__init__`` type hints
    - lifetimes: transient / singleton / scoped
    - scopes created with `create_scope`.
    """

    def __init__(self) -> None:
        self._registrations: dict[type, Registration] = {}
        self._resolving: list[type] = []

    @overload
    def register(
        self,
        token: type[T],
        impl: type[T] | None = ...,
        *,
        factory: None = ...,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None: ...

    @overload
    def register(
        self,
        token: type[T],
        impl: None = ...,
        *,
        factory: Callable[[Resolver], T],
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None: ...

    def register(
        self,
        token: type[T],
        impl: type | None = None,
        *,
        factory: Callable[[Resolver], Any] | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> None:
        """Register a concrete type or a factory for a token.

        Registering a token again replaces the previous registration, including
        any singleton instance it had cached.

        Example:
          container.register(IFoo, FooImpl)
          container.register(Foo)  # self-binding
          container.register(IDb, factory=lambda r: Db(r.resolve(Settings)), lifetime=Lifetime.SINGLETON)

        """
        if impl is not None and factory is not None:
            msg = "Provide either `impl` or `factory`, not both."
            raise ValueError(msg)

        if impl is None and factory is None:
            if not inspect.isclass(token):
                msg = f"Cannot self-bind {token!r}: only classes can be registered without `impl` or `factory`."
                raise ValueError(msg)
            impl = token

        logger.debug("Registering %s -> %s (%s)", _name(token), _name(impl or factory), lifetime.value)
        self._registrations[token] = Registration(impl=impl, lifetime=lifetime, factory=factory)

    def register_singleton(
        self,
        token: type[T],
        impl: type | None = None,
        *,
        factory: Callable[[Resolver], Any] | None = None,
    ) -> None:
        self.register(token, impl, factory=factory, lifetime=Lifetime.SINGLETON)

    def register_scoped(
        self,
        token: type[T],
        impl: type | None = None,
        *,
        factory: Callable[[Resolver], Any] | None = None,
    ) -> None:
        self.register(token, impl, factory=factory, lifetime=Lifetime.SCOPED)

    def register_transient(
        self,
        token: type[T],
        impl: type | None = None,
        *,
        factory: Callable[[Resolver], Any] | None = None,
    ) -> None:
        self.register(token, impl, factory=factory, lifetime=Lifetime.TRANSIENT)

    def register_instance(self, token: type[T], instance: T) -> None:
        """Register a pre-built instance (always singleton)."""
        logger.debug("Registering instance of %s for %s", type(instance).__name__, _name(token))
        self._registrations[token] = Registration(
            impl=type(instance),
            lifetime=Lifetime.SINGLETON,
            cached_instance=instance,
        )

    def is_registered(self, token: type) -> bool:
        return token in self._registrations

    def resolve(self, token: type[T]) -> T:
        """Resolve the token to an instance, outside of any scope.

        Raises `RegistrationNotFoundError` for unregistered tokens and
        `ScopeNotActiveError` for scoped ones.
        """
        return self._resolve(token, None)

    def create_scope(self) -> Scope:
        """Create a scope holding its own cache of scoped instances."""
        return Scope(self, _from_parent=True)

    def _registration(self, token: type) -> Registration:
        reg = self._registrations.get(token)
        if reg is None:
            raise RegistrationNotFoundError(token)
        return reg

    def _resolve(self, token: type[T], scope: Scope | None) -> T:
        reg = self._registration(token)

        if reg.lifetime is Lifetime.SCOPED:
            if scope is None:
                raise ScopeNotActiveError(token)
            return scope.resolve(token)

        if reg.lifetime is Lifetime.SINGLETON:
            if reg.cached_instance is None:
                reg.cached_instance = self._build(token, reg, scope)
                logger.debug("Created singleton %s", _name(token))
            return reg.cached_instance  # type: ignore[return-value]

        return self._build(token, reg, scope)

    def _build(self, token: type[T], reg: Registration, scope: Scope | None) -> T:
        if token in self._resolving:
            start = self._resolving.index(token)
            raise CircularDependencyError([*self._resolving[start:], token])

        resolver: Resolver = scope if scope is not None else self
        self._resolving.append(token)
        try:
            if reg.factory is not None:
                return reg.factory(resolver)  # type: ignore[return-value]
            if reg.impl is None:
                msg = f"Registration for {_name(token)} has neither an implementation nor a factory"
                raise ResolutionError(msg)
            return Constructor(resolver).construct(reg.impl)
        finally:
            self._resolving.pop()


class Scope:
    """A bounded resolution context with its own cache of scoped instances.

    Singleton and transient registrations are resolved by the parent container,
    with this scope kept active so scoped dependencies nested in their graphs
    still come from this scope's cache. Use as a context manager, or call
    `end` when done.
    """

    def __init__(self, container: Container, *, _from_parent: bool = False) -> None:
        if not _from_parent:
            msg = "Scope instances must be created via Container.create_scope()"
            raise RuntimeError(msg)
        self._container = container
        self._instances: dict[type, object] = {}
        self._ended = False
        logger.debug("Scope %#x created", id(self))

    @property
    def ended(self) -> bool:
        return self._ended

    def is_registered(self, token: type) -> bool:
        return self._container.is_registered(token)

    def resolve(self, token: type[T]) -> T:
        if self._ended:
            msg = f"Cannot resolve {_name(token)}: scope has already ended"
            raise ScopeEndedError(msg)

        reg = self._container._registration(token)  # noqa: SLF001
        if reg.lifetime is not Lifetime.SCOPED:
            return self._container._resolve(token, self)  # noqa: SLF001

        if token not in self._instances:
            self._instances[token] = self._container._build(token, reg, self)  # noqa: SLF001
            logger.debug("Created scoped %s in scope %#x", _name(token), id(self))
        return self._instances[token]  # type: ignore[return-value]

    def end(self) -> None:
        """Discard the scoped instances. Calling it again has no effect."""
        if self._ended:
            return
        self._instances.clear()
        self._ended = True
        logger.debug("Scope %#x ended", id(self))

    def __enter__(self) -> Scope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.end()


class Constructor:
    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T]) -> T:
        if cls.__init__ is object.__init__:
            return cls()

        try:
            sig = inspect.signature(cls)
        except ValueError as e:
            msg = f"Cannot inspect the constructor of {cls.__name__}: {e}"
            raise ResolutionError(msg) from e

        hints = _get_init_type_hints(cls)
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for name, p in sig.parameters.items():
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            value = self.resolve_param(cls, name, p, hints)
            if p.kind is p.KEYWORD_ONLY:
                kwargs[name] = value
            else:
                args.append(value)

        return cls(*args, **kwargs)

    def resolve_param(
        self,
        cls: type,
        name: str,
        p: inspect.Parameter,
        hints: dict[str, Any],
    ) -> Any:
        """Resolving param.

        Resolution precedence:
        1. registered annotation
        2. default
        3. annotation (raises when not registered)
        4. error, naming the annotation when it could not be evaluated.
        """
        ann = hints.get(name, p.annotation)
        if isinstance(ann, str):
            if p.default is not inspect.Parameter.empty:
                return p.default
            msg = (
                f"Cannot satisfy constructor parameter '{name}' for {cls.__name__}. "
                f"Its annotation '{ann}' cannot be evaluated and it has no default value."
            )
            raise ResolutionError(msg)

        if ann is not inspect.Parameter.empty and self._resolver.is_registered(ann):
            return self._resolver.resolve(ann)

        if p.default is not inspect.Parameter.empty:
            return p.default

        if ann is not inspect.Parameter.empty:
            raise RegistrationNotFoundError(ann, required_by=cls)

        msg = (
            f"Cannot satisfy constructor parameter '{name}' for {cls.__name__}. "
            "It has no type annotation and no default value."
        )
        raise ResolutionError(msg)


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = _evaluate_annotations(init)

    hints.pop("return", None)
    return hints


def _evaluate_annotations(func: Any) -> dict[str, Any]:
    """Evaluate annotations one at a time; the ones that cannot be evaluated stay strings."""
    namespace = getattr(func, "__globals__", {})
    hints: dict[str, Any] = {}
    for name, ann in inspect.get_annotations(func).items():
        hints[name] = ann
        if isinstance(ann, str):
            with contextlib.suppress(NameError, AttributeError):
                hints[name] = eval(ann, namespace)  # noqa: S307
    return hints
