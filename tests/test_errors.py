import pytest

from scopebind import (
    CircularDependencyError,
    Container,
    RegistrationNotFoundError,
    ResolutionError,
    ScopeEndedError,
    ScopeError,
    ScopeNotActiveError,
)


class Chicken:
    def __init__(self, egg: "Egg"):
        self.egg = egg


class Egg:
    def __init__(self, chicken: "Chicken"):
        self.chicken = chicken


class Narcissus:
    def __init__(self, other: "Narcissus"):
        self.other = other


def test_error_hierarchy():
    assert issubclass(RegistrationNotFoundError, ResolutionError)
    assert issubclass(CircularDependencyError, ResolutionError)
    assert issubclass(ScopeNotActiveError, ScopeError)
    assert issubclass(ScopeEndedError, ScopeError)
    assert issubclass(ResolutionError, RuntimeError)


def test_two_type_cycle_is_detected():
    c = Container()
    c.register(Chicken)
    c.register(Egg)

    with pytest.raises(CircularDependencyError) as ctx:
        c.resolve(Chicken)

    assert ctx.value.chain == [Chicken, Egg, Chicken]
    assert "Chicken -> Egg -> Chicken" in str(ctx.value)


def test_self_dependency_is_detected_for_singleton():
    c = Container()
    c.register_singleton(Narcissus)

    with pytest.raises(CircularDependencyError) as ctx:
        c.resolve(Narcissus)

    assert ctx.value.chain == [Narcissus, Narcissus]


def test_cycle_through_scoped_registrations_is_detected():
    c = Container()
    c.register_scoped(Chicken)
    c.register_scoped(Egg)

    with c.create_scope() as scope, pytest.raises(CircularDependencyError):
        scope.resolve(Egg)


def test_container_is_usable_after_cycle_error():
    c = Container()
    c.register(Chicken)
    c.register(Egg)

    with pytest.raises(CircularDependencyError):
        c.resolve(Chicken)

    class Plain: ...

    c.register(Plain)
    assert isinstance(c.resolve(Plain), Plain)

    # the resolution stack was unwound: the same cycle is reported the same way
    with pytest.raises(CircularDependencyError) as ctx:
        c.resolve(Egg)
    assert ctx.value.chain == [Egg, Chicken, Egg]


def test_constructor_errors_propagate_unchanged():
    c = Container()

    class Broken:
        def __init__(self):
            msg = "cannot build"
            raise OSError(msg)

    c.register(Broken)

    with pytest.raises(OSError, match="cannot build"):
        c.resolve(Broken)


def test_singletons_built_before_a_failure_stay_cached():
    c = Container()

    class Config: ...

    class Broken:
        def __init__(self):
            msg = "cannot build"
            raise RuntimeError(msg)

    class Service:
        def __init__(self, config: Config, broken: Broken):
            self.config = config
            self.broken = broken

    built = []

    def make_config(_):
        built.append(1)
        return Config()

    c.register_singleton(Config, factory=make_config)
    c.register(Broken)
    c.register(Service)

    with pytest.raises(RuntimeError, match="cannot build"):
        c.resolve(Service)

    c.resolve(Config)
    assert built == [1]


def test_missing_nested_registration_fails_whole_resolution():
    c = Container()

    class Missing: ...

    class Service:
        def __init__(self, missing: Missing):
            self.missing = missing

    c.register(Service)

    with pytest.raises(RegistrationNotFoundError) as ctx:
        c.resolve(Service)
    assert ctx.value.token is Missing
