"""Minimal dependency injection library with scoped lifetimes.

This package maps abstract types (classes, ABCs, protocols) to concrete
implementations, factories or pre-built instances, and resolves fully wired
object graphs from constructor type hints.

Exports:
- `Container`: Registration table and resolution engine; the composition root.
- `Lifetime`: Enum controlling instance reuse: transient, singleton or scoped.
- `Scope`: Short-lived resolution context created with `Container.create_scope()`,
  caching one instance per scoped registration until it ends.
- `ResolutionError` and its subclasses, raised when a graph cannot be built.
"""

from ._container import (
    CircularDependencyError,
    Container,
    Lifetime,
    RegistrationNotFoundError,
    ResolutionError,
    Resolver,
    Scope,
    ScopeEndedError,
    ScopeError,
    ScopeNotActiveError,
)


__all__ = [
    "CircularDependencyError",
    "Container",
    "Lifetime",
    "RegistrationNotFoundError",
    "ResolutionError",
    "Resolver",
    "Scope",
    "ScopeEndedError",
    "ScopeError",
    "ScopeNotActiveError",
]
