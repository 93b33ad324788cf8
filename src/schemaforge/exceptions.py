"""
Exceptions raised while deriving schemas.

Every error aborts the derivation pass that raised it. Each carries enough
location information for the caller to point back at the offending declaration.
"""
from typing import Any, Optional, Sequence


class SchemaDeriveError(Exception):
    """Base class for all derivation errors."""

    def __init__(self, message: str, location: Optional[str] = None, directive: Optional[str] = None):
        self.message = message
        self.location = location
        self.directive = directive
        parts = [part for part in (location, f"`{directive}`" if directive else None) if part]
        prefix = " ".join(parts)
        super().__init__(f"{prefix}: {message}" if prefix else message)


class RepresentationConflictError(SchemaDeriveError):
    """Raised when an enum representation cannot carry a variant's shape
    (e.g. an internally tagged enum with a multi-field positional variant)."""

    def __init__(self, message: str, location: Optional[str] = None, representation: Optional[str] = None):
        super().__init__(message, location=location)
        self.representation = representation


class DiscriminatorMisuseError(SchemaDeriveError):
    """Raised when `discriminator` is set on an enum whose variants cannot support one."""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message, location=location, directive="discriminator")


class UnresolvableCycleError(SchemaDeriveError):
    """Raised when a nominal type reaches itself without a cycle tolerant wrapper
    or a `no_recursion` opt-in along the path."""

    def __init__(self, type_name: str, cycle: Sequence[str], location: Optional[str] = None):
        path = " -> ".join(cycle)
        super().__init__(
            f"type '{type_name}' is recursive without indirection ({path}); "
            "wrap the back-edge in Box/Rc/Arc or a collection, or set `no_recursion`",
            location=location,
        )
        self.type_name = type_name
        self.cycle = list(cycle)


class AmbiguousDirectiveError(SchemaDeriveError):
    """Raised when two annotation blocks of the same target set one key to different values."""

    def __init__(self, directive: str, first: Any, second: Any, locations: Sequence[Optional[str]] = ()):
        self.locations = [location for location in locations if location]
        super().__init__(
            f"conflicting values {first!r} and {second!r}",
            location=" and ".join(self.locations) or None,
            directive=directive,
        )


class InvalidDirectiveError(SchemaDeriveError):
    """Raised for unknown, misplaced or malformed directives."""
    pass


class TypeExpressionError(SchemaDeriveError):
    """Raised when a type expression cannot be parsed or instantiated."""

    def __init__(self, message: str, expression: str, location: Optional[str] = None):
        super().__init__(f"{message} in type expression '{expression}'", location=location)
        self.expression = expression


class UnknownTypeError(SchemaDeriveError):
    """Raised in strict mode when a referenced nominal type is neither declared nor registered."""

    def __init__(self, type_name: str, location: Optional[str] = None):
        super().__init__(f"unknown type '{type_name}'", location=location)
        self.type_name = type_name
