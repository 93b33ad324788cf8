"""
Recursion guard and generic instantiator.

The guard keeps the chain of nominal types currently being expanded. Every
frame remembers whether the edge that entered it may break a cycle (it went
through `Box`/`Rc`/`Arc`, a collection or a `no_recursion` directive). A
back-edge to a type on the path is only cut with a reference when at least
one edge on that cycle is tolerant.
"""
from contextlib import contextmanager
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

import structlog
from pydantic import Field

from ..exceptions import TypeExpressionError, UnresolvableCycleError
from ..models.common import BasePydanticModel
from ..models.declarations import TypeDecl
from .descriptors import TypeDescriptor, build_descriptor, canonical_name

logger = structlog.get_logger(__name__)


class Frame(NamedTuple):
    name: str
    tolerant: bool # edge into this frame


class RecursionGuard:
    def __init__(self):
        self._frames: List[Frame] = []

    @property
    def path(self) -> List[str]:
        return [frame.name for frame in self._frames]

    def is_active(self, name: str) -> bool:
        return any(frame.name == name for frame in self._frames)

    @contextmanager
    def enter(self, name: str, tolerant: bool = False) -> Iterator[None]:
        self._frames.append(Frame(name, tolerant))
        try:
            yield
        finally:
            self._frames.pop()

    def check_back_edge(self, name: str, tolerant: bool, location: Optional[str] = None) -> None:
        """
        Validates a back-edge to `name`, which must be on the active path.
        Raises `UnresolvableCycleError` when no edge of the cycle is tolerant.
        """
        start = max(index for index, frame in enumerate(self._frames) if frame.name == name)
        cycle = self._frames[start:]
        if tolerant or any(frame.tolerant for frame in cycle[1:]):
            logger.debug("Cut recursion cycle", type_name=name, cycle=[frame.name for frame in cycle] + [name])
            return
        raise UnresolvableCycleError(name, [frame.name for frame in cycle] + [name], location=location)


class Alias(BasePydanticModel):
    """A named concrete instantiation of a generic declaration."""
    declared_name: str
    arguments: List[str] = Field(default_factory=list)
    name: str


class GenericInstantiator:
    """Names generic instantiations and registers each distinct one once per pass."""

    def __init__(self, separator: str = "_"):
        self.separator = separator
        self.aliases: Dict[str, Alias] = {}

    def instantiate(
        self,
        decl: TypeDecl,
        descriptor: TypeDescriptor,
        location: Optional[str] = None,
    ) -> Tuple[str, Dict[str, TypeDescriptor]]:
        """Returns the schema name and the formal parameter substitutions for `descriptor`."""
        if len(descriptor.args) != len(decl.generics):
            raise TypeExpressionError(
                f"'{decl.name}' expects {len(decl.generics)} type argument(s), got {len(descriptor.args)}",
                str(descriptor),
                location=location,
            )
        substitutions = dict(zip(decl.generics, descriptor.args))
        if not decl.generics:
            return decl.name, substitutions

        name = self._declared_alias(decl, descriptor) or canonical_name(descriptor, self.separator)
        if name not in self.aliases:
            self.aliases[name] = Alias(
                declared_name=decl.name,
                arguments=[canonical_name(arg, self.separator) for arg in descriptor.args],
                name=name,
            )
            logger.debug("Registered generic alias", alias=name, type_name=decl.name)
        return name, substitutions

    def _declared_alias(self, decl: TypeDecl, descriptor: TypeDescriptor) -> Optional[str]:
        for alias in decl.aliases:
            if build_descriptor(alias.type) == descriptor:
                return alias.name
        return None

    def sorted_aliases(self) -> List[Alias]:
        return [self.aliases[name] for name in sorted(self.aliases)]
