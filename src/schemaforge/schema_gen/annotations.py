"""
Merging of tokenized annotation blocks.

A target (container, field or variant) may carry several blocks of the same
kind. They are merged key by key; two blocks setting the same key to
different values is an `AmbiguousDirectiveError`.
"""
from typing import Any, Dict, Optional, Sequence

from pydantic import Field, ValidationError

from ..exceptions import AmbiguousDirectiveError, InvalidDirectiveError
from ..models.common import BasePydanticModel
from ..models.declarations import AnnotationBlock


class MergedDirectives(BasePydanticModel):
    directives: Dict[str, Any] = Field(default_factory=dict)
    locations: Dict[str, Optional[str]] = Field(default_factory=dict)
    location: Optional[str] = None # first block location, used when a key has none

    def location_of(self, key: str) -> Optional[str]:
        return self.locations.get(key) or self.location

    def __contains__(self, key: str) -> bool:
        return key in self.directives

    def get(self, key: str, default: Any = None) -> Any:
        return self.directives.get(key, default)


def merge_blocks(blocks: Sequence[AnnotationBlock], fallback_location: Optional[str] = None) -> MergedDirectives:
    merged = MergedDirectives(location=next((b.location for b in blocks if b.location), fallback_location))
    for block in blocks:
        for key, value in block.directives.items():
            if key in merged.directives:
                if merged.directives[key] != value:
                    raise AmbiguousDirectiveError(
                        key,
                        merged.directives[key],
                        value,
                        locations=[merged.locations.get(key), block.location],
                    )
                continue
            merged.directives[key] = value
            merged.locations[key] = block.location or fallback_location
    return merged


def directive_error(error: ValidationError, merged: MergedDirectives) -> InvalidDirectiveError:
    """Translates the first pydantic validation error into an `InvalidDirectiveError`."""
    details = error.errors()[0]
    loc = details.get("loc") or ()
    key = str(loc[0]) if loc else None
    location = merged.location_of(key) if key else merged.location
    message = details.get("msg", str(error)).removeprefix("Value error, ")
    return InvalidDirectiveError(message, location=location, directive=key)
