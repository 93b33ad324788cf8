"""
Serialization-rule interpreter.

Reads the wire framework's own `serde` directives, which decide names and the
enum representation independently of the documentation annotations.
"""
from enum import Enum
from typing import Any, Optional, Sequence

import structlog
from pydantic import ValidationError, field_validator, model_validator

from ..exceptions import InvalidDirectiveError
from ..models.common import BasePydanticModel, EnumRepresentation
from ..models.declarations import AnnotationBlock
from .annotations import MergedDirectives, directive_error, merge_blocks

logger = structlog.get_logger(__name__)


class RenameRule(str, Enum):
    LOWER = "lowercase"
    UPPER = "UPPERCASE"
    PASCAL = "PascalCase"
    CAMEL = "camelCase"
    SNAKE = "snake_case"
    SCREAMING_SNAKE = "SCREAMING_SNAKE_CASE"
    KEBAB = "kebab-case"
    SCREAMING_KEBAB = "SCREAMING-KEBAB-CASE"

    def rename(self, value: str) -> str:
        """Renames a field name, which is expected to be snake_case."""
        if self is RenameRule.LOWER:
            return value.lower()
        if self is RenameRule.UPPER:
            return value.upper()
        if self is RenameRule.CAMEL:
            head, *rest = value.split("_")
            return head + "".join(part[:1].upper() + part[1:] for part in rest)
        if self is RenameRule.PASCAL:
            if not value:
                return value
            return value[0].upper() + RenameRule.CAMEL.rename(value[1:])
        if self is RenameRule.SNAKE:
            return value
        if self is RenameRule.SCREAMING_SNAKE:
            return value.upper()
        if self is RenameRule.KEBAB:
            return value.replace("_", "-")
        return value.replace("_", "-").upper()

    def rename_variant(self, variant: str) -> str:
        """Renames a variant name, which is expected to be PascalCase."""
        if self is RenameRule.LOWER:
            return variant.lower()
        if self is RenameRule.UPPER:
            return variant.upper()
        if self is RenameRule.CAMEL:
            return variant[:1].lower() + variant[1:]
        if self is RenameRule.PASCAL:
            return variant
        snake = "".join(
            f"_{letter}" if index > 0 and letter.isupper() else letter
            for index, letter in enumerate(variant)
        ).lower()
        if self is RenameRule.SNAKE:
            return snake
        if self is RenameRule.SCREAMING_SNAKE:
            return snake.upper()
        if self is RenameRule.KEBAB:
            return snake.replace("_", "-")
        return snake.replace("_", "-").upper()


def parse_rename_rule(value: Any) -> RenameRule:
    try:
        return RenameRule(value)
    except ValueError:
        accepted = ", ".join(f'"{rule.value}"' for rule in RenameRule)
        raise ValueError(f"unexpected rename rule {value!r}, expected one of: {accepted}") from None


def apply_rename_rule(rule: Optional[str], name: str, is_variant: bool) -> Optional[str]:
    if rule is None:
        return None
    rename_rule = RenameRule(rule)
    return rename_rule.rename_variant(name) if is_variant else rename_rule.rename(name)


def resolve_name(
    declared: str,
    schema_rename: Optional[str] = None,
    serde_rename: Optional[str] = None,
    schema_rename_all: Optional[str] = None,
    serde_rename_all: Optional[str] = None,
    is_variant: bool = False,
) -> str:
    """
    Effective wire name of a field or variant. Explicit renames win over rename
    patterns and documentation annotations win over serde ones.
    """
    for candidate in (
        schema_rename,
        serde_rename,
        apply_rename_rule(schema_rename_all, declared, is_variant),
        apply_rename_rule(serde_rename_all, declared, is_variant),
    ):
        if candidate is not None:
            return candidate
    return declared


# Keys the engine acts on. Other serde keys (bound, crate, with, ...) do not
# change the schema and are ignored.
CONTAINER_KEYS = {"rename_all", "tag", "content", "untagged", "default", "deny_unknown_fields", "transparent"}
VALUE_KEYS = {
    "rename", "rename_all", "skip", "skip_serializing", "skip_deserializing", "default",
    "skip_serializing_if", "flatten", "untagged",
}


class SerdeValue(BasePydanticModel):
    """Serde rules of one field or variant."""
    rename: Optional[str] = None
    rename_all: Optional[str] = None # variant level, renames the fields of a named variant
    skip: bool = False
    skip_serializing: bool = False
    skip_deserializing: bool = False
    default: bool = False
    skip_serializing_if: bool = False
    flatten: bool = False
    untagged: bool = False

    @field_validator("rename_all", mode="before")
    @classmethod
    def check_rename_all(cls, value: Any) -> Optional[str]:
        return None if value is None else parse_rename_rule(value).value

    @field_validator("default", "skip_serializing_if", mode="before")
    @classmethod
    def presence_means_true(cls, value: Any) -> bool:
        # `default = "path::to::fn"` and `skip_serializing_if = "Option::is_none"` only matter by presence
        if isinstance(value, str):
            return True
        return bool(value)

    @property
    def is_skipped(self) -> bool:
        return self.skip or (self.skip_serializing and self.skip_deserializing)

    @property
    def is_optional(self) -> bool:
        return self.default or self.skip_serializing_if


class SerdeContainer(BasePydanticModel):
    """Container level serde rules with the resolved base representation."""
    rename_all: Optional[str] = None
    tag: Optional[str] = None
    content: Optional[str] = None
    untagged: bool = False
    default: bool = False
    deny_unknown_fields: bool = False
    transparent: bool = False

    @field_validator("rename_all", mode="before")
    @classmethod
    def check_rename_all(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return parse_rename_rule(value).value

    @field_validator("default", mode="before")
    @classmethod
    def default_presence(cls, value: Any) -> bool:
        return True if isinstance(value, str) else bool(value)

    @model_validator(mode="after")
    def check_tagging(self) -> "SerdeContainer":
        if self.content is not None and self.tag is None:
            raise ValueError("`content` requires `tag` to be set")
        if self.untagged and self.tag is not None:
            raise ValueError("`untagged` cannot be combined with `tag`")
        return self

    @property
    def representation(self) -> EnumRepresentation:
        if self.untagged:
            return EnumRepresentation.UNTAGGED
        if self.tag is not None and self.content is not None:
            return EnumRepresentation.ADJACENTLY_TAGGED
        if self.tag is not None:
            return EnumRepresentation.INTERNALLY_TAGGED
        return EnumRepresentation.EXTERNALLY_TAGGED


def _filter_known(merged: MergedDirectives, known: set, target: str) -> dict:
    ignored = sorted(set(merged.directives) - known)
    if ignored:
        logger.debug("Ignoring serde directives without schema effect", target=target, directives=ignored)
    return {key: value for key, value in merged.directives.items() if key in known}


def parse_serde_container(blocks: Sequence[AnnotationBlock], target: str = "container") -> SerdeContainer:
    merged = merge_blocks(blocks)
    try:
        return SerdeContainer(**_filter_known(merged, CONTAINER_KEYS, target))
    except ValidationError as e:
        error = directive_error(e, merged)
        if error.directive is None:
            # model level checks concern the tagging keys
            key = "content" if merged.get("tag") is None else "untagged"
            error = InvalidDirectiveError(error.message, location=merged.location_of(key), directive=key)
        raise error from e


def parse_serde_value(blocks: Sequence[AnnotationBlock], target: str = "field") -> SerdeValue:
    merged = merge_blocks(blocks)
    try:
        return SerdeValue(**_filter_known(merged, VALUE_KEYS, target))
    except ValidationError as e:
        raise directive_error(e, merged) from e


def enum_representation(container: SerdeContainer, variants: Sequence[SerdeValue]) -> EnumRepresentation:
    """
    Container wide representation. A tagged container with at least one
    `untagged` variant is partially untagged.
    """
    base = container.representation
    if base != EnumRepresentation.UNTAGGED and any(variant.untagged for variant in variants):
        return EnumRepresentation.PARTIALLY_UNTAGGED
    return base


def variant_representation(container: SerdeContainer, variant: SerdeValue) -> EnumRepresentation:
    """Effective representation of a single variant; a variant-level `untagged` wins."""
    if variant.untagged:
        return EnumRepresentation.UNTAGGED
    return container.representation
