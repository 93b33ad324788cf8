"""
Annotation/feature resolver.

Merges the documentation annotation blocks of one target into a validated
`FeatureSet`, checks that every directive is allowed on that target and
applies the resolved features to built schema nodes.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import Field, ValidationError, field_validator, model_validator

from ..exceptions import InvalidDirectiveError
from ..models.common import BasePydanticModel, SchemaType
from ..models.declarations import AnnotationBlock
from ..models.schema import (
    AllOfSchema,
    ArraySchema,
    Discriminator,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    Xml,
)
from .annotations import MergedDirectives, directive_error, merge_blocks
from .descriptors import DescriptorKind, TypeDescriptor
from .serde import parse_rename_rule


class Scope(str, Enum):
    NAMED_STRUCT = "named struct"
    TUPLE_STRUCT = "tuple struct"
    UNIT_STRUCT = "unit struct"
    UNIT_ENUM = "unit enum"
    MIXED_ENUM = "mixed enum"
    NAMED_FIELD = "named field"
    UNNAMED_FIELD = "unnamed field"
    NAMED_VARIANT = "named variant"
    UNNAMED_VARIANT = "unnamed variant"
    UNIT_VARIANT = "unit variant"


METADATA_KEYS = {"title", "description", "deprecated", "default", "example", "examples"}
STRING_BOUNDS = {"min_length", "max_length", "pattern"}
NUMERIC_BOUNDS = {"minimum", "maximum", "exclusive_minimum", "exclusive_maximum", "multiple_of"}
ITEM_BOUNDS = {"min_items", "max_items"}
VALIDATION_KEYS = STRING_BOUNDS | NUMERIC_BOUNDS | ITEM_BOUNDS
OBJECT_BOUNDS = {"min_properties", "max_properties"}

ALLOWED_KEYS: Dict[Scope, set] = {
    Scope.NAMED_STRUCT: METADATA_KEYS | OBJECT_BOUNDS | {"rename_all", "as", "xml", "no_recursion"},
    Scope.TUPLE_STRUCT: METADATA_KEYS | {"as", "value_type", "format", "nullable", "inline", "no_recursion"},
    Scope.UNIT_STRUCT: METADATA_KEYS | {"as"},
    Scope.UNIT_ENUM: METADATA_KEYS | {"rename_all", "as", "no_recursion"},
    Scope.MIXED_ENUM: METADATA_KEYS | {"rename_all", "as", "discriminator", "no_recursion"},
    Scope.NAMED_FIELD: METADATA_KEYS | VALIDATION_KEYS | OBJECT_BOUNDS | {
        "rename", "skip", "inline", "required", "format", "value_type", "xml",
        "nullable", "read_only", "write_only", "no_recursion",
    },
    Scope.UNNAMED_FIELD: {"description", "inline", "format", "value_type", "nullable", "no_recursion", "skip"},
    Scope.NAMED_VARIANT: METADATA_KEYS | OBJECT_BOUNDS | {"rename", "rename_all", "skip", "xml", "no_recursion"},
    Scope.UNNAMED_VARIANT: METADATA_KEYS | {"rename", "skip", "inline", "format", "value_type", "nullable", "no_recursion"},
    Scope.UNIT_VARIANT: METADATA_KEYS | {"rename", "skip"},
}

# decorate the wrapper of an enum variant rather than the variant's own schema
VARIANT_WRAPPER_KEYS = ("title", "description", "deprecated", "default", "example", "examples")
# values copied onto any non-reference node
_METADATA_FIELDS = ("title", "description", "deprecated", "default", "example", "examples", "read_only", "write_only")


class XmlDirective(BasePydanticModel):
    name: Optional[str] = None
    namespace: Optional[str] = None
    prefix: Optional[str] = None
    attribute: Optional[bool] = None
    wrapped: Optional[bool] = None
    wrap_name: Optional[str] = None

    def item_xml(self) -> Optional[Xml]:
        xml = Xml(name=self.name, namespace=self.namespace, prefix=self.prefix, attribute=self.attribute)
        return xml if xml.model_dump(exclude_none=True) else None

    def wrapper_xml(self) -> Optional[Xml]:
        if not self.wrapped and self.wrap_name is None:
            return None
        return Xml(name=self.wrap_name, wrapped=self.wrapped)

    def to_xml(self) -> Xml:
        return Xml(
            name=self.name,
            namespace=self.namespace,
            prefix=self.prefix,
            attribute=self.attribute,
            wrapped=self.wrapped,
        )


class DiscriminatorDirective(BasePydanticModel):
    property_name: str
    mapping: Optional[Dict[str, str]] = None

    def to_discriminator(self) -> Discriminator:
        return Discriminator(property_name=self.property_name, mapping=self.mapping)


class FeatureSet(BasePydanticModel):
    """Resolved documentation directives of one target."""
    rename: Optional[str] = None
    rename_all: Optional[str] = None
    skip: bool = False
    inline: bool = False
    required: Optional[bool] = None
    deprecated: Optional[bool] = None
    default: Any = None
    example: Any = None
    examples: Optional[List[Any]] = None
    format: Optional[str] = None
    value_type: Optional[str] = None
    min_length: Optional[int] = Field(None, ge=0)
    max_length: Optional[int] = Field(None, ge=0)
    pattern: Optional[str] = None
    min_items: Optional[int] = Field(None, ge=0)
    max_items: Optional[int] = Field(None, ge=0)
    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    exclusive_minimum: Optional[Union[int, float]] = None
    exclusive_maximum: Optional[Union[int, float]] = None
    multiple_of: Optional[Union[int, float]] = Field(None, gt=0)
    min_properties: Optional[int] = Field(None, ge=0)
    max_properties: Optional[int] = Field(None, ge=0)
    xml: Optional[XmlDirective] = None
    title: Optional[str] = None
    description: Optional[str] = None
    nullable: bool = False
    read_only: Optional[bool] = None
    write_only: Optional[bool] = None
    no_recursion: bool = False
    discriminator: Optional[DiscriminatorDirective] = None
    component_name: Optional[str] = Field(None, alias="as")
    origin: Optional[MergedDirectives] = Field(None, exclude=True)

    @field_validator("rename_all", mode="before")
    @classmethod
    def check_rename_all(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return parse_rename_rule(value).value

    @field_validator("discriminator", mode="before")
    @classmethod
    def discriminator_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"property_name": value}
        return value

    @field_validator("examples", mode="before")
    @classmethod
    def examples_as_list(cls, value: Any) -> Any:
        # named examples keep only their values
        if isinstance(value, dict):
            return list(value.values())
        return value

    @model_validator(mode="after")
    def check_bounds(self) -> "FeatureSet":
        for low, high in (("min_length", "max_length"), ("min_items", "max_items"), ("min_properties", "max_properties")):
            low_value, high_value = getattr(self, low), getattr(self, high)
            if low_value is not None and high_value is not None and low_value > high_value:
                raise ValueError(f"`{low}` ({low_value}) is greater than `{high}` ({high_value})")
        return self

    def is_set(self, key: str) -> bool:
        return key in self.model_fields_set

    def location_of(self, key: str) -> Optional[str]:
        return self.origin.location_of(key) if self.origin else None

    @property
    def location(self) -> Optional[str]:
        return self.origin.location if self.origin else None

    @property
    def has_default(self) -> bool:
        return self.is_set("default")

    def metadata(self) -> Dict[str, Any]:
        """Metadata values that were explicitly set, keyed by node field name."""
        return {key: getattr(self, key) for key in _METADATA_FIELDS if self.is_set(key)}

    def inherit(self, container: Optional["FeatureSet"]) -> "FeatureSet":
        """Applies container directives that cascade to members."""
        if container is not None and container.no_recursion and not self.no_recursion:
            self.no_recursion = True
        return self

    def variant_wrapper_metadata(self) -> Dict[str, Any]:
        """Decorations that go on the wrapper of an enum variant."""
        return {key: getattr(self, key) for key in VARIANT_WRAPPER_KEYS if self.is_set(key)}


def resolve_features(
    blocks: Sequence[AnnotationBlock],
    scope: Scope,
    location: Optional[str] = None,
    container: Optional[FeatureSet] = None,
) -> FeatureSet:
    """Merges annotation blocks for a target of the given scope into a `FeatureSet`."""
    merged = merge_blocks(blocks, fallback_location=location)
    allowed = ALLOWED_KEYS[scope]
    for key in merged.directives:
        if key not in allowed:
            raise InvalidDirectiveError(
                f"unexpected directive on {scope.value}, expected one of: {', '.join(sorted(allowed))}",
                location=merged.location_of(key),
                directive=key,
            )
    try:
        features = FeatureSet.model_validate(merged.directives)
    except ValidationError as e:
        raise directive_error(e, merged) from e
    features.origin = merged
    return features.inherit(container)


def check_applicability(features: FeatureSet, descriptor: TypeDescriptor) -> None:
    """Validates that bounds, xml and format fit the type they decorate."""
    target = descriptor.innermost()
    spec = target.primitive_spec()
    schema_type = spec.schema_type if spec else None

    def invalid(key: str, expected: str) -> InvalidDirectiveError:
        return InvalidDirectiveError(
            f"can only be used with {expected} types, found '{descriptor}'",
            location=features.location_of(key),
            directive=key,
        )

    for key in sorted(STRING_BOUNDS):
        if features.is_set(key) and schema_type != SchemaType.STRING:
            raise invalid(key, "string")
    for key in sorted(NUMERIC_BOUNDS):
        if features.is_set(key) and schema_type not in (SchemaType.INTEGER, SchemaType.NUMBER):
            raise invalid(key, "number")
    for key in sorted(ITEM_BOUNDS):
        if features.is_set(key) and target.kind != DescriptorKind.SEQUENCE:
            raise invalid(key, "sequence")
    if features.xml is not None and features.xml.wrapped is not None and target.kind != DescriptorKind.SEQUENCE:
        raise invalid("xml", "sequence")
    if features.format is not None and not target.is_primitive:
        raise invalid("format", "primitive")


SchemaLike = Union[PrimitiveSchema, ObjectSchema, ArraySchema, OneOfSchema, AllOfSchema, RefSchema]


def mark_nullable(node: SchemaLike) -> SchemaLike:
    """Allows `null`: primitives and containers get a type list, anything else a `oneOf` with a null schema."""
    if isinstance(node, (RefSchema, OneOfSchema, AllOfSchema)):
        return OneOfSchema(items=[PrimitiveSchema.null(), node])
    current = node.schema_type
    if current is None:
        return node
    types = [SchemaType(value) for value in (current if isinstance(current, list) else [current])]
    if SchemaType.NULL not in types:
        types.append(SchemaType.NULL)
    node.schema_type = types
    return node


def apply_metadata(node: SchemaLike, values: Dict[str, Any]) -> SchemaLike:
    """
    Copies metadata values onto a node. A reference cannot carry them and is
    wrapped in a single item `AllOfSchema` first.
    """
    if not values:
        return node
    if isinstance(node, RefSchema):
        node = AllOfSchema(items=[node])
    for key, value in values.items():
        setattr(node, key, value)
    return node


def apply_validation(node: SchemaLike, features: FeatureSet) -> SchemaLike:
    """Copies validation bounds, format and xml onto the node built for a field."""
    target = node
    if isinstance(target, AllOfSchema) and len(target.items) == 1:
        target = target.items[0]
    if isinstance(target, PrimitiveSchema):
        for key in sorted(STRING_BOUNDS | NUMERIC_BOUNDS):
            if features.is_set(key):
                setattr(target, key, getattr(features, key))
        if features.format is not None:
            target.format = features.format
        if features.xml is not None:
            target.xml = features.xml.to_xml()
    elif isinstance(target, ArraySchema):
        for key in sorted(ITEM_BOUNDS):
            if features.is_set(key):
                setattr(target, key, getattr(features, key))
        if features.xml is not None:
            target.xml = features.xml.wrapper_xml()
            item_xml = features.xml.item_xml()
            if item_xml is not None and isinstance(target.items, (PrimitiveSchema, ObjectSchema, ArraySchema)):
                target.items.xml = item_xml
    elif isinstance(target, ObjectSchema):
        for key in sorted(OBJECT_BOUNDS):
            if features.is_set(key):
                setattr(target, key, getattr(features, key))
        if features.xml is not None:
            target.xml = features.xml.to_xml()
    return node


def documented(metadata: Dict[str, Any], doc: Optional[str], deprecated: bool) -> Dict[str, Any]:
    """Adds the doc comment and language-level deprecation unless set explicitly."""
    if doc and doc.strip() and "description" not in metadata:
        metadata["description"] = doc.strip()
    if deprecated and "deprecated" not in metadata:
        metadata["deprecated"] = True
    return metadata


def overlay(base: FeatureSet, top: FeatureSet, keys: Sequence[str]) -> FeatureSet:
    """Copy of `base` with the given keys taken from `top` where `top` sets them."""
    update = {key: getattr(top, key) for key in keys if top.is_set(key)}
    if not update:
        return base
    merged = base.model_copy(update=update)
    if merged.origin is None:
        merged.origin = top.origin
    return merged
