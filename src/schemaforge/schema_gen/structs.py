"""
Schema builders for records: named-field structs, positional (tuple) structs
and unit structs.
"""
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from ..exceptions import InvalidDirectiveError
from ..models.declarations import FieldDecl, TypeDecl
from ..models.schema import AllOfSchema, ArraySchema, ObjectSchema, PrimitiveSchema, SchemaNode
from .descriptors import DescriptorKind, TypeDescriptor
from .features import (
    FeatureSet,
    Scope,
    apply_validation,
    check_applicability,
    mark_nullable,
    overlay,
    resolve_features,
)
from .serde import SerdeContainer, SerdeValue, parse_serde_value, resolve_name

if TYPE_CHECKING:
    from .context import DerivationContext

# container directives of a positional struct that also describe its single field
NEWTYPE_KEYS = ("inline", "value_type", "format", "nullable", "no_recursion")


def is_required(
    descriptor: TypeDescriptor,
    features: FeatureSet,
    serde: SerdeValue,
    container_default: bool = False,
) -> bool:
    """
    A field is required unless it is nullable, has a default (serde or
    documented) or may be skipped when serializing. An explicit `required`
    directive wins over all of those.
    """
    if features.required is not None:
        return features.required
    if descriptor.is_nullable:
        return False
    if serde.is_optional or container_default:
        return False
    return not features.has_default


def build_object(
    ctx: "DerivationContext",
    fields: Sequence[FieldDecl],
    substitutions: Dict[str, TypeDescriptor],
    owner: FeatureSet,
    owner_location: str,
    rename_all: Optional[str] = None,
    serde_rename_all: Optional[str] = None,
    container_default: bool = False,
    deny_unknown_fields: bool = False,
) -> SchemaNode:
    """
    Builds the object for a list of named fields. Flattened fields are
    composed with the object through an `AllOfSchema` that lists them first;
    a flattened map sets `additionalProperties` instead.
    """
    own = ObjectSchema()
    flattened: List[SchemaNode] = []

    for field in fields:
        location = f"{owner_location}.{field.name}"
        field_serde = parse_serde_value(field.serde_attrs, target=location)
        features = resolve_features(field.schema_attrs, Scope.NAMED_FIELD, location=location, container=owner)
        if features.skip or field_serde.is_skipped:
            continue

        descriptor = ctx.descriptor(field.type, substitutions, location=location)
        if field_serde.flatten:
            target = descriptor.innermost()
            if target.kind == DescriptorKind.MAP:
                own.additional_properties = ctx.render(target.child, features.inline, True, location)
            else:
                flattened.append(ctx.member_schema(descriptor, features, location, substitutions=substitutions))
            continue

        name = resolve_name(field.name, features.rename, field_serde.rename, rename_all, serde_rename_all)
        schema = ctx.member_schema(
            descriptor, features, location, doc=field.doc, deprecated=field.deprecated, substitutions=substitutions
        )
        own.add_property(name, schema, required=is_required(descriptor, features, field_serde, container_default))

    if deny_unknown_fields and own.additional_properties is None:
        own.additional_properties = False
    apply_validation(own, owner)
    if flattened:
        return AllOfSchema(items=flattened + [own])
    return own


def build_named_struct(
    ctx: "DerivationContext",
    decl: TypeDecl,
    substitutions: Dict[str, TypeDescriptor],
    features: FeatureSet,
    serde: SerdeContainer,
) -> SchemaNode:
    if serde.transparent:
        return _transparent(ctx, decl, substitutions, features)
    return build_object(
        ctx,
        decl.fields,
        substitutions,
        features,
        decl.name,
        rename_all=features.rename_all,
        serde_rename_all=serde.rename_all,
        container_default=serde.default,
        deny_unknown_fields=serde.deny_unknown_fields,
    )


def _transparent(
    ctx: "DerivationContext",
    decl: TypeDecl,
    substitutions: Dict[str, TypeDescriptor],
    features: FeatureSet,
) -> SchemaNode:
    retained = [field for field in decl.fields if not parse_serde_value(field.serde_attrs).is_skipped]
    if len(retained) != 1:
        raise InvalidDirectiveError(
            f"requires exactly one serialized field, found {len(retained)}",
            location=decl.name,
            directive="transparent",
        )
    field = retained[0]
    location = f"{decl.name}.{field.name}"
    field_features = resolve_features(field.schema_attrs, Scope.NAMED_FIELD, location=location, container=features)
    descriptor = ctx.descriptor(field.type, substitutions, location=location)
    return ctx.member_schema(descriptor, field_features, location, doc=field.doc, substitutions=substitutions)


def positional_schema(
    ctx: "DerivationContext",
    fields: Sequence[FieldDecl],
    substitutions: Dict[str, TypeDescriptor],
    owner: FeatureSet,
    owner_location: str,
) -> SchemaNode:
    """
    Schema of positional fields. One field collapses to its own schema, equal
    field types become a fixed length array of that type and anything else a
    fixed length array of free-form objects. Skipped fields are left out and
    nothing left renders as null.
    """
    resolved = []
    for index, field in enumerate(fields):
        location = f"{owner_location}.{index}"
        features = resolve_features(field.schema_attrs, Scope.UNNAMED_FIELD, location=location, container=owner)
        if features.skip or parse_serde_value(field.serde_attrs).is_skipped:
            continue
        resolved.append((ctx.descriptor(field.type, substitutions, location=location), features, location, field))

    if not resolved:
        return PrimitiveSchema.null()
    if len(resolved) == 1:
        descriptor, features, location, field = resolved[0]
        features = overlay(features, owner, NEWTYPE_KEYS)
        return ctx.member_schema(descriptor, features, location, doc=field.doc, substitutions=substitutions)

    count = len(resolved)
    first_descriptor, first_features, first_location, _ = resolved[0]
    if all(descriptor == first_descriptor for descriptor, _, _, _ in resolved[1:]):
        items = ctx.member_schema(first_descriptor, first_features, first_location, substitutions=substitutions)
    else:
        items = ObjectSchema()
    return ArraySchema(items=items, min_items=count, max_items=count)


def build_tuple_struct(
    ctx: "DerivationContext",
    decl: TypeDecl,
    substitutions: Dict[str, TypeDescriptor],
    features: FeatureSet,
) -> SchemaNode:
    fields = [field for field in decl.fields if not parse_serde_value(field.serde_attrs).is_skipped]
    if not fields:
        return PrimitiveSchema.null()
    if len(fields) > 1 and features.value_type is not None:
        # the override describes the whole struct
        descriptor = ctx.descriptor(features.value_type, substitutions, location=features.location_of("value_type"))
        check_applicability(features, descriptor)
        node = apply_validation(ctx.render(descriptor, features.inline, features.no_recursion, decl.name), features)
        return mark_nullable(node) if features.nullable else node
    return positional_schema(ctx, decl.fields, substitutions, features, decl.name)


def build_unit_struct() -> SchemaNode:
    return PrimitiveSchema.null()
