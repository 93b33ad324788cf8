"""
Schema builders for enums.

A unit-only enum without a tag becomes one string (or, with `repr`, integer)
node. Everything else is built variant by variant according to each
variant's effective representation and collected into a `OneOfSchema`.
"""
from typing import TYPE_CHECKING, Any, Dict, List, NamedTuple

from ..exceptions import DiscriminatorMisuseError, RepresentationConflictError
from ..models.common import EnumRepresentation, SchemaType, VariantKind
from ..models.declarations import TypeDecl, VariantDecl
from ..models.schema import (
    AllOfSchema,
    ArraySchema,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    SchemaNode,
)
from .descriptors import DescriptorKind
from .features import FeatureSet, Scope, apply_metadata, documented, resolve_features
from .serde import SerdeContainer, SerdeValue, enum_representation, parse_serde_value, resolve_name, variant_representation
from .structs import build_object, positional_schema

if TYPE_CHECKING:
    from .context import DerivationContext

_VARIANT_SCOPES = {
    VariantKind.UNIT: Scope.UNIT_VARIANT,
    VariantKind.NAMED: Scope.NAMED_VARIANT,
    VariantKind.UNNAMED: Scope.UNNAMED_VARIANT,
}


class ResolvedVariant(NamedTuple):
    decl: VariantDecl
    name: str
    features: FeatureSet
    serde: SerdeValue
    location: str
    discriminant: int


def _resolve_variants(decl: TypeDecl, features: FeatureSet, serde: SerdeContainer) -> List[ResolvedVariant]:
    resolved = []
    discriminant = -1
    for variant in decl.variants:
        # implicit discriminants count up from the previous one, skipped variants included
        discriminant = variant.discriminant if variant.discriminant is not None else discriminant + 1
        location = f"{decl.name}::{variant.name}"
        variant_serde = parse_serde_value(variant.serde_attrs, target=location)
        variant_features = resolve_features(
            variant.schema_attrs, _VARIANT_SCOPES[variant.kind], location=location, container=features
        )
        if variant_features.skip or variant_serde.is_skipped:
            continue
        name = resolve_name(
            variant.name,
            variant_features.rename,
            variant_serde.rename,
            features.rename_all,
            serde.rename_all,
            is_variant=True,
        )
        resolved.append(ResolvedVariant(variant, name, variant_features, variant_serde, location, discriminant))
    return resolved


def _wrapper_metadata(variant: ResolvedVariant) -> Dict[str, Any]:
    return documented(variant.features.variant_wrapper_metadata(), variant.decl.doc, variant.decl.deprecated)


def build_enum(
    ctx: "DerivationContext",
    decl: TypeDecl,
    substitutions: Dict[str, Any],
    features: FeatureSet,
    serde: SerdeContainer,
) -> SchemaNode:
    variants = _resolve_variants(decl, features, serde)
    representation = enum_representation(serde, [variant.serde for variant in variants])
    unit_only = all(variant.kind == VariantKind.UNIT for variant in decl.variants)

    if unit_only:
        if decl.repr is not None:
            return PrimitiveSchema.for_enum([variant.discriminant for variant in variants], SchemaType.INTEGER)
        if representation == EnumRepresentation.UNTAGGED:
            return PrimitiveSchema.null()
        if representation == EnumRepresentation.EXTERNALLY_TAGGED and not any(_wrapper_metadata(v) for v in variants):
            return PrimitiveSchema.for_enum([variant.name for variant in variants])

    if features.discriminator is not None and representation != EnumRepresentation.UNTAGGED:
        raise DiscriminatorMisuseError(
            f"requires an untagged enum, found {EnumRepresentation(representation).value}",
            location=features.location_of("discriminator"),
        )
    items = [_variant_schema(ctx, variant, serde, substitutions) for variant in variants]
    one_of = OneOfSchema(items=items)
    if features.discriminator is not None:
        _check_discriminator(ctx, variants, features, items)
        one_of.discriminator = features.discriminator.to_discriminator()
    return one_of


def _tag_object(tag: str, name: str) -> ObjectSchema:
    return ObjectSchema().add_property(tag, PrimitiveSchema.for_enum([name]), required=True)


def _variant_own_schema(
    ctx: "DerivationContext",
    variant: ResolvedVariant,
    serde: SerdeContainer,
    substitutions: Dict[str, Any],
) -> SchemaNode:
    if variant.decl.kind == VariantKind.NAMED:
        return build_object(
            ctx,
            variant.decl.fields,
            substitutions,
            variant.features,
            variant.location,
            rename_all=variant.features.rename_all,
            serde_rename_all=variant.serde.rename_all,
            container_default=serde.default,
        )
    return positional_schema(ctx, variant.decl.fields, substitutions, variant.features, variant.location)


def _variant_schema(
    ctx: "DerivationContext",
    variant: ResolvedVariant,
    serde: SerdeContainer,
    substitutions: Dict[str, Any],
) -> SchemaNode:
    representation = variant_representation(serde, variant.serde)
    kind = variant.decl.kind
    positional_count = len(variant.decl.fields) if kind == VariantKind.UNNAMED else 0

    if representation == EnumRepresentation.INTERNALLY_TAGGED and positional_count > 1:
        raise RepresentationConflictError(
            f"variant '{variant.decl.name}' has {positional_count} positional fields and cannot carry "
            f"the internal tag '{serde.tag}'",
            location=variant.location,
            representation=representation,
        )
    if representation == EnumRepresentation.ADJACENTLY_TAGGED and positional_count > 1:
        raise RepresentationConflictError(
            f"variant '{variant.decl.name}' has {positional_count} positional fields, adjacently tagged "
            "variants support at most one",
            location=variant.location,
            representation=representation,
        )

    if kind == VariantKind.UNIT:
        if representation == EnumRepresentation.UNTAGGED:
            node: SchemaNode = PrimitiveSchema.null()
        elif representation == EnumRepresentation.EXTERNALLY_TAGGED:
            node = PrimitiveSchema.for_enum([variant.name])
        else:
            node = _tag_object(serde.tag, variant.name)
        return apply_metadata(node, _wrapper_metadata(variant))

    own = _variant_own_schema(ctx, variant, serde, substitutions)
    if representation == EnumRepresentation.EXTERNALLY_TAGGED:
        node = ObjectSchema().add_property(variant.name, own, required=True)
    elif representation == EnumRepresentation.INTERNALLY_TAGGED:
        node = _inject_tag(own, serde.tag, variant)
    elif representation == EnumRepresentation.ADJACENTLY_TAGGED:
        node = _tag_object(serde.tag, variant.name).add_property(serde.content, own, required=True)
    else:
        node = own
    return apply_metadata(node, _wrapper_metadata(variant))


def _inject_tag(own: SchemaNode, tag: str, variant: ResolvedVariant) -> SchemaNode:
    """Adds the internal tag as the last, required, property of the variant's schema."""
    tag_schema = PrimitiveSchema.for_enum([variant.name])
    if isinstance(own, ObjectSchema):
        own.properties.pop(tag, None)
        return own.add_property(tag, tag_schema, required=True)
    if isinstance(own, AllOfSchema):
        own.items.append(_tag_object(tag, variant.name))
        return own
    if isinstance(own, (RefSchema, OneOfSchema)):
        return AllOfSchema(items=[own, _tag_object(tag, variant.name)])
    raise RepresentationConflictError(
        f"variant '{variant.decl.name}' wraps a {_shape(own)} which cannot carry the internal tag '{tag}'",
        location=variant.location,
        representation=EnumRepresentation.INTERNALLY_TAGGED,
    )


def _shape(node: SchemaNode) -> str:
    if isinstance(node, ArraySchema):
        return "sequence"
    schema_type = getattr(node, "schema_type", None)
    if isinstance(schema_type, list):
        schema_type = schema_type[0]
    return f"{SchemaType(schema_type).value} value" if schema_type else "value"


def _check_discriminator(
    ctx: "DerivationContext",
    variants: List[ResolvedVariant],
    features: FeatureSet,
    items: List[SchemaNode],
) -> None:
    """Every variant must be a single positional field referencing a named, non-inlined type."""
    location = features.location_of("discriminator")
    for variant, item in zip(variants, items):
        if variant.decl.kind != VariantKind.UNNAMED or len(variant.decl.fields) != 1:
            raise DiscriminatorMisuseError(
                f"variant '{variant.decl.name}' must have exactly one positional field", location=location
            )
        descriptor = ctx.descriptor(variant.decl.fields[0].type, location=variant.location).unwrap_transparent()
        # variant docs wrap the reference in a single-item allOf
        if isinstance(item, AllOfSchema) and len(item.items) == 1:
            item = item.items[0]
        if descriptor.kind != DescriptorKind.NOMINAL or not isinstance(item, RefSchema):
            raise DiscriminatorMisuseError(
                f"variant '{variant.decl.name}' must wrap a referenced, non-inlined named type", location=location
            )
