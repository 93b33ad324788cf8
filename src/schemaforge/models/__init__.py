"""
Pydantic models for schemaforge: the declaration input contract and the
schema tree produced by derivation.
"""
from .common import BasePydanticModel, DeclKind, EnumRepresentation, SchemaType, VariantKind
from .declarations import AliasDecl, AnnotationBlock, FieldDecl, TypeDecl, VariantDecl
from .schema import (
    AllOfSchema,
    ArraySchema,
    Discriminator,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    SchemaNode,
    Xml,
)

__all__ = [
    "AliasDecl",
    "AllOfSchema",
    "AnnotationBlock",
    "ArraySchema",
    "BasePydanticModel",
    "DeclKind",
    "Discriminator",
    "EnumRepresentation",
    "FieldDecl",
    "ObjectSchema",
    "OneOfSchema",
    "PrimitiveSchema",
    "RefSchema",
    "SchemaNode",
    "SchemaType",
    "TypeDecl",
    "VariantDecl",
    "VariantKind",
    "Xml",
]
