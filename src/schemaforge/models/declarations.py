"""
Input contract: the structural shape of declared types together with their
already tokenized annotation records.
"""
from typing import Any

from pydantic import Field, model_validator

from .common import BasePydanticModel, DeclKind, VariantKind


class AnnotationBlock(BasePydanticModel):
    """One tokenized annotation block, e.g. a single `#[schema(...)]` or `#[serde(...)]`."""
    directives: dict[str, Any] = Field(default_factory=dict)
    location: str | None = Field(None, description="Where the block was declared, used in error messages.")


class FieldDecl(BasePydanticModel):
    name: str | None = None # None for positional fields
    type: str = Field(..., description="Type expression, e.g. 'Option<Vec<Pet>>'.")
    schema_attrs: list[AnnotationBlock] = Field(default_factory=list)
    serde_attrs: list[AnnotationBlock] = Field(default_factory=list)
    doc: str | None = None
    deprecated: bool = False


class VariantDecl(BasePydanticModel):
    name: str
    kind: VariantKind = VariantKind.UNIT
    fields: list[FieldDecl] = Field(default_factory=list)
    schema_attrs: list[AnnotationBlock] = Field(default_factory=list)
    serde_attrs: list[AnnotationBlock] = Field(default_factory=list)
    doc: str | None = None
    deprecated: bool = False
    discriminant: int | None = None # explicit value for `repr` enums

    @model_validator(mode="after")
    def check_fields_match_kind(self) -> "VariantDecl":
        if self.kind == VariantKind.UNIT and self.fields:
            raise ValueError(f"unit variant '{self.name}' cannot declare fields")
        if self.kind == VariantKind.NAMED and any(field.name is None for field in self.fields):
            raise ValueError(f"named variant '{self.name}' requires every field to have a name")
        if self.kind == VariantKind.UNNAMED and not self.fields:
            raise ValueError(f"unnamed variant '{self.name}' requires at least one field")
        return self


class AliasDecl(BasePydanticModel):
    """Explicit schema name for one concrete instantiation of a generic type."""
    name: str
    type: str = Field(..., description="Concrete instantiation, e.g. 'Page<Pet>'.")


class TypeDecl(BasePydanticModel):
    name: str
    kind: DeclKind = DeclKind.STRUCT
    generics: list[str] = Field(default_factory=list, description="Formal type parameter names.")
    fields: list[FieldDecl] = Field(default_factory=list)
    variants: list[VariantDecl] = Field(default_factory=list)
    schema_attrs: list[AnnotationBlock] = Field(default_factory=list)
    serde_attrs: list[AnnotationBlock] = Field(default_factory=list)
    doc: str | None = None
    deprecated: bool = False
    aliases: list[AliasDecl] = Field(default_factory=list)
    repr: str | None = Field(None, description="Integer representation of a unit-only enum, e.g. 'u8'.")

    @model_validator(mode="after")
    def check_shape(self) -> "TypeDecl":
        if self.kind == DeclKind.ENUM:
            if self.fields:
                raise ValueError(f"enum '{self.name}' declares fields, expected variants")
        elif self.variants:
            raise ValueError(f"{self.kind} '{self.name}' declares variants")
        if self.kind == DeclKind.STRUCT and any(field.name is None for field in self.fields):
            raise ValueError(f"struct '{self.name}' requires every field to have a name")
        if self.kind == DeclKind.UNIT_STRUCT and self.fields:
            raise ValueError(f"unit struct '{self.name}' cannot declare fields")
        return self

    @property
    def is_generic(self) -> bool:
        return bool(self.generics)
