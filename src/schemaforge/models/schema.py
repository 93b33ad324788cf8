"""
Schema tree produced by a derivation pass.

Nodes serialize to the OpenAPI Schema Object shape via `to_openapi()`.
`RefSchema` is deliberately bare: references never carry inline constraints,
metadata around a reference is expressed through `AllOfSchema`/`OneOfSchema`.
"""
import json
from typing import Annotated, Any, Literal, Union

from pydantic import Field, model_serializer

from .common import BasePydanticModel, SchemaType

DEFAULT_COMPONENT_PREFIX = "#/components/schemas/"

# keys dropped from the rendered document when empty
_OMIT_WHEN_EMPTY = ("properties", "required")


class Xml(BasePydanticModel):
    name: str | None = None
    namespace: str | None = None
    prefix: str | None = None
    attribute: bool | None = None
    wrapped: bool | None = None


class Discriminator(BasePydanticModel):
    property_name: str = Field(..., alias="propertyName")
    mapping: dict[str, str] | None = None


class SchemaNodeBase(BasePydanticModel):
    """Metadata shared by every non-reference node."""
    title: str | None = None
    description: str | None = None
    deprecated: bool | None = None
    default: Any = None
    example: Any = None
    examples: list[Any] | None = None
    read_only: bool | None = Field(None, alias="readOnly")
    write_only: bool | None = Field(None, alias="writeOnly")

    @model_serializer(mode="wrap")
    def _serialize(self, handler) -> dict[str, Any]:
        data = handler(self)
        return {
            key: value for key, value in data.items()
            if value is not None and not (key in _OMIT_WHEN_EMPTY and not value)
        }

    def to_openapi(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return json.dumps(self.to_openapi(), indent=2)


class PrimitiveSchema(SchemaNodeBase):
    node: Literal["primitive"] = Field("primitive", exclude=True)
    schema_type: SchemaType | list[SchemaType] | None = Field(None, alias="type") # None renders as `{}`
    format: str | None = None
    enum_values: list[Any] | None = Field(None, alias="enum")
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    pattern: str | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: int | float | None = Field(None, alias="exclusiveMinimum")
    exclusive_maximum: int | float | None = Field(None, alias="exclusiveMaximum")
    multiple_of: int | float | None = Field(None, alias="multipleOf")
    xml: Xml | None = None

    @classmethod
    def for_enum(cls, values: list[Any], schema_type: SchemaType = SchemaType.STRING) -> "PrimitiveSchema":
        return cls(schema_type=schema_type, enum_values=list(values))

    @classmethod
    def null(cls) -> "PrimitiveSchema":
        return cls(schema_type=SchemaType.NULL)


class ObjectSchema(SchemaNodeBase):
    node: Literal["object"] = Field("object", exclude=True)
    schema_type: SchemaType | list[SchemaType] = Field(SchemaType.OBJECT, alias="type")
    properties: dict[str, "SchemaNode"] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)
    additional_properties: Union["SchemaNode", bool, None] = Field(None, alias="additionalProperties")
    min_properties: int | None = Field(None, alias="minProperties")
    max_properties: int | None = Field(None, alias="maxProperties")
    xml: Xml | None = None

    def add_property(self, name: str, schema: "SchemaNode", required: bool = False) -> "ObjectSchema":
        """Adds (or replaces in place) a property, keeping declaration order."""
        self.properties[name] = schema
        if required and name not in self.required:
            self.required.append(name)
        return self


class ArraySchema(SchemaNodeBase):
    node: Literal["array"] = Field("array", exclude=True)
    schema_type: SchemaType | list[SchemaType] = Field(SchemaType.ARRAY, alias="type")
    items: "SchemaNode"
    min_items: int | None = Field(None, alias="minItems")
    max_items: int | None = Field(None, alias="maxItems")
    unique_items: bool | None = Field(None, alias="uniqueItems")
    xml: Xml | None = None


class OneOfSchema(SchemaNodeBase):
    node: Literal["one_of"] = Field("one_of", exclude=True)
    items: list["SchemaNode"] = Field(default_factory=list, alias="oneOf")
    discriminator: Discriminator | None = None


class AllOfSchema(SchemaNodeBase):
    node: Literal["all_of"] = Field("all_of", exclude=True)
    items: list["SchemaNode"] = Field(default_factory=list, alias="allOf")


class RefSchema(BasePydanticModel):
    """Reference to a named schema owned by the document assembler."""
    node: Literal["ref"] = Field("ref", exclude=True)
    name: str
    prefix: str = Field(DEFAULT_COMPONENT_PREFIX, exclude=True)

    @model_serializer(mode="plain")
    def _serialize(self) -> dict[str, Any]:
        return {"$ref": f"{self.prefix}{self.name}"}

    def to_openapi(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


SchemaNode = Annotated[
    Union[PrimitiveSchema, ObjectSchema, ArraySchema, OneOfSchema, AllOfSchema, RefSchema],
    Field(discriminator="node"),
]

for _model in (ObjectSchema, ArraySchema, OneOfSchema, AllOfSchema):
    _model.model_rebuild()


def render_components(components: dict[str, Any]) -> dict[str, Any]:
    """Renders named schemas sorted by name so repeated runs are byte-identical."""
    return {name: components[name].to_openapi() for name in sorted(components)}
