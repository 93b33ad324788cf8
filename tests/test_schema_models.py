"""
Unit tests for the schema tree models in src/schemaforge/models/schema.py
"""
import json

from schemaforge.models.common import SchemaType
from schemaforge.models.schema import (
    AllOfSchema,
    ArraySchema,
    Discriminator,
    ObjectSchema,
    OneOfSchema,
    PrimitiveSchema,
    RefSchema,
    Xml,
    render_components,
)


def test_primitive_renders_aliased_keys():
    schema = PrimitiveSchema(schema_type=SchemaType.STRING, min_length=1, max_length=8, pattern="^[a-z]+$")
    assert schema.to_openapi() == {"type": "string", "minLength": 1, "maxLength": 8, "pattern": "^[a-z]+$"}


def test_unconstrained_primitive_renders_empty_object():
    assert PrimitiveSchema().to_openapi() == {}


def test_enum_and_null_helpers():
    assert PrimitiveSchema.for_enum(["A", "B"]).to_openapi() == {"type": "string", "enum": ["A", "B"]}
    assert PrimitiveSchema.for_enum([0, 1], SchemaType.INTEGER).to_openapi() == {"type": "integer", "enum": [0, 1]}
    assert PrimitiveSchema.null().to_openapi() == {"type": "null"}


def test_empty_object_omits_properties_and_required():
    assert ObjectSchema().to_openapi() == {"type": "object"}


def test_object_keeps_property_declaration_order():
    schema = ObjectSchema()
    schema.add_property("zeta", PrimitiveSchema(schema_type=SchemaType.STRING), required=True)
    schema.add_property("alpha", PrimitiveSchema(schema_type=SchemaType.BOOLEAN))
    rendered = schema.to_openapi()
    assert list(rendered["properties"]) == ["zeta", "alpha"]
    assert rendered["required"] == ["zeta"]


def test_add_property_replaces_in_place():
    schema = ObjectSchema()
    schema.add_property("id", PrimitiveSchema(schema_type=SchemaType.INTEGER), required=True)
    schema.add_property("name", PrimitiveSchema(schema_type=SchemaType.STRING))
    schema.add_property("id", PrimitiveSchema(schema_type=SchemaType.STRING), required=True)
    rendered = schema.to_openapi()
    assert list(rendered["properties"]) == ["id", "name"]
    assert rendered["properties"]["id"] == {"type": "string"}
    assert rendered["required"] == ["id"]


def test_additional_properties_false_is_rendered():
    assert ObjectSchema(additional_properties=False).to_openapi() == {"type": "object", "additionalProperties": False}


def test_additional_properties_schema():
    schema = ObjectSchema(additional_properties=PrimitiveSchema(schema_type=SchemaType.STRING))
    assert schema.to_openapi() == {"type": "object", "additionalProperties": {"type": "string"}}


def test_reference_rendering():
    assert RefSchema(name="Pet").to_openapi() == {"$ref": "#/components/schemas/Pet"}
    assert RefSchema(name="Pet", prefix="#/definitions/").to_openapi() == {"$ref": "#/definitions/Pet"}


def test_array_bounds_and_unique_items():
    schema = ArraySchema(items=RefSchema(name="Tag"), min_items=1, max_items=3, unique_items=True)
    assert schema.to_openapi() == {
        "type": "array",
        "items": {"$ref": "#/components/schemas/Tag"},
        "minItems": 1,
        "maxItems": 3,
        "uniqueItems": True,
    }


def test_one_of_with_discriminator():
    schema = OneOfSchema(
        items=[RefSchema(name="Cat"), RefSchema(name="Dog")],
        discriminator=Discriminator(property_name="pet_type", mapping={"cat": "#/components/schemas/Cat"}),
    )
    assert schema.to_openapi() == {
        "oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}],
        "discriminator": {"propertyName": "pet_type", "mapping": {"cat": "#/components/schemas/Cat"}},
    }


def test_all_of_with_metadata():
    schema = AllOfSchema(items=[RefSchema(name="Pet")], description="The owner's pet", deprecated=True)
    assert schema.to_openapi() == {
        "allOf": [{"$ref": "#/components/schemas/Pet"}],
        "description": "The owner's pet",
        "deprecated": True,
    }


def test_xml_and_read_only():
    schema = PrimitiveSchema(
        schema_type=SchemaType.STRING,
        read_only=True,
        xml=Xml(name="id", attribute=True),
    )
    assert schema.to_openapi() == {"type": "string", "readOnly": True, "xml": {"name": "id", "attribute": True}}


def test_render_components_is_sorted_and_stable():
    components = {
        "Zebra": PrimitiveSchema(schema_type=SchemaType.STRING),
        "Apple": ObjectSchema(),
        "Mango": RefSchema(name="Apple"),
    }
    rendered = render_components(components)
    assert list(rendered) == ["Apple", "Mango", "Zebra"]
    assert json.dumps(rendered) == json.dumps(render_components(dict(reversed(list(components.items())))))


def test_to_json_is_indented_document():
    assert json.loads(ObjectSchema().to_json()) == {"type": "object"}
