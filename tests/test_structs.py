"""
Tests for record schemas: named-field, positional and unit structs.
"""
import pytest

from schemaforge.exceptions import InvalidDirectiveError
from schemaforge.models.declarations import AnnotationBlock, FieldDecl, TypeDecl
from schemaforge.schema_gen import SchemaDeriveService, SchemaRegistry


def field(name, type_, schema=None, serde=None, **kwargs) -> FieldDecl:
    return FieldDecl(
        name=name,
        type=type_,
        schema_attrs=[AnnotationBlock(directives=schema, location=f"field {name}")] if schema else [],
        serde_attrs=[AnnotationBlock(directives=serde)] if serde else [],
        **kwargs,
    )


def struct(name, *fields, schema=None, serde=None, kind="struct", **kwargs) -> TypeDecl:
    return TypeDecl(
        name=name,
        kind=kind,
        fields=list(fields),
        schema_attrs=[AnnotationBlock(directives=schema, location=name)] if schema else [],
        serde_attrs=[AnnotationBlock(directives=serde, location=name)] if serde else [],
        **kwargs,
    )


@pytest.fixture
def service():
    return SchemaDeriveService()


def derive(service, decl, *others):
    return service.derive(decl, SchemaRegistry([decl, *others]))


def test_record_with_optional_field(service):
    """An optional field is present in the properties but not required."""
    pet = struct("Pet", field("id", "u64"), field("name", "Option<String>"))
    result = derive(service, pet)

    assert result.name == "Pet"
    assert result.to_openapi() == {
        "type": "object",
        "properties": {
            "id": {"type": "integer", "format": "int64", "minimum": 0},
            "name": {"type": "string"},
        },
        "required": ["id"],
    }
    assert result.components == {}


@pytest.mark.parametrize(
    "decl_field, required",
    [
        (field("a", "String"), True),
        (field("a", "Option<String>"), False),
        (field("a", "Box<Option<String>>"), False),
        (field("a", "Vec<Option<String>>"), True),
        (field("a", "String", serde={"default": True}), False),
        (field("a", "String", serde={"default": "default_name"}), False),
        (field("a", "Vec<String>", serde={"skip_serializing_if": "Vec::is_empty"}), False),
        (field("a", "String", schema={"default": "unnamed"}), False),
        (field("a", "Option<String>", schema={"required": True}), True),
        (field("a", "String", serde={"default": True}, schema={"required": True}), True),
        (field("a", "String", schema={"required": False}), False),
    ],
)
def test_required_rules(service, decl_field, required):
    rendered = derive(service, struct("Record", decl_field)).to_openapi()
    assert ("a" in rendered.get("required", [])) is required


def test_container_default_makes_every_field_optional(service):
    rendered = derive(
        service,
        struct("Settings", field("port", "u16"), field("host", "String"), serde={"default": True}),
    ).to_openapi()
    assert "required" not in rendered
    assert list(rendered["properties"]) == ["port", "host"]


def test_schema_default_is_rendered(service):
    rendered = derive(service, struct("Settings", field("port", "u16", schema={"default": 8080}))).to_openapi()
    assert rendered["properties"]["port"]["default"] == 8080


def test_rename_precedence(service):
    decl = struct(
        "User",
        field("user_id", "i64"),
        field("first_name", "String", schema={"rename": "custom_name"}),
        field("last_name", "String", serde={"rename": "surname"}),
        field("nick_name", "String", serde={"rename": "nick"}, schema={"rename": "alias"}),
        schema={"rename_all": "camelCase"},
        serde={"rename_all": "kebab-case"},
    )
    rendered = derive(service, decl).to_openapi()
    assert list(rendered["properties"]) == ["userId", "custom_name", "surname", "alias"]
    assert rendered["required"] == ["userId", "custom_name", "surname", "alias"]


def test_serde_rename_all(service):
    decl = struct("Event", field("created_at", "DateTime<Utc>"), serde={"rename_all": "SCREAMING_SNAKE_CASE"})
    rendered = derive(service, decl).to_openapi()
    assert rendered["properties"] == {"CREATED_AT": {"type": "string", "format": "date-time"}}


def test_skipped_fields(service):
    decl = struct(
        "Account",
        field("id", "i32"),
        field("password", "String", schema={"skip": True}),
        field("token", "String", serde={"skip": True}),
        field("cache", "String", serde={"skip_serializing": True, "skip_deserializing": True}),
        field("secret", "String", serde={"skip_serializing": True}),
    )
    rendered = derive(service, decl).to_openapi()
    assert list(rendered["properties"]) == ["id", "secret"]


def test_flattened_fields_come_before_own_properties(service):
    meta = struct("Meta", field("created", "String"))
    audit = struct("Audit", field("by", "String"))
    decl = struct(
        "Document",
        field("title", "String"),
        field("meta", "Meta", serde={"flatten": True}),
        field("audit", "Audit", serde={"flatten": True}),
    )
    result = derive(service, decl, meta, audit)
    assert result.to_openapi() == {
        "allOf": [
            {"$ref": "#/components/schemas/Meta"},
            {"$ref": "#/components/schemas/Audit"},
            {"type": "object", "properties": {"title": {"type": "string"}}, "required": ["title"]},
        ]
    }
    assert list(result.components) == ["Audit", "Meta"]


def test_flattened_map_sets_additional_properties(service):
    decl = struct(
        "Labels",
        field("name", "String"),
        field("extra", "HashMap<String, i32>", serde={"flatten": True}),
    )
    rendered = derive(service, decl).to_openapi()
    assert rendered["additionalProperties"] == {"type": "integer", "format": "int32"}
    assert list(rendered["properties"]) == ["name"]


def test_deny_unknown_fields(service):
    decl = struct("Strict", field("name", "String"), serde={"deny_unknown_fields": True})
    assert derive(service, decl).to_openapi()["additionalProperties"] is False


def test_transparent_struct(service):
    decl = struct("Email", field("value", "String", schema={"format": "email"}), serde={"transparent": True})
    assert derive(service, decl).to_openapi() == {"type": "string", "format": "email"}


def test_transparent_struct_requires_one_field(service):
    decl = struct("Pair", field("a", "String"), field("b", "String"), serde={"transparent": True})
    with pytest.raises(InvalidDirectiveError) as excinfo:
        derive(service, decl)
    assert excinfo.value.directive == "transparent"
    assert excinfo.value.location == "Pair"


def test_newtype_collapses_to_inner_schema(service):
    decl = struct("Meters", field(None, "f64"), kind="tuple_struct")
    assert derive(service, decl).to_openapi() == {"type": "number", "format": "double"}


def test_newtype_container_directives_apply_to_field(service):
    decl = struct(
        "UserId",
        field(None, "Uuid"),
        kind="tuple_struct",
        schema={"value_type": "String", "description": "Opaque id"},
    )
    assert derive(service, decl).to_openapi() == {"type": "string", "description": "Opaque id"}


def test_homogeneous_tuple(service):
    decl = struct("Point", field(None, "i32"), field(None, "i32"), kind="tuple_struct")
    assert derive(service, decl).to_openapi() == {
        "type": "array",
        "items": {"type": "integer", "format": "int32"},
        "minItems": 2,
        "maxItems": 2,
    }


def test_heterogeneous_tuple(service):
    decl = struct("Entry", field(None, "String"), field(None, "i32"), field(None, "bool"), kind="tuple_struct")
    assert derive(service, decl).to_openapi() == {
        "type": "array",
        "items": {"type": "object"},
        "minItems": 3,
        "maxItems": 3,
    }


def test_tuple_value_type_overrides_whole_struct(service):
    decl = struct(
        "Range",
        field(None, "i32"),
        field(None, "i32"),
        kind="tuple_struct",
        schema={"value_type": "String"},
    )
    assert derive(service, decl).to_openapi() == {"type": "string"}


def test_unit_and_empty_structs_are_null(service):
    assert derive(service, struct("Marker", kind="unit_struct")).to_openapi() == {"type": "null"}
    skipped = struct("Hidden", field(None, "String", serde={"skip": True}), kind="tuple_struct")
    assert derive(service, skipped).to_openapi() == {"type": "null"}


def test_skipped_positional_fields(service):
    pair = struct("Pair", field(None, "String"), field(None, "i32", schema={"skip": True}), kind="tuple_struct")
    assert derive(service, pair).to_openapi() == {"type": "string"}
    hidden = struct("Hidden", field(None, "String", schema={"skip": True}), kind="tuple_struct")
    assert derive(service, hidden).to_openapi() == {"type": "null"}


def test_docs_and_deprecation(service):
    decl = struct(
        "Pet",
        field("name", "String", doc="  Name of the pet.  "),
        field("legacy", "String", deprecated=True),
        field("nick", "String", doc="ignored", schema={"description": "Explicit"}),
        doc="A pet.",
        deprecated=True,
    )
    rendered = derive(service, decl).to_openapi()
    assert rendered["description"] == "A pet."
    assert rendered["deprecated"] is True
    assert rendered["properties"]["name"] == {"type": "string", "description": "Name of the pet."}
    assert rendered["properties"]["legacy"] == {"type": "string", "deprecated": True}
    assert rendered["properties"]["nick"]["description"] == "Explicit"


def test_documented_reference_becomes_all_of(service):
    owner = struct("Owner", field("name", "String"))
    decl = struct("Pet", field("owner", "Owner", doc="Who feeds the pet."))
    rendered = derive(service, decl, owner).to_openapi()
    assert rendered["properties"]["owner"] == {
        "allOf": [{"$ref": "#/components/schemas/Owner"}],
        "description": "Who feeds the pet.",
    }


def test_nullable_directive(service):
    owner = struct("Owner", field("name", "String"))
    decl = struct(
        "Pet",
        field("owner", "Option<Owner>", schema={"nullable": True}),
        field("nick", "Option<String>", schema={"nullable": True}),
    )
    rendered = derive(service, decl, owner).to_openapi()
    assert rendered["properties"]["owner"] == {
        "oneOf": [{"type": "null"}, {"$ref": "#/components/schemas/Owner"}]
    }
    assert rendered["properties"]["nick"] == {"type": ["string", "null"]}


def test_validation_bounds(service):
    decl = struct(
        "Signup",
        field("name", "String", schema={"min_length": 1, "max_length": 32, "pattern": "^[a-z]+$"}),
        field("age", "u8", schema={"minimum": 18, "maximum": 130}),
        field("tags", "Vec<String>", schema={"max_items": 5}),
        schema={"max_properties": 3},
    )
    rendered = derive(service, decl).to_openapi()
    assert rendered["maxProperties"] == 3
    assert rendered["properties"]["name"] == {"type": "string", "minLength": 1, "maxLength": 32, "pattern": "^[a-z]+$"}
    assert rendered["properties"]["age"] == {"type": "integer", "format": "int32", "minimum": 18, "maximum": 130}
    assert rendered["properties"]["tags"] == {"type": "array", "items": {"type": "string"}, "maxItems": 5}


def test_misapplied_bound_names_the_field(service):
    decl = struct("Signup", field("age", "u8", schema={"min_length": 1}))
    with pytest.raises(InvalidDirectiveError) as excinfo:
        derive(service, decl)
    assert excinfo.value.directive == "min_length"
    assert excinfo.value.location == "field age"


def test_collections(service):
    decl = struct(
        "Inventory",
        field("tags", "HashSet<String>"),
        field("counts", "BTreeMap<String, u32>"),
        field("raw", "Vec<u8>"),
    )
    properties = derive(service, decl).to_openapi()["properties"]
    assert properties["tags"] == {"type": "array", "items": {"type": "string"}, "uniqueItems": True}
    assert properties["counts"] == {
        "type": "object",
        "additionalProperties": {"type": "integer", "format": "int32", "minimum": 0},
    }
    assert properties["raw"]["items"] == {"type": "integer", "format": "int32", "minimum": 0}


def test_read_only_and_xml(service):
    decl = struct(
        "Pet",
        field("id", "i64", schema={"read_only": True, "xml": {"attribute": True}}),
        field("photos", "Vec<String>", schema={"xml": {"name": "photo", "wrapped": True}}),
    )
    properties = derive(service, decl).to_openapi()["properties"]
    assert properties["id"] == {"type": "integer", "format": "int64", "readOnly": True, "xml": {"attribute": True}}
    assert properties["photos"] == {
        "type": "array",
        "items": {"type": "string", "xml": {"name": "photo"}},
        "xml": {"wrapped": True},
    }
