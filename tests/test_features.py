"""
Unit tests for annotation merging, directive validation and applicability.
"""
import pytest

from schemaforge.exceptions import AmbiguousDirectiveError, InvalidDirectiveError
from schemaforge.models.common import SchemaType
from schemaforge.models.declarations import AnnotationBlock
from schemaforge.models.schema import ArraySchema, PrimitiveSchema, RefSchema
from schemaforge.schema_gen.descriptors import build_descriptor
from schemaforge.schema_gen.features import (
    FeatureSet,
    Scope,
    apply_metadata,
    apply_validation,
    check_applicability,
    mark_nullable,
    resolve_features,
)


def block(location=None, **directives) -> AnnotationBlock:
    return AnnotationBlock(directives=directives, location=location)


def test_blocks_are_merged():
    features = resolve_features(
        [block(rename="petName", example="Rex"), block(max_length=20)],
        Scope.NAMED_FIELD,
    )
    assert features.rename == "petName"
    assert features.example == "Rex"
    assert features.max_length == 20


def test_identical_values_in_two_blocks_are_accepted():
    features = resolve_features([block(rename="a"), block(rename="a")], Scope.NAMED_FIELD)
    assert features.rename == "a"


def test_conflicting_blocks_raise():
    with pytest.raises(AmbiguousDirectiveError) as excinfo:
        resolve_features(
            [block(location="pet.rs:3", rename="a"), block(location="pet.rs:4", rename="b")],
            Scope.NAMED_FIELD,
        )
    error = excinfo.value
    assert error.directive == "rename"
    assert error.locations == ["pet.rs:3", "pet.rs:4"]
    assert "conflicting values 'a' and 'b'" in str(error)


def test_unknown_directive():
    with pytest.raises(InvalidDirectiveError) as excinfo:
        resolve_features([block(location="Pet.name", colour="red")], Scope.NAMED_FIELD)
    assert excinfo.value.directive == "colour"
    assert excinfo.value.location == "Pet.name"
    assert "expected one of" in str(excinfo.value)


@pytest.mark.parametrize(
    "scope, directives",
    [
        (Scope.NAMED_FIELD, {"discriminator": "type"}),
        (Scope.UNIT_ENUM, {"discriminator": "type"}),
        (Scope.UNIT_VARIANT, {"min_length": 1}),
        (Scope.NAMED_STRUCT, {"rename": "Other"}),
        (Scope.UNNAMED_FIELD, {"rename": "x"}),
    ],
)
def test_directive_out_of_scope(scope, directives):
    with pytest.raises(InvalidDirectiveError):
        resolve_features([block(**directives)], scope)


@pytest.mark.parametrize(
    "scope, directives, key",
    [
        (Scope.NAMED_FIELD, {"min_length": -1}, "min_length"),
        (Scope.NAMED_FIELD, {"multiple_of": 0}, "multiple_of"),
        (Scope.NAMED_STRUCT, {"rename_all": "Sentence case"}, "rename_all"),
        (Scope.NAMED_FIELD, {"xml": {"wrapped": "maybe"}}, "xml"),
    ],
)
def test_invalid_values(scope, directives, key):
    with pytest.raises(InvalidDirectiveError) as excinfo:
        resolve_features([block(location="Pet.tags", **directives)], scope)
    assert excinfo.value.directive == key
    assert excinfo.value.location == "Pet.tags"


def test_inverted_bounds():
    with pytest.raises(InvalidDirectiveError, match="greater than"):
        resolve_features([block(min_items=3, max_items=1)], Scope.NAMED_FIELD)


def test_discriminator_shorthand_and_mapping():
    features = resolve_features([block(discriminator="pet_type")], Scope.MIXED_ENUM)
    assert features.discriminator.property_name == "pet_type"
    features = resolve_features(
        [block(discriminator={"property_name": "kind", "mapping": {"cat": "#/components/schemas/Cat"}})],
        Scope.MIXED_ENUM,
    )
    assert features.discriminator.to_discriminator().mapping == {"cat": "#/components/schemas/Cat"}


def test_as_directive_sets_component_name():
    features = resolve_features([block(**{"as": "api::Pet"})], Scope.NAMED_STRUCT)
    assert features.component_name == "api::Pet"


def test_no_recursion_cascades_from_container():
    container = resolve_features([block(no_recursion=True)], Scope.NAMED_STRUCT)
    field = resolve_features([], Scope.NAMED_FIELD, container=container)
    assert field.no_recursion is True


def test_explicitly_set_metadata_only():
    features = resolve_features([block(default=None, description="Name")], Scope.NAMED_FIELD)
    assert features.has_default is True
    assert features.metadata() == {"default": None, "description": "Name"}
    assert resolve_features([], Scope.NAMED_FIELD).has_default is False


@pytest.mark.parametrize(
    "directives, expression",
    [
        ({"min_length": 1}, "Option<String>"),
        ({"pattern": "^a"}, "Box<str>"),
        ({"maximum": 10}, "u8"),
        ({"multiple_of": 0.5}, "Option<f64>"),
        ({"min_items": 1}, "Vec<Pet>"),
        ({"xml": {"wrapped": True}}, "Vec<String>"),
        ({"format": "email"}, "String"),
    ],
)
def test_applicable_directives(directives, expression):
    features = resolve_features([block(**directives)], Scope.NAMED_FIELD)
    check_applicability(features, build_descriptor(expression))


@pytest.mark.parametrize(
    "directives, expression, key",
    [
        ({"min_length": 1}, "i32", "min_length"),
        ({"pattern": "^a"}, "Vec<String>", "pattern"),
        ({"maximum": 10}, "String", "maximum"),
        ({"min_items": 1}, "String", "min_items"),
        ({"xml": {"wrapped": True}}, "Pet", "xml"),
        ({"format": "email"}, "Pet", "format"),
    ],
)
def test_misapplied_directives(directives, expression, key):
    features = resolve_features([block(location="Pet.field", **directives)], Scope.NAMED_FIELD)
    with pytest.raises(InvalidDirectiveError) as excinfo:
        check_applicability(features, build_descriptor(expression))
    assert excinfo.value.directive == key
    assert excinfo.value.location == "Pet.field"


def test_metadata_on_reference_wraps_in_all_of():
    node = apply_metadata(RefSchema(name="Pet"), {"description": "Owner's pet"})
    assert node.to_openapi() == {"allOf": [{"$ref": "#/components/schemas/Pet"}], "description": "Owner's pet"}


def test_no_metadata_keeps_reference():
    ref = RefSchema(name="Pet")
    assert apply_metadata(ref, {}) is ref


def test_mark_nullable():
    assert mark_nullable(PrimitiveSchema(schema_type=SchemaType.STRING)).to_openapi() == {"type": ["string", "null"]}
    assert mark_nullable(RefSchema(name="Pet")).to_openapi() == {
        "oneOf": [{"type": "null"}, {"$ref": "#/components/schemas/Pet"}]
    }
    twice = mark_nullable(mark_nullable(PrimitiveSchema(schema_type=SchemaType.INTEGER)))
    assert twice.to_openapi() == {"type": ["integer", "null"]}


def test_xml_is_split_between_array_and_items():
    features = FeatureSet.model_validate({"xml": {"name": "tag", "wrapped": True, "wrap_name": "tags"}})
    node = apply_validation(ArraySchema(items=PrimitiveSchema(schema_type=SchemaType.STRING)), features)
    assert node.to_openapi() == {
        "type": "array",
        "xml": {"name": "tags", "wrapped": True},
        "items": {"type": "string", "xml": {"name": "tag"}},
    }


def test_bounds_are_copied_to_primitives():
    features = FeatureSet.model_validate({"minimum": 1, "maximum": 5, "format": "int8"})
    node = apply_validation(PrimitiveSchema(schema_type=SchemaType.INTEGER, format="int32"), features)
    assert node.to_openapi() == {"type": "integer", "format": "int8", "minimum": 1, "maximum": 5}
