from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
    }

class SchemaType(str, Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"

class DeclKind(str, Enum):
    STRUCT = "struct" # named fields
    TUPLE_STRUCT = "tuple_struct" # positional fields
    UNIT_STRUCT = "unit_struct"
    ENUM = "enum"

class VariantKind(str, Enum):
    UNIT = "unit"
    NAMED = "named"
    UNNAMED = "unnamed"

class EnumRepresentation(str, Enum):
    EXTERNALLY_TAGGED = "externally_tagged"
    INTERNALLY_TAGGED = "internally_tagged"
    ADJACENTLY_TAGGED = "adjacently_tagged"
    UNTAGGED = "untagged"
    PARTIALLY_UNTAGGED = "partially_untagged" # some variants untagged, the rest follow the container
