"""
Type descriptor builder.

Parses type expressions such as `Option<Vec<Box<Pet>>>` and classifies them
into a recursive `TypeDescriptor` tree: nullable wrappers first, then
sequence and map containers, then transparent wrappers and finally the
primitive or nominal leaf.
"""
import re
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Union

from pydantic import Field

from ..exceptions import TypeExpressionError
from ..models.common import BasePydanticModel, SchemaType
from ..models.schema import ObjectSchema, PrimitiveSchema

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<lifetime>'[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<number>[0-9]+)"
    r"|(?P<punct>::|[<>,\[\]&;]))"
)

NULLABLE_NAMES = {"Option"}
SEQUENCE_NAMES = {"Vec", "VecDeque", "LinkedList", "SmallVec"}
UNIQUE_SEQUENCE_NAMES = {"HashSet", "BTreeSet", "IndexSet"}
MAP_NAMES = {"HashMap", "BTreeMap", "IndexMap", "Map"}
INDIRECT_NAMES = {"Box", "Rc", "Arc"}
TRANSPARENT_NAMES = INDIRECT_NAMES | {"Cow", "RefCell", "Cell", "Mutex", "RwLock"}
SLICE_NAME = "[]"


class PrimitiveSpec(NamedTuple):
    schema_type: Optional[SchemaType]
    format: Optional[str] = None
    loose_format: Optional[str] = None # used when non_strict_integers is on
    unsigned: bool = False


PRIMITIVES: Dict[str, PrimitiveSpec] = {
    "String": PrimitiveSpec(SchemaType.STRING),
    "str": PrimitiveSpec(SchemaType.STRING),
    "char": PrimitiveSpec(SchemaType.STRING),
    "bool": PrimitiveSpec(SchemaType.BOOLEAN),
    "i8": PrimitiveSpec(SchemaType.INTEGER, "int32", "int8"),
    "i16": PrimitiveSpec(SchemaType.INTEGER, "int32", "int16"),
    "i32": PrimitiveSpec(SchemaType.INTEGER, "int32", "int32"),
    "i64": PrimitiveSpec(SchemaType.INTEGER, "int64", "int64"),
    "i128": PrimitiveSpec(SchemaType.INTEGER),
    "isize": PrimitiveSpec(SchemaType.INTEGER, "int64", "int64"),
    "u8": PrimitiveSpec(SchemaType.INTEGER, "int32", "uint8", unsigned=True),
    "u16": PrimitiveSpec(SchemaType.INTEGER, "int32", "uint16", unsigned=True),
    "u32": PrimitiveSpec(SchemaType.INTEGER, "int32", "uint32", unsigned=True),
    "u64": PrimitiveSpec(SchemaType.INTEGER, "int64", "uint64", unsigned=True),
    "u128": PrimitiveSpec(SchemaType.INTEGER, unsigned=True),
    "usize": PrimitiveSpec(SchemaType.INTEGER, "int64", "int64", unsigned=True),
    "f32": PrimitiveSpec(SchemaType.NUMBER, "float", "float"),
    "f64": PrimitiveSpec(SchemaType.NUMBER, "double", "double"),
    "Uuid": PrimitiveSpec(SchemaType.STRING, "uuid", "uuid"),
    "Ulid": PrimitiveSpec(SchemaType.STRING, "ulid", "ulid"),
    "DateTime": PrimitiveSpec(SchemaType.STRING, "date-time", "date-time"),
    "NaiveDateTime": PrimitiveSpec(SchemaType.STRING, "date-time", "date-time"),
    "OffsetDateTime": PrimitiveSpec(SchemaType.STRING, "date-time", "date-time"),
    "PrimitiveDateTime": PrimitiveSpec(SchemaType.STRING, "date-time", "date-time"),
    "NaiveDate": PrimitiveSpec(SchemaType.STRING, "date", "date"),
    "Date": PrimitiveSpec(SchemaType.STRING, "date", "date"),
    "NaiveTime": PrimitiveSpec(SchemaType.STRING),
    "Duration": PrimitiveSpec(SchemaType.STRING),
    "Decimal": PrimitiveSpec(SchemaType.STRING),
    "PathBuf": PrimitiveSpec(SchemaType.STRING),
    "Url": PrimitiveSpec(SchemaType.STRING, "uri", "uri"),
    "Value": PrimitiveSpec(None), # any JSON value
    "Object": PrimitiveSpec(SchemaType.OBJECT), # free-form object
}

UNCONSTRAINED = "Value"


class TypeRef(BasePydanticModel):
    """A parsed, not yet classified, type expression."""
    name: str
    path: List[str] = Field(default_factory=list)
    args: List["TypeRef"] = Field(default_factory=list)

    def __str__(self) -> str:
        if self.name == SLICE_NAME:
            return f"[{self.args[0]}]"
        rendered = "::".join(self.path) if self.path else self.name
        if self.args:
            rendered += "<" + ", ".join(str(arg) for arg in self.args) + ">"
        return rendered


class DescriptorKind(str, Enum):
    PRIMITIVE = "primitive"
    SEQUENCE = "sequence"
    MAP = "map"
    NULLABLE = "nullable"
    TRANSPARENT = "transparent"
    NOMINAL = "nominal"


class TypeDescriptor(BasePydanticModel):
    """
    One node of the classified type tree.

    `args` holds the single child for sequence, nullable and transparent
    nodes, `[key, value]` for maps and the concrete generic arguments for
    nominal types.
    """
    kind: DescriptorKind
    name: str
    args: List["TypeDescriptor"] = Field(default_factory=list)
    unique: bool = False # set-like sequence
    indirect: bool = False # Box/Rc/Arc, breaks recursion

    @property
    def child(self) -> "TypeDescriptor":
        return self.args[-1]

    @property
    def is_nominal(self) -> bool:
        return self.kind == DescriptorKind.NOMINAL

    @property
    def is_primitive(self) -> bool:
        return self.kind == DescriptorKind.PRIMITIVE

    def unwrap_transparent(self) -> "TypeDescriptor":
        descriptor = self
        while descriptor.kind == DescriptorKind.TRANSPARENT:
            descriptor = descriptor.child
        return descriptor

    @property
    def is_nullable(self) -> bool:
        return self.unwrap_transparent().kind == DescriptorKind.NULLABLE

    def innermost(self) -> "TypeDescriptor":
        """Strips nullable and transparent wrappers."""
        descriptor = self
        while descriptor.kind in (DescriptorKind.TRANSPARENT, DescriptorKind.NULLABLE):
            descriptor = descriptor.child
        return descriptor

    def primitive_spec(self) -> Optional[PrimitiveSpec]:
        if self.kind != DescriptorKind.PRIMITIVE:
            return None
        return PRIMITIVES.get(self.name)

    def __str__(self) -> str:
        if self.kind in (DescriptorKind.PRIMITIVE,) or not self.args:
            return self.name
        return f"{self.name}<" + ", ".join(str(arg) for arg in self.args) + ">"


class _TypeExpressionParser:
    def __init__(self, expression: str, location: Optional[str] = None):
        self.expression = expression
        self.location = location
        self.tokens = self._tokenize(expression)
        self.position = 0

    def _error(self, message: str) -> TypeExpressionError:
        return TypeExpressionError(message, self.expression, location=self.location)

    def _tokenize(self, expression: str) -> List[tuple]:
        tokens = []
        position = 0
        stripped_length = len(expression.rstrip())
        while position < stripped_length:
            match = _TOKEN_RE.match(expression, position)
            if not match or match.end() == position:
                raise self._error(f"unexpected character {expression[position:position + 1]!r}")
            tokens.append((match.lastgroup, match.group(match.lastgroup)))
            position = match.end()
        return tokens

    def _peek(self) -> Optional[str]:
        if self.position < len(self.tokens):
            return self.tokens[self.position][1]
        return None

    def _peek_kind(self) -> Optional[str]:
        if self.position < len(self.tokens):
            return self.tokens[self.position][0]
        return None

    def _next(self) -> tuple:
        if self.position >= len(self.tokens):
            raise self._error("unexpected end")
        token = self.tokens[self.position]
        self.position += 1
        return token

    def _expect(self, value: str) -> None:
        kind, token = self._next()
        if token != value:
            raise self._error(f"expected '{value}', found '{token}'")

    def parse(self) -> TypeRef:
        if not self.tokens:
            raise self._error("empty type")
        type_ref = self._parse_type()
        if self._peek() is not None:
            raise self._error(f"unexpected token '{self._peek()}'")
        return type_ref

    def _parse_type(self) -> TypeRef:
        kind, token = self._next()
        if token == "&":
            # references are transparent, the lifetime and mutability do not matter
            if self._peek_kind() == "lifetime":
                self._next()
            if self._peek() == "mut":
                self._next()
            return self._parse_type()
        if token == "[":
            inner = self._parse_type()
            if self._peek() == ";":
                self._next()
                length_kind, length = self._next()
                if length_kind not in ("number", "ident"):
                    raise self._error(f"expected array length, found '{length}'")
            self._expect("]")
            return TypeRef(name=SLICE_NAME, args=[inner])
        if kind != "ident":
            raise self._error(f"unexpected token '{token}'")

        path = [token]
        while self._peek() == "::":
            self._next()
            segment_kind, segment = self._next()
            if segment_kind != "ident":
                raise self._error(f"expected path segment, found '{segment}'")
            path.append(segment)

        args: List[TypeRef] = []
        if self._peek() == "<":
            self._next()
            while self._peek() != ">":
                if self._peek_kind() == "lifetime":
                    self._next()
                else:
                    args.append(self._parse_type())
                if self._peek() == ",":
                    self._next()
                elif self._peek() != ">":
                    raise self._error(f"expected ',' or '>', found '{self._peek() or 'end'}'")
            self._expect(">")
        return TypeRef(name=path[-1], path=path if len(path) > 1 else [], args=args)


def parse_type_expression(expression: str, location: Optional[str] = None) -> TypeRef:
    """Parses a type expression into a `TypeRef`, raising `TypeExpressionError` when malformed."""
    return _TypeExpressionParser(expression, location=location).parse()


def build_descriptor(
    expression: Union[str, TypeRef],
    substitutions: Optional[Dict[str, TypeDescriptor]] = None,
    location: Optional[str] = None,
) -> TypeDescriptor:
    """
    Classifies a type expression.

    Formal generic parameters found in `substitutions` are replaced by their
    concrete descriptor before classification, so `Page<T>` instantiated with
    `T = Vec<Pet>` resolves its `items: Vec<T>` field to `Vec<Vec<Pet>>`.
    """
    if isinstance(expression, str):
        text = expression
        type_ref = parse_type_expression(expression, location=location)
    else:
        text = str(expression)
        type_ref = expression
    return _classify(type_ref, substitutions or {}, text, location)


def _classify(
    type_ref: TypeRef,
    substitutions: Dict[str, TypeDescriptor],
    text: str,
    location: Optional[str],
) -> TypeDescriptor:
    name = type_ref.name

    def arity(expected: int) -> List[TypeDescriptor]:
        if len(type_ref.args) != expected:
            raise TypeExpressionError(
                f"'{name}' expects {expected} type argument(s), got {len(type_ref.args)}",
                text,
                location=location,
            )
        return [_classify(arg, substitutions, text, location) for arg in type_ref.args]

    if not type_ref.path and not type_ref.args and name in substitutions:
        return substitutions[name].model_copy(deep=True)

    if name in NULLABLE_NAMES:
        return TypeDescriptor(kind=DescriptorKind.NULLABLE, name=name, args=arity(1))
    if name == SLICE_NAME:
        return TypeDescriptor(kind=DescriptorKind.SEQUENCE, name="Vec", args=arity(1))
    if name in SEQUENCE_NAMES:
        (item,) = arity(1)
        if name == "SmallVec" and item.kind == DescriptorKind.SEQUENCE:
            # SmallVec<[T; N]>
            item = item.child
        return TypeDescriptor(kind=DescriptorKind.SEQUENCE, name=name, args=[item])
    if name in UNIQUE_SEQUENCE_NAMES:
        return TypeDescriptor(kind=DescriptorKind.SEQUENCE, name=name, args=arity(1), unique=True)
    if name in MAP_NAMES:
        return TypeDescriptor(kind=DescriptorKind.MAP, name=name, args=arity(2))
    if name in TRANSPARENT_NAMES:
        return TypeDescriptor(
            kind=DescriptorKind.TRANSPARENT,
            name=name,
            args=arity(1),
            indirect=name in INDIRECT_NAMES,
        )
    if name in PRIMITIVES:
        # type arguments of primitives (e.g. DateTime<Utc>) do not change the wire shape
        return TypeDescriptor(kind=DescriptorKind.PRIMITIVE, name=name)
    return TypeDescriptor(
        kind=DescriptorKind.NOMINAL,
        name=name,
        args=[_classify(arg, substitutions, text, location) for arg in type_ref.args],
    )


def unconstrained() -> TypeDescriptor:
    """Descriptor standing in for an unsubstituted generic parameter."""
    return TypeDescriptor(kind=DescriptorKind.PRIMITIVE, name=UNCONSTRAINED)


def canonical_name(descriptor: TypeDescriptor, separator: str = "_") -> str:
    """
    Deterministic name for a descriptor, used to name generic instantiations:
    `Page<Vec<Pet>>` becomes `Page_Vec_Pet`.
    """
    if descriptor.kind == DescriptorKind.TRANSPARENT:
        return canonical_name(descriptor.child, separator)
    parts = [descriptor.name]
    parts.extend(canonical_name(arg, separator) for arg in descriptor.args)
    return separator.join(parts)


def primitive_schema(
    descriptor: TypeDescriptor,
    non_strict_integers: bool = False,
    unsigned_minimum: bool = True,
) -> Union[PrimitiveSchema, ObjectSchema]:
    """Schema node for a primitive descriptor."""
    spec = PRIMITIVES[descriptor.name]
    if spec.schema_type == SchemaType.OBJECT:
        return ObjectSchema()
    schema = PrimitiveSchema(
        schema_type=spec.schema_type,
        format=spec.loose_format if non_strict_integers else spec.format,
    )
    if spec.unsigned and unsigned_minimum:
        schema.minimum = 0
    return schema


TypeRef.model_rebuild()
TypeDescriptor.model_rebuild()
