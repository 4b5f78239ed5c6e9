"""
type_registry.py

Schema of the structs stored in a save file, and the type chains that
describe every emulated C type.

A type chain is a tuple of tags read from the outside in:
- ScalarKind members for the scalar types (int, float, ...)
- TypeTag.POINTER for one level of indirection
- TypeTag.ARRAY for one array dimension (lengths are kept separately)
- TypeTag.VOID for an untyped target
- a struct name (str) for a struct registered in the TypeRegistry

Examples:
    int**           -> (POINTER, POINTER, INT32)   target chain of a pointer
    float[4][4]     -> (ARRAY, ARRAY, FLOAT32)     with dimensions (4, 4)
    char*[8]        -> (ARRAY, POINTER, INT8)      with dimensions (8,)

The TypeRegistry computes struct layouts per Encoding and memoizes them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from memory_blocks import Encoding, UnknownField, UnknownStruct

logger = logging.getLogger(__name__)


# ============================================================
#  Type tags
# ============================================================

class ScalarKind(Enum):
    """Scalar types that can be read from and written to memory."""
    INT8 = "char"
    INT16 = "short"
    INT32 = "int"
    INT64 = "int64_t"
    INTPTR = "long"  # pointer width
    FLOAT32 = "float"
    FLOAT64 = "double"

    @property
    def is_float(self) -> bool:
        """Whether values of this kind are floating point."""
        return self in (ScalarKind.FLOAT32, ScalarKind.FLOAT64)

    def size(self, encoding: Encoding) -> int:
        """Size in bytes under the given encoding."""
        if self is ScalarKind.INTPTR:
            return encoding.pointer_width
        return _SCALAR_SIZES[self]

    def format_code(self, encoding: Encoding) -> str:
        """Format character for the `struct` module."""
        if self is ScalarKind.INTPTR:
            return "i" if encoding.pointer_width == 4 else "q"
        return _SCALAR_CODES[self]


_SCALAR_SIZES = {
    ScalarKind.INT8: 1,
    ScalarKind.INT16: 2,
    ScalarKind.INT32: 4,
    ScalarKind.INT64: 8,
    ScalarKind.FLOAT32: 4,
    ScalarKind.FLOAT64: 8,
}

_SCALAR_CODES = {
    ScalarKind.INT8: "b",
    ScalarKind.INT16: "h",
    ScalarKind.INT32: "i",
    ScalarKind.INT64: "q",
    ScalarKind.FLOAT32: "f",
    ScalarKind.FLOAT64: "d",
}


class TypeTag(Enum):
    """Non-scalar components of a type chain."""
    VOID = "void"
    POINTER = "pointer"
    ARRAY = "array"


TypeName = Union[ScalarKind, TypeTag, str]
TypeChain = Tuple[TypeName, ...]


def check_chain(
    type_chain: Union[TypeName, Sequence[TypeName]],
    dimensions: Sequence[int] = (),
) -> Tuple[TypeChain, Tuple[int, ...]]:
    """Normalize and validate a type chain with its array dimensions.

    Dimensions only describe the leading ARRAY tags, so an ARRAY tag
    may not follow a POINTER: a pointer-to-array field such as
    ``float (*co)[3]`` cannot be declared. Declare it as
    ``(POINTER, FLOAT32)`` and view the target with
    ``Pointer.to_array_view(3)``, or build
    ``Pointer(address, (ARRAY, FLOAT32), table, (3,))`` directly; only
    a Pointer's own target may be an array.

    Args:
        type_chain: A single tag or a sequence of tags
        dimensions: Lengths of the leading ARRAY tags

    Returns:
        Tuple of (chain, dimensions) as tuples

    Raises:
        ValueError: If the chain cannot describe a C type
    """
    if isinstance(type_chain, (list, tuple)):
        chain = tuple(type_chain)
    else:
        chain = (type_chain,)
    dims = tuple(int(d) for d in dimensions)

    if not chain:
        raise ValueError("Empty type chain")
    if any(d <= 0 for d in dims):
        raise ValueError(f"Array dimensions must be positive: {list(dims)}")

    n = len(dims)
    if len(chain) <= n or any(t is not TypeTag.ARRAY for t in chain[:n]):
        raise ValueError(f"A {n}-dimensional array needs {n} ARRAY tags before its element type")

    rest = chain[n:]
    for i, tag in enumerate(rest):
        last = i == len(rest) - 1
        if not isinstance(tag, (ScalarKind, TypeTag, str)):
            raise ValueError(f"Not a type tag: {tag!r}")
        if tag is TypeTag.ARRAY:
            raise ValueError("ARRAY tag without a dimension")
        if tag is TypeTag.POINTER:
            if last:
                raise ValueError("POINTER tag needs a target type")
        elif not last:
            raise ValueError(f"{describe_chain((tag,))} can only end a type chain")
    return chain, dims


def describe_chain(chain: TypeChain, dimensions: Sequence[int] = ()) -> str:
    """Render a type chain as a C declaration type, e.g. ``float[4][4]``."""
    rest = chain[len(dimensions):]
    base = rest[-1]
    if isinstance(base, (ScalarKind, TypeTag)):
        name = base.value
    else:
        name = str(base)
    return name + "*" * (len(rest) - 1) + "".join(f"[{d}]" for d in dimensions)


# ============================================================
#  Descripteurs de struct
# ============================================================

@dataclass
class FieldDescriptor:
    """Describes a field within a struct.

    Attributes:
        name: Field name
        type_chain: Type chain of the field
        dimensions: Array lengths if the field is an array
    """
    name: str
    type_chain: TypeChain
    dimensions: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        self.type_chain, self.dimensions = check_chain(self.type_chain, self.dimensions)

    @property
    def type_name(self) -> str:
        """C spelling of the field type."""
        return describe_chain(self.type_chain, self.dimensions)


@dataclass
class StructDescriptor:
    """Describes a struct type of the save file's schema.

    Offsets are not stored: they depend on the encoding and are computed
    by the TypeRegistry.

    Attributes:
        name: Struct name
        fields: Field descriptors in declaration order
        schema_index: Index of the struct in the file's schema (-1 if none)
    """
    name: str
    fields: List[FieldDescriptor]
    schema_index: int = -1

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        """Get a field descriptor by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class StructLayout:
    """Size and field offsets of a struct under one encoding."""
    name: str
    size: int
    offsets: Dict[str, int]


# ============================================================
#  Registry
# ============================================================

@dataclass
class TypeRegistry:
    """Registry of the struct types of one file format version.

    This is the schema provider of the facades: it answers struct sizes
    and field offsets for a given Encoding.

    Attributes:
        structs: Dictionary mapping struct names to descriptors
        facades: Dictionary mapping struct names to accessor classes
    """
    structs: Dict[str, StructDescriptor] = field(default_factory=dict)
    facades: Dict[str, type] = field(default_factory=dict)
    _by_index: Dict[int, str] = field(default_factory=dict, repr=False)
    _layouts: Dict[Tuple[str, Encoding], StructLayout] = field(default_factory=dict, repr=False)
    _in_progress: Set[str] = field(default_factory=set, repr=False)

    def register_struct(self, struct: StructDescriptor) -> StructDescriptor:
        """Register a struct type."""
        self.structs[struct.name] = struct
        if struct.schema_index >= 0:
            self._by_index[struct.schema_index] = struct.name
        # Any cached layout may embed the struct by value.
        self._layouts.clear()
        return struct

    def register_facade(self, cls: type) -> type:
        """Register an accessor class for the struct named by its STRUCT_NAME.

        Usable as a class decorator.

        Raises:
            UnknownStruct: If the struct is not registered
        """
        descriptor = self.get_struct(cls.STRUCT_NAME)
        self.facades[descriptor.name] = cls
        return cls

    def get_struct(self, struct_id: Union[str, int]) -> StructDescriptor:
        """Get a struct descriptor by name or schema index.

        Raises:
            UnknownStruct: If no such struct is registered
        """
        name = self._by_index.get(struct_id) if isinstance(struct_id, int) else struct_id
        struct = self.structs.get(name) if name is not None else None
        if struct is None:
            raise UnknownStruct(f"Unknown struct: {struct_id!r}")
        return struct

    def get_field(self, struct_id: Union[str, int], field_name: str) -> FieldDescriptor:
        """Get a field descriptor.

        Raises:
            UnknownStruct: If no such struct is registered
            UnknownField: If the struct has no such field
        """
        struct = self.get_struct(struct_id)
        f = struct.get_field(field_name)
        if f is None:
            raise UnknownField(f"struct {struct.name} has no field '{field_name}'")
        return f

    def facade_class(self, struct_id: Union[str, int]) -> Optional[type]:
        """Get the accessor class registered for a struct, if any."""
        return self.facades.get(self.get_struct(struct_id).name)

    # ------------- Sizing ------------- #

    def layout(self, struct_id: Union[str, int], encoding: Encoding) -> StructLayout:
        """Compute (or fetch) the layout of a struct under an encoding.

        Fields are placed one after another without implicit padding;
        the schema spells out padding as fields of its own.

        Raises:
            UnknownStruct: If the struct or a struct it embeds is unknown
            ValueError: If the struct contains itself by value
        """
        struct = self.get_struct(struct_id)
        key = (struct.name, encoding)
        cached = self._layouts.get(key)
        if cached is not None:
            return cached

        if struct.name in self._in_progress:
            raise ValueError(f"struct {struct.name} contains itself by value")
        self._in_progress.add(struct.name)
        try:
            offsets: Dict[str, int] = {}
            offset = 0
            for f in struct.fields:
                offsets[f.name] = offset
                offset += self.sizeof(f.type_chain, encoding, f.dimensions)
        finally:
            self._in_progress.discard(struct.name)

        layout = StructLayout(name=struct.name, size=offset, offsets=offsets)
        self._layouts[key] = layout
        logger.debug(f"Layout of {struct.name} under {encoding}: {offset} bytes")
        return layout

    def struct_size(self, struct_id: Union[str, int], encoding: Encoding) -> int:
        """Size of a struct in bytes under an encoding."""
        return self.layout(struct_id, encoding).size

    def field_offset(self, struct_id: Union[str, int], field_name: str, encoding: Encoding) -> int:
        """Offset of a field from the start of its struct.

        Raises:
            UnknownField: If the struct has no such field
        """
        layout = self.layout(struct_id, encoding)
        if field_name not in layout.offsets:
            raise UnknownField(f"struct {layout.name} has no field '{field_name}'")
        return layout.offsets[field_name]

    def sizeof(self, type_chain: TypeChain, encoding: Encoding, dimensions: Sequence[int] = ()) -> int:
        """Size in bytes of a value described by a type chain.

        Void has size 0.
        """
        head = type_chain[0]
        if head is TypeTag.ARRAY:
            return math.prod(dimensions) * self.sizeof(type_chain[len(dimensions):], encoding)
        if isinstance(head, ScalarKind):
            return head.size(encoding)
        if head is TypeTag.POINTER:
            return encoding.pointer_width
        if head is TypeTag.VOID:
            return 0
        return self.struct_size(head, encoding)

    # ------------- Rendering ------------- #

    def to_console(self, encoding: Optional[Encoding] = None) -> str:
        """Render type registry to console format.

        Args:
            encoding: Also show sizes and offsets under this encoding
        """
        lines: List[str] = []
        lines.append("=== Types (Struct) ===")
        if not self.structs:
            lines.append("(no types defined)")
            return "\n".join(lines)

        for name, desc in self.structs.items():
            layout = self.layout(name, encoding) if encoding is not None else None
            size = f", size={layout.size} bytes" if layout is not None else ""
            lines.append(f"struct {name} (sdna={desc.schema_index}{size})")
            for f in desc.fields:
                where = f" @ offset {layout.offsets[f.name]}" if layout is not None else ""
                lines.append(f"  + {f.name:15} : {f.type_name:20}{where}")

        return "\n".join(lines)

    def print(self, encoding: Optional[Encoding] = None) -> None:
        """Print type registry to console."""
        print(self.to_console(encoding))
