"""
memory_facade.py

Typed views over the blocks of a BlockTable: C pointers, arrays and
struct instances emulated at runtime.

This module provides:
- MemoryView: raw scalar access, byte copies and cross-encoding copies
- Pointer: pointer arithmetic, multi-level indirection and casts
- ArrayView: fixed size (possibly multidimensional) arrays
- StructView: one instance of a struct described by the TypeRegistry

Facades never copy block bytes; they only hold an address, the shared
BlockTable and a type chain. Dereferencing a scalar or a pointer yields
a detached value, dereferencing a struct or an array yields a view that
writes through to the underlying block.

Example:
    >>> from memory_blocks import BlockTable, Encoding
    >>> from memory_facade import Pointer
    >>> from type_registry import ScalarKind
    >>>
    >>> table = BlockTable(Encoding.LE32)
    >>> block = table.allocate(schema_index=-1, size=8, count=2)
    >>> p = Pointer(block.old_address, (ScalarKind.INT32,), table)
    >>> p.from_int_array([7, -3])
    >>> p.plus(1).dereference()
    -3
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from memory_blocks import (
    Block,
    BlockTable,
    OutOfBounds,
    TypeMismatch,
    UnresolvedAddress,
    UnspecifiedTarget,
    ValueOverflow,
    render_config,
)
from type_registry import (
    ScalarKind,
    TypeChain,
    TypeName,
    TypeRegistry,
    TypeTag,
    check_chain,
    describe_chain,
)

logger = logging.getLogger(__name__)


# ============================================================
#  Location
# ============================================================

@dataclass(frozen=True)
class Location:
    """Address a facade or an array cursor refers to.

    Every facade kind derives equality and hashing from its Location,
    so a Pointer compares equal to an array iterator at the same address.
    """
    address: int


def _location_of(obj: Any) -> Optional[Location]:
    """Get the Location of a facade or cursor, None for anything else."""
    loc = getattr(obj, "location", None)
    return loc if isinstance(loc, Location) else None


# ============================================================
#  MemoryView
# ============================================================

class MemoryView:
    """Base of all facades: an address in a BlockTable.

    All reads and writes resolve their address through the table and
    fail with UnresolvedAddress or OutOfBounds instead of touching
    memory outside a block.
    """

    def __init__(self, address: int, block_table: BlockTable) -> None:
        self._address = address
        self._block_table = block_table
        self.encoding = block_table.encoding

    @property
    def address(self) -> int:
        """Address the facade refers to."""
        return self._address

    @property
    def block_table(self) -> BlockTable:
        """Table the address belongs to."""
        return self._block_table

    @property
    def types(self) -> TypeRegistry:
        """Schema of the file behind the block table."""
        return self._block_table.types

    @property
    def location(self) -> Location:
        return Location(self._address)

    def __eq__(self, other: Any) -> bool:
        loc = _location_of(other)
        if loc is None:
            return NotImplemented
        return self.location == loc

    def __hash__(self) -> int:
        return hash(self.location)

    # ------------- Scalars ------------- #

    def _format(self, kind: ScalarKind, count: int = 1) -> str:
        code = kind.format_code(self.encoding)
        return f"{self.encoding.struct_prefix}{count}{code}"

    def _check_value(self, kind: ScalarKind, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeMismatch(f"Cannot store {type(value).__name__} as {kind.value}")
        if not kind.is_float and not isinstance(value, int):
            raise TypeMismatch(f"Cannot store {type(value).__name__} as {kind.value}")

    def read_scalar(self, kind: ScalarKind, address: int) -> Union[int, float]:
        """Read one scalar at an absolute address.

        Args:
            kind: Scalar kind to decode
            address: Address of the first byte

        Returns:
            The decoded value (a copy, detached from memory)

        Raises:
            UnresolvedAddress: If the address has no backing block
            OutOfBounds: If the scalar crosses the end of its block
        """
        block, offset = self._block_table.locate(address, kind.size(self.encoding))
        return struct.unpack_from(self._format(kind), block.data, offset)[0]

    def write_scalar(self, kind: ScalarKind, address: int, value: Union[int, float]) -> None:
        """Write one scalar at an absolute address.

        Raises:
            UnresolvedAddress: If the address has no backing block
            OutOfBounds: If the scalar crosses the end of its block
            TypeMismatch: If the value is not a number of the right kind
            ValueOverflow: If the value does not fit the scalar kind
        """
        self._check_value(kind, value)
        block, offset = self._block_table.locate(address, kind.size(self.encoding))
        try:
            struct.pack_into(self._format(kind), block.data, offset, value)
        except (struct.error, OverflowError) as e:
            raise ValueOverflow(f"{value!r} does not fit {kind.value} at {hex(address)}") from e

    def read_scalars(self, kind: ScalarKind, address: int, count: int) -> List[Union[int, float]]:
        """Read `count` consecutive scalars starting at an address."""
        block, offset = self._block_table.locate(address, count * kind.size(self.encoding))
        return list(struct.unpack_from(self._format(kind, count), block.data, offset))

    def write_scalars(self, kind: ScalarKind, address: int, values: Sequence[Union[int, float]]) -> None:
        """Write consecutive scalars starting at an address."""
        for value in values:
            self._check_value(kind, value)
        block, offset = self._block_table.locate(address, len(values) * kind.size(self.encoding))
        try:
            struct.pack_into(self._format(kind, len(values)), block.data, offset, *values)
        except (struct.error, OverflowError) as e:
            raise ValueOverflow(f"Values do not fit {kind.value} at {hex(address)}") from e

    def read_address(self, address: int) -> int:
        """Read a pointer value stored at an address."""
        code = "I" if self.encoding.pointer_width == 4 else "Q"
        block, offset = self._block_table.locate(address, self.encoding.pointer_width)
        return struct.unpack_from(self.encoding.struct_prefix + code, block.data, offset)[0]

    def write_address(self, address: int, value: int) -> None:
        """Store a pointer value at an address.

        Raises:
            ValueOverflow: If the value does not fit the pointer width
        """
        if not 0 <= value < self.encoding.address_limit:
            raise ValueOverflow(
                f"Address {hex(value)} does not fit a {self.encoding.pointer_width}-byte pointer"
            )
        code = "I" if self.encoding.pointer_width == 4 else "Q"
        block, offset = self._block_table.locate(address, self.encoding.pointer_width)
        struct.pack_into(self.encoding.struct_prefix + code, block.data, offset, value)

    # ------------- Copies ------------- #

    def copy_bytes(self, dst_address: int, src: MemoryView, length: int) -> None:
        """Copy `length` raw bytes from the address of `src` to `dst_address`.

        Only meaningful between facades of the same encoding. Both ends
        are bounds checked before anything is written.
        """
        data = src.block_table.read_bytes(src.address, length)
        self._block_table.write_bytes(dst_address, data)

    def reinterpret_copy(self, dst_address: int, src: MemoryView) -> None:
        """Copy the value of a struct or array facade field by field.

        Each field is decoded under the encoding of `src` and encoded
        again under the encoding of this view, so pointer width and byte
        order may differ between both sides.

        Fields are converted into a scratch block first; the destination
        is written in one piece once every field has converted, so a
        failed copy leaves it untouched.

        Raises:
            ValueOverflow: If a pointer does not fit the narrower destination
        """
        chain, dims = src._value_type()
        logger.debug(
            f"Reinterpreting {describe_chain(chain, dims)} from {src.encoding} "
            f"0x{src.address:X} to {self.encoding} 0x{dst_address:X}"
        )
        size = self.types.sizeof(chain, self.encoding, dims)
        if size == 0:
            return
        self._block_table.locate(dst_address, size)
        scratch = BlockTable(self.encoding, self.types, blocks=[Block(dst_address, size)])
        MemoryView(dst_address, scratch)._convert(dst_address, src, src.address, chain, dims)
        self._block_table.write_bytes(dst_address, scratch.get_block(dst_address).data)

    def _convert(
        self,
        dst_address: int,
        src: MemoryView,
        src_address: int,
        chain: TypeChain,
        dims: Tuple[int, ...],
    ) -> None:
        head = chain[0]
        if head is TypeTag.ARRAY:
            elem_chain, elem_dims = chain[1:], dims[1:]
            src_stride = src.types.sizeof(elem_chain, src.encoding, elem_dims)
            dst_stride = self.types.sizeof(elem_chain, self.encoding, elem_dims)
            for i in range(dims[0]):
                self._convert(
                    dst_address + i * dst_stride, src, src_address + i * src_stride,
                    elem_chain, elem_dims,
                )
        elif isinstance(head, ScalarKind):
            self.write_scalar(head, dst_address, src.read_scalar(head, src_address))
        elif head is TypeTag.POINTER:
            self.write_address(dst_address, src.read_address(src_address))
        elif head is TypeTag.VOID:
            raise UnspecifiedTarget("Cannot copy a value of type void")
        else:
            for f in self.types.get_struct(head).fields:
                self._convert(
                    dst_address + self.types.field_offset(head, f.name, self.encoding),
                    src,
                    src_address + src.types.field_offset(head, f.name, src.encoding),
                    f.type_chain,
                    f.dimensions,
                )

    # ------------- Typed access ------------- #

    def _value_type(self) -> Tuple[TypeChain, Tuple[int, ...]]:
        """Type chain and dimensions of the value stored at this address."""
        raise TypeMismatch(f"{type(self).__name__} does not denote a value in memory")

    def addressof(self) -> Pointer:
        """Pointer to the struct or array this facade views."""
        chain, dims = self._value_type()
        return Pointer(self._address, chain, self._block_table, dims)

    def _struct_view(self, address: int, struct_name: str) -> StructView:
        cls = self.types.facade_class(struct_name) or StructView
        return cls(address, self._block_table, struct_name)

    def _load(self, address: int, chain: TypeChain, dims: Tuple[int, ...]) -> Any:
        """Read the value of type `chain` stored at `address`.

        Scalars and pointers come back as detached values, structs and
        arrays as views onto the same address.
        """
        head = chain[0]
        if head is TypeTag.VOID:
            raise UnspecifiedTarget("Target type is void. Use cast() to specify its type first.")
        if isinstance(head, ScalarKind):
            return self.read_scalar(head, address)
        if head is TypeTag.POINTER:
            return Pointer(self.read_address(address), chain[1:], self._block_table)
        if head is TypeTag.ARRAY:
            return ArrayView(address, chain, dims, self._block_table)
        # Same static bounds check as ArrayView construction.
        self._block_table.locate(address, self.types.struct_size(head, self.encoding))
        return self._struct_view(address, head)

    def _store(self, address: int, chain: TypeChain, dims: Tuple[int, ...], value: Any) -> None:
        """Write `value` as type `chain` to `address`."""
        head = chain[0]
        if head is TypeTag.VOID:
            raise UnspecifiedTarget("Target type is void. Use cast() to specify its type first.")
        if isinstance(head, ScalarKind):
            self.write_scalar(head, address, value)
            return
        if head is TypeTag.POINTER:
            if not isinstance(value, MemoryView):
                raise TypeMismatch(f"Cannot store {type(value).__name__} as a pointer")
            self.write_address(address, value.address)
            return
        if head is TypeTag.ARRAY and isinstance(value, (list, tuple)):
            ArrayView(address, chain, dims, self._block_table).from_list(value)
            return

        if not isinstance(value, MemoryView):
            raise TypeMismatch(f"Cannot store {type(value).__name__} as {describe_chain(chain, dims)}")
        if value._value_type() != (chain, dims):
            raise TypeMismatch(
                f"Cannot store {describe_chain(*value._value_type())} "
                f"as {describe_chain(chain, dims)}"
            )
        if value.address == address and value.block_table is self._block_table:
            # already the value stored here
            return
        if value.encoding == self.encoding:
            self.copy_bytes(address, value, self.types.sizeof(chain, self.encoding, dims))
        else:
            self.reinterpret_copy(address, value)


# ============================================================
#  Bulk scalar conversions
# ============================================================

class ScalarArrayMixin:
    """Conversions between a facade and Python lists of one scalar kind.

    Subclasses check the requested kind against their element type in
    `_bulk_address` and return the start address and element count.
    """

    def _bulk_address(self, kind: ScalarKind, length: Optional[int]) -> Tuple[int, int]:
        """Check `kind` and return (start address, element count). Subclasses must implement this."""
        raise NotImplementedError

    def _to_scalars(self, kind: ScalarKind, length: Optional[int]) -> List[Union[int, float]]:
        address, length = self._bulk_address(kind, length)
        return self.read_scalars(kind, address, length)

    def _from_scalars(self, kind: ScalarKind, values: Sequence[Union[int, float]]) -> None:
        values = list(values)
        address, _ = self._bulk_address(kind, len(values))
        self.write_scalars(kind, address, values)

    def to_byte_array(self, length: Optional[int] = None) -> bytes:
        """Copy `length` chars into a bytes object."""
        address, length = self._bulk_address(ScalarKind.INT8, length)
        return self.block_table.read_bytes(address, length)

    def from_byte_array(self, data: bytes) -> None:
        address, _ = self._bulk_address(ScalarKind.INT8, len(data))
        self.block_table.write_bytes(address, bytes(data))

    def to_short_array(self, length: Optional[int] = None) -> List[int]:
        return self._to_scalars(ScalarKind.INT16, length)

    def from_short_array(self, values: Sequence[int]) -> None:
        self._from_scalars(ScalarKind.INT16, values)

    def to_int_array(self, length: Optional[int] = None) -> List[int]:
        return self._to_scalars(ScalarKind.INT32, length)

    def from_int_array(self, values: Sequence[int]) -> None:
        self._from_scalars(ScalarKind.INT32, values)

    def to_long_array(self, length: Optional[int] = None) -> List[int]:
        return self._to_scalars(ScalarKind.INT64, length)

    def from_long_array(self, values: Sequence[int]) -> None:
        self._from_scalars(ScalarKind.INT64, values)

    def to_intptr_array(self, length: Optional[int] = None) -> List[int]:
        """Read pointer-width integers (4 or 8 bytes depending on the file)."""
        return self._to_scalars(ScalarKind.INTPTR, length)

    def from_intptr_array(self, values: Sequence[int]) -> None:
        self._from_scalars(ScalarKind.INTPTR, values)

    def to_float_array(self, length: Optional[int] = None) -> List[float]:
        return self._to_scalars(ScalarKind.FLOAT32, length)

    def from_float_array(self, values: Sequence[float]) -> None:
        self._from_scalars(ScalarKind.FLOAT32, values)

    def to_double_array(self, length: Optional[int] = None) -> List[float]:
        return self._to_scalars(ScalarKind.FLOAT64, length)

    def from_double_array(self, values: Sequence[float]) -> None:
        self._from_scalars(ScalarKind.FLOAT64, values)


# ============================================================
#  Pointer
# ============================================================

class Pointer(ScalarArrayMixin, MemoryView):
    """A C pointer: an address plus the type chain of its target.

    ``int**`` is a Pointer with target chain ``(POINTER, INT32)``; each
    dereference unwinds one level of indirection. Pointers are values:
    `plus` returns a new Pointer, and a Pointer read from memory is a
    copy disconnected from the slot it was read from. To change that
    slot, assign through the pointer or view that produced it.

    `advance` moves this pointer in place, for cursor style loops. Do
    not advance a pointer that is used as a dict key.

    Example:
        >>> p = first_material
        >>> while not p.is_null():
        ...     mat = p.dereference()
        ...     p = p.plus(1)
    """

    def __init__(
        self,
        address: int,
        type_chain: Union[TypeName, Sequence[TypeName]],
        block_table: BlockTable,
        dimensions: Sequence[int] = (),
    ) -> None:
        """Create a pointer.

        Args:
            address: Address the pointer points to
            type_chain: Type chain of the target
            block_table: Table the address belongs to
            dimensions: Array lengths if the target is an array
        """
        super().__init__(address, block_table)
        self._chain, self._dims = check_chain(type_chain, dimensions)

    @property
    def type_chain(self) -> TypeChain:
        return self._chain

    @property
    def dimensions(self) -> Tuple[int, ...]:
        return self._dims

    @property
    def target_size(self) -> int:
        """sizeof the target type (0 for void)."""
        return self.types.sizeof(self._chain, self.encoding, self._dims)

    def is_null(self) -> bool:
        return self._address == 0

    def is_valid(self) -> bool:
        """Check whether the pointer points into an existing block.

        More expensive than `is_null` (a table lookup); meant for
        diagnostics rather than hot loops.
        """
        return not self.is_null() and self._block_table.contains(self._address)

    def __bool__(self) -> bool:
        return not self.is_null()

    def dereference(self) -> Any:
        """Read the target.

        Returns:
            A detached copy for scalar and pointer targets, a StructView
            or ArrayView onto the target address otherwise

        Raises:
            UnresolvedAddress: If the pointer is null or dangling
            UnspecifiedTarget: If the target is void
        """
        if self.is_null():
            raise UnresolvedAddress("Null pointer dereference")
        return self._load(self._address, self._chain, self._dims)

    def assign(self, value: Any) -> None:
        """Write `value` to the target (``*p = value``).

        Structs and arrays are copied into the target, byte by byte when
        both sides share an encoding and field by field otherwise.
        Assigning a view of the target to itself does nothing.

        Raises:
            UnresolvedAddress: If the pointer is null or dangling
            UnspecifiedTarget: If the target is void
            TypeMismatch: If the value does not match the target type
        """
        if self.is_null():
            raise UnresolvedAddress("Null pointer assignment")
        self._store(self._address, self._chain, self._dims, value)

    def _stride(self) -> int:
        if self._chain[0] is TypeTag.VOID:
            raise UnspecifiedTarget("No arithmetic on void pointers. Use cast() first.")
        return self.target_size

    def plus(self, n: int) -> Pointer:
        """New pointer `n` elements further (``p + n``). `self` is unchanged."""
        return Pointer(self._address + n * self._stride(), self._chain, self._block_table, self._dims)

    def advance(self, n: int = 1) -> Pointer:
        """Move this pointer `n` elements in place (``p += n``).

        Returns:
            Self for chaining
        """
        self._address += n * self._stride()
        return self

    def cast(self, type_chain: Union[TypeName, Sequence[TypeName]], dimensions: Sequence[int] = ()) -> Pointer:
        """Reinterpret the target as another type (unchecked).

        Attention: nothing verifies that the memory actually holds the
        new type. Reads through the result decode whatever bytes are
        there.
        """
        return Pointer(self._address, type_chain, self._block_table, dimensions)

    def to_array(self, length: int) -> List[Any]:
        """Dereference `length` consecutive targets into a list."""
        stride = self._stride()
        return [
            self._load(self._address + i * stride, self._chain, self._dims)
            for i in range(length)
        ]

    def to_array_view(self, length: int) -> ArrayView:
        """View `length` consecutive targets as an array."""
        return ArrayView(
            self._address,
            (TypeTag.ARRAY,) + self._chain,
            (length,) + self._dims,
            self._block_table,
        )

    def _bulk_address(self, kind: ScalarKind, length: Optional[int]) -> Tuple[int, int]:
        if self._chain[0] is not kind:
            raise TypeMismatch(
                f"Cannot convert {describe_chain(self._chain, self._dims)}* to {kind.value} "
                f"values. You have to cast the pointer first."
            )
        if length is None:
            raise ValueError("Pointer conversions need an explicit length")
        return self._address, length

    def __str__(self) -> str:
        if self.is_null():
            return "NULL"
        return f"{render_config.pointer_arrow} {render_config.format_address(self._address)}"

    def __repr__(self) -> str:
        return f"Pointer<{describe_chain(self._chain, self._dims)}*>({hex(self._address)})"


def null_pointer(block_table: BlockTable) -> Pointer:
    """The null pointer (``void*``) for the file behind `block_table`."""
    return Pointer(0, (TypeTag.VOID,), block_table)


# ============================================================
#  Arrays
# ============================================================

class ArrayView(ScalarArrayMixin, MemoryView):
    """A fixed size C array, possibly multidimensional.

    ``float[4][4]`` is an ArrayView with chain ``(ARRAY, ARRAY, FLOAT32)``
    and dimensions ``(4, 4)``. Indexing the outer dimension yields a
    nested ArrayView, a StructView, a Pointer or a scalar copy.
    Negative indexes are out of bounds, as in C.
    """

    def __init__(
        self,
        address: int,
        type_chain: Union[TypeName, Sequence[TypeName]],
        dimensions: Sequence[int],
        block_table: BlockTable,
    ) -> None:
        """Create an array view.

        Raises:
            ValueError: If chain and dimensions do not describe an array
            UnresolvedAddress: If the address has no backing block
            OutOfBounds: If the array does not fit in its block
        """
        super().__init__(address, block_table)
        self._chain, self._dims = check_chain(type_chain, dimensions)
        if not self._dims:
            raise ValueError("An array needs at least one dimension")
        self._element_size = self.types.sizeof(self._chain[1:], self.encoding, self._dims[1:])
        # Array bounds are static, so check them once here.
        self._block_table.locate(address, self.sizeof())

    @property
    def type_chain(self) -> TypeChain:
        return self._chain

    @property
    def dimensions(self) -> Tuple[int, ...]:
        return self._dims

    @property
    def element_size(self) -> int:
        return self._element_size

    def sizeof(self) -> int:
        return self._element_size * self._dims[0]

    def __len__(self) -> int:
        return self._dims[0]

    def _element_address(self, index: int) -> int:
        if not isinstance(index, int):
            raise TypeError(f"Array indexes must be integers, not {type(index).__name__}")
        if not 0 <= index < self._dims[0]:
            raise OutOfBounds(f"Index {index} out of range for {describe_chain(self._chain, self._dims)}")
        return self._address + index * self._element_size

    def __getitem__(self, index: Union[int, slice]) -> Any:
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        return self._load(self._element_address(index), self._chain[1:], self._dims[1:])

    def __setitem__(self, index: int, value: Any) -> None:
        self._store(self._element_address(index), self._chain[1:], self._dims[1:], value)

    def __iter__(self) -> ArrayIterator:
        return ArrayIterator(self)

    def to_list(self) -> List[Any]:
        """Copy the array into nested Python lists."""
        return [e.to_list() if isinstance(e, ArrayView) else e for e in self]

    def from_list(self, values: Sequence[Any]) -> None:
        """Write nested Python lists (or facades) into the array.

        Raises:
            ValueError: If the outer length does not match
        """
        if len(values) != len(self):
            raise ValueError(f"Expected {len(self)} elements, got {len(values)}")
        for i, value in enumerate(values):
            self[i] = value

    def to_pointer(self) -> Pointer:
        """Pointer to the first element (array decay)."""
        return Pointer(self._address, self._chain[1:], self._block_table, self._dims[1:])

    def _bulk_address(self, kind: ScalarKind, length: Optional[int]) -> Tuple[int, int]:
        if len(self._dims) != 1 or self._chain[1] is not kind:
            raise TypeMismatch(
                f"Cannot convert {describe_chain(self._chain, self._dims)} to {kind.value} values"
            )
        if length is None:
            length = self._dims[0]
        if length > self._dims[0]:
            raise OutOfBounds(f"{length} elements exceed array length {self._dims[0]}")
        return self._address, length

    def _value_type(self) -> Tuple[TypeChain, Tuple[int, ...]]:
        return self._chain, self._dims

    def __repr__(self) -> str:
        return f"ArrayView<{describe_chain(self._chain, self._dims)}>({hex(self._address)})"


class ArrayIterator:
    """Cursor over the elements of an ArrayView in ascending address order.

    `location` is the address of the element the next call to next()
    returns, so a fresh iterator compares equal to a pointer to the
    first element.
    """

    def __init__(self, array: ArrayView) -> None:
        self._array = array
        self._index = 0

    @property
    def address(self) -> int:
        return self._array.address + self._index * self._array.element_size

    @property
    def location(self) -> Location:
        return Location(self.address)

    def __iter__(self) -> ArrayIterator:
        return self

    def __next__(self) -> Any:
        if self._index >= len(self._array):
            raise StopIteration
        value = self._array[self._index]
        self._index += 1
        return value

    def __eq__(self, other: Any) -> bool:
        loc = _location_of(other)
        if loc is None:
            return NotImplemented
        return self.location == loc

    # the cursor moves
    __hash__ = None


# ============================================================
#  Structs
# ============================================================

class StructView(MemoryView):
    """One instance of a struct from the file's schema.

    Generated accessor classes subclass StructView, set STRUCT_NAME and
    register with the TypeRegistry; their properties go through
    `get_field` and `set_field`.

    Example:
        >>> @types.register_facade
        ... class Link(StructView):
        ...     STRUCT_NAME = "Link"
        ...
        ...     @property
        ...     def next(self) -> Pointer:
        ...         return self.get_field("next")
    """

    STRUCT_NAME: Optional[str] = None

    def __init__(self, address: int, block_table: BlockTable, struct_name: Optional[str] = None) -> None:
        """Create a struct view.

        Raises:
            TypeMismatch: If neither struct_name nor STRUCT_NAME is given
            UnknownStruct: If the struct is not in the schema
        """
        super().__init__(address, block_table)
        name = struct_name if struct_name is not None else self.STRUCT_NAME
        if name is None:
            raise TypeMismatch(f"{type(self).__name__} does not name a struct")
        self._descriptor = self.types.get_struct(name)

    @property
    def struct_name(self) -> str:
        return self._descriptor.name

    @property
    def schema_index(self) -> int:
        return self._descriptor.schema_index

    def sizeof(self) -> int:
        return self.types.struct_size(self.struct_name, self.encoding)

    def field_names(self) -> List[str]:
        return [f.name for f in self._descriptor.fields]

    def field_address(self, name: str) -> int:
        """Absolute address of a field.

        Raises:
            UnknownField: If the struct has no such field
        """
        return self._address + self.types.field_offset(self.struct_name, name, self.encoding)

    def get_field(self, name: str) -> Any:
        """Read a field: a copy for scalars and pointers, a view otherwise."""
        f = self.types.get_field(self.struct_name, name)
        return self._load(self.field_address(name), f.type_chain, f.dimensions)

    def set_field(self, name: str, value: Any) -> None:
        f = self.types.get_field(self.struct_name, name)
        self._store(self.field_address(name), f.type_chain, f.dimensions, value)

    def field_pointer(self, name: str) -> Pointer:
        """Pointer to a field (``&s->name``)."""
        f = self.types.get_field(self.struct_name, name)
        return Pointer(self.field_address(name), f.type_chain, self._block_table, f.dimensions)

    def to_dict(self) -> Dict[str, Any]:
        """Copy all fields into a dictionary; pointers are not followed."""
        result: Dict[str, Any] = {}
        for name in self.field_names():
            value = self.get_field(name)
            if isinstance(value, StructView):
                value = value.to_dict()
            elif isinstance(value, ArrayView):
                value = value.to_list()
            result[name] = value
        return result

    def _value_type(self) -> Tuple[TypeChain, Tuple[int, ...]]:
        return (self.struct_name,), ()

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.struct_name}>({hex(self._address)})"
