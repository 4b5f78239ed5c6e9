"""
memory_factory.py

Allocation of new blocks together with a typed facade onto them.

Example:
    >>> factory = BlockFactory(table)
    >>> scene = factory.new_struct_block("Scene", code="SC")
    >>> rgba = factory.new_array_block(ScalarKind.FLOAT32, 4)
    >>> rgba.from_float_array([1.0, 0.5, 0.25, 1.0])
"""

from __future__ import annotations

import logging
from typing import Sequence, Union

from memory_blocks import BlockTable
from memory_facade import ArrayView, Pointer, StructView, null_pointer
from type_registry import TypeName, TypeTag, check_chain, describe_chain

logger = logging.getLogger(__name__)

StructRef = Union[str, int, type]


class BlockFactory:
    """Creates blocks in a BlockTable and hands out facades for them.

    All blocks are allocated in the table given at construction, with
    sizes computed under that table's encoding.
    """

    def __init__(self, block_table: BlockTable) -> None:
        self.block_table = block_table
        self._null = null_pointer(block_table)

    @property
    def null_pointer(self) -> Pointer:
        """Null pointer associated with the table's encoding."""
        return self._null

    def _struct_name(self, struct: StructRef) -> str:
        if isinstance(struct, type):
            struct = struct.STRUCT_NAME
        return self.block_table.types.get_struct(struct).name

    def new_struct_block(self, struct: StructRef, code: str = "DATA") -> StructView:
        """Allocate a block for one struct instance.

        Args:
            struct: Struct name, schema index, or registered accessor class
            code: Block code

        Returns:
            A view of the new zero-filled struct

        Raises:
            UnknownStruct: If the struct is not in the schema
        """
        types = self.block_table.types
        name = self._struct_name(struct)
        descriptor = types.get_struct(name)
        size = types.struct_size(name, self.block_table.encoding)
        block = self.block_table.allocate(descriptor.schema_index, size, count=1, code=code)
        logger.debug(f"New struct {name} at 0x{block.old_address:X}")
        cls = types.facade_class(name) or StructView
        return cls(block.old_address, self.block_table, name)

    def new_struct_array_block(self, struct: StructRef, count: int, code: str = "DATA") -> ArrayView:
        """Allocate a block for `count` consecutive struct instances."""
        types = self.block_table.types
        name = self._struct_name(struct)
        descriptor = types.get_struct(name)
        size = types.struct_size(name, self.block_table.encoding) * count
        block = self.block_table.allocate(descriptor.schema_index, size, count=count, code=code)
        return ArrayView(block.old_address, (TypeTag.ARRAY, name), (count,), self.block_table)

    def new_array_block(self, element_type: TypeName, length: int, code: str = "DATA") -> ArrayView:
        """Allocate a one-dimensional array of scalars or structs.

        Raises:
            ValueError: If the element type is an array, a pointer or void
        """
        if element_type in (TypeTag.ARRAY, TypeTag.POINTER, TypeTag.VOID):
            raise ValueError(
                "Arrays of arrays and of pointers need their full type chain: "
                "use new_multi_array_block or new_pointer_array_block"
            )
        return self.new_multi_array_block((TypeTag.ARRAY, element_type), (length,), code=code)

    def new_multi_array_block(
        self,
        type_chain: Sequence[TypeName],
        dimensions: Sequence[int],
        code: str = "DATA",
    ) -> ArrayView:
        """Allocate an array of any supported element type.

        Example:
            >>> # float[4][4]
            >>> factory.new_multi_array_block(
            ...     (TypeTag.ARRAY, TypeTag.ARRAY, ScalarKind.FLOAT32), (4, 4))
            >>> # char*[4]
            >>> factory.new_multi_array_block(
            ...     (TypeTag.ARRAY, TypeTag.POINTER, ScalarKind.INT8), (4,))
        """
        chain, dims = check_chain(type_chain, dimensions)
        if not dims:
            raise ValueError("An array needs at least one dimension")
        size = self.block_table.types.sizeof(chain, self.block_table.encoding, dims)
        block = self.block_table.allocate(-1, size, count=dims[0], code=code)
        logger.debug(f"New array {describe_chain(chain, dims)} at 0x{block.old_address:X}")
        return ArrayView(block.old_address, chain, dims, self.block_table)

    def new_pointer_block(self, target_chain: Union[TypeName, Sequence[TypeName]], code: str = "DATA") -> Pointer:
        """Allocate a block holding one pointer.

        Returns:
            A pointer to the new (null) pointer slot; assign through it
            to make the slot point somewhere
        """
        target, _ = check_chain(target_chain)
        chain = (TypeTag.POINTER,) + target
        block = self.block_table.allocate(-1, self.block_table.encoding.pointer_width, code=code)
        return Pointer(block.old_address, chain, self.block_table)

    def new_pointer_array_block(
        self,
        target_chain: Union[TypeName, Sequence[TypeName]],
        count: int,
        code: str = "DATA",
    ) -> ArrayView:
        """Allocate a block holding `count` pointers, all null."""
        target, _ = check_chain(target_chain)
        chain = (TypeTag.ARRAY, TypeTag.POINTER) + target
        return self.new_multi_array_block(chain, (count,), code=code)

