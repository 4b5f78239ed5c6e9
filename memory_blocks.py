"""
memory_blocks.py

Emulated address space for the memory dumped into a native save file.

This module provides:
- The error hierarchy shared by the whole library
- Encoding (pointer width + byte order) of the file that wrote the memory
- Block: one contiguous allocation as it existed at save time
- BlockTable: the ordered collection of blocks that resolves any saved
  address back to (block, offset)

Example:
    >>> from memory_blocks import BlockTable, Encoding
    >>>
    >>> table = BlockTable(Encoding.LE64)
    >>> block = table.allocate(schema_index=-1, size=16)
    >>> table.resolve(block.old_address + 4)
    (Block(...), 4)
    >>> table.print()
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Optional, Tuple

if TYPE_CHECKING:
    from type_registry import TypeRegistry

logger = logging.getLogger(__name__)


# ============================================================
#  Errors
# ============================================================

class MemoryAccessError(Exception):
    """Base class of every error raised while navigating emulated memory."""


class OutOfBounds(MemoryAccessError, IndexError):
    """An access overruns the block it starts in, or an index is out of range."""


class UnresolvedAddress(OutOfBounds):
    """An address has no backing block (null, dangling or foreign)."""


class TypeMismatch(MemoryAccessError, TypeError):
    """A conversion was requested against an incompatible type chain."""


class UnspecifiedTarget(TypeMismatch):
    """An operation needs the target type of a void pointer. Cast it first."""


class UnknownStruct(MemoryAccessError, KeyError):
    """The schema has no struct with the given name or index."""


class UnknownField(MemoryAccessError, KeyError):
    """The struct has no field with the given name."""


class ValueOverflow(MemoryAccessError, OverflowError):
    """A value does not fit the field it is written to."""


class AddressSpaceExhausted(MemoryAccessError, MemoryError):
    """No synthetic address range is left for a new block."""


# ============================================================
#  Configuration du rendu console
# ============================================================

@dataclass
class ConsoleRenderConfig:
    """Configuration for console rendering output.

    Attributes:
        pointer_arrow: Symbol to use for pointer visualization (→ or ->)
        show_addresses_hex: Display addresses in hexadecimal format
        hexdump_width: Number of bytes per line in block dumps
        compact_mode: Omit block contents from table listings
    """
    pointer_arrow: str = "→"
    show_addresses_hex: bool = True
    hexdump_width: int = 16
    compact_mode: bool = False

    def format_address(self, address: int) -> str:
        """Format an address according to the current settings."""
        return hex(address) if self.show_addresses_hex else str(address)


# Instance globale de configuration
render_config = ConsoleRenderConfig()


# ============================================================
#  Encoding
# ============================================================

class ByteOrder(Enum):
    """Byte order of multi-byte values in the saved memory."""
    LITTLE = "little"
    BIG = "big"


@dataclass(frozen=True)
class Encoding:
    """Addressing convention of the application that wrote the file.

    The same schema yields different struct sizes under different
    encodings because pointer-valued fields change size with the
    pointer width.

    Attributes:
        pointer_width: Size of a pointer in bytes (4 or 8)
        byte_order: Byte order of multi-byte scalars
    """
    pointer_width: int
    byte_order: ByteOrder = ByteOrder.LITTLE

    def __post_init__(self) -> None:
        if self.pointer_width not in (4, 8):
            raise ValueError(f"Unsupported pointer width: {self.pointer_width}")

    @property
    def struct_prefix(self) -> str:
        """Byte order prefix for the `struct` module."""
        return "<" if self.byte_order is ByteOrder.LITTLE else ">"

    @property
    def address_limit(self) -> int:
        """First address that no longer fits in a pointer."""
        return 1 << (8 * self.pointer_width)

    def __str__(self) -> str:
        return f"{self.pointer_width * 8}-bit {self.byte_order.value}-endian"


Encoding.LE32 = Encoding(4, ByteOrder.LITTLE)
Encoding.LE64 = Encoding(8, ByteOrder.LITTLE)
Encoding.BE32 = Encoding(4, ByteOrder.BIG)
Encoding.BE64 = Encoding(8, ByteOrder.BIG)


# ============================================================
#  Blocks
# ============================================================

@dataclass
class Block:
    """A contiguous region of the emulated address space.

    Attributes:
        old_address: Base address the block had when the file was written
        size: Size in bytes
        count: Number of elements stored in the block
        schema_index: Struct type stored in the block (negative for raw data)
        code: Block code from the file container (DATA, SC, OB, ...)
        data: Bytes backing the block
    """
    old_address: int
    size: int
    count: int = 1
    schema_index: int = -1
    code: str = "DATA"
    data: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self) -> None:
        if not self.data:
            self.data = bytearray(self.size)
        else:
            self.data = bytearray(self.data)
        if len(self.data) != self.size:
            raise ValueError(
                f"Block at {hex(self.old_address)} declares {self.size} bytes "
                f"but holds {len(self.data)}"
            )

    @property
    def end(self) -> int:
        """First address past the end of the block."""
        return self.old_address + self.size

    @property
    def is_struct(self) -> bool:
        """Whether the block holds struct instances."""
        return self.schema_index >= 0

    def contains(self, address: int) -> bool:
        """Check whether an address falls inside the block."""
        return self.old_address <= address < self.end


class BlockTable:
    """The emulated address space of one open file.

    Blocks are kept ordered by their saved base address; ranges never
    overlap. Every facade created over this table shares it, so the
    table also carries the file's Encoding and its TypeRegistry.

    Not thread safe: allocation mutates the block list in place.
    """

    # Synthetic addresses for new blocks start here and only grow.
    FIRST_SYNTHETIC_ADDRESS = 0x1000
    ALLOCATION_ALIGNMENT = 16

    def __init__(
        self,
        encoding: Encoding,
        types: Optional[TypeRegistry] = None,
        blocks: Optional[List[Block]] = None,
    ) -> None:
        """Create a table.

        Args:
            encoding: Encoding of the file the blocks come from
            types: Schema used to size structs (an empty one if None)
            blocks: File-resident blocks to ingest
        """
        if types is None:
            from type_registry import TypeRegistry
            types = TypeRegistry()
        self.encoding = encoding
        self.types = types
        self._blocks: List[Block] = []
        self._starts: List[int] = []
        self._next_address = self.FIRST_SYNTHETIC_ADDRESS
        for block in blocks or []:
            self.add(block)

    # ------------- Population ------------- #

    def add(self, block: Block) -> Block:
        """Insert a block that already has its saved address.

        Args:
            block: The block to insert

        Returns:
            The inserted block

        Raises:
            ValueError: If the block is empty, sits at address 0 or
                overlaps an existing block
        """
        if block.size <= 0:
            raise ValueError(f"Block at {hex(block.old_address)} is empty")
        if block.old_address == 0:
            raise ValueError("Block cannot start at the null address")

        i = bisect.bisect_left(self._starts, block.old_address)
        before = self._blocks[i - 1] if i > 0 else None
        after = self._blocks[i] if i < len(self._blocks) else None
        if (before is not None and before.end > block.old_address) or (
            after is not None and after.old_address < block.end
        ):
            logger.warning(f"Rejected overlapping block at 0x{block.old_address:X}")
            raise ValueError(f"Block at {hex(block.old_address)} overlaps an existing block")

        self._blocks.insert(i, block)
        self._starts.insert(i, block.old_address)
        logger.debug(f"Added {block.code} block 0x{block.old_address:X} ({block.size} bytes)")
        return block

    def allocate(
        self,
        schema_index: int,
        size: int,
        count: int = 1,
        code: str = "DATA",
    ) -> Block:
        """Allocate a new zero-filled block.

        The block gets a synthetic address above every existing range,
        so it never collides with blocks read from the file.

        Args:
            schema_index: Struct type stored in the block (negative for raw data)
            size: Size in bytes
            count: Number of elements in the block
            code: Block code

        Returns:
            The new block

        Raises:
            ValueError: If size is not positive
            AddressSpaceExhausted: If the block does not fit below the
                encoding's address limit
        """
        if size <= 0:
            raise ValueError(f"Cannot allocate a block of {size} bytes")

        address = self._next_address
        if self._blocks:
            address = max(address, self._blocks[-1].end)
        align = self.ALLOCATION_ALIGNMENT
        address = (address + align - 1) // align * align

        if address + size > self.encoding.address_limit:
            raise AddressSpaceExhausted(
                f"No room for {size} bytes above {hex(address)} "
                f"with {self.encoding.pointer_width}-byte pointers"
            )

        block = Block(
            old_address=address,
            size=size,
            count=count,
            schema_index=schema_index,
            code=code,
        )
        # The new block is always past the last one, so it appends.
        self._blocks.append(block)
        self._starts.append(address)
        self._next_address = block.end
        logger.debug(f"Allocated {code} block 0x{address:X} ({size} bytes, sdna {schema_index})")
        return block

    # ------------- Resolution ------------- #

    def resolve(self, address: int) -> Optional[Tuple[Block, int]]:
        """Find the block containing an address.

        Args:
            address: Any saved or synthetic address

        Returns:
            Tuple of (block, offset into block) or None if unresolved
        """
        if address == 0:
            return None
        i = bisect.bisect_right(self._starts, address) - 1
        if i < 0:
            return None
        block = self._blocks[i]
        if address >= block.end:
            return None
        return block, address - block.old_address

    def contains(self, address: int) -> bool:
        """Check whether an address resolves to a block."""
        return self.resolve(address) is not None

    def get_block(self, address: int) -> Optional[Block]:
        """Get the block starting exactly at an address."""
        i = bisect.bisect_left(self._starts, address)
        if i < len(self._starts) and self._starts[i] == address:
            return self._blocks[i]
        return None

    def locate(self, address: int, length: int) -> Tuple[Block, int]:
        """Resolve an address and check that `length` bytes fit behind it.

        Raises:
            UnresolvedAddress: If the address has no backing block
            OutOfBounds: If the span crosses the end of the block
        """
        found = self.resolve(address)
        if found is None:
            raise UnresolvedAddress(f"Address {hex(address)} is not backed by any block")
        block, offset = found
        if length < 0 or offset + length > block.size:
            raise OutOfBounds(
                f"{length} bytes at {hex(address)} overrun block "
                f"{hex(block.old_address)}..{hex(block.end)}"
            )
        return block, offset

    # ------------- Raw access ------------- #

    def read_bytes(self, address: int, length: int) -> bytes:
        """Read a copy of `length` bytes starting at an address."""
        block, offset = self.locate(address, length)
        return bytes(block.data[offset:offset + length])

    def write_bytes(self, address: int, data: bytes) -> None:
        """Overwrite bytes starting at an address."""
        block, offset = self.locate(address, len(data))
        block.data[offset:offset + len(data)] = data

    # ------------- Inspection ------------- #

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self._blocks)

    def total_size(self) -> int:
        """Sum of all block sizes in bytes."""
        return sum(b.size for b in self._blocks)

    def to_console(self) -> str:
        """Render the block table to console format."""
        lines: List[str] = []
        lines.append(f"=== Block Table ({self.encoding}) ===")
        if not self._blocks:
            lines.append("(no blocks)")
            return "\n".join(lines)

        lines.append(f"Total: {len(self._blocks)} blocks ({self.total_size()} bytes)")
        lines.append("")

        header = f"{'Address':14} {'Size':8} {'Count':6} {'Code':6} {'SDNA':6}"
        lines.append(header)
        lines.append("-" * len(header))

        for block in self._blocks:
            a = render_config.format_address(block.old_address)
            sdna = str(block.schema_index) if block.is_struct else "-"
            lines.append(f"{a:14} {block.size:<8} {block.count:<6} {block.code:6} {sdna:6}")
            if not render_config.compact_mode:
                lines.extend(self._hexdump(block))

        return "\n".join(lines)

    def _hexdump(self, block: Block) -> List[str]:
        """Format the bytes of a block, one row per `hexdump_width` bytes."""
        width = max(1, render_config.hexdump_width)
        rows: List[str] = []
        for start in range(0, block.size, width):
            chunk = block.data[start:start + width]
            rows.append(f"  └─ +{start:<6X} {chunk.hex(' ')}")
        return rows

    def print(self) -> None:
        """Print the block table to console."""
        print(self.to_console())
