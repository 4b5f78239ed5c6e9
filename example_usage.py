"""
example_usage.py

Walkthrough of the memory facade library.
This script rebuilds the memory of a small C program as a save file
would hold it (blocks at their saved addresses), walks a linked list
through pointers, edits it, and copies a struct into a file with a
different encoding.
"""

import logging
import struct

from memory_blocks import Block, BlockTable, Encoding, render_config
from memory_facade import Pointer, StructView
from memory_factory import BlockFactory
from type_registry import FieldDescriptor, ScalarKind, StructDescriptor, TypeRegistry, TypeTag


def build_types() -> TypeRegistry:
    """Schema of the example program."""
    types = TypeRegistry()
    types.register_struct(StructDescriptor(
        name="Node",
        fields=[
            FieldDescriptor("next", (TypeTag.POINTER, "Node")),
            FieldDescriptor("data", (ScalarKind.INT32,)),
            FieldDescriptor("weight", (ScalarKind.FLOAT32,)),
        ],
        schema_index=0,
    ))
    types.register_struct(StructDescriptor(
        name="ListBase",
        fields=[
            FieldDescriptor("first", (TypeTag.POINTER, "Node")),
            FieldDescriptor("last", (TypeTag.POINTER, "Node")),
        ],
        schema_index=1,
    ))

    @types.register_facade
    class Node(StructView):
        STRUCT_NAME = "Node"

        @property
        def next(self) -> Pointer:
            return self.get_field("next")

        @property
        def data(self) -> int:
            return self.get_field("data")

        @data.setter
        def data(self, value: int) -> None:
            self.set_field("data", value)

    return types


def saved_blocks() -> list:
    """Blocks as a 64-bit little-endian program wrote them.

    struct Node { struct Node* next; int data; float weight; };  // 16 bytes
    A ListBase at 0x7f0010 points to three nodes in one block at 0x7f1000.
    """
    nodes = b"".join([
        struct.pack("<Qif", 0x7F1010, 10, 0.5),
        struct.pack("<Qif", 0x7F1020, 20, 1.5),
        struct.pack("<Qif", 0, 30, 2.5),
    ])
    listbase = struct.pack("<QQ", 0x7F1000, 0x7F1020)
    return [
        Block(0x7F1000, len(nodes), count=3, schema_index=0, data=bytearray(nodes)),
        Block(0x7F0010, len(listbase), count=1, schema_index=1, code="LB", data=bytearray(listbase)),
    ]


def main():
    """Run the walkthrough."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 70)
    print("Memory Facade Library - Walkthrough")
    print("=" * 70)
    print()

    render_config.pointer_arrow = "→"
    render_config.show_addresses_hex = True

    types = build_types()
    table = BlockTable(Encoding.LE64, types, blocks=saved_blocks())

    types.print(Encoding.LE64)
    print()
    table.print()
    print("\n" + "=" * 70 + "\n")

    # Walk the list: for (Node* n = lb->first; n; n = n->next)
    print("Walking ListBase.first ...")
    lb = Pointer(0x7F0010, ("ListBase",), table).dereference()
    node_ptr = lb.get_field("first")
    total = 0
    while not node_ptr.is_null():
        node = node_ptr.dereference()
        print(f"  node @ {hex(node.address)}: data={node.data} next {node.next}")
        total += node.data
        node_ptr = node.next
    print(f"Sum of data: {total}")
    print("\n" + "=" * 70 + "\n")

    # Views write through to the block
    print("Doubling every node through the array view...")
    nodes = Pointer(0x7F1000, ("Node",), table).to_array_view(3)
    for node in nodes:
        node.data = node.data * 2
    print(f"Data now: {[n.data for n in nodes]}")
    print("\n" + "=" * 70 + "\n")

    # Append a node allocated at a synthetic address
    print("Appending a new node...")
    factory = BlockFactory(table)
    new_node = factory.new_struct_block("Node")
    new_node.data = 99
    last = lb.get_field("last").dereference()
    last.set_field("next", new_node.addressof())
    lb.set_field("last", new_node.addressof())
    print(f"New node @ {hex(new_node.address)}, last.next {last.next}")
    print("\n" + "=" * 70 + "\n")

    # Same struct under a 32-bit big-endian layout
    print("Copying the first node into a 32-bit big-endian file...")
    other = BlockTable(Encoding.BE32, types)
    copy = BlockFactory(other).new_struct_block("Node")
    copy.addressof().assign(nodes[0])
    print(f"Size: {nodes[0].sizeof()} bytes -> {copy.sizeof()} bytes")
    print(f"Fields: {copy.to_dict()}")
    other.print()
    print("\n" + "=" * 70 + "\n")

    print("Example complete!")


if __name__ == "__main__":
    main()
