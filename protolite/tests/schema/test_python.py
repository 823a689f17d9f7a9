"""Tests for generated Python modules."""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

import os

from protolite.schema import collect_sources
from protolite.schema.python import render

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
WIRE_DIR = os.path.join(FILE_DIR, "..", "wire")


def render_file(file_name):
    root, sources = collect_sources(file_name)
    return render(sources, root)


def gen_code(file_name):
    gbl = {"__name__": "generated"}
    exec(render_file(file_name), gbl)
    return gbl


def describe_render():
    def declares_message_classes(expect):
        code = render_file(f"{WIRE_DIR}/tutorial.proto")

        expect("class Square(_GeneratedMessage):" in code) == True
        expect("    x: int" in code) == True
        expect("    squares: list[Square]" in code) == True
        expect('_SCHEMA.message("tutorial.Board")' in code) == True

    def nests_types_inside_their_message(expect):
        code = render_file(f"{WIRE_DIR}/addressbook.proto")

        expect("    class PhoneType(IntEnum):" in code) == True
        expect("        PHONE_TYPE_HOME = 2" in code) == True
        expect("    class PhoneNumber(_GeneratedMessage):" in code) == True
        expect("        type: Person.PhoneType | int" in code) == True
        expect("    phones: list[Person.PhoneNumber]" in code) == True

    def embeds_imported_sources(expect):
        code = render_file(f"{FILE_DIR}/imports/main.proto")

        expect("'common.proto':" in code) == True
        expect("class Tile(_GeneratedMessage):" in code) == True
        expect("    color: Message" in code) == True
        expect("class Color(" in code) == False

    def uses_the_runtime_import(expect):
        root, sources = collect_sources(f"{WIRE_DIR}/tutorial.proto")
        code = render(sources, root, runtime_import="vendored.protolite")

        expect("from vendored.protolite import Message, MessageDescriptor" in code) == True


def describe_generated_code():
    def encodes_square(expect):
        gen = gen_code(f"{WIRE_DIR}/tutorial.proto")
        Square = gen["Square"]

        square = Square(x=1, y=1, red=255, green=0, blue=0)

        expect(square.encode()) == bytes.fromhex("0801100118ff01")

    def decodes_into_generated_classes(expect):
        gen = gen_code(f"{WIRE_DIR}/tutorial.proto")
        Board, Square = gen["Board"], gen["Square"]

        board = Board(name="game")
        board.add("squares", x=1)
        board.selected.y = 2

        recovered = Board.decode(board.encode())

        expect(type(recovered)) == Board
        expect(type(recovered.squares[0])) == Square
        expect(type(recovered.selected)) == Square
        expect(recovered) == board

    def creates_generated_nested_messages(expect):
        gen = gen_code(f"{WIRE_DIR}/addressbook.proto")
        Person = gen["Person"]

        person = Person(name="Ann")
        phone = person.add("phones", number="555", type=Person.PhoneType.PHONE_TYPE_WORK)

        expect(isinstance(phone, Person.PhoneNumber)) == True
        recovered = Person.decode(person.encode())
        expect(recovered.phones[0].type) == Person.PhoneType.PHONE_TYPE_WORK

    def keeps_unknown_fields_through_generated_classes(expect):
        gen = gen_code(f"{WIRE_DIR}/tutorial.proto")
        Square = gen["Square"]

        recovered = Square.decode(bytes.fromhex("08016001"), keep_unknown=True)

        expect(recovered.x) == 1
        expect(recovered.encode()) == bytes.fromhex("08016001")

    def loads_imported_types(expect):
        gen = gen_code(f"{FILE_DIR}/imports/main.proto")
        Tile = gen["Tile"]

        tile = Tile(x=1)
        tile.color.red = 5

        expect(Tile.decode(tile.encode()).color.red) == 5
