"""Tests for decoding messages"""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

import os

import pytest
from pytest import approx

from protolite.errors import MalformedInputError
from protolite.schema import load_schema, load_schema_file
from protolite.wire import Message, UnknownField, WireType, decode, encode

FILE_DIR = os.path.dirname(os.path.realpath(__file__))

SQUARE_V2 = """
syntax = "proto3";
package tutorial;

message Square {
  int32 x = 1;
  int32 y = 2;
  int32 red = 3;
  int32 green = 4;
  int32 blue = 5;
  bool highlighted = 6;
  repeated string notes = 7;
}
"""


@pytest.fixture
def tutorial():
    return load_schema_file(f"{FILE_DIR}/tutorial.proto")


@pytest.fixture
def scalars():
    return load_schema_file(f"{FILE_DIR}/scalars.proto").message("Scalars")


def describe_decode():
    def decodes_square(expect, tutorial):
        square = decode(bytes.fromhex("0801100118ff01"), tutorial.message("Square"))

        expect(square.x) == 1
        expect(square.y) == 1
        expect(square.red) == 255
        expect(square.green) == 0
        expect(square.blue) == 0

    def decodes_empty_input_to_defaults(expect, tutorial):
        board = decode(b"", tutorial.message("Board"))

        expect(board.name) == ""
        expect(board.squares) == []
        expect(board.has("selected")) == False

    def round_trips_a_board(expect, tutorial):
        board = Message(tutorial.message("Board"), name="game")
        board.add("squares", x=1, y=2, red=255)
        board.add("squares", x=-3, blue=7)
        board.selected.x = 5

        recovered = decode(encode(board), tutorial.message("Board"))

        expect(recovered) == board
        expect([s.x for s in recovered.squares]) == [1, -3]
        expect(recovered.selected.x) == 5

    def accepts_fields_in_any_order(expect, tutorial):
        square = decode(bytes.fromhex("28031001"), tutorial.message("Square"))

        expect(square.to_dict()) == {"y": 1, "blue": 3}

    def keeps_the_last_value_of_repeated_singular_field(expect, tutorial):
        square = decode(bytes.fromhex("08010802"), tutorial.message("Square"))

        expect(square.x) == 2

    def decodes_negative_int32_from_ten_bytes(expect, tutorial):
        square = decode(b"\x08" + b"\xff" * 9 + b"\x01", tutorial.message("Square"))

        expect(square.x) == -1

    def accepts_bytearray_and_memoryview(expect, tutorial):
        data = bytes.fromhex("0801")

        expect(decode(bytearray(data), tutorial.message("Square")).x) == 1
        expect(decode(memoryview(data), tutorial.message("Square")).x) == 1

    def rejects_other_inputs(tutorial):
        with pytest.raises(TypeError):
            decode("0801", tutorial.message("Square"))


def describe_scalar_decoding():
    def round_trips_every_scalar_type(expect, scalars):
        values = {
            "i32": -(1 << 31),
            "i64": -(1 << 63),
            "u32": (1 << 32) - 1,
            "u64": (1 << 64) - 1,
            "s32": -5,
            "s64": (1 << 63) - 1,
            "flag": True,
            "f32": 7,
            "f64": 1 << 40,
            "sf32": -7,
            "sf64": -(1 << 40),
            "ratio": 1.5,
            "precise": -2.25,
            "text": "héllo",
            "blob": b"\x00\x01",
        }

        decoded = decode(encode(values, scalars), scalars)

        expect(decoded.to_dict()) == values

    def loses_float_precision(expect, scalars):
        decoded = decode(encode({"ratio": 0.1}, scalars), scalars)

        expect(decoded.ratio) == approx(0.1)

    def accepts_packed_data_for_unpacked_field(expect, scalars):
        decoded = decode(bytes.fromhex("8a01020102"), scalars)

        expect(decoded.deltas) == [-1, 1]

    def accepts_unpacked_data_for_packed_field(expect, scalars):
        decoded = decode(bytes.fromhex("800105800106"), scalars)

        expect(decoded.samples) == [5, 6]

    def concatenates_packed_runs(expect, scalars):
        decoded = decode(bytes.fromhex("820102010282010103"), scalars)

        expect(decoded.samples) == [1, 2, 3]


def describe_unknown_fields():
    def skips_fields_missing_from_the_schema(expect, tutorial):
        newer = load_schema(SQUARE_V2).message("tutorial.Square")
        data = encode(Message(newer, x=4, highlighted=True, notes=["a", "b"]))

        square = decode(data, tutorial.message("Square"))

        expect(square.to_dict()) == {"x": 4}
        expect(square.unknown_fields) == ()

    def keeps_unknown_fields_when_asked(expect, tutorial):
        newer = load_schema(SQUARE_V2).message("tutorial.Square")
        data = encode(Message(newer, x=4, highlighted=True))

        square = decode(data, tutorial.message("Square"), keep_unknown=True)

        expect(square.unknown_fields) == (UnknownField(6, WireType.VARINT, b"\x01"),)
        expect(encode(square)) == data

    def re_emits_unknown_fields_after_known_ones(expect, tutorial):
        newer = load_schema(SQUARE_V2).message("tutorial.Square")
        data = encode(Message(newer, x=4, notes=["n"]))

        square = decode(data, tutorial.message("Square"), keep_unknown=True)
        square.x = 9

        recovered = decode(encode(square), newer)
        expect(recovered.x) == 9
        expect(recovered.notes) == ["n"]

    def skips_unknown_fields_of_every_wire_type(expect, tutorial):
        data = bytes.fromhex("0801" "5001" "590400000000000000" "620161" "6d05000000" "1001")

        square = decode(data, tutorial.message("Square"))

        expect(square.to_dict()) == {"x": 1, "y": 1}


def describe_malformed_input():
    def fails_on_truncated_varint(tutorial):
        with pytest.raises(MalformedInputError):
            decode(b"\x08", tutorial.message("Square"))

    def fails_on_truncated_tag(tutorial):
        with pytest.raises(MalformedInputError):
            decode(b"\x80", tutorial.message("Square"))

    def fails_on_length_past_the_end(tutorial):
        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("0a0562"), tutorial.message("Board"))

    def fails_on_truncated_unknown_field(tutorial):
        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("6d0500"), tutorial.message("Square"))

    def fails_on_unrecognized_wire_type(expect, tutorial):
        with pytest.raises(MalformedInputError) as exc:
            decode(bytes.fromhex("0b"), tutorial.message("Square"))
        expect("wire type 3" in str(exc.value)) == True

        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("0e"), tutorial.message("Square"))

    def fails_on_field_number_zero(tutorial):
        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("0001"), tutorial.message("Square"))

    def fails_on_wire_type_mismatch(expect, tutorial):
        with pytest.raises(MalformedInputError) as exc:
            decode(bytes.fromhex("0a0100"), tutorial.message("Square"))
        expect("does not match" in str(exc.value)) == True

    def fails_on_invalid_utf8(tutorial):
        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("0a01ff"), tutorial.message("Board"))

    def fails_on_malformed_nested_message(tutorial):
        with pytest.raises(MalformedInputError):
            decode(bytes.fromhex("1a0108"), tutorial.message("Board"))

    def limits_nesting_depth(expect):
        node_type = load_schema_file(f"{FILE_DIR}/scalars.proto").message("Node")
        root = Message(node_type)
        node = root
        for _ in range(4):
            node = node.add("children")
        data = encode(root)

        expect(decode(data, node_type, max_depth=4)) == root
        with pytest.raises(MalformedInputError):
            decode(data, node_type, max_depth=3)
