"""Tests for CLI interface."""

import json
import os

from click.testing import CliRunner

from protolite.schema.cli import cli

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
TUTORIAL = os.path.join(FILE_DIR, "..", "wire", "tutorial.proto")
ADDRESSBOOK = os.path.join(FILE_DIR, "..", "wire", "addressbook.proto")


def describe_gen_command():
    def generates_python_code(expect, tmp_path):
        output_file = tmp_path / "tutorial_pb.py"
        runner = CliRunner()

        result = runner.invoke(cli, ["gen", "-i", TUTORIAL, "-o", str(output_file)])

        expect(result.exit_code) == 0
        content = output_file.read_text()
        expect("class Square(_GeneratedMessage):" in content) == True
        expect("from protolite import Message" in content) == True

    def follows_include_paths(expect, tmp_path):
        schema = tmp_path / "tile.proto"
        schema.write_text('import "common.proto";\nmessage Tile { common.Color color = 1; }\n')
        runner = CliRunner()

        result = runner.invoke(
            cli,
            [
                "gen",
                "-i",
                str(schema),
                "-o",
                str(tmp_path / "tile_pb.py"),
                "-I",
                f"{FILE_DIR}/imports",
            ],
        )

        expect(result.exit_code) == 0
        expect("'common.proto'" in (tmp_path / "tile_pb.py").read_text()) == True

    def fails_on_invalid_schema(expect, tmp_path):
        schema = tmp_path / "broken.proto"
        schema.write_text("message Broken { int32 x = ; }")
        runner = CliRunner()

        result = runner.invoke(cli, ["gen", "-i", str(schema), "-o", str(tmp_path / "out.py")])

        expect(result.exit_code) == 1
        expect("Error:" in result.output) == True
        expect("syntax error" in result.output) == True


def describe_info_command():
    def lists_messages_and_fields(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", ADDRESSBOOK])

        expect(result.exit_code) == 0
        expect("tutorial.Person" in result.output) == True
        expect("tutorial.Person.PhoneNumber" in result.output) == True
        expect("PHONE_TYPE_MOBILE" in result.output) == True
        expect("repeated" in result.output) == True

    def outputs_syntax_tree_as_json(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["info", "-i", TUTORIAL, "--json"])

        expect(result.exit_code) == 0
        data = json.loads(result.output)
        expect(data["package"]) == "tutorial"
        expect([m["name"] for m in data["messages"]]) == ["Square", "Board"]


def describe_check_command():
    def reports_no_issues_for_added_fields(expect):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["check", f"{FILE_DIR}/board_v1.proto", f"{FILE_DIR}/board_v2.proto"]
        )

        expect(result.exit_code) == 0
        expect("No compatibility issues" in result.output) == True

    def fails_on_breaking_changes(expect):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["check", f"{FILE_DIR}/board_v1.proto", f"{FILE_DIR}/board_renumbered.proto"]
        )

        expect(result.exit_code) == 1
        expect("BREAKING Square.x" in result.output) == True

    def outputs_issues_as_json(expect):
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["check", f"{FILE_DIR}/board_v1.proto", f"{FILE_DIR}/board_renumbered.proto", "--json"],
        )

        issues = json.loads(result.output)
        expect(issues[0]["kind"]) == "renumbered"
        expect(issues[0]["field"]) == "x"


def describe_encode_and_decode_commands():
    def encodes_json_to_binary(expect, tmp_path):
        data_file = tmp_path / "square.json"
        data_file.write_text(json.dumps({"x": 1, "y": 1, "red": 255, "green": 0}))
        output_file = tmp_path / "square.bin"
        runner = CliRunner()

        result = runner.invoke(
            cli,
            [
                "encode",
                "-i",
                TUTORIAL,
                "-m",
                "Square",
                "-d",
                str(data_file),
                "-o",
                str(output_file),
            ],
        )

        expect(result.exit_code) == 0
        expect(output_file.read_bytes()) == bytes.fromhex("0801100118ff01")

    def reads_json_from_stdin(expect, tmp_path):
        output_file = tmp_path / "board.bin"
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["encode", "-i", TUTORIAL, "-m", "tutorial.Board", "-o", str(output_file)],
            input='{"name": "b", "squares": [{"x": 1}]}',
        )

        expect(result.exit_code) == 0
        expect(output_file.read_bytes()) == bytes.fromhex("0a016212020801")

    def decodes_binary_to_json(expect, tmp_path):
        data_file = tmp_path / "person.bin"
        data_file.write_bytes(bytes.fromhex("0a03416e6e" "22070a033535351002"))
        runner = CliRunner()

        result = runner.invoke(
            cli, ["decode", "-i", ADDRESSBOOK, "-m", "Person", "-d", str(data_file)]
        )

        expect(result.exit_code) == 0
        expect(json.loads(result.output)) == {
            "name": "Ann",
            "phones": [{"number": "555", "type": "PHONE_TYPE_HOME"}],
        }

    def reports_unknown_fields_when_asked(expect, tmp_path):
        data_file = tmp_path / "square.bin"
        data_file.write_bytes(bytes.fromhex("08016001"))
        runner = CliRunner()

        result = runner.invoke(
            cli, ["decode", "-i", TUTORIAL, "-m", "Square", "-d", str(data_file), "--keep-unknown"]
        )

        expect(result.exit_code) == 0
        expect(json.loads(result.output)["_unknown"]) == [
            {"number": 12, "wire_type": 0, "data": "01"}
        ]

    def fails_on_malformed_input(expect, tmp_path):
        data_file = tmp_path / "square.bin"
        data_file.write_bytes(b"\x08")
        runner = CliRunner()

        result = runner.invoke(
            cli, ["decode", "-i", TUTORIAL, "-m", "Square", "-d", str(data_file)]
        )

        expect(result.exit_code) == 1
        expect("Truncated varint" in result.output) == True

    def fails_on_invalid_values(expect, tmp_path):
        data_file = tmp_path / "square.json"
        data_file.write_text(json.dumps({"x": "one"}))
        runner = CliRunner()

        result = runner.invoke(
            cli,
            [
                "encode",
                "-i",
                TUTORIAL,
                "-m",
                "Square",
                "-d",
                str(data_file),
                "-o",
                str(tmp_path / "square.bin"),
            ],
        )

        expect(result.exit_code) == 1
        expect("Error:" in result.output) == True

    def fails_on_unknown_message_type(expect):
        runner = CliRunner()
        result = runner.invoke(cli, ["decode", "-i", TUTORIAL, "-m", "Circle"], input=b"")

        expect(result.exit_code) == 1
        expect("Unknown message type: Circle" in result.output) == True

    def fails_on_invalid_json(expect, tmp_path):
        runner = CliRunner()

        result = runner.invoke(
            cli,
            ["encode", "-i", TUTORIAL, "-m", "Square", "-o", str(tmp_path / "square.bin")],
            input="{not json",
        )

        expect(result.exit_code) == 1
        expect("Error:" in result.output) == True
