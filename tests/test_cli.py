"""Tests for the hl7-tool command line interface."""

import json
import os
import tempfile

import pytest

from hl7_tool import main, parse_assignment

SAMPLE_FILE_CONTENT = (
    "MSH|^~\\&|SND|FAC||RCV|20250502||ADT^A01|MSG001|P|2.5\r"
    "PID|1||P001||Doe^John\r"
    "MSH|^~\\&|SND|FAC||RCV|20250502||ADT^A08|MSG002|P|2.5\r"
    "PID|1||P002||Roe^Jane\r"
)


@pytest.fixture
def sample_file():
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".hl7", delete=False, newline=""
    ) as f:
        f.write(SAMPLE_FILE_CONTENT)
        temp_path = f.name
    yield temp_path
    os.unlink(temp_path)


# Tests for output modes
class TestCLIOutput:
    """Tests for the different ways messages are printed."""

    def test_dump(self, sample_file, capsys):
        """Test the default field dump."""
        assert main([sample_file]) == 0

        out = capsys.readouterr().out
        assert "MSH.3: SND" in out
        assert "PID.3: P001" in out
        assert "  PID.5.2: Jane" in out
        # Messages are separated by a blank line
        assert "\n\nMSH.1: |" in out

    def test_get(self, sample_file, capsys):
        """Test printing addressed values only."""
        assert main([sample_file, "--get", "MSH.9.2", "-g", "PID.5.1"]) == 0

        assert capsys.readouterr().out == "A01\nDoe\nA08\nRoe\n"

    def test_set_and_encode(self, sample_file, capsys):
        """Test updating a value and printing the re-encoded text."""
        assert main([sample_file, "--set", "PID.5.1=ANON", "--encode"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[1] == "PID|1||P001||ANON^John"
        assert lines[3] == "PID|1||P002||ANON^Jane"

    def test_json(self, sample_file, capsys):
        """Test JSON output of the parsed structure."""
        assert main([sample_file, "--json"]) == 0

        out = capsys.readouterr().out
        first = json.loads(out.split("\n\n")[0])
        assert first["segments"][1]["segment_id"] == "PID"
        assert first["segments"][1]["fields"][4] == [["Doe", "John"]]

    def test_compact_json(self, sample_file, capsys):
        """Test that --compact drops the indentation."""
        assert main([sample_file, "--json", "--compact"]) == 0

        lines = capsys.readouterr().out.strip().split("\n\n")
        assert len(lines) == 2
        assert "\n" not in lines[0]
        assert json.loads(lines[1])["segments"][0]["segment_id"] == "MSH"

    def test_stream(self, sample_file, capsys):
        """Test that streaming gives the same output as a full read."""
        assert main([sample_file, "--get", "MSH.10"]) == 0
        full = capsys.readouterr().out

        assert main([sample_file, "--get", "MSH.10", "--stream"]) == 0

        assert capsys.readouterr().out == full

    def test_output_file(self, sample_file, capsys):
        """Test writing the output to a file."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".txt", delete=False) as f:
            output_path = f.name

        try:
            assert main([sample_file, "-g", "PID.3", "-o", output_path]) == 0

            with open(output_path, "r", encoding="utf-8") as f:
                assert f.read() == "P001\nP002\n"
            assert capsys.readouterr().out == ""
        finally:
            os.unlink(output_path)

    def test_encode_to_file_writes_hl7(self, sample_file, capsys):
        """Test that --encode -o writes CR-terminated HL7, not display text."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".hl7", delete=False) as f:
            output_path = f.name

        try:
            assert main([sample_file, "--set", "PID.5.1=ANON", "-e", "-o", output_path]) == 0

            with open(output_path, "rb") as f:
                content = f.read()

            expected = SAMPLE_FILE_CONTENT.replace("Doe^", "ANON^").replace("Roe^", "ANON^")
            assert content == expected.encode("utf-8")
            assert capsys.readouterr().out == ""
        finally:
            os.unlink(output_path)

    def test_encode_keeps_message_delimiters(self, capsys):
        """Test that re-encoding uses the delimiters the message declares."""
        content = "MSH#!*$@#SND#FAC\rPID#1##P123!!!HOSP*ALT\r"
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".hl7", delete=False, newline=""
        ) as f:
            f.write(content)
            input_path = f.name
        with tempfile.NamedTemporaryFile(mode="w", suffix=".hl7", delete=False) as f:
            output_path = f.name

        try:
            assert main([input_path, "-s", "PID.3.1=NEW", "--encode", "-o", output_path]) == 0

            with open(output_path, "rb") as f:
                assert f.read() == b"MSH#!*$@#SND#FAC\rPID#1##NEW!!!HOSP*ALT\r"

            assert main([input_path, "--encode"]) == 0
            assert capsys.readouterr().out == "MSH#!*$@#SND#FAC\nPID#1##P123!!!HOSP*ALT\n"
        finally:
            os.unlink(input_path)
            os.unlink(output_path)


# Tests for error handling
class TestCLIErrors:
    """Tests for exit codes and argument errors."""

    def test_missing_file(self, capsys):
        """Test that an unreadable file exits with 1."""
        assert main(["nonexistent_file.hl7"]) == 1

        assert "does not exist" in capsys.readouterr().err

    def test_missing_file_streaming(self, capsys):
        """Test that streaming reports unreadable files the same way."""
        assert main(["nonexistent_file.hl7", "--stream"]) == 1

    def test_no_messages(self, capsys):
        """Test that a file with no MSH exits with 1."""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".hl7", delete=False) as f:
            f.write("PID|1||P001\r")
            temp_path = f.name

        try:
            assert main([temp_path]) == 1
            assert "No HL7 messages found" in capsys.readouterr().err
        finally:
            os.unlink(temp_path)

    def test_bad_assignment(self, sample_file):
        """Test that --set without '=' is an argument error."""
        with pytest.raises(SystemExit) as exc:
            main([sample_file, "--set", "PID.5.1"])

        assert exc.value.code == 2

    def test_encode_and_json_exclusive(self, sample_file):
        """Test that only one output format can be chosen."""
        with pytest.raises(SystemExit):
            main([sample_file, "--encode", "--json"])

    def test_parse_assignment(self):
        """Test splitting SPEC=VALUE, keeping '=' inside the value."""
        assert parse_assignment("PID.5.1=DOE") == ("PID.5.1", "DOE")
        assert parse_assignment("NTE.3=a=b") == ("NTE.3", "a=b")
        assert parse_assignment("PID.5.1=") == ("PID.5.1", "")
