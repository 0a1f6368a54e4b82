#!/usr/bin/env python3
"""
HL7 v2.x Codec - Command Line Interface

Parses HL7 messages from a file, optionally queries or updates fields
by path spec, and prints the result as a field dump, re-encoded HL7
or JSON.

Usage:
    python hl7_tool.py input.hl7
    python hl7_tool.py input.hl7 --get MSH.9 --get PID.5.1
    python hl7_tool.py input.hl7 --set PID.5.1=DOE --encode -o out.hl7
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Iterator, List, Tuple

from hl7codec import __version__
from hl7codec.encoder import HL7Encoder, declared_delimiters
from hl7codec.exceptions import FileReadError, HL7Error
from hl7codec.io_handler import parse_hl7_file, stream_hl7_file, write_hl7_file
from hl7codec.models import Message


def parse_assignment(text: str) -> Tuple[str, str]:
    """Split a 'SPEC=VALUE' argument."""
    spec, sep, value = text.partition("=")
    if not sep or not spec:
        raise argparse.ArgumentTypeError(f"expected SPEC=VALUE, got '{text}'")
    return spec, value


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hl7-tool",
        description="Parse, query, edit and re-encode HL7 v2.x messages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s message.hl7
      Print every field value of every message in the file

  %(prog)s message.hl7 --get MSH.9 --get "PID.3(2).1"
      Print the addressed values, one per line

  %(prog)s message.hl7 --set PID.5.1=DOE --encode -o edited.hl7
      Update a field and write the re-encoded message to edited.hl7
""",
    )

    parser.add_argument("input_file", type=Path, help="Path to the HL7 file to parse")

    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        dest="output_file",
        help="Output file path (default: stdout)",
    )

    parser.add_argument(
        "-g",
        "--get",
        action="append",
        default=[],
        metavar="SPEC",
        help="Print the value at a path spec such as PID.5.1 (repeatable)",
    )

    parser.add_argument(
        "-s",
        "--set",
        action="append",
        default=[],
        type=parse_assignment,
        metavar="SPEC=VALUE",
        help="Set the value at a path spec before output (repeatable)",
    )

    output_format = parser.add_mutually_exclusive_group()
    output_format.add_argument(
        "-e",
        "--encode",
        action="store_true",
        help="Output re-encoded HL7 text",
    )
    output_format.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output the parsed structure as JSON",
    )

    parser.add_argument(
        "-c",
        "--compact",
        action="store_true",
        help="Output compact JSON (no indentation)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging on stderr",
    )

    parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream parse large files (memory efficient)",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser


def format_message(message: Message, parsed_args: argparse.Namespace) -> str:
    """
    Render one message according to the output options.

    Args:
        message: Parsed (and possibly updated) message
        parsed_args: Parsed command line arguments

    Returns:
        Text to output for this message
    """
    if parsed_args.get:
        return "\n".join(message.get_field(spec) for spec in parsed_args.get)

    if parsed_args.encode:
        # CR terminators are shown as line breaks
        encoder = HL7Encoder(declared_delimiters(message))
        return encoder.encode(message).replace("\r", "\n").rstrip("\n")

    if parsed_args.json:
        indent = None if parsed_args.compact else 2
        return json.dumps(message.to_dict(), indent=indent)

    return str(message).rstrip("\n")


def render_messages(messages: Iterable[Message], parsed_args: argparse.Namespace) -> List[str]:
    """Apply --set updates to each message and render it."""
    return [
        format_message(message, parsed_args)
        for message in apply_updates(messages, parsed_args.set)
    ]


def apply_updates(
    messages: Iterable[Message], assignments: List[Tuple[str, str]]
) -> Iterator[Message]:
    """Yield each message after setting every SPEC=VALUE assignment on it."""
    for message in messages:
        for spec, value in assignments:
            message.set_field(spec, value)
        yield message


def main(args: List[str] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if parsed_args.stream:
            messages = stream_hl7_file(parsed_args.input_file)
        else:
            messages = parse_hl7_file(parsed_args.input_file)

        if parsed_args.encode and parsed_args.output_file:
            # An HL7 file: CR terminators and each message's own delimiters
            count = write_hl7_file(
                apply_updates(messages, parsed_args.set), parsed_args.output_file
            )
        else:
            rendered = render_messages(messages, parsed_args)
            count = len(rendered)

            separator = "\n" if parsed_args.get or parsed_args.encode else "\n\n"
            output = separator.join(rendered)

            if count and parsed_args.output_file:
                with open(parsed_args.output_file, "w", encoding="utf-8") as f:
                    f.write(output)
                    f.write("\n")
            elif count:
                print(output)

        if not count:
            print("No HL7 messages found in file", file=sys.stderr)
            return 1

        if parsed_args.verbose and parsed_args.output_file:
            print(f"Output written to: {parsed_args.output_file}", file=sys.stderr)

        if parsed_args.verbose:
            msg = "message" if count == 1 else "messages"
            print(f"Successfully processed {count} {msg}", file=sys.stderr)

        return 0

    except FileReadError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    except HL7Error as e:
        print(f"HL7 error: {e}", file=sys.stderr)
        return 2

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if parsed_args.verbose:
            import traceback

            traceback.print_exc()
        return 3


if __name__ == "__main__":
    sys.exit(main())
