"""
File I/O operations for HL7 message processing.

Handles reading HL7 text from disk or streams with encoding fallback,
and writing encoded messages back out. This is the only place where a
hard failure is reported: a file that cannot be read raises
``FileReadError`` instead of looking like an empty message.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, TextIO, Union

from .delimiters import HEADER_SEGMENT_ID, SEGMENT_TERMINATOR, Delimiters
from .encoder import HL7Encoder, declared_delimiters
from .exceptions import FileReadError
from .models import Message
from .parser import parse_hl7_message, split_hl7_messages

logger = logging.getLogger(__name__)

# Common encodings used in HL7 files; utf-8-sig also reads plain UTF-8
# and drops a leading byte order mark that would hide the MSH segment ID
ENCODINGS_TO_TRY = ["utf-8-sig", "latin-1", "cp1252", "ascii"]


def _check_file(filepath: Path) -> None:
    if not filepath.exists():
        raise FileReadError(str(filepath), "file does not exist")

    if not filepath.is_file():
        raise FileReadError(str(filepath), "path is not a file")


# Read HL7 File
def read_hl7_file(filepath: Union[str, Path]) -> str:
    """
    Read an HL7 file from disk.

    Attempts multiple encodings to handle various file sources. Line
    endings are kept as they are, since CR is the segment terminator.

    Args:
        filepath: Path to the HL7 file

    Returns:
        File content as string

    Raises:
        FileReadError: If file cannot be read
    """
    filepath = Path(filepath)
    _check_file(filepath)

    last_error = None
    for encoding in ENCODINGS_TO_TRY:
        try:
            with open(filepath, "r", encoding=encoding, newline="") as f:
                content = f.read()
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except OSError as e:
            raise FileReadError(str(filepath), str(e))

        logger.debug("Read %s as %s", filepath, encoding)
        return content

    raise FileReadError(
        str(filepath),
        f"could not decode file with any supported encoding: {last_error}",
    )


# Read HL7 Stream
def read_hl7_stream(stream: TextIO) -> str:
    """
    Read all remaining text from an open text stream.

    Raises:
        FileReadError: If the stream cannot be read or decoded
    """
    name = getattr(stream, "name", "<stream>")
    try:
        return stream.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(str(name), str(e))


# Parse HL7 File
def parse_hl7_file(filepath: Union[str, Path]) -> List[Message]:
    """
    Read and parse an HL7 file holding one or more messages.

    Each message is parsed with the delimiters declared in its own MSH.

    Args:
        filepath: Path to the HL7 file

    Returns:
        List of messages, in file order
    """
    content = read_hl7_file(filepath)
    return [parse_hl7_message(text) for text in split_hl7_messages(content)]


# Stream Parse HL7 File
def stream_hl7_file(filepath: Union[str, Path]) -> Iterator[Message]:
    """
    Stream parse an HL7 file, yielding messages one at a time.

    Useful for large batch files where holding every parsed message in
    memory at once is not desirable. Lines may end in CR, LF or CRLF.

    Args:
        filepath: Path to the HL7 file

    Yields:
        Message for each MSH-started block of lines
    """
    filepath = Path(filepath)
    _check_file(filepath)

    # Decode errors only surface while reading, so check the whole file first
    for encoding in ENCODINGS_TO_TRY:
        try:
            with open(filepath, "r", encoding=encoding) as f:
                for _ in f:
                    pass
            break
        except UnicodeDecodeError:
            continue
        except OSError as e:
            raise FileReadError(str(filepath), str(e))
    else:
        raise FileReadError(
            str(filepath),
            "could not decode file with any supported encoding",
        )

    logger.debug("Streaming %s as %s", filepath, encoding)

    current_message_lines = []
    try:
        # Universal newlines mode splits on CR as well as LF
        with open(filepath, "r", encoding=encoding) as f:
            for line in f:
                stripped = line.rstrip("\r\n")
                if not stripped.strip():
                    continue

                if stripped.startswith(HEADER_SEGMENT_ID):
                    if current_message_lines:
                        yield parse_hl7_message(
                            SEGMENT_TERMINATOR.join(current_message_lines)
                        )
                    current_message_lines = [stripped]
                elif current_message_lines:
                    current_message_lines.append(stripped)
    except OSError as e:
        raise FileReadError(str(filepath), str(e))

    if current_message_lines:
        yield parse_hl7_message(SEGMENT_TERMINATOR.join(current_message_lines))


# Write HL7 Output
def write_hl7_file(
    messages: Iterable[Message],
    filepath: Union[str, Path],
    delimiters: Optional[Delimiters] = None,
) -> int:
    """
    Encode messages and write them to a file, one after another.

    Args:
        messages: Messages to write
        filepath: Output file path
        delimiters: Delimiters to encode with; if None each message is
            written with the delimiters its own MSH declares

    Returns:
        Number of messages written
    """
    count = 0

    # newline="" keeps the CR segment terminators as they are
    with open(filepath, "w", encoding="utf-8", newline="") as f:
        for message in messages:
            encoder = HL7Encoder(delimiters or declared_delimiters(message))
            f.write(encoder.encode(message))
            count += 1

    logger.debug("Wrote %d message(s) to %s", count, filepath)
    return count
