"""
HL7 message parser.

Turns HL7 v2.x text into a ``Message`` tree. Parsing is tolerant:
malformed lines are dropped and odd field text produces whatever
structure can be recovered, so no input text makes ``parse`` raise.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, TextIO, Union

from .delimiters import (
    EMPTY_VALUE_TOKEN,
    HEADER_SEGMENT_ID,
    SEGMENT_TERMINATOR,
    Delimiters,
)
from .models import FieldValue, Message, Segment

logger = logging.getLogger(__name__)

# Nesting levels of a field value
LEVEL_FIELD = 0
LEVEL_COMPONENT = 1
LEVEL_SUBCOMPONENT = 2

_LINE_BREAKS = re.compile(r"[\r\n]+")


# HL7 Parser Class
class HL7Parser:
    """
    Parser for HL7 v2.x messages.

    The parser holds nothing but its delimiters, so one instance can be
    reused for any number of messages that share them.

    Usage:
        parser = HL7Parser.for_message(text)
        message = parser.parse(text)
        message.get_field("MSH.9")
    """

    def __init__(self, delimiters: Optional[Delimiters] = None):
        """
        Initialize the parser.

        Args:
            delimiters: Delimiters to parse with (defaults to | ^ ~ \\ &)
        """
        self.delimiters = delimiters or Delimiters()

    @classmethod
    def for_message(cls, message_text: str) -> "HL7Parser":
        """Create a parser using the delimiters declared in the message's MSH."""
        return cls(Delimiters.from_message(message_text))

    def parse(self, message_text: str) -> Message:
        """
        Parse text as a single HL7 message.

        Args:
            message_text: Raw HL7 text, segments separated by CR and/or LF

        Returns:
            Message containing every well-formed segment
        """
        message = Message()
        field_sep = self.delimiters.field

        for line_number, line in enumerate(_LINE_BREAKS.split(message_text or ""), 1):
            if not line:
                continue
            if len(line) < 5 or line[3] != field_sep:
                logger.debug("Dropping malformed line %d: %.20r", line_number, line)
                continue
            message.put_segment(self._parse_segment(line))

        return message

    def parse_stream(self, stream: TextIO) -> Message:
        """Read all text from a stream and parse it as a single message."""
        # Imported here: io_handler builds on this module
        from .io_handler import read_hl7_stream

        return self.parse(read_hl7_stream(stream).strip())

    def parse_file(self, filepath: Union[str, Path]) -> Message:
        """Read a file and parse its whole content as a single message."""
        from .io_handler import read_hl7_file

        return self.parse(read_hl7_file(filepath).strip())

    def _parse_segment(self, line: str) -> Segment:
        """
        Parse one segment line.

        MSH-1 is the field separator itself and MSH-2 holds the encoding
        characters. Both are stored verbatim rather than being split, as
        MSH-2 would otherwise be parsed against itself.
        """
        segment_id = line[:3]
        tokens = line[4:].split(self.delimiters.field)

        fields = []
        if segment_id == HEADER_SEGMENT_ID:
            fields.append([FieldValue(self.delimiters.field)])
            fields.append([FieldValue(tokens[0])])
            tokens = tokens[1:]

        for token in tokens:
            fields.append(self._parse_field_text(token))

        return Segment(segment_id, fields)

    def _parse_field_text(self, text: str) -> Optional[List[FieldValue]]:
        """Split a field into its repetitions; an empty field has none."""
        if not text:
            return None
        return [
            self._parse_value(repetition, LEVEL_FIELD)
            for repetition in text.split(self.delimiters.repetition)
        ]

    def _parse_value(self, text: str, level: int) -> FieldValue:
        """
        Recursively parse a repetition, component or subcomponent.

        Args:
            text: Raw (still escaped) text at this level
            level: LEVEL_FIELD, LEVEL_COMPONENT or LEVEL_SUBCOMPONENT

        Returns:
            Scalar or composite FieldValue
        """
        if not text:
            return FieldValue()
        if text == EMPTY_VALUE_TOKEN:
            return FieldValue("")
        if level == LEVEL_SUBCOMPONENT:
            # Nothing below subcomponents, delimiters left here are literal
            return FieldValue(self.delimiters.unescape(text))

        separator = (
            self.delimiters.component
            if level == LEVEL_FIELD
            else self.delimiters.subcomponent
        )
        parts = text.split(separator)

        if len(parts) == 1:
            # Some senders use subcomponent separators in a field with no
            # components at all; treat that as a single component.
            if level == LEVEL_FIELD and self.delimiters.subcomponent in text:
                return FieldValue(children=[self._parse_value(text, LEVEL_COMPONENT)])
            return FieldValue(self.delimiters.unescape(text))

        return FieldValue(
            children=[self._parse_value(part, level + 1) for part in parts]
        )


# HL7 Message Splitter
def split_hl7_messages(content: str) -> List[str]:
    """
    Split content holding a batch of HL7 messages.

    Each message starts at an MSH line. Blank lines are ignored and
    lines before the first MSH are discarded.

    Args:
        content: Text potentially containing multiple messages

    Returns:
        List of individual message texts, segments joined with CR
    """
    messages = []
    current_message_lines = []

    for line in _LINE_BREAKS.split(content or ""):
        if not line.strip():
            continue

        if line.startswith(HEADER_SEGMENT_ID):
            if current_message_lines:
                messages.append(SEGMENT_TERMINATOR.join(current_message_lines))
            current_message_lines = [line]
        elif current_message_lines:
            current_message_lines.append(line)

    if current_message_lines:
        messages.append(SEGMENT_TERMINATOR.join(current_message_lines))

    return messages


# Convenience function to parse an HL7 message
def parse_hl7_message(
    content: str, delimiters: Optional[Delimiters] = None
) -> Message:
    """
    Parse a single HL7 message.

    Args:
        content: Raw HL7 message text
        delimiters: Delimiters to use; derived from the MSH if None

    Returns:
        Parsed Message
    """
    if delimiters is None:
        parser = HL7Parser.for_message(content)
    else:
        parser = HL7Parser(delimiters)
    return parser.parse(content)
