"""
HL7 message encoder.

The mirror image of the parser: walks a ``Message`` or ``Segment`` and
writes HL7 v2.x text, escaping scalar values on the way out.
"""

from typing import List, Optional

from .delimiters import (
    EMPTY_VALUE_TOKEN,
    HEADER_SEGMENT_ID,
    SEGMENT_TERMINATOR,
    Delimiters,
)
from .models import FieldValue, Message, Segment


# HL7 Encoder Class
class HL7Encoder:
    """
    Encoder for HL7 v2.x messages.

    Segments are written in the message's insertion order, each one
    terminated by a carriage return. For the text to be a valid message
    the segments must have been added in the right order.

    Usage:
        encoder = HL7Encoder()
        text = encoder.encode(message)
    """

    def __init__(self, delimiters: Optional[Delimiters] = None):
        self.delimiters = delimiters or Delimiters()

    def encode(self, message: Message) -> str:
        """Encode a whole message."""
        return "".join(self.encode_segment(segment) for segment in message.segments())

    def encode_segment(self, segment: Segment) -> str:
        """
        Encode a single segment, including its trailing carriage return.

        For MSH the field separator and encoding characters always come
        from this encoder's delimiters, whatever MSH-1 and MSH-2 hold.
        """
        field_sep = self.delimiters.field
        parts = [segment.segment_id]

        first_field = 0
        if segment.segment_id == HEADER_SEGMENT_ID:
            parts.append(field_sep + self.delimiters.encoding_characters)
            first_field = 2

        for repetitions in segment.fields[first_field:]:
            parts.append(field_sep)
            if repetitions is not None:
                parts.append(self._encode_values(repetitions, 0))

        parts.append(SEGMENT_TERMINATOR)
        return "".join(parts)

    def _encode_values(self, values: List[FieldValue], level: int) -> str:
        """
        Join sibling values with the separator for this level.

        Level 0 joins repetitions, 1 components and 2 subcomponents.
        Anything nested deeper than that cannot be written and is
        dropped.
        """
        separators = self.delimiters.field_value_separators
        if level >= len(separators):
            return ""

        encoded = []
        for value in values:
            if not value.is_scalar:
                encoded.append(self._encode_values(value.children, level + 1))
            elif value.value is None:
                encoded.append("")
            elif value.value == "":
                encoded.append(EMPTY_VALUE_TOKEN)
            else:
                encoded.append(self.delimiters.escape(value.value))
        return separators[level].join(encoded)


# Delimiters a message declares for itself
def declared_delimiters(message: Message) -> Delimiters:
    """
    Return the delimiters held in a message's MSH-1 and MSH-2.

    A parsed message keeps the delimiters it was written with there, so
    encoding with them reproduces the source text. Messages without a
    usable MSH get the defaults.
    """
    msh = message.get_segment(HEADER_SEGMENT_ID)
    if msh is None:
        return Delimiters()
    header = HEADER_SEGMENT_ID + msh.get_field_value(1) + msh.get_field_value(2)
    return Delimiters.from_header(header)


# Convenience function to encode an HL7 message
def encode_hl7_message(message: Message, delimiters: Optional[Delimiters] = None) -> str:
    """
    Encode a message to HL7 text.

    Args:
        message: Message to encode
        delimiters: Delimiters to write with (defaults to | ^ ~ \\ &)

    Returns:
        HL7 text, one CR-terminated line per segment
    """
    return HL7Encoder(delimiters).encode(message)
