"""
HL7 v2.x codec

Parses HL7 v2.x messages into an editable tree of segments, fields,
repetitions, components and subcomponents, and encodes the tree back
into HL7 text.
"""

from .delimiters import Delimiters
from .encoder import HL7Encoder, declared_delimiters, encode_hl7_message
from .exceptions import FileReadError, HL7Error, InvalidDelimitersError, InvalidPathSpecError
from .models import FieldValue, Message, Segment
from .parser import HL7Parser, parse_hl7_message, split_hl7_messages
from .path_spec import PathSpec, parse_path_spec

__version__ = "1.0.0"
__author__ = "Healthcare Integration Team"

__all__ = [
    "Delimiters",
    "FieldValue",
    "FileReadError",
    "HL7Encoder",
    "HL7Error",
    "HL7Parser",
    "InvalidDelimitersError",
    "InvalidPathSpecError",
    "Message",
    "PathSpec",
    "Segment",
    "declared_delimiters",
    "encode_hl7_message",
    "parse_hl7_message",
    "parse_path_spec",
    "split_hl7_messages",
]
