"""
Custom exceptions for HL7 codec operations.

Malformed message text never raises; it degrades to partial results.
These exceptions cover the remaining failure modes: reading the source
text, building an invalid delimiter set, and addressing a field with a
path spec that cannot be parsed.
"""


# Base Exception
class HL7Error(Exception):
    """Base exception for all HL7 codec errors."""

    def __init__(self, message: str, segment: str = None):
        self.segment = segment

        full_message = message
        if segment:
            full_message = f"{message} [segment={segment}]"

        super().__init__(full_message)


# Invalid Delimiters Error
class InvalidDelimitersError(HL7Error, ValueError):
    """Raised when an explicit delimiter set is unusable."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid delimiters: {reason}", segment="MSH")


# Invalid Path Spec Error
class InvalidPathSpecError(HL7Error, ValueError):
    """Raised when a field path spec such as 'PID.3(2).1' cannot be parsed."""

    def __init__(self, spec: str, reason: str):
        self.spec = spec
        self.reason = reason
        super().__init__(f"Invalid path spec '{spec}': {reason}")


# File Read Error
class FileReadError(HL7Error):
    """Raised when the HL7 source text cannot be read."""

    def __init__(self, filepath: str, reason: str):
        self.filepath = filepath
        self.reason = reason
        super().__init__(f"Cannot read file '{filepath}': {reason}")
