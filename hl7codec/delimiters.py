"""
HL7 delimiter configuration and escape handling.

Every HL7 v2.x message declares its own delimiters in the MSH header:
MSH-1 is the field separator and MSH-2 holds the component, repetition,
escape and subcomponent characters, in that order. A ``Delimiters``
instance captures one such set and knows how to escape and unescape
scalar text against it.
"""

import logging
import re
import dataclasses
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .exceptions import InvalidDelimitersError

logger = logging.getLogger(__name__)

# Default HL7 delimiters (can be overridden from MSH)
DEFAULT_FIELD_SEPARATOR = "|"
DEFAULT_COMPONENT_SEPARATOR = "^"
DEFAULT_REPETITION_SEPARATOR = "~"
DEFAULT_ESCAPE_CHARACTER = "\\"
DEFAULT_SUBCOMPONENT_SEPARATOR = "&"

HEADER_SEGMENT_ID = "MSH"
SEGMENT_TERMINATOR = "\r"

# Token for a field that is present but explicitly empty
EMPTY_VALUE_TOKEN = '""'


# Delimiters Dataclass
@dataclass(frozen=True)
class Delimiters:
    """
    The five reserved characters of an HL7 message.

    Instances are immutable and can be shared between parsers and
    encoders working on different threads.

    Usage:
        delimiters = Delimiters.from_header("MSH|^~\\&|SENDER|...")
        delimiters.escape("It's ~20 lbs & 3 oz")   # "It's \\R\\20 lbs \\T\\ 3 oz"
    """

    field: str = DEFAULT_FIELD_SEPARATOR
    component: str = DEFAULT_COMPONENT_SEPARATOR
    subcomponent: str = DEFAULT_SUBCOMPONENT_SEPARATOR
    repetition: str = DEFAULT_REPETITION_SEPARATOR
    escape_char: str = DEFAULT_ESCAPE_CHARACTER

    _escape_pattern: re.Pattern = dataclasses.field(init=False, repr=False, compare=False)
    _unescape_pattern: re.Pattern = dataclasses.field(init=False, repr=False, compare=False)
    _escape_map: Dict[str, str] = dataclasses.field(init=False, repr=False, compare=False)
    _unescape_map: Dict[str, str] = dataclasses.field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._validate()

        table = self.escape_table
        escape_map = dict(table)
        unescape_map = {sequence: char for char, sequence in table}

        # Longest sequences first so the alternation never stops at a prefix
        sequences = sorted(unescape_map, key=len, reverse=True)

        # Frozen dataclass: derived state has to go through object.__setattr__
        object.__setattr__(self, "_escape_map", escape_map)
        object.__setattr__(self, "_unescape_map", unescape_map)
        object.__setattr__(
            self,
            "_escape_pattern",
            re.compile("|".join(re.escape(char) for char, _ in table)),
        )
        object.__setattr__(
            self,
            "_unescape_pattern",
            re.compile("|".join(re.escape(sequence) for sequence in sequences)),
        )

    def _validate(self) -> None:
        """
        Validate that the delimiters are usable.

        Each delimiter must be a single non-alphanumeric, non-whitespace
        character, and no character may serve two purposes.

        Raises:
            InvalidDelimitersError: If any check fails
        """
        delimiters = [
            ("field", self.field),
            ("component", self.component),
            ("repetition", self.repetition),
            ("escape", self.escape_char),
            ("subcomponent", self.subcomponent),
        ]

        for name, char in delimiters:
            if not isinstance(char, str) or len(char) != 1:
                raise InvalidDelimitersError(
                    f"{name} delimiter {char!r} must be a single character"
                )
            if char.isalnum() or char.isspace():
                raise InvalidDelimitersError(
                    f"{name} delimiter {char!r} must be a non-alphanumeric, "
                    "non-whitespace character"
                )

        chars_used = set()
        for name, char in delimiters:
            if char in chars_used:
                raise InvalidDelimitersError(
                    f"'{char}' used for multiple purposes"
                )
            chars_used.add(char)

    @classmethod
    def from_header(cls, header_text: str) -> "Delimiters":
        """
        Derive delimiters from the start of an MSH segment.

        The header stores the characters as ``MSH|^~\\&``: field,
        component, repetition, escape, subcomponent. Text that is too
        short, that is not an MSH segment, or whose characters are not
        a valid set falls back to the defaults.

        Args:
            header_text: An MSH line, or a whole message starting with one

        Returns:
            Delimiters instance
        """
        if (
            not header_text
            or len(header_text) < 8
            or not header_text.startswith(HEADER_SEGMENT_ID)
        ):
            logger.debug("No usable MSH header, using default delimiters")
            return cls()

        try:
            return cls(
                field=header_text[3],
                component=header_text[4],
                repetition=header_text[5],
                escape_char=header_text[6],
                subcomponent=header_text[7],
            )
        except InvalidDelimitersError as e:
            logger.warning("%s; falling back to default delimiters", e)
            return cls()

    @classmethod
    def from_message(cls, message_text: str) -> "Delimiters":
        """Derive delimiters from the first MSH line found in a message."""
        for line in re.split(r"[\r\n]+", message_text or ""):
            if line.startswith(HEADER_SEGMENT_ID):
                return cls.from_header(line)
        return cls()

    @property
    def encoding_characters(self) -> str:
        """The MSH-2 block: component, repetition, escape, subcomponent."""
        return self.component + self.repetition + self.escape_char + self.subcomponent

    @property
    def field_value_separators(self) -> Tuple[str, str, str]:
        """Separators by nesting depth: repetition, component, subcomponent."""
        return (self.repetition, self.component, self.subcomponent)

    @property
    def escape_table(self) -> List[Tuple[str, str]]:
        """
        The (character, escape sequence) pairs used for scalar text.

        For the default delimiters::

            | -> \\F\\    ^ -> \\S\\    & -> \\T\\    ~ -> \\R\\    \\ -> \\E\\
            CR -> \\X0D\\    LF -> \\X0A\\
        """
        esc = self.escape_char
        return [
            (self.field, f"{esc}F{esc}"),
            (self.component, f"{esc}S{esc}"),
            (self.subcomponent, f"{esc}T{esc}"),
            (self.repetition, f"{esc}R{esc}"),
            (self.escape_char, f"{esc}E{esc}"),
            ("\r", f"{esc}X0D{esc}"),
            ("\n", f"{esc}X0A{esc}"),
        ]

    def escape(self, text: str) -> str:
        """
        Replace every reserved character in text with its escape sequence.

        All characters are replaced in a single pass, so an inserted
        sequence is never itself escaped again.
        """
        if not text:
            return text
        return self._escape_pattern.sub(lambda m: self._escape_map[m.group(0)], text)

    def unescape(self, text: str) -> str:
        """
        Inverse of ``escape``.

        Escape sequences this table does not define (formatting or
        highlighting sequences, for instance) are left untouched.
        """
        if not text or self.escape_char not in text:
            return text
        return self._unescape_pattern.sub(
            lambda m: self._unescape_map[m.group(0)], text
        )


DEFAULT_DELIMITERS = Delimiters()
