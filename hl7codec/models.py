"""
In-memory representation of HL7 messages.

A ``Message`` maps segment IDs to the repetitions of that segment, in
insertion order. A ``Segment`` holds its fields as a sparse list of
repetition lists, and every repetition is a ``FieldValue`` tree: either
a scalar leaf or a composite of components, which may in turn be
composites of subcomponents.

Field values are stored unescaped; escaping is the encoder's job.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from .delimiters import EMPTY_VALUE_TOKEN, HEADER_SEGMENT_ID
from .exceptions import InvalidPathSpecError
from .path_spec import parse_path_spec


# Field Value Tree
@dataclass
class FieldValue:
    """
    The value of a field, component or subcomponent.

    A node is a scalar when ``children`` is None. A scalar's ``value``
    is None for a null value (nothing between the delimiters) and ""
    for a value that is present but explicitly empty (``""`` on the
    wire). A composite's value is defined by its children.
    """

    value: Optional[str] = None
    children: Optional[List["FieldValue"]] = None

    @property
    def is_scalar(self) -> bool:
        return self.children is None

    @property
    def is_null(self) -> bool:
        return self.children is None and self.value is None

    @classmethod
    def scalar(cls, value: Optional[str] = None) -> "FieldValue":
        """Create a scalar node."""
        return cls(value=value)

    @classmethod
    def composite(cls, *values: Any) -> "FieldValue":
        """
        Create a composite node from its children.

        Strings become scalars and FieldValues are used as-is; anything
        else (None included) becomes a null scalar. With no arguments a
        null scalar is returned.

        Example:
            FieldValue.composite("DOE", "JOHN")   # DOE^JOHN
        """
        if not values:
            return cls()
        return cls(children=[_to_field_value(v) for v in values])

    @classmethod
    def indexed(cls, *index_values: Any) -> "FieldValue":
        """
        Create a composite node from 1-based (index, value) pairs.

        Pairs may be given flat or as a single mapping:

            FieldValue.indexed(2, "Hello", 5, FieldValue.composite("A", "B"))
            FieldValue.indexed({2: "Hello", 5: FieldValue.composite("A", "B")})

        Both give five children: the second a scalar, the fifth a
        composite and the rest null scalars. Malformed input (odd
        number of arguments, non-integer or non-positive indices)
        yields a null scalar.
        """
        if len(index_values) == 1 and isinstance(index_values[0], dict):
            pairs = list(index_values[0].items())
        elif index_values and len(index_values) % 2 == 0:
            pairs = list(zip(index_values[::2], index_values[1::2]))
        else:
            return cls()

        for index, _ in pairs:
            if not isinstance(index, int) or isinstance(index, bool) or index <= 0:
                return cls()

        children = [cls() for _ in range(max(index for index, _ in pairs))]
        for index, value in pairs:
            children[index - 1] = _to_field_value(value)
        return cls(children=children)

    def leftmost_scalar(self) -> str:
        """Return the text of the first scalar reached by following first children."""
        node = self
        while not node.is_scalar:
            if not node.children:
                return ""
            node = node.children[0]
        return node.value or ""

    def copy(self) -> "FieldValue":
        """Return a deep copy of this node."""
        return copy.deepcopy(self)

    def to_python(self) -> Union[None, str, list]:
        """Convert to plain Python values: None, a string, or nested lists."""
        if self.is_scalar:
            return self.value
        return [child.to_python() for child in self.children]

    def _child_for_write(self, index: int) -> "FieldValue":
        """
        Return child ``index`` (1-based), making room for it first.

        A scalar is turned into a composite, and its text is discarded.
        """
        if self.is_scalar:
            self.value = None
            self.children = []
        while len(self.children) < index:
            self.children.append(FieldValue())
        return self.children[index - 1]


def _to_field_value(value: Any) -> FieldValue:
    if isinstance(value, FieldValue):
        return value
    if isinstance(value, str):
        return FieldValue(value=value)
    return FieldValue()


# Segment Dataclass
@dataclass
class Segment:
    """
    A single HL7 segment.

    ``fields[i]`` holds the repetitions of field i + 1, or None when the
    field has no value at all. All public indices are 1-based, as in
    the HL7 documentation: for MSH, field 1 is the field separator and
    field 2 the encoding characters.
    """

    segment_id: str
    fields: List[Optional[List[FieldValue]]] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.segment_id, str) or len(self.segment_id) != 3:
            raise ValueError(
                f"Segment ID must be 3 characters, got {self.segment_id!r}"
            )
        if self.fields is None:
            self.fields = []

    @property
    def field_count(self) -> int:
        return len(self.fields)

    def get_repetitions(self, field_no: int) -> Optional[List[FieldValue]]:
        """Return the repetition list of a field, or None if it has no value."""
        if field_no < 1 or field_no > len(self.fields):
            return None
        return self.fields[field_no - 1]

    def get_field_value(
        self,
        field_no: int,
        repetition: int = 1,
        component: int = 0,
        subcomponent: int = 0,
    ) -> str:
        """
        Return the text at a field/repetition/component/subcomponent.

        Missing positions and null values give "". Asking for component
        (or subcomponent) 1 of a scalar gives the scalar itself, and
        asking for a composite without going deeper gives its leftmost
        scalar.

        Args:
            field_no: Field number (>= 1)
            repetition: Repetition number (>= 1)
            component: Component number, or 0 to stay at the field
            subcomponent: Subcomponent number, or 0 to stay at the component

        Returns:
            Text value or ""
        """
        repetitions = self.get_repetitions(field_no)
        if not repetitions or repetition < 1 or repetition > len(repetitions):
            return ""
        if component < 0 or subcomponent < 0:
            return ""

        node = repetitions[repetition - 1]
        for index in (component, subcomponent):
            if index == 0:
                break
            if node.is_scalar:
                if index != 1:
                    return ""
                continue
            if index > len(node.children):
                return ""
            node = node.children[index - 1]

        return node.leftmost_scalar()

    def set_field_value(
        self,
        field_no: int,
        repetition: int = 1,
        component: int = 0,
        subcomponent: int = 0,
        value: Optional[str] = None,
    ) -> None:
        """
        Set the scalar text at a field/repetition/component/subcomponent.

        Fields, repetitions and children are added as null values until
        the target exists. A scalar on the way to the target becomes a
        composite and loses its text: setting PID.3.2 when PID.3 is the
        scalar "454721" leaves PID.3 as (null, value).

        Raises:
            IndexError: If field_no or repetition is below 1, or
                component/subcomponent is negative
        """
        if field_no < 1 or repetition < 1:
            raise IndexError(
                f"field and repetition numbers start at 1, got {field_no}({repetition})"
            )
        if component < 0 or subcomponent < 0:
            raise IndexError("component and subcomponent numbers cannot be negative")

        self._ensure_capacity(field_no)
        repetitions = self.fields[field_no - 1]
        if repetitions is None:
            repetitions = []
            self.fields[field_no - 1] = repetitions
        while len(repetitions) < repetition:
            repetitions.append(FieldValue())

        node = repetitions[repetition - 1]
        for index in (component, subcomponent):
            if index == 0:
                break
            node = node._child_for_write(index)

        node.value = value
        node.children = None

    def add_field_value(self, field_no: int, value: Union[str, FieldValue, None]) -> None:
        """Append a value to a field as a new repetition."""
        self._ensure_capacity(field_no)
        if self.fields[field_no - 1] is None:
            self.fields[field_no - 1] = []
        self.fields[field_no - 1].append(_to_field_value(value))

    def put_field_values(
        self, field_no: int, repetitions: Optional[List[FieldValue]]
    ) -> None:
        """Replace all repetitions of a field; None clears it."""
        self._ensure_capacity(field_no)
        self.fields[field_no - 1] = repetitions

    def clear_field_values(self, field_no: int) -> None:
        if 1 <= field_no <= len(self.fields):
            self.fields[field_no - 1] = None

    def copy(self) -> "Segment":
        """Return a deep copy of this segment."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "segment_id": self.segment_id,
            "fields": [
                None if reps is None else [rep.to_python() for rep in reps]
                for reps in self.fields
            ],
        }

    def _ensure_capacity(self, field_no: int) -> None:
        if field_no < 1:
            raise IndexError(f"field numbers start at 1, got {field_no}")
        while len(self.fields) < field_no:
            self.fields.append(None)

    def __str__(self) -> str:
        """
        Human-readable dump, one value per line:

            PID.3: 454721
            PID.5:
              PID.5.1: DOE
              PID.5.2: JOHN
        """
        lines = []
        for field_no, repetitions in enumerate(self.fields, 1):
            if repetitions is None:
                continue
            for rep_no, value in enumerate(repetitions, 1):
                prefix = f"{self.segment_id}.{field_no}"
                if len(repetitions) > 1:
                    prefix += f"({rep_no})"
                _dump_value(lines, prefix, value)
        return "".join(line + "\n" for line in lines)


def _dump_value(lines: List[str], prefix: str, value: FieldValue) -> None:
    if value.is_scalar:
        if value.value is not None:
            lines.append(f"{prefix}: {value.value or EMPTY_VALUE_TOKEN}")
        return
    lines.append(f"{prefix}:")
    for index, child in enumerate(value.children, 1):
        _dump_value(lines, f"  {prefix}.{index}", child)


# Message Class
class Message:
    """
    An HL7 message: segment ID -> repetitions of that segment.

    Segments are kept in insertion order and encoded in that order, so
    they must be added in the order the message structure requires
    (MSH first, and so on). Nothing is reordered.

    Usage:
        message = parse_hl7_message(text)
        message.get_field("PID.5.1")
        message.set_field("PID.3(2).1", "A-1234")
    """

    def __init__(self, segments: Optional[List[Segment]] = None):
        self.segment_map: Dict[str, List[Segment]] = {}
        for segment in segments or []:
            self.put_segment(segment)

    def segment_ids(self) -> List[str]:
        return list(self.segment_map)

    def contains_segment(self, segment_id: str) -> bool:
        return segment_id in self.segment_map

    def segments(self) -> Iterator[Segment]:
        """Iterate over all segments in encoding order."""
        for repetitions in self.segment_map.values():
            yield from repetitions

    def get_segments(self, segment_id: str) -> Optional[List[Segment]]:
        """Return all repetitions of a segment, or None if it is absent."""
        return self.segment_map.get(segment_id)

    def get_segment(self, segment_id: str, repetition: int = 1) -> Optional[Segment]:
        """Return a repetition (1-based) of a segment, or None if it is absent."""
        repetitions = self.segment_map.get(segment_id)
        if not repetitions or repetition < 1 or repetition > len(repetitions):
            return None
        return repetitions[repetition - 1]

    def put_segment(self, segment: Segment) -> None:
        """Add a segment, as a new repetition if its ID is already present."""
        self.segment_map.setdefault(segment.segment_id, []).append(segment)

    def remove_segment(self, segment: Segment) -> None:
        """Remove this exact segment instance from the message."""
        repetitions = self.segment_map.get(segment.segment_id)
        if repetitions is None:
            return
        remaining = [s for s in repetitions if s is not segment]
        if remaining:
            self.segment_map[segment.segment_id] = remaining
        else:
            del self.segment_map[segment.segment_id]

    @property
    def message_type(self) -> Optional[str]:
        """
        Message type and trigger event from MSH-9, e.g. "ADT^A01".

        Returns None if there is no MSH segment or MSH-9 is empty.
        """
        msh = self.get_segment(HEADER_SEGMENT_ID)
        if msh is None:
            return None
        message_code = msh.get_field_value(9, 1, 1)
        trigger_event = msh.get_field_value(9, 1, 2)
        if not message_code and not trigger_event:
            return None
        return f"{message_code}^{trigger_event}"

    def get_field(self, spec: str) -> str:
        """
        Return the value addressed by a path spec.

        Examples:
            "MSH.9.1"      message type
            "PID.3(2).1"   ID of the second repetition of PID-3
            "NK1(2).2.1"   family name in the second NK1 segment

        Repetition numbers default to 1. A dash may replace the dots and
        a leading slash is ignored.

        Returns:
            The value, or "" if the spec is invalid or nothing is there
        """
        try:
            path = parse_path_spec(spec)
        except InvalidPathSpecError:
            return ""
        segment = self.get_segment(path.segment_id, path.segment_repetition)
        if segment is None:
            return ""
        return segment.get_field_value(
            path.field, path.field_repetition, path.component, path.subcomponent
        )

    def set_field(self, spec: str, value: Optional[str]) -> None:
        """
        Set the value addressed by a path spec.

        Does nothing if the spec is invalid or the segment is absent.
        """
        try:
            path = parse_path_spec(spec)
        except InvalidPathSpecError:
            return
        segment = self.get_segment(path.segment_id, path.segment_repetition)
        if segment is None:
            return
        segment.set_field_value(
            path.field,
            path.field_repetition,
            path.component,
            path.subcomponent,
            value,
        )

    def copy(self) -> "Message":
        """Return a deep copy of this message."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {"segments": [segment.to_dict() for segment in self.segments()]}

    def __len__(self) -> int:
        return sum(len(reps) for reps in self.segment_map.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return list(self.segment_map.items()) == list(other.segment_map.items())

    def __repr__(self) -> str:
        return f"Message(segments={list(self.segments())!r})"

    def __str__(self) -> str:
        return "".join(str(segment) for segment in self.segments())
