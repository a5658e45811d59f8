from collections import Counter

from loguru import logger

from databrickshl7.errors import MissingControlIdError, MissingHeaderError, ParseError, UnsupportedFieldNameError
from databrickshl7.format import CONTROL_ID_FIELD, HEADER_TOKEN, HEADER_TYPE, HL7Delim, split_lines
from databrickshl7.registry import DEFAULT_REGISTRY, MSH_FIELDS
from databrickshl7.segment import segment_for


#
# Split one physical line into (type code, body)
#  the body is everything after the first field delimiter
#  a type token matching the header pattern ("MSH", "12MSH") is always the canonical header type
#
def classify(line, format_cls=HL7Delim):
    end = line.find(format_cls.FIELD_DELIM)
    token, body = (line, "") if end == -1 else (line[:end], line[end + 1:])
    seg_type = token.upper()
    return (HEADER_TYPE if HEADER_TOKEN.match(seg_type) else seg_type), body


#
# A single HL7 message
#  All lines of one type are grouped into one Segment, e.g.
#   "MSH|...\nPID|...\nOBX|1|...\nOBX|2|..." -> {"MSH": Segment, "PID": Segment, "OBX": Segment(2 lines)}
#
#  original_text - the text as given, str(message) always returns it unchanged
#  line_types    - segment type of each physical line in order, e.g. ["MSH", "PID", "OBX", "OBX"]
#  segments      - type -> Segment in order of first appearance
#  control_id    - the message control id from the header
#
class Message():

    #
    # @param data - the message text
    # @param delim_cls - delimiters for this message, HL7Delim by default
    # @param registry - SegmentRegistry deciding which segment types support field names
    #
    def __init__(self, data, delim_cls=None, registry=None):
        self.original_text = data
        self.format_cls = (HL7Delim if delim_cls is None else delim_cls)
        self.registry = (DEFAULT_REGISTRY if registry is None else registry)
        self._parse()

    def _parse(self):
        self.line_types = []
        self.segments = {}
        self._break_into_segments()

        header = self.header()
        if header is None:
            raise MissingHeaderError("No {} header line found in message".format(HEADER_TYPE))
        control_id = header.field_at(0, CONTROL_ID_FIELD)
        if control_id is None:
            raise MissingControlIdError("{} header has no message control id (field {})".format(HEADER_TYPE, CONTROL_ID_FIELD))
        self.control_id = control_id.data

        self.sending_application = self._header_value("sending_application")
        self.sending_facility = self._header_value("sending_facility")
        self.receiving_application = self._header_value("receiving_application")
        self.receiving_facility = self._header_value("receiving_facility")
        self.date_time = self._header_value("date_time")
        self.message_type = self._header_value("message_type")
        self.version = self._header_value("version")
        logger.debug("Parsed message {} with {} lines and {} segment types", self.control_id, len(self.line_types), len(self.segments))

    def _break_into_segments(self):
        text = {}
        for line in split_lines(self.original_text, self.format_cls):
            if not line.strip():
                continue
            seg_type, body = classify(line, self.format_cls)
            self.line_types.append(seg_type)
            text.setdefault(seg_type, []).append(body)

        for seg_type, lines in text.items():
            self.segments[seg_type] = segment_for(seg_type, lines, self.registry, self.format_cls)

    def _header_value(self, name):
        f = self.header().field_at(0, MSH_FIELDS[name])
        return "" if f is None else f.data

    #
    # @returns the header (MSH) Segment
    #
    def header(self):
        return self.segments.get(HEADER_TYPE)

    #
    # @returns Segment of the given type, None if the message has no such lines
    #
    def segment_of(self, segment_type):
        return self.segments.get(str(segment_type).upper())

    #
    # Returns total count of physical lines
    #
    def segment_count(self):
        return len(self.line_types)

    #
    # Shorthand for all occurrences of a field, e.g. fetch_field("obx5") -> [Field("4.1"), Field("139")]
    #  returns [] if the message has no such segment
    #
    def fetch_field(self, field):
        seg = self.segment_of(field[0:3])
        if seg is None:
            return []
        return seg.all_occurrences(int(field[3:]))

    #
    # Type of the line directly before the first line of segment_type, None at the start or if absent
    #
    def segment_before(self, segment_type):
        segment_type = str(segment_type).upper()
        if segment_type not in self.line_types:
            return None
        i = self.line_types.index(segment_type)
        return self.line_types[i - 1] if i > 0 else None

    #
    # Type of the line directly after the last line of segment_type, None at the end or if absent
    #
    def segment_after(self, segment_type):
        segment_type = str(segment_type).upper()
        if segment_type not in self.line_types:
            return None
        i = len(self.line_types) - 1 - self.line_types[::-1].index(segment_type)
        return self.line_types[i + 1] if i + 1 < len(self.line_types) else None

    #
    # Quick access to the most commonly referenced message pieces
    #  patient_id, patient_name, visit_number, message_header, message_id
    #
    def important_details(self, kind):
        if kind == "patient_id":
            return self._first_component("PID", PATIENT_ID_FIELD)
        elif kind == "patient_name":
            f = self._field_of("PID", PATIENT_NAME_FIELD)
            return None if f is None else f.as_name()
        elif kind == "visit_number":
            return self._first_component("PV1", VISIT_NUMBER_FIELD)
        elif kind == "message_header":
            return self.header()
        elif kind == "message_id":
            return self.control_id
        raise UnsupportedFieldNameError("No known location for {!r} in a message".format(kind))

    #
    # e.g. encounter_details() -> {"ID": "12345", "NAME": PersonName(...), "VISIT": "01834"}
    #      encounter_details("ID") -> "12345"
    #
    def encounter_details(self, section=None):
        details = {"ID": self.important_details("patient_id"),
                   "NAME": self.important_details("patient_name"),
                   "VISIT": self.important_details("visit_number")}
        if section is None:
            return details
        if str(section).upper() not in details:
            raise UnsupportedFieldNameError("No encounter detail {!r}, expected one of {}".format(section, sorted(details)))
        return details[str(section).upper()]

    def _field_of(self, segment_type, position):
        seg = self.segment_of(segment_type)
        return None if seg is None else seg.field_at(0, position)

    def _first_component(self, segment_type, position):
        f = self._field_of(segment_type, position)
        return None if f is None else f.component_at(1)

    #
    # Readable listing of the segments, e.g. "MSH: ^~\&|HLAB|RMH\nPID: 1||12345"
    #
    def view_segments(self):
        return "\n".join(seg_type + ": " + line for seg_type, seg in self.segments.items() for line in seg.lines)

    def to_json(self, exclude=["original_text", "format_cls", "registry", "segments"]):
        return {
            **{str(self.__class__.__name__ + "." + attr): getattr(self, attr) for attr in dir(self) if not callable(getattr(self, attr)) and not attr.startswith("_") and attr not in exclude},
            str(self.__class__.__name__ + ".segments"): {
                seg_type: [[None if f is None else f.data for f in row] for row in seg.fields] for seg_type, seg in self.segments.items()
            }
        }

    """
     Convert the message into row/column format, one row per physical line
        Preserves the following information:
          *Segment names
          *Row numbers for ordering
          *Row length for easy query access
          *Row data with delimiters to easily split row members
    """
    def toRows(self):
        seen = Counter()
        rows = []
        for i, seg_type in enumerate(self.line_types):
            seg, k = self.segments[seg_type], seen[seg_type]
            seen[seg_type] += 1
            rows.append({"segment_name": seg_type
                         ,"segment_length": len(seg.fields[k])
                         ,"row_number": i
                         ,"row_data": seg_type + self.format_cls.FIELD_DELIM + seg.lines[k]
                         ,"segment_field_delim_char": self.format_cls.FIELD_DELIM
                         ,"segment_component_delim_char": self.format_cls.COMPONENT_DELIM})
        return rows

    def items(self):
        return self.segments.items()

    def __getitem__(self, segment_type):
        return self.segment_of(segment_type)

    def __contains__(self, segment_type):
        return str(segment_type).upper() in self.segments

    def __iter__(self):
        return iter(self.segments.values())

    def __len__(self):
        return len(self.segments)

    def __getstate__(self):
        """
        Return state values to be pickled.
        The message is parsed again from its text on load
        """
        return {
            'original_text': self.original_text,
            'format_cls': self.format_cls,
            'registry': self.registry
        }

    def __setstate__(self, state):
        """
        Restore state from the unpickled state values.
        """
        self.original_text = state['original_text']
        self.format_cls = state['format_cls']
        self.registry = state['registry']
        self._parse()

    def __eq__(self, other):
        """
        Equality evaluation for Message objects.
        Two Messages are equal if their line order and segments (in order) are equal.
        """
        if not isinstance(other, Message):
            return False
        return self.line_types == other.line_types and list(self.segments.items()) == list(other.segments.items())

    def __ne__(self, other):
        return not self.__eq__(other)

    #reprint the message as is
    def __str__(self):
        return self.original_text

    def __repr__(self):
        return "Message({!r}, {} lines)".format(self.control_id, len(self.line_types))


PATIENT_ID_FIELD = 3
PATIENT_NAME_FIELD = 5
VISIT_NUMBER_FIELD = 19


def parse(raw_text, delim_cls=None, registry=None):
    return Message(raw_text, delim_cls, registry)


#
# Manage batches of messages, e.g. a file holding many messages back to back
#
class HL7Manager():

    #
    # Split text into message texts, a new message starts at each header line
    #  lines before the first header form their own chunk
    #
    @staticmethod
    def split(data, delim_cls=None):
        format_cls = (HL7Delim if delim_cls is None else delim_cls)
        chunks, current = [], []
        for line in split_lines(data, format_cls):
            if not line.strip():
                continue
            if classify(line, format_cls)[0] == HEADER_TYPE and current:
                chunks.append(current)
                current = []
            current.append(line)
        if current:
            chunks.append(current)
        return [format_cls.SEGMENT_DELIM.join(chunk) for chunk in chunks]

    #
    # @param strict - raise on the first message that fails to parse (True) or log and skip it (False)
    # @returns list of Messages
    #
    @classmethod
    def from_text(cls, data, delim_cls=None, registry=None, strict=True):
        messages = []
        for i, chunk in enumerate(cls.split(data, delim_cls)):
            try:
                messages.append(Message(chunk, delim_cls, registry))
            except ParseError as e:
                if strict:
                    raise
                logger.warning("Skipping message {} of batch: {}", i, e)
        return messages

    #
    # Summary of a batch of messages
    #
    @staticmethod
    def summary(messages):
        return {
            "Number of Messages": len(messages),
            "Number of Segments": sum(m.segment_count() for m in messages),
            "Message Count by Type": dict(Counter(m.message_type for m in messages))
        }
