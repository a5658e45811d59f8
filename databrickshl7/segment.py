from types import MappingProxyType

from databrickshl7.errors import UnsupportedFieldNameError
from databrickshl7.field import Field
from databrickshl7.format import HL7Delim


#
# All lines of one segment type within a message, e.g. 3 OBX lines are one OBX Segment
#  lines  - text of each occurrence minus the type token, e.g. ["1|NM|K+^Potassium", "2|NM|NA^Sodium"]
#  fields - one list per line, Field for each non-empty field text and None for empty ones
#  The first occurrence is the default for single value accessors
#
#  Generic segments only support positional access, see TypedSegment for access by field name
#
class Segment():

    field_name_map = None

    #
    # @param type_code - segment type, e.g. "OBX"
    # @param lines - text of each occurrence, with or without a leading "OBX|"
    #
    def __init__(self, type_code, lines, delim_cls=HL7Delim):
        self.type_code = type_code.upper()
        self.format_cls = delim_cls
        self.lines = [self._remove_name_field(line) for line in lines]
        self.fields = [self._break_into_fields(line) for line in self.lines]

    @property
    def supports_named_access(self):
        return self.field_name_map is not None

    @property
    def size(self):
        return len(self.lines)

    #
    # @param line_index - occurrence starting at 0
    # @param position - field number starting at 1
    # @returns Field, or None when the field is empty or out of range
    #
    def field_at(self, line_index, position):
        if not 0 <= line_index < len(self.fields):
            return None
        row = self.fields[line_index]
        return row[position - 1] if 1 <= position <= len(row) else None

    #
    # Field of the first occurrence by name, e.g. pid.field_named("patient_name")
    #  raises UnsupportedFieldNameError for segments without a field table or unknown names
    #
    def field_named(self, name):
        return self.field_at(0, self._position_of(name))

    #
    # @param which - position (int) or field name (str)
    # @returns Field of the first occurrence
    #
    def field(self, which):
        return self.field_at(0, self._resolve(which))

    #
    # @param which - position (int) or field name (str)
    # @returns one entry per occurrence in line order, e.g. obx.all_occurrences(5) -> [Field("4.1"), None, Field("139")]
    #
    def all_occurrences(self, which):
        position = self._resolve(which)
        return [self.field_at(i, position) for i in range(len(self.fields))]

    #
    # Fields of one occurrence, empty when the occurrence does not exist
    #
    def fields_of(self, line_index=0):
        if not 0 <= line_index < len(self.fields):
            return iter([])
        return iter(self.fields[line_index])

    def every_field(self):
        for row in self.fields:
            yield from row

    #
    # Readable listing of each occurrence, e.g. "1:a, 2:, 3:c"
    #
    def view(self):
        return "\n".join(", ".join("{}:{}".format(i, "" if f is None else f.data) for i, f in enumerate(row, start=1)) for row in self.fields)

    def _resolve(self, which):
        if isinstance(which, bool):
            raise TypeError("Field selector must be a position or a name, got {!r}".format(which))
        if isinstance(which, int):
            return which
        if isinstance(which, str):
            return self._position_of(which)
        raise TypeError("Field selector must be a position or a name, got {!r}".format(which))

    def _position_of(self, name):
        if self.field_name_map is None:
            raise UnsupportedFieldNameError("Segment {} has no field name table, cannot look up {!r}".format(self.type_code, name))
        position = self.field_name_map.get(str(name).lower())
        if position is None:
            raise UnsupportedFieldNameError("Segment {} has no field named {!r}".format(self.type_code, name))
        return position

    #
    # Strip a redundant leading "TYPE|" if the type token was left on the line
    #
    def _remove_name_field(self, line):
        prefix = self.type_code + self.format_cls.FIELD_DELIM
        return line[len(prefix):] if line.startswith(prefix) else line

    def _break_into_fields(self, line):
        if line == "":
            return []
        return [Field(f, self.format_cls) if f != "" else None for f in line.split(self.format_cls.FIELD_DELIM)]

    def __getitem__(self, which):
        return self.field(which)

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.fields)

    def __str__(self):
        return self.format_cls.SEGMENT_DELIM.join(self.lines)

    def __repr__(self):
        return "{}({!r}, {} line(s))".format(self.__class__.__name__, self.type_code, len(self.lines))

    def __eq__(self, other):
        """
        Equality evaluation for Segment objects.
        Two Segments are equal if they share type, variant and line text.
        """
        if not isinstance(other, Segment):
            return False
        return (self.type_code == other.type_code
                and self.lines == other.lines
                and self.supports_named_access == other.supports_named_access
                and dict(self.field_name_map or {}) == dict(other.field_name_map or {}))

    def __ne__(self, other):
        return not self.__eq__(other)

    def __getstate__(self):
        """
        Return state values to be pickled.
        """
        return {
            'type_code': self.type_code,
            'lines': self.lines,
            'format_cls': self.format_cls,
            'field_name_map': None if self.field_name_map is None else dict(self.field_name_map)
        }

    def __setstate__(self, state):
        """
        Restore state from the unpickled state values, lines are already stripped of their type
        """
        self.type_code = state['type_code']
        self.lines = state['lines']
        self.format_cls = state['format_cls']
        if state['field_name_map'] is not None:
            self.field_name_map = MappingProxyType(state['field_name_map'])
        self.fields = [self._break_into_fields(line) for line in self.lines]


#
# Segment with a registered field name table, adds access by name, e.g. pid.field_named("dob")
#
class TypedSegment(Segment):

    def __init__(self, type_code, lines, field_table, delim_cls=HL7Delim):
        self.field_name_map = field_table
        super().__init__(type_code, lines, delim_cls)


#
# Pick the segment variant for a type code from the registry
#  registered code -> TypedSegment, anything else -> generic Segment
#
def segment_for(type_code, lines, registry, delim_cls=HL7Delim):
    table = registry.field_table_for(type_code)
    if table is None:
        return Segment(type_code, lines, delim_cls)
    return TypedSegment(type_code, lines, table, delim_cls)
