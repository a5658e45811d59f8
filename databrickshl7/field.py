import re
from datetime import date, datetime, time
from typing import NamedTuple

from databrickshl7.errors import FormatError
from databrickshl7.format import HL7Delim

DATE_FORMAT = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
TIME_FORMAT = re.compile(r"^(\d{2})(\d{2})(\d{2})?$")
DATETIME_FORMAT = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:(\d{2})(\d{2})(\d{2})?)?$")
NAME_PART = re.compile(r"^[^\W\d_](?:[^\W\d_]|[ .,'\-])*$")


class PersonName(NamedTuple):
    last: str
    first: str
    middle: str = ""
    suffix: str = ""

    def __str__(self):
        return " ".join(x for x in [self.first, self.middle, self.last, self.suffix] if x)


#
# A single field of a segment line, e.g. "SMITH^JOHN^W"
#  components are split on first access and cached, the raw text never changes
#
class Field():

    def __init__(self, data, delim_cls=HL7Delim):
        self.data = data
        self.format_cls = delim_cls
        self._components = None

    @property
    def raw_text(self):
        return self.data

    @property
    def components(self):
        if self._components is None:
            self._components = self.data.split(self.format_cls.COMPONENT_DELIM)
        return self._components

    #
    # @param index - component number starting at 1, negative values count from the end
    # @returns the component string, or None if it does not exist
    #
    def component_at(self, index):
        if index == 0 or abs(index) > len(self.components):
            return None
        return self.components[index - 1 if index > 0 else index]

    def first(self):
        return self.component_at(1)

    def last(self):
        return self.component_at(-1)

    #
    # @returns list of subcomponents of one component, [] if the component does not exist
    #
    def subcomponents(self, index):
        component = self.component_at(index)
        return [] if component is None else component.split(self.format_cls.SUB_DELIM)

    #
    # YYYYMMDD -> datetime.date
    #
    def as_date(self):
        m = self._match(DATE_FORMAT, "date (YYYYMMDD)")
        return self._build(date, "date", *[int(x) for x in m.groups()])

    #
    # HHMM[SS] -> datetime.time
    #
    def as_time(self):
        m = self._match(TIME_FORMAT, "time (HHMM[SS])")
        return self._build(time, "time", *[int(x) for x in m.groups() if x is not None])

    #
    # YYYYMMDD[HHMM[SS]] -> datetime.datetime
    #
    def as_datetime(self):
        m = self._match(DATETIME_FORMAT, "datetime (YYYYMMDD[HHMM[SS]])")
        return self._build(datetime, "datetime", *[int(x) for x in m.groups() if x is not None])

    #
    # Last^First[^Middle][^Suffix] -> PersonName
    #  further components (prefix, degree...) are not part of the name value
    #
    def as_name(self):
        parts = (self.components + ["", ""])[:4]
        last, first = parts[0], parts[1]
        if not last or not first:
            raise FormatError("Expected a name (Last^First[^Middle][^Suffix]), got {!r}".format(self.data))
        for part in parts:
            if part and not NAME_PART.match(part):
                raise FormatError("Invalid name component {!r} in {!r}".format(part, self.data))
        return PersonName(*parts)

    def _match(self, pattern, expected):
        m = pattern.match(self.data)
        if m is None:
            raise FormatError("Expected a {}, got {!r}".format(expected, self.data))
        return m

    def _build(self, cls, expected, *args):
        try:
            return cls(*args)
        except ValueError as e:
            raise FormatError("Invalid {} {!r}: {}".format(expected, self.data, e)) from e

    #
    # e.g. "1:SMITH, 2:JOHN, 3:W"
    #
    def view(self):
        return ", ".join("{}:{}".format(i, c) for i, c in enumerate(self.components, start=1))

    def __len__(self):
        return len(self.components)

    def __iter__(self):
        return iter(self.components)

    def __getitem__(self, index):
        return self.component_at(index)

    def __str__(self):
        return self.data

    def __repr__(self):
        return "Field({!r})".format(self.data)

    def __eq__(self, other):
        """
        A Field equals another Field or a plain string with the same raw text
        """
        if isinstance(other, Field):
            return self.data == other.data
        if isinstance(other, str):
            return self.data == other
        return NotImplemented

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        return hash(self.data)

    def __getstate__(self):
        return {
            'data': self.data,
            'format_cls': self.format_cls
        }

    def __setstate__(self, state):
        self.data = state['data']
        self.format_cls = state['format_cls']
        self._components = None
