import re
from databrickshl7.errors import DelimiterError

#
# Delimiter configuration for HL7 v2.x messages
#  Format instances override the defaults per message, HL7Delim is the default class-level configuration
#  https://www.hl7.org/implement/standards/product_brief.cfm?product_id=185
#
class Format(dict):
    __getattr__, __setattr__ = dict.get, dict.__setitem__

    def __init__(self, SEGMENT_DELIM="\n", FIELD_DELIM="|", COMPONENT_DELIM="^", SUB_DELIM="~", SUBSUB_DELIM="\\", ESCAPE_DELIM="&"):
        self.SEGMENT_DELIM = SEGMENT_DELIM
        self.FIELD_DELIM = FIELD_DELIM
        self.COMPONENT_DELIM = COMPONENT_DELIM
        self.SUB_DELIM = SUB_DELIM
        self.SUBSUB_DELIM = SUBSUB_DELIM
        self.ESCAPE_DELIM = ESCAPE_DELIM
        self._validate()

    def _validate(self):
        values = [self[k] for k in DELIM_KEYS]
        for k, v in zip(DELIM_KEYS, values):
            if not isinstance(v, str) or len(v) != 1:
                raise DelimiterError("{} must be a single character, got {!r}".format(k, v))
        if len(set(values)) != len(values):
            raise DelimiterError("Delimiters must be distinct characters: {!r}".format(values))

    #
    # Detect delimiters from the header line of a message
    #  field delimiter is the character following the header code
    #  header field 1 holds the encoding characters: component, subcomponent, sub-subcomponent, escape
    #
    @staticmethod
    def from_header(data, default=None):
        default = default or HL7Delim
        header = next((line for line in re.split(r"\r\n|\n|\r", data) if HEADER_LINE.match(line)), None)
        if header is None:
            return Format(*[getattr(default, k) for k in DELIM_KEYS])
        field_delim = header[HEADER_LINE.match(header).end() - 1]
        encoding = (header.split(field_delim) + [""])[1]
        chars = [getattr(default, k) for k in ENCODING_KEYS]
        chars = [encoding[i] if i < len(encoding) else c for i, c in enumerate(chars)]
        return Format(default.SEGMENT_DELIM, field_delim, *chars)

    def __eq__(self, other):
        try:
            return all(getattr(self, k) == getattr(other, k) for k in DELIM_KEYS)
        except AttributeError:
            return False

    def __ne__(self, other):
        return not self.__eq__(other)


class HL7Delim(Format):
    SEGMENT_DELIM = "\n"
    FIELD_DELIM = "|"
    COMPONENT_DELIM = "^"
    SUB_DELIM = "~"
    SUBSUB_DELIM = "\\"
    ESCAPE_DELIM = "&"


DELIM_KEYS = ["SEGMENT_DELIM", "FIELD_DELIM", "COMPONENT_DELIM", "SUB_DELIM", "SUBSUB_DELIM", "ESCAPE_DELIM"]
ENCODING_KEYS = ["COMPONENT_DELIM", "SUB_DELIM", "SUBSUB_DELIM", "ESCAPE_DELIM"]

DELIM_KINDS = {
    "segment": "SEGMENT_DELIM",
    "field": "FIELD_DELIM",
    "component": "COMPONENT_DELIM",
    "subcomponent": "SUB_DELIM",
    "subsubcomponent": "SUBSUB_DELIM",
    "escape": "ESCAPE_DELIM"
}

#
# Header recognition: optional leading digits (noise seen in real feeds) followed by the header code
#
HEADER_TYPE = "MSH"
HEADER_TOKEN = re.compile(r"^\d*" + HEADER_TYPE + r"$")
HEADER_LINE = re.compile(r"^\d*" + HEADER_TYPE + r"[^A-Za-z0-9]", re.IGNORECASE)
CONTROL_ID_FIELD = 9


#
# @param format_cls - a Format instance or the HL7Delim class
# @param kind - one of DELIM_KINDS
# @returns the delimiter character
#
def delimiter_for(format_cls, kind):
    try:
        return getattr(format_cls, DELIM_KINDS[kind])
    except KeyError:
        raise DelimiterError("Unknown delimiter kind {!r}, expected one of {}".format(kind, sorted(DELIM_KINDS))) from None


#
# Split message text into physical lines
#  the default newline delimiter accepts \r\n, \r and \n since real feeds use carriage returns
#  other delimiters drop stray line breaks left at the start of each line, e.g. "\r" on CRLF text
#
def split_lines(data, format_cls=HL7Delim):
    if format_cls.SEGMENT_DELIM == "\n":
        return re.split(r"\r\n|\n|\r", data)
    return [line.lstrip("\r").lstrip("\n") for line in data.split(format_cls.SEGMENT_DELIM)]
