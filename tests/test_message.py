import unittest, json
from databrickshl7.message import Message, parse, classify
from databrickshl7.segment import Segment, TypedSegment
from databrickshl7.field import PersonName
from databrickshl7.format import Format, HL7Delim
from databrickshl7.registry import default_registry, SegmentRegistry
from databrickshl7.errors import MissingHeaderError, MissingControlIdError, ParseError, UnsupportedFieldNameError
from .hl7_base import HL7BaseTest


class TestMessage(HL7BaseTest):

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.msg = Message(cls.lab)

    #
    # Structure
    #
    def test_line_types(self):
        assert(self.msg.line_types == ["MSH", "PID", "PV1", "ORC", "OBR", "OBX", "OBX", "OBX", "NTE"])
        assert(list(self.msg.segments.keys()) == ["MSH", "PID", "PV1", "ORC", "OBR", "OBX", "NTE"])
        assert(self.msg.segment_count() == 9)
        assert(len(self.msg) == 7)

    def test_every_line_grouped(self):
        assert(sum(len(s.lines) for s in self.msg) == len(self.msg.line_types))
        assert(set(self.msg.line_types) == set(self.msg.segments.keys()))

    def test_header(self):
        assert(self.msg.header() is self.msg["MSH"])
        assert(self.msg.control_id == "201401280411444405")
        assert(self.msg.message_type == "ORU^R01")
        assert(self.msg.sending_application == "HLAB")
        assert(self.msg.sending_facility == "RMH")
        assert(self.msg.receiving_application == "")
        assert(self.msg.date_time == "20140128041144")
        assert(self.msg.version == "2.4")
        assert(self.msg.header().field_named("date_time").as_datetime().hour == 4)

    def test_segment_of(self):
        assert(isinstance(self.msg.segment_of("PID"), TypedSegment))
        assert(self.msg.segment_of("obx") is self.msg["OBX"])
        assert(self.msg.segment_of("ZZZ") is None)
        assert("OBX" in self.msg and "ZZZ" not in self.msg)

    #
    # Field access
    #
    def test_named_access(self):
        pid = self.msg.segment_of("PID")
        assert(pid.field_named("patient_name").as_name() == PersonName("SMITH", "JOHN", "W"))
        assert(pid.field_named("dob").as_date().year == 1984)
        assert(pid.field_named("sex") == "M")
        assert(pid.field_named("ssn") == "123456789")
        assert(pid.field_named("account_number").last() == "ACC")
        assert(pid.field_named("religion") is None)
        self.assertRaises(UnsupportedFieldNameError, pid.field_named, "nonexistent_name")
        assert(self.msg["OBR"].field_named("ordering_provider").last() == "LABPROV")
        assert(self.msg["OBR"].field_named("result_status") == "F")
        assert(self.msg["PV1"].field_named("visit_number") == self.msg["PID"].field_named("account_number"))

    def test_multi_occurrence(self):
        obx = self.msg.segment_of("OBX")
        assert(obx.all_occurrences(1) == ["1", "2", "3"])
        assert(obx.field_at(0, 1) == "1")
        assert(obx.all_occurrences("value") == ["4.1", "139", None])
        assert(obx.all_occurrences("result_status") == ["F", "F", "X"])
        assert([f.component_at(2) for f in obx.all_occurrences("observation_id")] == ["Potassium", "Sodium", "Chloride"])

    def test_fetch_field(self):
        assert(self.msg.fetch_field("obx5") == ["4.1", "139", None])
        assert(self.msg.fetch_field("PID8") == ["M"])
        assert(self.msg.fetch_field("zzz1") == [])

    def test_segment_order(self):
        assert(self.msg.segment_before("PID") == "MSH")
        assert(self.msg.segment_before("MSH") is None)
        assert(self.msg.segment_before("OBX") == "OBR")
        assert(self.msg.segment_after("OBX") == "NTE")
        assert(self.msg.segment_after("NTE") is None)
        assert(self.msg.segment_after("ZZZ") is None)

    def test_important_details(self):
        assert(self.msg.important_details("patient_id") == "12345678")
        assert(str(self.msg.important_details("patient_name")) == "JOHN W SMITH")
        assert(self.msg.important_details("visit_number") == "A123456")
        assert(self.msg.important_details("message_id") == self.msg.control_id)
        assert(self.msg.important_details("message_header") is self.msg.header())
        self.assertRaises(UnsupportedFieldNameError, self.msg.important_details, "favorite_color")

    def test_encounter_details(self):
        details = self.msg.encounter_details()
        assert(details["ID"] == "12345678")
        assert(details["NAME"].last == "SMITH")
        assert(details["VISIT"] == "A123456")
        assert(self.msg.encounter_details("visit") == "A123456")
        self.assertRaises(UnsupportedFieldNameError, self.msg.encounter_details, "foo")

    def test_details_without_patient(self):
        m = Message("MSH|^~\\&|A|B|||20140128||ADT^A08|ID1|T|2.4")
        assert(m.important_details("patient_id") is None)
        assert(m.important_details("patient_name") is None)
        assert(m.important_details("visit_number") is None)

    #
    # Round trip and idempotence
    #
    def test_round_trip(self):
        assert(str(self.msg) == self.lab)
        text = "MSH|^~\\&|A|B|||20140128||ORU^R01|ID1|T|2.4\r\nPID|1||123\r\n\r\n"
        assert(str(Message(text)) == text)
        assert(Message(text).line_types == ["MSH", "PID"])

    def test_idempotence(self):
        other = parse(self.lab)
        assert(other == self.msg)
        assert(other.line_types == self.msg.line_types)
        assert(list(other.segments.keys()) == list(self.msg.segments.keys()))
        assert(other.to_json() == self.msg.to_json())
        assert(Message(self.lab.replace("4.1", "4.2")) != self.msg)

    def test_carriage_returns(self):
        m = Message(self.lab.replace("\n", "\r"))
        assert(m == self.msg)

    #
    # Header tolerance
    #
    def test_header_leading_digits(self):
        plain = Message("MSH|^~\\&|HLAB|RMH|||20140128||ORU^R01|ID1|T|2.4\nPID|1||123")
        noisy = Message("12MSH|^~\\&|HLAB|RMH|||20140128||ORU^R01|ID1|T|2.4\nPID|1||123")
        assert(noisy.line_types == ["MSH", "PID"])
        assert(noisy == plain)
        assert(noisy.control_id == "ID1")

    def test_header_lowercase(self):
        lower = Message("12msh|^~\\&|A|B|||x||y|ID")
        assert(lower.line_types == ["MSH"])
        assert(lower.control_id == "ID")
        assert(Message("msh|^~\\&|A|B|||x||y|ID").line_types == lower.line_types)

    def test_custom_segment_delimiter_on_crlf(self):
        text = "MSH|^~\\&|A|B|||20140128||ORU^R01|ID1|T|2.4\r\nPID|1||123"
        m = Message(text, Format(SEGMENT_DELIM="\r"))
        assert(m.line_types == ["MSH", "PID"])
        assert(m["PID"].field_at(0, 3) == "123")
        assert(str(m) == text)

    def test_classify(self):
        assert(classify("0012MSH|^~\\&|A") == ("MSH", "^~\\&|A"))
        assert(classify("pid|1||123") == ("PID", "1||123"))
        assert(classify("EVN") == ("EVN", ""))
        assert(classify("12msh|x") == ("MSH", "x"))

    #
    # Errors
    #
    def test_missing_header(self):
        self.assertRaises(MissingHeaderError, Message, "PID|1||12345678^^^RMH^MR||SMITH^JOHN^W")
        self.assertRaises(MissingHeaderError, Message, self.no_header)
        self.assertRaises(MissingHeaderError, Message, "")
        self.assertRaises(ParseError, Message, "\n\n")

    def test_missing_control_id(self):
        self.assertRaises(MissingControlIdError, Message, "MSH|^~\\&|HLAB|RMH|||20140128||ORU^R01||T|2.4\nPID|1")
        self.assertRaises(MissingControlIdError, Message, "MSH|^~\\&|HLAB")
        self.assertRaises(ParseError, Message, "MSH|^~\\&|HLAB")

    #
    # Configuration
    #
    def test_delimiter_override(self):
        text = "MSH~*^!&~Icon~NI1~LIS~LIS~20250817141500~~ORU*R01~ALT~P~2.5\rOBR~1~ALT\rOBX~1~NM~PLT*PLATELETS~~210~^10/uL~172-440~~~H~F\r"
        m = Message(text, delim_cls=Format.from_header(text))
        assert(m.control_id == "ALT")
        assert(m.message_type == "ORU*R01")
        assert(m["OBX"].field_named("value") == "210")
        assert(m["OBX"].field_named("observation_id").components == ["PLT", "PLATELETS"])
        assert(m["OBX"].field_named("units").subcomponents(1) == ["", "10/uL"])
        assert(str(m) == text)

    def test_registry_injection(self):
        text = "MSH|^~\\&|HLAB|RMH|||20140128||ORU^R01|ID1|T|2.4\nZLB|1||FAKE^Fictitious Analyte||7.5"
        generic = Message(text)
        assert(type(generic["ZLB"]) is Segment)
        assert(generic["ZLB"].field_at(0, 5) == "7.5")
        self.assertRaises(UnsupportedFieldNameError, generic["ZLB"].field_named, "analyte")

        registry = default_registry().register("ZLB", {"analyte": 3, "value": 5})
        typed = Message(text, registry=registry)
        assert(typed["ZLB"].field_named("analyte").component_at(1) == "FAKE")
        assert(typed["ZLB"].field_named("value") == "7.5")

    def test_header_without_registry_entry(self):
        m = Message("MSH|^~\\&|HLAB|RMH|||20140128||ORU^R01|ID1|T|2.4\nPID|1", registry=SegmentRegistry())
        assert(m.control_id == "ID1")
        assert(m.message_type == "ORU^R01")
        assert(type(m.header()) is Segment)

    #
    # Views and export
    #
    def test_view_segments(self):
        lines = self.msg.view_segments().split("\n")
        assert(len(lines) == 9)
        assert(lines[0] == "MSH: ^~\\&|HLAB|RMH|||20140128041144||ORU^R01|201401280411444405|T|2.4")
        assert(lines[6] == "OBX: 2|NM|NA^Sodium^LA01||139|mmol/L|136-145|N|||F")

    def test_to_rows(self):
        rows = self.msg.toRows()
        assert(len(rows) == 9)
        assert([r["segment_name"] for r in rows] == self.msg.line_types)
        assert([r["row_number"] for r in rows] == list(range(9)))
        assert(rows[0]["row_data"] == self.lab.split("\n")[0])
        assert(rows[7]["row_data"] == "OBX|3|NM|CL^Chloride^LA01||||98-107||||X")
        assert(rows[7]["segment_length"] == 11)
        assert(rows[7]["segment_field_delim_char"] == "|")

    def test_to_json(self):
        data = self.msg.to_json()
        json.dumps(data)
        assert(data["Message.control_id"] == "201401280411444405")
        assert(data["Message.message_type"] == "ORU^R01")
        assert(data["Message.line_types"] == self.msg.line_types)
        assert(data["Message.segments"]["OBX"][2][4] is None)
        assert(data["Message.segments"]["OBX"][1][4] == "139")
        assert("Message.original_text" not in data)


if __name__ == '__main__':
    unittest.main()
