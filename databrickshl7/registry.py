import re
from collections.abc import Mapping
from types import MappingProxyType

import yaml
from loguru import logger

from databrickshl7.errors import RegistryConflictError, RegistryError

CODE_PATTERN = re.compile(r"^[A-Z0-9]{3}$")

#
# Field name -> position tables, positions count the fields following the type token (starting at 1)
#  e.g. for "MSH|^~\&|HLAB|RMH|..." field 1 is the encoding characters and field 2 the sending application
#
MSH_FIELDS = {"sending_application": 2, "sending_facility": 3, "receiving_application": 4,
              "receiving_facility": 5, "date_time": 6, "security": 7, "message_type": 8,
              "event": 8, "message_control_id": 9, "processing_id": 10, "version": 11}

# http://www.corepointhealth.com/resource-center/hl7-resources/hl7-pid-segment
PID_FIELDS = {"set_id": 1, "patient_id": 3, "mrn": 3, "patient_name": 5, "mothers_maiden_name": 6,
              "date_of_birth": 7, "dob": 7, "sex": 8, "race": 10, "address": 11, "country_code": 12,
              "home_phone": 13, "business_phone": 14, "language": 15, "marital_status": 16,
              "religion": 17, "account_number": 18, "ssn": 19, "drivers_license_number": 20,
              "ethnic_group": 22, "birthplace": 23, "citizenship": 26, "military_status": 27,
              "nationality": 28, "death_date_time": 29}

PV1_FIELDS = {"set_id": 1, "patient_class": 2, "patient_location": 3, "admission_type": 4,
              "attending_doctor": 7, "referring_doctor": 8, "consulting_doctor": 9,
              "hospital_service": 10, "admit_source": 14, "vip_indicator": 16, "admitting_doctor": 17,
              "patient_type": 18, "visit_number": 19, "financial_class": 20, "discharge_disposition": 36,
              "diet_type": 38, "bed_status": 40, "admit_date_time": 44, "discharge_date_time": 45,
              "current_balance": 46, "total_charges": 47, "total_payments": 49, "visit_indicator": 51,
              "attending": 7, "referring": 8, "consulting": 9, "admitting": 17}

# http://www.corepointhealth.com/resource-center/hl7-resources/hl7-obr-segment
OBR_FIELDS = {"set_id": 1, "placer_order_number": 2, "filler_order_number": 3, "control_code": 3,
              "accession_number": 3, "service_id": 4, "procedure_id": 4, "priority": 5,
              "observation_date_time": 7, "specimen_received_date_time": 14, "specimen_source": 15,
              "ordering_provider": 16, "order_callback_number": 17, "result_date_time": 22,
              "result_status": 25}

ORC_FIELDS = {"order_control": 1, "placer_order_number": 2, "filler_order_number": 3,
              "order_status": 5, "response_flag": 6, "quantity": 7, "transaction_date_time": 9,
              "entered_by": 10, "verified_by": 11, "ordering_provider": 12}

# http://www.corepointhealth.com/resource-center/hl7-resources/hl7-obx-segment
OBX_FIELDS = {"set_id": 1, "value_type": 2, "observation_id": 3, "component_id": 3, "sub_id": 4,
              "value": 5, "units": 6, "reference_range": 7, "abnormal_flag": 8, "result_status": 11}

NTE_FIELDS = {"set_id": 1, "value": 3}

DEFAULT_TABLES = {
    "MSH": MSH_FIELDS,
    "PID": PID_FIELDS,
    "PV1": PV1_FIELDS,
    "OBR": OBR_FIELDS,
    "ORC": ORC_FIELDS,
    "OBX": OBX_FIELDS,
    "NTE": NTE_FIELDS
}


#
# Registry of typed segments: segment code -> field name table
#  Unregistered codes parse as generic (positional only) segments
#  Registration is not synchronized; finish it (and freeze) before parsing concurrently
#
class SegmentRegistry():

    def __init__(self, tables=None):
        self._tables = {}
        self._frozen = False
        for code, table in (tables or {}).items():
            self.register(code, table)

    #
    # @param code - 3 character segment code, e.g. "PID"
    # @param table - dict of field name -> position (starting at 1)
    # @returns self, so registrations can be chained
    #
    def register(self, code, table):
        if self._frozen:
            raise RegistryError("Registry is frozen, cannot register {!r}".format(code))
        code, table = self._normalize_code(code), self._normalize_table(code, table)
        existing = self._tables.get(code)
        if existing is not None:
            if dict(existing) == table:
                return self
            raise RegistryConflictError("Segment {} is already registered with a different field table".format(code))
        self._tables[code] = MappingProxyType(table)
        logger.debug("Registered segment {} with {} field names", code, len(table))
        return self

    #
    # @returns read-only name -> position table, or None for an unregistered code
    #
    def field_table_for(self, code):
        return self._tables.get(str(code).upper())

    def codes(self):
        return list(self._tables.keys())

    def copy(self):
        return SegmentRegistry({k: dict(v) for k, v in self._tables.items()})

    def freeze(self):
        self._frozen = True
        return self

    @property
    def is_frozen(self):
        return self._frozen

    @classmethod
    def from_mapping(cls, mapping):
        if not isinstance(mapping, Mapping):
            raise RegistryError("Registry configuration must be a mapping of segment code -> field table")
        return cls(mapping)

    #
    # Load a registry from YAML, e.g.
    #   ZLB:
    #     analyte: 3
    #     value: 5
    #
    @classmethod
    def from_yaml(cls, path):
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_mapping(yaml.safe_load(f) or {})

    @staticmethod
    def _normalize_code(code):
        code = str(code).upper()
        if not CODE_PATTERN.match(code):
            raise RegistryError("Segment code must be 3 letters or digits, got {!r}".format(code))
        return code

    @staticmethod
    def _normalize_table(code, table):
        if not isinstance(table, Mapping):
            raise RegistryError("Field table for {} must be a mapping of name -> position".format(code))
        normalized = {}
        for name, position in table.items():
            if isinstance(position, bool) or not isinstance(position, int) or position < 1:
                raise RegistryError("Field {!r} of {} must have a position >= 1, got {!r}".format(name, code, position))
            normalized[str(name).lower()] = position
        return normalized

    def __contains__(self, code):
        return str(code).upper() in self._tables

    def __len__(self):
        return len(self._tables)

    def __eq__(self, other):
        if not isinstance(other, SegmentRegistry):
            return False
        return {k: dict(v) for k, v in self._tables.items()} == {k: dict(v) for k, v in other._tables.items()}

    def __ne__(self, other):
        return not self.__eq__(other)

    def __getstate__(self):
        """
        Return state values to be pickled.
        MappingProxyType is not picklable, store plain dicts
        """
        return {
            'tables': {k: dict(v) for k, v in self._tables.items()},
            'frozen': self._frozen
        }

    def __setstate__(self, state):
        """
        Restore state from the unpickled state values.
        """
        self._tables = {k: MappingProxyType(v) for k, v in state['tables'].items()}
        self._frozen = state['frozen']


def default_registry():
    return SegmentRegistry(DEFAULT_TABLES)


DEFAULT_REGISTRY = default_registry().freeze()
