from loguru import logger

# Library logging stays silent until the application calls logger.enable("databrickshl7")
logger.disable("databrickshl7")

from .errors import *
from .format import *
from .registry import SegmentRegistry, default_registry, DEFAULT_REGISTRY
from .field import Field, PersonName
from .segment import Segment, TypedSegment, segment_for
from .message import Message, HL7Manager, parse, classify

# Optional imports - only available if pyarrow/pyspark are installed
try:
    from .mapinarrow_functions import *
except ImportError:
    # pyarrow/pyspark not available - mapinarrow_functions will not be available
    pass
