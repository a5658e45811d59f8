import pyarrow as pa
import json
from typing import Iterator
from pyspark.sql.types import StructType, StructField, StringType
from databrickshl7.errors import ParseError
from databrickshl7.message import Message


#
# Parse one message into its json string, failures are reported in the row instead of failing the batch
#
def _to_json(hl7_string):
    if hl7_string is None:
        return None
    try:
        return json.dumps(Message(hl7_string).to_json())
    except ParseError as e:
        return json.dumps({"error": "{}: {}".format(e.__class__.__name__, e)})


#
# Function to run on mapInArrow(from_hl7...)
#  e.g. spark.read.text(path, wholetext=True).mapInArrow(from_hl7, output_schema)
#
def from_hl7(batches: Iterator[pa.RecordBatch]) -> Iterator[pa.RecordBatch]:
    return map(lambda batch: pa.RecordBatch.from_arrays(
        [
            # Column 1: an optional PK column if specified
            batch.column("pk") if "pk" in batch.schema.names else pa.array([""] * batch.num_rows, type=pa.string()),
            # Column 2: the original HL7 content (reusing the input array)
            batch.column("value"),
            # Column 3: the parsed JSON data
            pa.array([_to_json(x) for x in batch.column("value").to_pylist()], type=pa.string())
        ],
        names=['pk', 'hl7_content', 'hl7_json']
    ), batches)


output_schema = StructType([
    StructField("pk", StringType(), True),
    StructField("hl7_content", StringType(), True),
    StructField("hl7_json", StringType(), True)
])
