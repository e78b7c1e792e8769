"""Reader for the gzip-compressed, newline-delimited data objects of an export."""

import gzip
import json
import zlib

from .errors import DynamoDbImportError, ItemDecodeError


class ExportDataReader:
    """
    Streams the items of one exported data object.

    The object is read sequentially; each non-blank line has the shape
    {"Item": {<attribute name>: <tagged value>, ...}}.
    """

    def __init__(self, s3_client, bucket, key):
        """
        Initialize the reader. Nothing is fetched until iteration starts.

        Args:
            s3_client: boto3 S3 client
            bucket: Bucket holding the export
            key: Key of the data object
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.key = key
        self.items_read = 0

    @property
    def uri(self):
        return f"s3://{self.bucket}/{self.key}"

    def _open(self):
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=self.key)
        except (ClientError, BotoCoreError) as error:
            raise DynamoDbImportError(f"failed to get the file from {self.uri}: {error}") from error
        return response["Body"]

    def __iter__(self):
        """
        Yield exported items in file order.

        Yields:
            Item as a dict of attribute name to tagged export value
        """
        body = self._open()
        line_number = 0
        try:
            with gzip.GzipFile(fileobj=body, mode="rb") as stream:
                for line_number, raw in enumerate(stream, start=1):
                    if not raw.strip():
                        continue
                    yield self._decode_line(raw, line_number)
        except (OSError, EOFError, zlib.error) as error:
            raise ItemDecodeError(
                f"failed to decompress {self.uri} after line {line_number}: {error}"
            ) from error
        finally:
            close = getattr(body, "close", None)
            if close:
                close()

    def _decode_line(self, raw, line_number):
        try:
            row = json.loads(raw)
        except ValueError as error:
            raise ItemDecodeError(
                f"failed to parse JSON as DynamoDB item at {self.uri}:{line_number}: {error}"
            ) from error

        if not isinstance(row, dict) or not isinstance(row.get("Item"), dict):
            raise ItemDecodeError(f"line {line_number} of {self.uri} has no Item object")

        self.items_read += 1
        return row["Item"]
