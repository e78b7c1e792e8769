import gzip
import io
import json

import pytest
from unittest.mock import MagicMock


def export_item(pk, **attrs):
    """Build an exported item with a string partition key 'id'."""
    item = {"id": {"S": pk}}
    for name, value in attrs.items():
        if isinstance(value, bool):
            item[name] = {"BOOL": value}
        elif isinstance(value, (int, float)):
            item[name] = {"N": str(value)}
        else:
            item[name] = {"S": value}
    return item


def gzip_lines(items):
    """Encode items the way a table export writes a data file."""
    text = "".join(json.dumps({"Item": item}) + "\n" for item in items)
    return gzip.compress(text.encode("utf-8"))


def client_error(code, operation="BatchWriteItem"):
    from botocore.exceptions import ClientError

    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3:
    """Serves objects from a dict through a MagicMock get_object."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.client = MagicMock()
        self.client.get_object.side_effect = self._get_object

    def _get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


@pytest.fixture
def fake_s3():
    return FakeS3()


@pytest.fixture
def mock_dynamodb_client():
    """DynamoDB client for an ACTIVE table keyed by 'id'."""
    client = MagicMock()
    client.describe_table.return_value = {
        "Table": {
            "TableName": "test_table",
            "TableStatus": "ACTIVE",
            "KeySchema": [
                {"AttributeName": "id", "KeyType": "HASH"},
                {"AttributeName": "sk", "KeyType": "RANGE"},
            ],
        }
    }
    client.batch_write_item.return_value = {"UnprocessedItems": {}}
    return client


@pytest.fixture
def settings(monkeypatch):
    from dynamodb_import.config import ImportSettings

    for name in ("CONCURRENCY", "RETRY_BACKOFF_BASE_MS", "RETRY_MAX_ATTEMPTS", "RETRY_TIMEOUT_MS"):
        monkeypatch.delenv(name, raising=False)

    return ImportSettings(
        MANIFEST_S3_BUCKET="export-bucket",
        MANIFEST_S3_KEY="exports/manifest-summary.json",
        TABLE_NAME="test_table",
        CONCURRENCY=3,
        RETRY_BACKOFF_BASE_MS=1,
    )


@pytest.fixture
def no_sleep():
    """Sleep stub that records durations and never waits."""
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        return False

    sleep.calls = sleeps
    return sleep
