"""Tests for the import orchestration."""

import gzip
import json
import random
import threading

import pytest
from loguru import logger

from conftest import FakeS3, client_error, export_item, gzip_lines

BUCKET = "export-bucket"
SUMMARY_KEY = "exports/manifest-summary.json"
MANIFEST_LIST_KEY = "exports/manifest-files.json"


def _export(shards):
    """Build the S3 objects of an export with the given {key: (items or raw bytes)}."""
    summary = {"manifestFilesS3Key": MANIFEST_LIST_KEY, "outputFormat": "DYNAMODB_JSON"}
    manifest_lines = []
    objects = {(BUCKET, SUMMARY_KEY): json.dumps(summary).encode("utf-8")}
    for key, content in shards.items():
        if isinstance(content, bytes):
            data, count = content, None
        else:
            data, count = gzip_lines(content), len(content)
        objects[(BUCKET, key)] = data
        manifest_lines.append(json.dumps({"itemCount": count, "dataFileS3Key": key}))
    objects[(BUCKET, MANIFEST_LIST_KEY)] = ("\n".join(manifest_lines) + "\n").encode("utf-8")
    return FakeS3(objects)


class RecordingWrites:
    """batch_write_item side effect that records every request."""

    def __init__(self, fail_key=None):
        self.fail_key = fail_key
        self.requests = []
        self._lock = threading.Lock()

    def __call__(self, RequestItems):
        group = RequestItems["test_table"]
        keys = [request["PutRequest"]["Item"]["id"]["S"] for request in group]
        with self._lock:
            self.requests.append(keys)
        if self.fail_key in keys:
            raise client_error("ValidationException")
        return {"UnprocessedItems": {}}

    @property
    def written(self):
        return [key for keys in self.requests for key in keys]


def _importer(settings, dynamodb, s3, no_sleep):
    from dynamodb_import.importer import DynamoDbImporter

    return DynamoDbImporter(
        settings,
        dynamodb_client=dynamodb,
        s3_client=s3.client,
        rng=random.Random(1),
        jitter_rng=random.Random(2),
        sleep=no_sleep,
    )


def test_run_imports_every_shard(settings, mock_dynamodb_client, no_sleep):
    """Test all items of all shards are written in valid groups."""
    shard_a = [export_item(f"a-{i % 7}", seq=i) for i in range(120)]
    shard_b = [export_item(f"b-{i}", seq=i) for i in range(40)]
    s3 = _export({"data/a.json.gz": shard_a, "data/b.json.gz": shard_b})
    writes = RecordingWrites()
    mock_dynamodb_client.batch_write_item.side_effect = writes

    result = _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    assert result.shards == 2
    assert result.items == 160
    assert sorted(writes.written) == sorted(item["id"]["S"] for item in shard_a + shard_b)
    for keys in writes.requests:
        assert 0 < len(keys) <= 25
        assert len(keys) == len(set(keys))


def test_decode_error_fails_only_that_shard(settings, mock_dynamodb_client, no_sleep):
    """Test a bad line in shard 1 is one error and shard 2 is fully written."""
    from dynamodb_import.errors import ItemDecodeError, MultipleErrors, ShardImportError

    lines = [json.dumps({"Item": export_item(f"one-{i}")}) for i in range(10)]
    lines[4] = "{not json"
    shard_one = gzip.compress(("\n".join(lines) + "\n").encode("utf-8"))
    shard_two = [export_item(f"two-{i}") for i in range(10)]
    s3 = _export({"data/one.json.gz": shard_one, "data/two.json.gz": shard_two})
    writes = RecordingWrites()
    mock_dynamodb_client.batch_write_item.side_effect = writes

    with pytest.raises(MultipleErrors) as excinfo:
        _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    errors = excinfo.value.errors
    assert len(errors) == 1
    assert isinstance(errors[0], ShardImportError)
    assert errors[0].manifest.data_object_key == "data/one.json.gz"
    assert isinstance(errors[0].cause, ItemDecodeError)
    assert {f"two-{i}" for i in range(10)} <= set(writes.written)


def test_failed_group_is_reported_with_its_shard(settings, mock_dynamodb_client, no_sleep):
    """Test a non-retryable write failure fails the shard after draining it."""
    from dynamodb_import.errors import MultipleErrors, ShardImportError

    items = [export_item(f"id-{i}") for i in range(60)]
    s3 = _export({"data/a.json.gz": items})
    writes = RecordingWrites(fail_key="id-3")
    mock_dynamodb_client.batch_write_item.side_effect = writes

    with pytest.raises(MultipleErrors) as excinfo:
        _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    (error,) = excinfo.value.errors
    assert isinstance(error, ShardImportError)
    assert isinstance(error.cause, MultipleErrors)
    assert "ValidationException" in str(error)
    assert set(writes.written) == {f"id-{i}" for i in range(60)}


def test_table_not_ready_aborts_before_reading(settings, mock_dynamodb_client, no_sleep):
    """Test a missing table stops the run before any S3 access."""
    from dynamodb_import.errors import TableNotReadyError

    s3 = _export({"data/a.json.gz": [export_item("a")]})
    mock_dynamodb_client.describe_table.side_effect = client_error("ResourceNotFoundException", "DescribeTable")

    with pytest.raises(TableNotReadyError):
        _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    s3.client.get_object.assert_not_called()
    mock_dynamodb_client.batch_write_item.assert_not_called()


def test_invalid_summary_aborts_before_writes(settings, mock_dynamodb_client, no_sleep):
    """Test an unusable summary fails the run with no writes."""
    from dynamodb_import.errors import ManifestError

    s3 = _export({"data/a.json.gz": [export_item("a")]})
    s3.objects[(BUCKET, SUMMARY_KEY)] = json.dumps({"manifestFilesS3Key": "", "outputFormat": "ION"}).encode()

    with pytest.raises(ManifestError):
        _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    mock_dynamodb_client.batch_write_item.assert_not_called()


def test_item_count_mismatch_is_a_warning(settings, mock_dynamodb_client, no_sleep):
    """Test a shard with fewer items than listed still succeeds with a warning."""
    from dynamodb_import.manifest import ShardManifest

    s3 = _export({"data/a.json.gz": [export_item("a"), export_item("b")]})
    importer = _importer(settings, mock_dynamodb_client, s3, no_sleep)
    messages = []
    handler = logger.add(messages.append, level="WARNING")
    try:
        shard = importer.import_shard(ShardManifest("data/a.json.gz", item_count=5), "id")
    finally:
        logger.remove(handler)

    assert shard.items == 2
    assert any("lists 5 items, but 2 were read" in message for message in messages)


def test_cancel_skips_remaining_shards(settings, mock_dynamodb_client, no_sleep):
    """Test a cancelled importer writes nothing and reports the cancellation."""
    from dynamodb_import.errors import ImportCancelledError, MultipleErrors

    s3 = _export({"data/a.json.gz": [export_item("a")]})
    importer = _importer(settings, mock_dynamodb_client, s3, no_sleep)
    importer.cancel()

    with pytest.raises(MultipleErrors) as excinfo:
        importer.run()

    assert isinstance(excinfo.value.errors[0], ImportCancelledError)
    mock_dynamodb_client.batch_write_item.assert_not_called()


def test_multiple_errors_message_lists_every_failure():
    """Test the aggregate message enumerates its errors."""
    from dynamodb_import.errors import MultipleErrors

    error = MultipleErrors([ValueError("first"), ValueError("second")], prefix="import failed")

    assert str(error) == "import failed: 2 error(s) occurred\n  * first\n  * second"


def test_malformed_attribute_fails_only_that_shard(settings, mock_dynamodb_client, no_sleep):
    """Test a structurally wrong set value fails its shard and the next shard still imports."""
    from dynamodb_import.errors import ItemDecodeError, MultipleErrors, ShardImportError

    bad = [{"id": {"S": "b"}, "tags": {"SS": None}}]
    good = [export_item(f"good-{i}") for i in range(5)]
    s3 = _export({"data/bad.json.gz": bad, "data/good.json.gz": good})
    writes = RecordingWrites()
    mock_dynamodb_client.batch_write_item.side_effect = writes

    with pytest.raises(MultipleErrors) as excinfo:
        _importer(settings, mock_dynamodb_client, s3, no_sleep).run()

    (error,) = excinfo.value.errors
    assert isinstance(error, ShardImportError)
    assert error.manifest.data_object_key == "data/bad.json.gz"
    assert isinstance(error.cause, ItemDecodeError)
    assert sorted(writes.written) == [f"good-{i}" for i in range(5)]


def test_write_failures_kept_when_decoding_fails(settings, mock_dynamodb_client, no_sleep, monkeypatch):
    """Test groups that failed before a decode error stay in the shard error."""
    from dynamodb_import.errors import BatchWriteError, ItemDecodeError, MultipleErrors, ShardImportError
    from dynamodb_import.grouping import BATCH_CAP
    from dynamodb_import.manifest import ShardManifest

    attempted = threading.Event()

    def batch_write_item(RequestItems):
        attempted.set()
        raise client_error("ValidationException")

    class BreaksAfterOneGroup:
        items_read = 0

        def __init__(self, s3_client, bucket, key):
            pass

        def __iter__(self):
            for i in range(BATCH_CAP):
                yield export_item("same", seq=i)
            attempted.wait(5)
            raise ItemDecodeError("failed to parse JSON as DynamoDB item at line 26")

    mock_dynamodb_client.batch_write_item.side_effect = batch_write_item
    monkeypatch.setattr("dynamodb_import.importer.ExportDataReader", BreaksAfterOneGroup)
    importer = _importer(settings, mock_dynamodb_client, FakeS3(), no_sleep)

    with pytest.raises(ShardImportError) as excinfo:
        importer.import_shard(ShardManifest("data/a.json.gz", item_count=30), "id")

    cause = excinfo.value.cause
    assert isinstance(cause, MultipleErrors)
    assert isinstance(cause.errors[0], ItemDecodeError)
    assert len(cause.errors) >= 2
    assert all(isinstance(error, BatchWriteError) for error in cause.errors[1:])
