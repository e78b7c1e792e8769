"""Export summary and manifest list loading."""

import json
from dataclasses import dataclass
from typing import Optional

from .errors import ManifestError

NATIVE_OUTPUT_FORMAT = "DYNAMODB_JSON"


@dataclass(frozen=True)
class Summary:
    """The manifest-summary.json object written by a table export."""

    manifest_list_key: str
    output_format: str


@dataclass(frozen=True)
class ShardManifest:
    """
    One exported data object.

    Each line of the manifest list object describes one gzip-compressed
    data file produced by the export.
    """

    data_object_key: str
    item_count: Optional[int] = None


def _get_object_bytes(s3_client, bucket, key):
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
    except (ClientError, BotoCoreError) as error:
        raise ManifestError(f"failed to fetch s3://{bucket}/{key}: {error}") from error
    return response["Body"].read()


def load_summary(s3_client, bucket, key):
    """
    Fetch and validate the export summary.

    Args:
        s3_client: boto3 S3 client
        bucket: Bucket holding the export
        key: Key of the summary object

    Returns:
        Summary
    """
    body = _get_object_bytes(s3_client, bucket, key)
    try:
        data = json.loads(body)
    except ValueError as error:
        raise ManifestError(f"failed to decode JSON in the summary file: {error}") from error
    if not isinstance(data, dict):
        raise ManifestError(f"the summary file is invalid: {data!r}")

    summary = Summary(
        manifest_list_key=data.get("manifestFilesS3Key") or "",
        output_format=data.get("outputFormat") or "",
    )
    if not summary.manifest_list_key or summary.output_format != NATIVE_OUTPUT_FORMAT:
        raise ManifestError(f"the summary file is invalid: {summary}")
    return summary


def parse_shard_manifest(line):
    """Decode one line of the manifest list."""
    try:
        data = json.loads(line)
    except ValueError as error:
        raise ManifestError(f"failed to decode JSON in the manifest file: {error}") from error

    if not isinstance(data, dict) or not data.get("dataFileS3Key"):
        raise ManifestError(f"manifest entry has no dataFileS3Key: {line!r}")

    item_count = data.get("itemCount")
    if item_count is not None and not isinstance(item_count, int):
        raise ManifestError(f"manifest entry has a non-integer itemCount: {line!r}")

    return ShardManifest(data_object_key=data["dataFileS3Key"], item_count=item_count)


def load_shard_manifests(s3_client, bucket, key):
    """
    Fetch the manifest list and decode every entry.

    A single bad entry fails the whole list, since the set of shards could
    not be verified as complete otherwise.

    Returns:
        List of ShardManifest in file order
    """
    body = _get_object_bytes(s3_client, bucket, key)
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as error:
        raise ManifestError(f"the manifest file is not UTF-8: {error}") from error

    return [parse_shard_manifest(line) for line in text.splitlines() if line.strip()]
