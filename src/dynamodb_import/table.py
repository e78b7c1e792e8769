"""Wait for the target table to become usable and read its key schema."""

import time

from loguru import logger

from .errors import TableNotReadyError
from .retry import DEFAULT_READINESS_OPTIONS, attempts_exhausted, fixed_delay

ACTIVE = "ACTIVE"


def hash_key_name(key_schema):
    """Return the attribute name of the HASH key, or None if there is none."""
    for key in key_schema or []:
        if key.get("KeyType") == "HASH":
            return key.get("AttributeName")
    return None


def probe_table(client, table_name, options=DEFAULT_READINESS_OPTIONS, sleep=time.sleep):
    """
    Poll DescribeTable until the table is ACTIVE, then return its hash key.

    A failing DescribeTable call is not retried: a missing table is a
    configuration problem rather than a transient one.

    Args:
        client: boto3 DynamoDB client
        table_name: Name of the target table
        options: RetryOptions; back_off_base (ms) and max_attempts are used
        sleep: Callable taking seconds, replaced in tests

    Returns:
        Name of the partition (HASH) key attribute
    """
    from botocore.exceptions import BotoCoreError, ClientError

    retries = 0
    while True:
        try:
            table = client.describe_table(TableName=table_name)["Table"]
        except (ClientError, BotoCoreError) as error:
            raise TableNotReadyError(f"failed to find the DynamoDB table: {table_name}: {error}") from error

        status = table.get("TableStatus")
        if status == ACTIVE:
            break
        if attempts_exhausted(retries, options.max_attempts):
            raise TableNotReadyError(
                f"the table status did not get ACTIVE after {options.max_attempts} attempts"
            )

        duration = fixed_delay(retries + 1, options.back_off_base)
        logger.info(f"table exists, but the status is {status}, so retry after {duration:g} sec")
        sleep(duration)
        retries += 1

    name = hash_key_name(table.get("KeySchema"))
    if not name:
        raise TableNotReadyError(f"failed to get hash key of the table: {table_name}")

    logger.debug(f"table {table_name} is ACTIVE with hash key '{name}'")
    return name
