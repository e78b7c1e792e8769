import signal
import sys
from typing import Optional

import typer
from loguru import logger

from .config import load_settings
from .errors import DynamoDbImportError
from .importer import DynamoDbImporter

app = typer.Typer(help="Restore a DynamoDB table export from S3 into a live table")


def configure_logging(debug: bool = False):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO")


@app.command()
def main(
    manifest_bucket: Optional[str] = typer.Option(
        None, "--manifest-bucket", envvar="MANIFEST_S3_BUCKET", help="S3 bucket to the manifest file"
    ),
    manifest_key: Optional[str] = typer.Option(
        None, "--manifest-key", envvar="MANIFEST_S3_KEY", help="S3 key to the manifest summary file"
    ),
    table_name: Optional[str] = typer.Option(
        None, "--table-name", envvar="TABLE_NAME", help="DynamoDB table name to be restored"
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        envvar="CONCURRENCY",
        help="max concurrency of BatchWriteItem process (no more than 25)",
    ),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region name"),
    profile: Optional[str] = typer.Option(None, "--profile", help="AWS profile name"),
    endpoint_url: Optional[str] = typer.Option(
        None, "--endpoint-url", help="DynamoDB endpoint, e.g. http://localhost:8000"
    ),
    debug: Optional[bool] = typer.Option(None, "--debug/--no-debug", help="Log at DEBUG level"),
):
    """Import every data file listed by an export's manifest into TABLE_NAME."""
    try:
        settings = load_settings(
            manifest_s3_bucket=manifest_bucket,
            manifest_s3_key=manifest_key,
            table_name=table_name,
            concurrency=concurrency,
            aws_region=region,
            aws_profile=profile,
            dynamodb_endpoint_url=endpoint_url,
            debug=debug,
        )
    except DynamoDbImportError as e:
        configure_logging()
        logger.error(f"failed to configure the importer: {e}")
        raise typer.Exit(code=1)

    configure_logging(settings.DEBUG)
    importer = DynamoDbImporter(settings)

    previous = signal.getsignal(signal.SIGINT)

    def interrupt(signum, frame):
        logger.warning("interrupt received, cancelling the import")
        importer.cancel()

    signal.signal(signal.SIGINT, interrupt)
    try:
        result = importer.run()
    except DynamoDbImportError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)
    finally:
        signal.signal(signal.SIGINT, previous)

    logger.success(f"Imported {result.items} items into {settings.table_name}")


if __name__ == "__main__":
    app()
