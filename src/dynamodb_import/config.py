from typing import Optional

from loguru import logger
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .retry import DEFAULT_RETRY_OPTIONS
from .writer import MAX_CONCURRENCY

DEFAULT_CONCURRENCY = MAX_CONCURRENCY


class ImportSettings(BaseSettings):
    MANIFEST_S3_BUCKET: Optional[str] = None
    MANIFEST_S3_KEY: Optional[str] = None
    TABLE_NAME: Optional[str] = None
    CONCURRENCY: Optional[int] = None

    AWS_REGION: Optional[str] = None
    AWS_PROFILE: Optional[str] = None
    DYNAMODB_ENDPOINT_URL: Optional[str] = None

    RETRY_BACKOFF_BASE_MS: Optional[int] = Field(None, ge=0)
    RETRY_MAX_ATTEMPTS: Optional[int] = Field(None, ge=0)
    RETRY_TIMEOUT_MS: Optional[int] = Field(None, ge=0)

    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def manifest_bucket(self) -> Optional[str]:
        return self.MANIFEST_S3_BUCKET

    @property
    def manifest_key(self) -> Optional[str]:
        return self.MANIFEST_S3_KEY

    @property
    def table_name(self) -> Optional[str]:
        return self.TABLE_NAME

    @property
    def concurrency(self) -> int:
        return self.CONCURRENCY if self.CONCURRENCY is not None else DEFAULT_CONCURRENCY

    def retry_options(self):
        return DEFAULT_RETRY_OPTIONS.with_overrides(
            back_off_base=self.RETRY_BACKOFF_BASE_MS,
            max_attempts=self.RETRY_MAX_ATTEMPTS,
            timeout_ms=self.RETRY_TIMEOUT_MS,
        )

    def problems(self) -> list:
        """Every reason this configuration cannot be run, in a stable order."""
        problems = []
        if not self.MANIFEST_S3_BUCKET:
            problems.append("the bucket name of manifest file on S3 is required, but not set")
        if not self.MANIFEST_S3_KEY:
            problems.append("the key name of manifest file on S3 is required, but not set")
        if not self.TABLE_NAME:
            problems.append("the table name of DynamoDB to import data into is required, but not set")
        if self.CONCURRENCY is not None and not 1 <= self.CONCURRENCY <= MAX_CONCURRENCY:
            problems.append(
                f"concurrency (c) needs to fill: 0 < c <= {MAX_CONCURRENCY}, but was {self.CONCURRENCY}"
            )
        return problems


def load_settings(**overrides) -> ImportSettings:
    """
    Build and validate settings from the environment plus explicit overrides.

    Keyword names are the lower-case setting names (manifest_s3_bucket,
    table_name, concurrency, ...). None values are ignored so unset CLI
    options fall back to the environment.
    """
    values = {name.upper(): value for name, value in overrides.items() if value is not None}
    invalid = []
    try:
        settings = ImportSettings(**values)
    except ValidationError as error:
        invalid = [f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in error.errors()]
        # Reset the unparseable fields so the remaining checks still run.
        for e in error.errors():
            name = e["loc"][0] if e["loc"] else None
            if name in ImportSettings.model_fields:
                values[name] = ImportSettings.model_fields[name].default
        try:
            settings = ImportSettings(**values)
        except ValidationError as retry_error:
            raise ConfigurationError(invalid) from retry_error

    problems = invalid + settings.problems()
    if problems:
        raise ConfigurationError(problems)

    if settings.CONCURRENCY is None:
        logger.debug(f"concurrency is not specified, then set to default ({DEFAULT_CONCURRENCY})")
    return settings
