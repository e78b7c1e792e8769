"""boto3 client construction."""


def create_session(settings):
    """Create a boto3 Session from the run settings."""
    import boto3

    session_kwargs = {}
    if settings.AWS_PROFILE:
        session_kwargs["profile_name"] = settings.AWS_PROFILE
    if settings.AWS_REGION:
        session_kwargs["region_name"] = settings.AWS_REGION

    return boto3.Session(**session_kwargs)


def create_clients(settings, session=None):
    """
    Create the DynamoDB and S3 clients used by an import.

    endpoint_url only applies to DynamoDB, so the export can be read from
    real S3 while writing into DynamoDB Local.

    Returns:
        Tuple of (dynamodb client, s3 client)
    """
    session = session or create_session(settings)

    client_kwargs = {}
    if settings.DYNAMODB_ENDPOINT_URL:
        client_kwargs["endpoint_url"] = settings.DYNAMODB_ENDPOINT_URL

    return session.client("dynamodb", **client_kwargs), session.client("s3")
