import boto3
from boto3.session import Session
from botocore.client import BaseClient
from botocore.config import Config

from app.core.config import get_settings

settings = get_settings()


def _build_session() -> Session:
    return boto3.Session(
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        region_name=settings.aws_region,
    )


def build_s3_client() -> BaseClient:
    session = _build_session()
    return session.client("s3", config=Config(signature_version="s3v4"))
