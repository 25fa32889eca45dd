"""
Shared clients: Redis (query cache + change feed) and R2 object storage.

Both are built at import. Redis connects on first command, so importing this
module never needs a live server. Without R2 credentials `r2_client` stays
None and audio uploads are refused with a StoreError.
"""
import logging
import redis
import boto3
from botocore.client import Config

from callpulse.config import (
    REDIS_URL,
    R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_ENDPOINT_URL,
)

logger = logging.getLogger('callpulse.extensions')


def _build_r2_client():
    if not (R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY and R2_ENDPOINT_URL):
        logger.warning("R2 credentials not set — audio uploads will be rejected")
        return None
    try:
        client = boto3.client(
            's3',
            endpoint_url=R2_ENDPOINT_URL,
            aws_access_key_id=R2_ACCESS_KEY_ID,
            aws_secret_access_key=R2_SECRET_ACCESS_KEY,
            config=Config(signature_version='s3v4', retries={'max_attempts': 3}),
            region_name='auto',
        )
    except Exception as e:
        logger.error("Could not create R2 client: %s", e)
        return None
    logger.info("R2 client ready for %s", R2_ENDPOINT_URL)
    return client


# Cached rows are stored as JSON text, so responses are decoded to str.
redis_client = redis.from_url(REDIS_URL, decode_responses=True, health_check_interval=30)

r2_client = _build_r2_client()
