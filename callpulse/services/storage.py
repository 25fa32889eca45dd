"""
Cloudflare R2 object storage — recording uploads.

Objects are namespaced per user:
    {user_id}/{timestamp_ms}_{display name}.{extension}
"""
import logging
import time

from callpulse import extensions
from callpulse.config import R2_BUCKET_NAME, R2_PUBLIC_URL
from callpulse.services.store import StoreError

logger = logging.getLogger('services.storage')


def file_extension(filename, default='bin'):
    """Lower-cased extension of `filename` without the dot."""
    if filename and '.' in filename:
        ext = filename.rsplit('.', 1)[1].strip().lower()
        if ext:
            return ext
    return default


def build_object_key(user_id, display_name, original_filename, now_ms=None):
    """
    Storage key for an upload.

    The millisecond timestamp keeps repeated uploads of the same display name
    from overwriting each other; path separators in the name are flattened so
    the object stays inside the user's namespace.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = display_name.strip().replace('/', '_').replace('\\', '_')
    return f"{user_id}/{now_ms}_{safe_name}.{file_extension(original_filename)}"


def public_url(object_key):
    return f"{R2_PUBLIC_URL.rstrip('/')}/{object_key}" if R2_PUBLIC_URL else object_key


def upload_recording_file(object_key, body, content_type=None):
    """Upload a recording to R2 and return its public URL. Raises StoreError."""
    client = extensions.r2_client
    if client is None:
        raise StoreError('network', 'Object storage is not configured')

    try:
        client.put_object(
            Bucket=R2_BUCKET_NAME,
            Key=object_key,
            Body=body,
            ContentType=content_type or 'application/octet-stream',
            CacheControl='max-age=3600',
        )
    except Exception as e:
        logger.error("Error uploading %s to R2: %s", object_key, e)
        raise StoreError('network', f'Upload error: {e}') from e

    url = public_url(object_key)
    logger.info("Uploaded recording to R2: %s", object_key)
    return url
