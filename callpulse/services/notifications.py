"""
Notifications — outbound calls to the external analysis webhook.

The webhook performs the actual call analysis and writes its results back to
the analyses table. From here it is fire-and-forget: one POST with a short
timeout, no auth header, response body only logged.

Notification failure never blocks recording intake.
"""
import logging
from concurrent.futures import ThreadPoolExecutor

import requests

from callpulse.config import ANALYSIS_WEBHOOK_URL, ANALYSIS_WEBHOOK_TIMEOUT

logger = logging.getLogger('services.notifications')

_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='analysis-webhook')


class WebhookError(Exception):
    """The analysis webhook could not be reached or answered non-2xx."""


def build_analysis_payload(recording, analysis_id, transcript=None):
    """Webhook body for a recording. `recording` is a recording row dict."""
    return {
        'recording_id': recording['id'],
        'analysis_id': analysis_id,
        'recording_name': recording.get('file_name') or 'Unnamed Recording',
        'recording_url': recording.get('stored_file_url'),
        'transcript': transcript if transcript is not None else recording.get('transcript'),
    }


def send_analysis_request(payload, url=None, timeout=None):
    """
    POST `payload` to the analysis webhook. Raises WebhookError on any failure.

    Returns the response status code.
    """
    url = url or ANALYSIS_WEBHOOK_URL
    if not url:
        raise WebhookError('ANALYSIS_WEBHOOK_URL not set')

    try:
        response = requests.post(
            url,
            json=payload,
            headers={'Accept': 'application/json'},
            timeout=timeout or ANALYSIS_WEBHOOK_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise WebhookError(f'Webhook request failed: {e}') from e

    if not response.ok:
        raise WebhookError(f'Webhook returned {response.status_code}')

    logger.debug("Webhook response body: %s", response.text[:500])
    return response.status_code


def _deliver(payload):
    try:
        status = send_analysis_request(payload)
        logger.info("Analysis webhook accepted recording %s (%s)", payload.get('recording_id'), status)
    except WebhookError as e:
        logger.warning("Analysis webhook failed for recording %s: %s", payload.get('recording_id'), e)
    except Exception:
        logger.error("Unexpected error notifying analysis webhook", exc_info=True)


def notify_analysis_service(payload, background=True):
    """
    Fire the analysis webhook without waiting for it.

    Every failure is logged and swallowed. With background=False the call runs
    inline, still swallowing failures.
    """
    if not ANALYSIS_WEBHOOK_URL:
        logger.warning("ANALYSIS_WEBHOOK_URL not set — recording %s will not be analyzed",
                       payload.get('recording_id'))
        return None

    if not background:
        _deliver(payload)
        return None

    try:
        return _executor.submit(_deliver, payload)
    except RuntimeError as e:
        logger.error("Could not schedule analysis webhook: %s", e)
        return None
