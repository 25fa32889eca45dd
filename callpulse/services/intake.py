"""
Recording intake — turns an uploaded call file or pasted transcript into a
Recording + placeholder Analysis and hands it to the analysis webhook.

Order of work:
  0. field types              → IntakeError (text fields must be strings)
  1. required fields          → MissingFieldError
  2. file type / size (audio) → UnsupportedFileTypeError / FileTooLargeError
  3. name uniqueness          → DuplicateNameError
  4. upload (audio only), insert recording, insert analysis, notify webhook

Validation failures happen before any upload or write. A failed analysis
insert after a successful recording insert is logged and tolerated: the
recording stands without an analysis row and no compensating delete is made.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, date, time
from typing import Optional, BinaryIO

from callpulse.config import SUPPORTED_MEDIA_TYPES, SUPPORTED_EXTENSIONS, MAX_UPLOAD_BYTES
from callpulse.services import store
from callpulse.services.notifications import (
    WebhookError, build_analysis_payload, notify_analysis_service, send_analysis_request,
)
from callpulse.services.storage import build_object_key, upload_recording_file
from callpulse.services.store import StoreError

logger = logging.getLogger('services.intake')

AUDIO = 'audio'
TRANSCRIPT = 'transcript'
MODES = (AUDIO, TRANSCRIPT)

FILE_TOO_LARGE_MESSAGE = 'File size exceeds 100MB. Please upload a smaller file.'


class IntakeError(Exception):
    """A user-correctable problem with the submitted recording."""
    code = 'invalid_request'
    status_code = 400

    def __init__(self, message):
        self.message = message
        super().__init__(message)


class MissingFieldError(IntakeError):
    code = 'missing_field'


class UnsupportedFileTypeError(IntakeError):
    code = 'unsupported_file_type'


class FileTooLargeError(IntakeError):
    code = 'file_too_large'


class DuplicateNameError(IntakeError):
    code = 'duplicate_name'
    status_code = 409


@dataclass
class UploadedFile:
    filename: str
    content_type: Optional[str]
    size: int
    stream: BinaryIO

    @classmethod
    def from_storage(cls, file_storage):
        """Wrap a werkzeug FileStorage, measuring its size without reading it into memory."""
        stream = file_storage.stream
        stream.seek(0, 2)
        size = stream.tell()
        stream.seek(0)
        return cls(
            filename=file_storage.filename or '',
            content_type=file_storage.mimetype or file_storage.content_type,
            size=size,
            stream=stream,
        )


@dataclass
class IntakeRequest:
    mode: str
    name: str = ''
    file: Optional[UploadedFile] = None
    transcript: str = ''
    lead_id: Optional[str] = None
    call_date: Optional[str] = None     # YYYY-MM-DD
    call_time: Optional[str] = None     # HH:MM


@dataclass
class IntakeResult:
    recording_id: str
    analysis_id: Optional[str]
    mode: str

    @property
    def message(self):
        if self.mode == AUDIO:
            return 'Your recording has been uploaded and queued for analysis.'
        return 'Your transcript has been saved and queued for analysis.'


# ── Validation ───────────────────────────────────────────────────────────────

def validate_types(req):
    for field in ('mode', 'name', 'transcript', 'lead_id', 'call_date', 'call_time'):
        value = getattr(req, field)
        if value is not None and not isinstance(value, str):
            raise IntakeError(f"'{field}' must be a string")


def validate_required(req):
    if req.mode not in MODES:
        raise IntakeError(f"Unknown mode '{req.mode}'. Use 'audio' or 'transcript'.")
    name = (req.name or '').strip()
    if req.mode == AUDIO:
        if req.file is None or not name:
            raise MissingFieldError('Please select a file and provide a name')
    elif not (req.transcript or '').strip() or not name:
        raise MissingFieldError('Please provide both a transcript and a recording name')


def is_supported_file(filename, content_type):
    """Accepted if either the declared media type or the extension is supported."""
    if content_type and content_type.lower() in SUPPORTED_MEDIA_TYPES:
        return True
    return (filename or '').lower().endswith(SUPPORTED_EXTENSIONS)


def validate_audio_file(filename, content_type, size):
    if not is_supported_file(filename, content_type):
        raise UnsupportedFileTypeError(
            'Invalid file type. Please upload an audio file (MP3, WAV, M4A, OGG, WEBM, FLAC) '
            'or video file (MP4, WEBM).'
        )
    if size > MAX_UPLOAD_BYTES:
        raise FileTooLargeError(FILE_TOO_LARGE_MESSAGE)


def ensure_unique_name(user_id, name):
    if store.recording_name_exists(user_id, name):
        raise DuplicateNameError(
            'A recording with this name already exists. Please choose a different name.'
        )


def combine_call_datetime(call_date, call_time):
    """
    Merge a date and an HH:MM time into one datetime.

    Both parts are required; either missing yields None.
    """
    if not call_date or not call_time:
        return None
    try:
        day = call_date if isinstance(call_date, date) else date.fromisoformat(str(call_date)[:10])
        hours, minutes = str(call_time).split(':')[:2]
        return datetime.combine(day, time(int(hours), int(minutes)))
    except (TypeError, ValueError) as e:
        raise IntakeError(f'Invalid call date/time: {call_date} {call_time}') from e


def validate(user_id, req):
    """Run every check in order. Raises the first IntakeError found."""
    validate_types(req)
    validate_required(req)
    if req.mode == AUDIO:
        validate_audio_file(req.file.filename, req.file.content_type, req.file.size)
    combine_call_datetime(req.call_date, req.call_time)
    ensure_unique_name(user_id, req.name.strip())


# ── Workflow ─────────────────────────────────────────────────────────────────

def submit_recording(user_id, req):
    """
    Validate, persist and queue a recording for analysis.

    Raises IntakeError for user-correctable problems and StoreError when the
    store or object storage rejects the work. Webhook failures never raise.
    """
    validate(user_id, req)

    name = req.name.strip()
    file_url = None
    file_size = None

    if req.mode == AUDIO:
        key = build_object_key(user_id, name, req.file.filename)
        file_url = upload_recording_file(key, req.file.stream, req.file.content_type)
        file_size = req.file.size

    transcript = req.transcript.strip() if req.mode == TRANSCRIPT else None

    try:
        recording = store.create_recording(
            user_id,
            file_name=name,
            lead_id=req.lead_id or None,
            file_size=file_size,
            stored_file_url=file_url,
            transcript=transcript,
            call_date=combine_call_datetime(req.call_date, req.call_time),
        )
    except StoreError as e:
        if e.kind == 'constraint':
            # lost the check-then-insert race to a concurrent submission
            raise DuplicateNameError(
                'A recording with this name already exists. Please choose a different name.'
            ) from e
        raise

    analysis_id = None
    try:
        analysis_id = store.create_analysis(user_id, recording['id'])['id']
    except StoreError:
        logger.warning("Failed to create analysis record for recording %s", recording['id'], exc_info=True)

    payload = build_analysis_payload(recording, analysis_id, transcript=transcript)
    notify_analysis_service(payload)

    logger.info("Recording %s added via %s intake", recording['id'], req.mode)
    return IntakeResult(recording_id=recording['id'], analysis_id=analysis_id, mode=req.mode)


def retry_analysis(user_id, recording_id):
    """
    Re-send a recording to the analysis webhook.

    The analysis flips to 'processing' before the call and back to 'failed'
    if the webhook raises or answers non-2xx. Returns
    {'recording_id', 'analysis_id', 'status', 'ok'}.
    """
    recording = store.get_recording(user_id, recording_id)
    analysis = store.get_analysis_for_recording(user_id, recording_id)
    analysis_id = analysis['id'] if analysis else None

    if analysis_id:
        store.update_analysis(user_id, analysis_id, {'status': 'processing'})

    payload = build_analysis_payload(recording, analysis_id)
    try:
        send_analysis_request(payload)
    except WebhookError as e:
        logger.warning("Retry failed for recording %s: %s", recording_id, e)
        if analysis_id:
            store.update_analysis(user_id, analysis_id, {'status': 'failed'})
        return {'recording_id': recording_id, 'analysis_id': analysis_id, 'status': 'failed', 'ok': False}

    logger.info("Recording %s queued for reprocessing", recording_id)
    return {'recording_id': recording_id, 'analysis_id': analysis_id, 'status': 'processing', 'ok': True}
