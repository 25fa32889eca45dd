"""
Recording routes — intake, listing, delete, retry, and analysis records.

POST /api/recordings accepts either multipart form data (audio uploads, or
transcripts from a form) or a JSON body (transcripts).
"""
import logging
from flask import Blueprint, jsonify, request

from callpulse.auth import current_user_id
from callpulse.services import store
from callpulse.services.intake import IntakeRequest, UploadedFile, submit_recording, retry_analysis

logger = logging.getLogger('routes.recordings')

bp = Blueprint('recordings', __name__)


def _intake_request():
    """Build an IntakeRequest from JSON or form data."""
    if request.is_json:
        data = request.get_json(silent=True) or {}
        upload = None
    else:
        data = request.form
        storage = request.files.get('file')
        upload = UploadedFile.from_storage(storage) if storage and storage.filename else None

    mode = data.get('mode') or ('audio' if upload is not None else 'transcript')
    return IntakeRequest(
        mode=mode,
        name=data.get('name') or '',
        file=upload,
        transcript=data.get('transcript') or '',
        lead_id=data.get('lead_id') or None,
        call_date=data.get('call_date') or None,
        call_time=data.get('call_time') or None,
    )


@bp.route('/api/recordings', methods=['GET'])
def list_recordings():
    return jsonify(store.list_recordings(current_user_id()))


@bp.route('/api/recordings', methods=['POST'])
def create_recording():
    """Validate, store and queue a recording. IntakeError/StoreError map to 4xx/5xx."""
    user_id = current_user_id()
    result = submit_recording(user_id, _intake_request())
    return jsonify({
        'status': 'success',
        'recording_id': result.recording_id,
        'analysis_id': result.analysis_id,
        'message': result.message,
    }), 201


@bp.route('/api/recordings/<recording_id>', methods=['GET'])
def get_recording(recording_id):
    return jsonify(store.get_recording(current_user_id(), recording_id))


@bp.route('/api/recordings/<recording_id>', methods=['DELETE'])
def delete_recording(recording_id):
    store.delete_recording(current_user_id(), recording_id)
    return jsonify({'status': 'success', 'id': recording_id})


@bp.route('/api/recordings/<recording_id>/retry', methods=['POST'])
def retry_recording(recording_id):
    """Re-send a recording for analysis. 502 when the webhook rejects it."""
    result = retry_analysis(current_user_id(), recording_id)
    if not result['ok']:
        return jsonify({
            **result,
            'message': 'Failed to send recording for reprocessing. Please try again.',
        }), 502
    return jsonify({
        **result,
        'message': 'Your recording has been queued for reprocessing.',
    })


# ── Analyses ─────────────────────────────────────────────────────────────────

@bp.route('/api/analyses', methods=['GET'])
def list_analyses():
    return jsonify(store.list_analyses(current_user_id()))


@bp.route('/api/analyses/<analysis_id>', methods=['GET'])
def get_analysis(analysis_id):
    return jsonify(store.get_analysis(current_user_id(), analysis_id))


@bp.route('/api/analyses/<analysis_id>', methods=['PATCH'])
def update_analysis(analysis_id):
    """Write analysis results in place (used by the analysis pipeline)."""
    user_id = current_user_id()
    changes = request.get_json(silent=True)
    if not isinstance(changes, dict) or not changes:
        return jsonify({'status': 'error', 'message': 'Expected a JSON object'}), 400
    return jsonify(store.update_analysis(user_id, analysis_id, changes))
