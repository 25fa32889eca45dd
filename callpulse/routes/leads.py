"""
Lead routes — leads, lead groups, lead detail with its recordings.
"""
import logging
from flask import Blueprint, jsonify, request

from callpulse.auth import current_user_id
from callpulse.services import store

logger = logging.getLogger('routes.leads')

bp = Blueprint('leads', __name__)

REQUIRED_LEAD_FIELDS = ('name', 'email', 'contact')


def _bad_request(message):
    return jsonify({'status': 'error', 'message': message}), 400


def _clean_lead(data, partial=False):
    """
    Trim string fields and check required ones.

    Returns (fields, error_message). Empty description / group become None.
    """
    if not isinstance(data, dict):
        return None, 'Expected a JSON object'

    fields = {}
    for key in ('name', 'email', 'contact', 'description'):
        if key in data:
            value = data.get(key)
            fields[key] = value.strip() if isinstance(value, str) else value
    if 'other' in data:
        fields['other'] = data.get('other')
    if 'group_id' in data:
        group_id = data.get('group_id')
        fields['group_id'] = None if group_id in (None, '', 'none') else group_id
    if 'description' in fields and not fields['description']:
        fields['description'] = None

    required = [k for k in REQUIRED_LEAD_FIELDS if k in fields] if partial else REQUIRED_LEAD_FIELDS
    if any(not fields.get(k) for k in required):
        return None, 'Name, email, and contact are required fields'
    return fields, None


# ── Leads ────────────────────────────────────────────────────────────────────

@bp.route('/api/leads', methods=['GET'])
def list_leads():
    user_id = current_user_id()
    leads = store.list_leads(
        user_id,
        group_id=request.args.get('group_id') or None,
        search=request.args.get('q') or None,
    )
    return jsonify(leads)


@bp.route('/api/leads/summary')
def lead_summary():
    return jsonify(store.lead_summary(current_user_id()))


@bp.route('/api/leads', methods=['POST'])
def create_lead():
    user_id = current_user_id()
    fields, error = _clean_lead(request.get_json(silent=True))
    if error:
        return _bad_request(error)
    lead = store.create_lead(user_id, fields)
    logger.info("Lead %s created", lead['id'])
    return jsonify(lead), 201


@bp.route('/api/leads/bulk', methods=['POST'])
def bulk_create_leads():
    user_id = current_user_id()
    payload = request.get_json(silent=True)
    rows = payload.get('leads') if isinstance(payload, dict) else payload
    if not isinstance(rows, list) or not rows:
        return _bad_request('Expected a non-empty list of leads')

    cleaned = []
    for index, row in enumerate(rows, start=1):
        fields, error = _clean_lead(row)
        if error:
            return _bad_request(f'Row {index}: {error}')
        cleaned.append(fields)

    leads = store.bulk_create_leads(user_id, cleaned)
    logger.info("Bulk created %d leads", len(leads))
    return jsonify(leads), 201


@bp.route('/api/leads/<lead_id>', methods=['GET'])
def lead_detail(lead_id):
    return jsonify(store.get_lead_detail(current_user_id(), lead_id))


@bp.route('/api/leads/<lead_id>', methods=['PATCH'])
def update_lead(lead_id):
    user_id = current_user_id()
    fields, error = _clean_lead(request.get_json(silent=True), partial=True)
    if error:
        return _bad_request(error)
    return jsonify(store.update_lead(user_id, lead_id, fields))


@bp.route('/api/leads/<lead_id>', methods=['DELETE'])
def delete_lead(lead_id):
    store.delete_lead(current_user_id(), lead_id)
    return jsonify({'status': 'success', 'id': lead_id})


# ── Lead groups ──────────────────────────────────────────────────────────────

def _group_name():
    data = request.get_json(silent=True) or {}
    name = data.get('group_name') if isinstance(data, dict) else None
    return name.strip() if isinstance(name, str) else ''


@bp.route('/api/lead-groups', methods=['GET'])
def list_lead_groups():
    return jsonify(store.list_lead_groups(current_user_id()))


@bp.route('/api/lead-groups', methods=['POST'])
def create_lead_group():
    user_id = current_user_id()
    name = _group_name()
    if not name:
        return _bad_request('Group name is required')
    return jsonify(store.create_lead_group(user_id, name)), 201


@bp.route('/api/lead-groups/<group_id>', methods=['PATCH'])
def update_lead_group(group_id):
    user_id = current_user_id()
    name = _group_name()
    if not name:
        return _bad_request('Group name is required')
    return jsonify(store.update_lead_group(user_id, group_id, name))


@bp.route('/api/lead-groups/<group_id>', methods=['DELETE'])
def delete_lead_group(group_id):
    store.delete_lead_group(current_user_id(), group_id)
    return jsonify({'status': 'success', 'id': group_id})
