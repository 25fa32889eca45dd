"""
Data access layer — user-scoped list/create/update/delete for every entity.

Every function takes the authenticated user id first and only ever touches
that user's rows. Rows come back as plain dicts (model.to_dict()). SQLAlchemy
failures are rolled back and re-raised as StoreError; nothing here swallows
a failed write.

Mutations publish a change event and drop the affected cache keys before
returning, so a caller that reads right after a write never sees the
pre-write collection.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import or_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from callpulse.database import get_session
from callpulse.models.analysis import Analysis, UPDATABLE_FIELDS
from callpulse.models.lead import Lead
from callpulse.models.lead_group import LeadGroup
from callpulse.models.metrics_aggregate import MetricsAggregate
from callpulse.models.recording import Recording
from callpulse.services.cache import (
    get_cache,
    RECORDINGS, ANALYSES, METRICS_AGGREGATES, LEADS, LEAD_GROUPS, DASHBOARD_STATS,
)
from callpulse.services.changes import publish_change

logger = logging.getLogger('services.store')

LEAD_FIELDS = ('name', 'email', 'contact', 'description', 'other', 'group_id')


class StoreError(Exception):
    """
    A store operation failed.

    kind:
        network           — connection/driver failure, or any unexpected DB error
        constraint        — a uniqueness or integrity rule rejected the write
        not_found         — row does not exist for this user
        not_authenticated — no user id supplied
    """

    def __init__(self, kind, message):
        self.kind = kind
        self.message = message
        super().__init__(message)


def _require_user(user_id):
    if not user_id:
        raise StoreError('not_authenticated', 'User not authenticated')


@contextmanager
def _store_session(action):
    session = get_session()
    try:
        yield session
    except StoreError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        logger.warning("Integrity error during %s: %s", action, e.orig)
        raise StoreError('constraint', f'{action} rejected by a store constraint') from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Store failure during %s", action, exc_info=True)
        raise StoreError('network', f'{action} failed') from e
    finally:
        session.close()


def _changed(table, event, user_id, row_id=None):
    """Invalidate locally, then tell other processes."""
    change = {'table': table, 'event': event, 'user_id': user_id, 'id': row_id}
    get_cache().apply_change(change)
    publish_change(table, event, user_id, row_id)


def _owned(session, model, user_id, row_id, label):
    row = session.query(model).filter(model.id == row_id, model.user_id == user_id).first()
    if row is None:
        raise StoreError('not_found', f'{label} {row_id} not found')
    return row


def _check_group(session, user_id, group_id):
    if group_id:
        _owned(session, LeadGroup, user_id, group_id, 'Lead group')


# ── Lead groups ──────────────────────────────────────────────────────────────

def list_lead_groups(user_id):
    _require_user(user_id)

    def load():
        with _store_session('list lead groups') as session:
            rows = session.query(LeadGroup).filter(
                LeadGroup.user_id == user_id,
            ).order_by(LeadGroup.created_at.desc()).all()
            return [row.to_dict() for row in rows]

    return get_cache().get_or_load(LEAD_GROUPS, user_id, load)


def create_lead_group(user_id, group_name):
    _require_user(user_id)
    with _store_session('create lead group') as session:
        group = LeadGroup(user_id=user_id, group_name=group_name)
        session.add(group)
        session.commit()
        data = group.to_dict()
    _changed(LEAD_GROUPS, 'INSERT', user_id, data['id'])
    return data


def update_lead_group(user_id, group_id, group_name):
    _require_user(user_id)
    with _store_session('update lead group') as session:
        group = _owned(session, LeadGroup, user_id, group_id, 'Lead group')
        group.group_name = group_name
        session.commit()
        data = group.to_dict()
    _changed(LEAD_GROUPS, 'UPDATE', user_id, group_id)
    return data


def delete_lead_group(user_id, group_id):
    """Delete a group; its leads stay, detached (group_id → null)."""
    _require_user(user_id)
    with _store_session('delete lead group') as session:
        group = _owned(session, LeadGroup, user_id, group_id, 'Lead group')
        session.query(Lead).filter(
            Lead.user_id == user_id, Lead.group_id == group_id,
        ).update({Lead.group_id: None}, synchronize_session=False)
        session.delete(group)
        session.commit()
    _changed(LEAD_GROUPS, 'DELETE', user_id, group_id)
    return group_id


# ── Leads ────────────────────────────────────────────────────────────────────

def list_leads(user_id, group_id=None, search=None):
    """
    Leads newest first, with their group joined.

    Only the unfiltered list is cached; group and search filters always hit
    the store.
    """
    _require_user(user_id)

    def load():
        with _store_session('list leads') as session:
            query = session.query(Lead).filter(Lead.user_id == user_id)
            if group_id:
                query = query.filter(Lead.group_id == group_id)
            if search:
                pattern = f'%{search.strip().lower()}%'
                query = query.filter(or_(
                    func.lower(Lead.name).like(pattern),
                    func.lower(Lead.email).like(pattern),
                    func.lower(Lead.contact).like(pattern),
                ))
            rows = query.order_by(Lead.created_at.desc()).all()
            return [row.to_dict() for row in rows]

    if group_id or search:
        return load()
    return get_cache().get_or_load(LEADS, user_id, load)


def get_lead(user_id, lead_id):
    _require_user(user_id)
    with _store_session('get lead') as session:
        return _owned(session, Lead, user_id, lead_id, 'Lead').to_dict()


def lead_summary(user_id):
    """Counts for the leads overview: total, grouped, ungrouped."""
    leads = list_leads(user_id)
    grouped = sum(1 for lead in leads if lead.get('group_id'))
    return {
        'total': len(leads),
        'grouped': grouped,
        'ungrouped': len(leads) - grouped,
    }


def create_lead(user_id, fields):
    _require_user(user_id)
    with _store_session('create lead') as session:
        _check_group(session, user_id, fields.get('group_id'))
        lead = Lead(user_id=user_id, **{k: fields.get(k) for k in LEAD_FIELDS})
        session.add(lead)
        session.commit()
        data = lead.to_dict()
    _changed(LEADS, 'INSERT', user_id, data['id'])
    return data


def bulk_create_leads(user_id, rows):
    """Insert many leads in one commit. All or nothing."""
    _require_user(user_id)
    with _store_session('bulk create leads') as session:
        for group_id in {row.get('group_id') for row in rows if row.get('group_id')}:
            _check_group(session, user_id, group_id)
        leads = [Lead(user_id=user_id, **{k: row.get(k) for k in LEAD_FIELDS}) for row in rows]
        session.add_all(leads)
        session.commit()
        data = [lead.to_dict() for lead in leads]
    _changed(LEADS, 'INSERT', user_id)
    return data


def update_lead(user_id, lead_id, changes):
    _require_user(user_id)
    with _store_session('update lead') as session:
        lead = _owned(session, Lead, user_id, lead_id, 'Lead')
        if 'group_id' in changes:
            _check_group(session, user_id, changes['group_id'])
        for key in LEAD_FIELDS:
            if key in changes:
                setattr(lead, key, changes[key])
        session.commit()
        data = lead.to_dict()
    _changed(LEADS, 'UPDATE', user_id, lead_id)
    return data


def delete_lead(user_id, lead_id):
    """Delete a lead; its recordings stay, detached (lead_id → null)."""
    _require_user(user_id)
    with _store_session('delete lead') as session:
        lead = _owned(session, Lead, user_id, lead_id, 'Lead')
        session.query(Recording).filter(
            Recording.user_id == user_id, Recording.lead_id == lead_id,
        ).update({Recording.lead_id: None}, synchronize_session=False)
        session.delete(lead)
        session.commit()
    _changed(LEADS, 'DELETE', user_id, lead_id)
    _changed(RECORDINGS, 'UPDATE', user_id)
    return lead_id


def get_lead_detail(user_id, lead_id):
    """Lead plus its recordings (newest first), each with its analysis merged in."""
    _require_user(user_id)
    with _store_session('get lead detail') as session:
        lead = _owned(session, Lead, user_id, lead_id, 'Lead')
        recordings = session.query(Recording).options(
            selectinload(Recording.analysis),
        ).filter(
            Recording.user_id == user_id, Recording.lead_id == lead_id,
        ).order_by(Recording.created_at.desc()).all()

        rows = []
        for recording in recordings:
            row = recording.to_dict()
            row['analyses'] = recording.analysis.to_dict() if recording.analysis else None
            rows.append(row)
        return {'lead': lead.to_dict(), 'recordings': rows}


# ── Recordings ───────────────────────────────────────────────────────────────

def _recording_row(recording):
    row = recording.to_dict(include_lead=True)
    analysis = recording.analysis
    row['analysis_id'] = analysis.id if analysis else None
    row['analysis_status'] = analysis.status if analysis else None
    return row


def list_recordings(user_id):
    """Recordings newest first, with lead {id, name, email} and analysis status."""
    _require_user(user_id)

    def load():
        with _store_session('list recordings') as session:
            rows = session.query(Recording).options(
                selectinload(Recording.analysis),
            ).filter(
                Recording.user_id == user_id,
            ).order_by(Recording.created_at.desc()).all()
            return [_recording_row(row) for row in rows]

    return get_cache().get_or_load(RECORDINGS, user_id, load)


def get_recording(user_id, recording_id):
    _require_user(user_id)
    with _store_session('get recording') as session:
        return _recording_row(_owned(session, Recording, user_id, recording_id, 'Recording'))


def recording_name_exists(user_id, file_name):
    """True if the user already has a recording with exactly this (trimmed) name."""
    _require_user(user_id)
    with _store_session('check recording name') as session:
        found = session.query(Recording.id).filter(
            Recording.user_id == user_id,
            Recording.file_name == file_name.strip(),
        ).limit(1).first()
        return found is not None


def create_recording(user_id, file_name, lead_id=None, file_size=None,
                     stored_file_url=None, transcript=None, call_date=None,
                     duration_seconds=None):
    _require_user(user_id)
    with _store_session('create recording') as session:
        if lead_id:
            _owned(session, Lead, user_id, lead_id, 'Lead')
        recording = Recording(
            user_id=user_id,
            lead_id=lead_id,
            file_name=file_name,
            file_size=file_size,
            stored_file_url=stored_file_url,
            duration_seconds=duration_seconds,
            transcript=transcript,
            call_date=call_date,
        )
        session.add(recording)
        session.commit()
        data = recording.to_dict()
    _changed(RECORDINGS, 'INSERT', user_id, data['id'])
    return data


def delete_recording(user_id, recording_id):
    """
    Delete a recording and, by cascade, its analysis.

    Recordings, analyses, dashboard stats and metrics aggregates are all
    invalidated before this returns.
    """
    _require_user(user_id)
    with _store_session('delete recording') as session:
        recording = _owned(session, Recording, user_id, recording_id, 'Recording')
        session.delete(recording)
        session.commit()
    get_cache().invalidate_entities(
        user_id, RECORDINGS, ANALYSES, DASHBOARD_STATS, METRICS_AGGREGATES,
    )
    publish_change(RECORDINGS, 'DELETE', user_id, recording_id)
    logger.info("Deleted recording %s", recording_id)
    return recording_id


# ── Analyses ─────────────────────────────────────────────────────────────────

def list_analyses(user_id):
    """Analyses newest first, with recording {file_name, duration_seconds, created_at}."""
    _require_user(user_id)

    def load():
        with _store_session('list analyses') as session:
            rows = session.query(Analysis).options(
                selectinload(Analysis.recording),
            ).filter(
                Analysis.user_id == user_id,
            ).order_by(Analysis.created_at.desc()).all()
            return [row.to_dict(include_recording=True) for row in rows]

    return get_cache().get_or_load(ANALYSES, user_id, load)


def get_analysis(user_id, analysis_id):
    _require_user(user_id)
    with _store_session('get analysis') as session:
        analysis = _owned(session, Analysis, user_id, analysis_id, 'Analysis')
        data = analysis.to_dict(include_recording=True)
        data['recording'] = analysis.recording.to_dict() if analysis.recording else None
        return data


def get_analysis_for_recording(user_id, recording_id):
    """The analysis paired with a recording, or None if it was never created."""
    _require_user(user_id)
    with _store_session('get analysis for recording') as session:
        analysis = session.query(Analysis).filter(
            Analysis.user_id == user_id, Analysis.recording_id == recording_id,
        ).first()
        return analysis.to_dict() if analysis else None


def create_analysis(user_id, recording_id, status='pending'):
    """Insert the placeholder analysis for a recording: given status, every result field null."""
    _require_user(user_id)
    with _store_session('create analysis') as session:
        analysis = Analysis(recording_id=recording_id, user_id=user_id, status=status)
        session.add(analysis)
        session.commit()
        data = analysis.to_dict()
    _changed(ANALYSES, 'INSERT', user_id, data['id'])
    return data


def update_analysis(user_id, analysis_id, changes):
    """Update whitelisted analysis fields in place. Unknown keys are ignored."""
    _require_user(user_id)
    with _store_session('update analysis') as session:
        analysis = _owned(session, Analysis, user_id, analysis_id, 'Analysis')
        previous = analysis.status
        for key, value in changes.items():
            if key in UPDATABLE_FIELDS:
                setattr(analysis, key, value)
        session.commit()
        data = analysis.to_dict()
    event = 'UPDATE'
    if data['status'] == 'completed' and previous != 'completed':
        logger.info("Analysis %s completed", analysis_id)
        event = 'COMPLETED'
    _changed(ANALYSES, event, user_id, analysis_id)
    return data


# ── Metrics aggregates ───────────────────────────────────────────────────────

def list_metrics_aggregates(user_id):
    """Daily rollups, most recent date first."""
    _require_user(user_id)

    def load():
        with _store_session('list metrics aggregates') as session:
            rows = session.query(MetricsAggregate).filter(
                MetricsAggregate.user_id == user_id,
            ).order_by(MetricsAggregate.date.desc()).all()
            return [row.to_dict() for row in rows]

    return get_cache().get_or_load(METRICS_AGGREGATES, user_id, load)
