"""
Dashboard aggregation — recordings/analyses/metrics rows → chart-ready view-model.

build_dashboard() is pure: no I/O, same inputs → same output. Totals do not
depend on input order; the "last 10" and "recent" series are ordered by each
analysis's created_at, never by list position.

Scores that are missing count as 0 everywhere, including in averages (a null
score drags the mean down rather than being skipped).
"""
import logging
import re
from datetime import datetime, date, timezone
from typing import Dict, List, Optional

from callpulse.config import SCORE_BUCKETS
from callpulse.services import store
from callpulse.services.cache import get_cache, DASHBOARD_STATS

logger = logging.getLogger('services.dashboard')

HIGH_SENTIMENT = 80
HIGH_ENGAGEMENT = 75
LAST_N_CALLS = 10
RECENT_CALLS = 4
TREND_DAYS = 7

# objections_handeled values the analysis pipeline writes when nothing was raised
RECEPTIVE_SENTINELS = {
    'None - customer was receptive and interested',
    'None - strong alignment with growth challenges',
    'None - enterprise client was highly engaged throughout',
}
UNSUCCESSFUL_OUTCOMES = {'Trial Setup', 'Awaiting Decision'}

OBJECTION_CATEGORIES = [
    ('Budget/Price', ('budget', 'price')),
    ('Timeline', ('timeline',)),
    ('Authority', ('authority', 'decision')),
    ('Competition', ('competition', 'competitor')),
    ('None', ('none',)),
]

STATUS_LABELS = {
    'completed': 'Completed',
    'analyzed': 'Completed',
    'processing': 'Processing',
    'in_progress': 'Processing',
    'analyzing': 'Processing',
    'queued': 'Processing',
    'pending': 'Processing',
    'uploaded': 'Processing',
    'transcribing': 'Transcribing',
    'transcribed': 'Transcribing',
    'failed': 'Failed',
    'error': 'Failed',
    'cancelled': 'Cancelled',
}

_EXTENSION_RE = re.compile(r'\.[^/.]+$')
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ── Small helpers ────────────────────────────────────────────────────────────

def _score(analysis, field):
    return analysis.get(field) or 0


def _parse_ts(value) -> datetime:
    """ISO string / datetime → aware datetime (naive values are taken as UTC)."""
    if value is None:
        return _EPOCH
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return _EPOCH
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _short_date(value):
    dt = _parse_ts(value)
    return f"{dt:%b} {dt.day}"


def _mean(analyses, field):
    if not analyses:
        return 0.0
    return sum(_score(a, field) for a in analyses) / len(analyses)


def _contains(text, needles):
    lowered = (text or '').lower()
    return any(needle in lowered for needle in needles)


def status_label(status: Optional[str]) -> str:
    """Display label for an analysis status; unknown values pass through."""
    if not status:
        return 'No Analysis'
    return STATUS_LABELS.get(status.lower(), status)


def bucket_for(score) -> str:
    """Name of the score bucket holding `score` (None counts as 0)."""
    score = score or 0
    for name, lower, _color in SCORE_BUCKETS:
        if score >= lower:
            return name
    return SCORE_BUCKETS[-1][0]


def display_name(file_name, limit=None, fallback='') -> str:
    """Recording file name without its extension, optionally truncated."""
    if not file_name:
        return fallback
    name = _EXTENSION_RE.sub('', file_name)
    return name[:limit] if limit else name


def format_duration(seconds) -> str:
    if not seconds:
        return 'N/A'
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


def newest_first(analyses: List[Dict]) -> List[Dict]:
    """Sort by created_at descending; id breaks ties so input order never matters."""
    return sorted(
        analyses,
        key=lambda a: (_parse_ts(a.get('created_at')), str(a.get('id', ''))),
        reverse=True,
    )


# ── Sections ─────────────────────────────────────────────────────────────────

def compute_kpis(recordings, analyses):
    raised = sum(_score(a, 'no_of_objections_detected') for a in analyses)
    tackled = sum(_score(a, 'no_of_objections_handeled') for a in analyses)

    return {
        'total_calls': len(recordings),
        'avg_sentiment': _mean(analyses, 'sentiments_score'),
        'avg_engagement': _mean(analyses, 'engagement_score'),
        'avg_confidence_executive': _mean(analyses, 'confidence_score_executive'),
        'avg_confidence_person': _mean(analyses, 'confidence_score_person'),
        'objections_handled': sum(
            1 for a in analyses
            if a.get('objections_handeled') and a['objections_handeled'] not in RECEPTIVE_SENTINELS
        ),
        'successful_outcomes': sum(
            1 for a in analyses
            if a.get('call_outcome') and a['call_outcome'] not in UNSUCCESSFUL_OUTCOMES
        ),
        'high_performing_calls': sum(
            1 for a in analyses
            if _score(a, 'sentiments_score') >= HIGH_SENTIMENT
            and _score(a, 'engagement_score') >= HIGH_ENGAGEMENT
        ),
        'calls_with_next_steps': sum(
            1 for a in analyses
            if a.get('next_steps') and a['next_steps'] != 'TBD' and len(a['next_steps'].strip()) > 10
        ),
        'total_objections_raised': raised,
        'total_objections_tackled': tackled,
        'objection_success_rate': (tackled / raised * 100) if raised > 0 else 0,
        'hot_leads': sum(1 for a in analyses if _contains(a.get('lead_type'), ('hot',))),
        'warm_leads': sum(1 for a in analyses if _contains(a.get('lead_type'), ('warm',))),
        'cold_leads': sum(1 for a in analyses if _contains(a.get('lead_type'), ('cold',))),
    }


def score_distribution(analyses, field):
    """Counts per fixed bucket. Buckets are exhaustive, so counts sum to len(analyses)."""
    counts = {name: 0 for name, _lower, _color in SCORE_BUCKETS}
    for analysis in analyses:
        counts[bucket_for(analysis.get(field))] += 1
    return [
        {'name': name, 'value': counts[name], 'color': color}
        for name, _lower, color in SCORE_BUCKETS
    ]


def objection_categories(analyses):
    return [
        {
            'category': category,
            'count': sum(1 for a in analyses if _contains(a.get('objections_handeled'), needles)),
        }
        for category, needles in OBJECTION_CATEGORIES
    ]


def trend(metrics):
    """The most recent TREND_DAYS daily rollups, oldest first."""
    recent = sorted(metrics, key=lambda m: _parse_ts(m.get('date')), reverse=True)[:TREND_DAYS]
    return [
        {
            'date': f"{_parse_ts(m.get('date')):%a}",
            'sentiment': m.get('avg_sentiment') or 0,
            'engagement': m.get('avg_engagement') or 0,
        }
        for m in reversed(recent)
    ]


def _recording_name(analysis):
    return (analysis.get('recordings') or {}).get('file_name')


def last_calls(analyses, limit=LAST_N_CALLS):
    """The `limit` most recent analyses in chronological order. Never padded."""
    return list(reversed(newest_first(analyses)[:limit]))


def last_calls_sentiment(ordered):
    return [
        {
            'call': f'Call {i}',
            'call_name': display_name(_recording_name(a), 10, fallback=f'Call {i}'),
            'sentiment': round(_score(a, 'sentiments_score')),
            'date': _short_date(a.get('created_at')),
        }
        for i, a in enumerate(ordered, start=1)
    ]


def last_calls_confidence(ordered):
    return [
        {
            'call': f'Call {i}',
            'call_name': display_name(_recording_name(a), 8, fallback=f'Call {i}'),
            'executive': _score(a, 'confidence_score_executive'),
            'person': _score(a, 'confidence_score_person'),
            'date': _short_date(a.get('created_at')),
        }
        for i, a in enumerate(ordered, start=1)
    ]


def last_calls_objections(ordered):
    return [
        {
            'call': f'Call {i}',
            'call_name': display_name(_recording_name(a), 8, fallback=f'Call {i}'),
            'raised': _score(a, 'no_of_objections_detected'),
            'tackled': _score(a, 'no_of_objections_handeled'),
            'date': _short_date(a.get('created_at')),
        }
        for i, a in enumerate(ordered, start=1)
    ]


def recent_calls(analyses, limit=RECENT_CALLS):
    rows = []
    for i, a in enumerate(newest_first(analyses)[:limit], start=1):
        recording = a.get('recordings') or {}
        rows.append({
            'id': a.get('id'),
            'name': display_name(recording.get('file_name'), fallback=f'Call {i}'),
            'date': _parse_ts(a.get('created_at')).date().isoformat(),
            'duration': format_duration(recording.get('duration_seconds')),
            'sentiment': _score(a, 'sentiments_score'),
            'engagement': _score(a, 'engagement_score'),
            'confidence_executive': _score(a, 'confidence_score_executive'),
            'confidence_person': _score(a, 'confidence_score_person'),
            'status': a.get('status') or 'pending',
            'status_label': status_label(a.get('status')),
            'objections': a.get('objections_handeled') or 'None',
            'next_steps': a.get('next_steps') or 'TBD',
            'improvements': a.get('improvements') or 'None',
            'call_outcome': a.get('call_outcome') or 'Unknown',
        })
    return rows


# ── Entry points ─────────────────────────────────────────────────────────────

def build_dashboard(recordings, analyses, metrics):
    """Full dashboard view-model from the three fetched collections."""
    ordered = last_calls(analyses)
    return {
        'kpis': compute_kpis(recordings, analyses),
        'sentiment_distribution': score_distribution(analyses, 'sentiments_score'),
        'engagement_distribution': score_distribution(analyses, 'engagement_score'),
        'objection_categories': objection_categories(analyses),
        'trend': trend(metrics),
        'last_10_calls_sentiment': last_calls_sentiment(ordered),
        'last_10_calls_confidence': last_calls_confidence(ordered),
        'last_10_calls_objections': last_calls_objections(ordered),
        'recent_calls': recent_calls(analyses),
    }


def get_dashboard(user_id):
    """
    Memoized dashboard for a user.

    Cached under dashboard_stats; any change to recordings, analyses or
    metrics aggregates drops that key, so the next call rebuilds from fresh
    collections.
    """
    def load():
        return build_dashboard(
            store.list_recordings(user_id),
            store.list_analyses(user_id),
            store.list_metrics_aggregates(user_id),
        )

    return get_cache().get_or_load(DASHBOARD_STATS, user_id, load)
