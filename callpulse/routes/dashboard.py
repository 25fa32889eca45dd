"""
Dashboard routes — health check, aggregated stats, daily metrics.
"""
import logging
from flask import Blueprint, jsonify

from callpulse.auth import current_user_id
from callpulse.services import store
from callpulse.services.dashboard import get_dashboard

logger = logging.getLogger('routes.dashboard')

bp = Blueprint('dashboard', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/dashboard')
def dashboard_stats():
    """KPIs, score distributions and per-call series for the charts."""
    return jsonify(get_dashboard(current_user_id()))


@bp.route('/api/metrics')
def list_metrics():
    """Daily metrics rollups, most recent first."""
    return jsonify(store.list_metrics_aggregates(current_user_id()))
