"""Tests for callpulse.routes.dashboard — health check, dashboard stats, metrics."""
from datetime import date


class TestHealthCheck:
    """GET /health needs no user."""

    def test_returns_200_with_healthy_status(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.json == {"status": "healthy"}


class TestDashboard:

    def test_requires_user(self, client):
        assert client.get('/api/dashboard').status_code == 401

    def test_empty_account(self, client, auth_headers):
        data = client.get('/api/dashboard', headers=auth_headers).json
        assert data['kpis']['total_calls'] == 0
        assert data['kpis']['avg_sentiment'] == 0
        assert data['kpis']['objection_success_rate'] == 0
        assert sum(b['value'] for b in data['sentiment_distribution']) == 0
        assert data['last_10_calls_sentiment'] == []
        assert data['recent_calls'] == []
        assert data['trend'] == []

    def test_reflects_completed_analysis(self, client, auth_headers, seed_recording):
        _, analysis = seed_recording(file_name='Demo.mp3')
        client.patch(f'/api/analyses/{analysis.id}', headers=auth_headers, json={
            'status': 'completed', 'sentiments_score': 92, 'engagement_score': 81,
        })

        data = client.get('/api/dashboard', headers=auth_headers).json

        assert data['kpis']['total_calls'] == 1
        assert data['kpis']['high_performing_calls'] == 1
        perfect = next(b for b in data['sentiment_distribution'] if b['name'] == 'Perfect')
        assert perfect['value'] == 1
        assert data['recent_calls'][0]['name'] == 'Demo'
        assert data['recent_calls'][0]['status_label'] == 'Completed'

    def test_cached_until_a_change(self, client, auth_headers, mock_redis, seed_recording):
        client.get('/api/dashboard', headers=auth_headers)
        assert 'cache:dashboard_stats:user-test-001' in mock_redis.store

        client.post('/api/recordings', headers=auth_headers, json={
            'mode': 'transcript', 'name': 'New call', 'transcript': 'hi',
        })

        assert 'cache:dashboard_stats:user-test-001' not in mock_redis.store
        data = client.get('/api/dashboard', headers=auth_headers).json
        assert data['kpis']['total_calls'] == 1


class TestMetrics:

    def test_lists_user_rollups(self, client, auth_headers, db_session):
        from callpulse.models.metrics_aggregate import MetricsAggregate
        db_session.add(MetricsAggregate(user_id='user-test-001', date=date(2026, 10, 18), avg_sentiment=71))
        db_session.add(MetricsAggregate(user_id='user-test-002', date=date(2026, 10, 18), avg_sentiment=12))
        db_session.commit()

        rows = client.get('/api/metrics', headers=auth_headers).json

        assert len(rows) == 1
        assert rows[0]['avg_sentiment'] == 71
