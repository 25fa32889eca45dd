"""Tests for callpulse.services.dashboard — pure aggregation into chart data."""
import random
from unittest.mock import patch

import pytest

from callpulse.services.dashboard import (
    build_dashboard,
    compute_kpis,
    score_distribution,
    objection_categories,
    trend,
    last_calls,
    recent_calls,
    status_label,
    bucket_for,
    display_name,
    format_duration,
    get_dashboard,
)


@pytest.fixture
def analyses(make_analysis):
    return [
        make_analysis(0, sentiments_score=95, engagement_score=90,
                      confidence_score_executive=9, confidence_score_person=8,
                      lead_type='Hot lead', no_of_objections_detected=2, no_of_objections_handeled=2,
                      next_steps='Send proposal and schedule demo', call_outcome='Closed Won',
                      objections_handeled='Budget concerns addressed'),
        make_analysis(1, sentiments_score=82, engagement_score=70,
                      confidence_score_executive=7, confidence_score_person=6,
                      lead_type='warm', no_of_objections_detected=3, no_of_objections_handeled=1,
                      next_steps='TBD', call_outcome='Trial Setup',
                      objections_handeled='Timeline too tight'),
        make_analysis(2, sentiments_score=55, engagement_score=50,
                      lead_type='COLD', next_steps='  short  ',
                      objections_handeled='None - customer was receptive and interested'),
        make_analysis(3),  # pending, all scores null
    ]


class TestComputeKpis:
    """Scalar KPIs over the analyses collection."""

    def test_total_calls_counts_recordings_not_analyses(self, analyses):
        kpis = compute_kpis([{'id': 'a'}, {'id': 'b'}], analyses)
        assert kpis['total_calls'] == 2

    def test_null_scores_count_as_zero_in_averages(self, analyses):
        kpis = compute_kpis([], analyses)
        # (95 + 82 + 55 + 0) / 4
        assert kpis['avg_sentiment'] == pytest.approx(58.0)
        assert kpis['avg_engagement'] == pytest.approx((90 + 70 + 50 + 0) / 4)
        assert kpis['avg_confidence_executive'] == pytest.approx((9 + 7) / 4)
        assert kpis['avg_confidence_person'] == pytest.approx((8 + 6) / 4)

    def test_averages_zero_without_analyses(self):
        kpis = compute_kpis([], [])
        assert kpis['avg_sentiment'] == 0
        assert kpis['avg_engagement'] == 0

    def test_high_performing_requires_both_thresholds(self, analyses):
        # only the 95/90 call clears sentiment >= 80 AND engagement >= 75
        assert compute_kpis([], analyses)['high_performing_calls'] == 1

    def test_high_performing_boundaries_inclusive(self, make_analysis):
        rows = [make_analysis(0, sentiments_score=80, engagement_score=75)]
        assert compute_kpis([], rows)['high_performing_calls'] == 1

    def test_next_steps_excludes_tbd_and_short_text(self, analyses):
        assert compute_kpis([], analyses)['calls_with_next_steps'] == 1

    def test_next_steps_length_is_measured_after_trimming(self, make_analysis):
        rows = [make_analysis(0, next_steps='   0123456789   '),   # 10 chars trimmed
                make_analysis(1, next_steps='0123456789A')]         # 11 chars
        assert compute_kpis([], rows)['calls_with_next_steps'] == 1

    def test_objection_success_rate(self, analyses):
        kpis = compute_kpis([], analyses)
        assert kpis['total_objections_raised'] == 5
        assert kpis['total_objections_tackled'] == 3
        assert kpis['objection_success_rate'] == pytest.approx(60.0)

    def test_objection_success_rate_zero_when_nothing_raised(self, make_analysis):
        rows = [make_analysis(0, no_of_objections_detected=0, no_of_objections_handeled=4)]
        kpis = compute_kpis([], rows)
        assert kpis['objection_success_rate'] == 0

    def test_lead_types_match_case_insensitive_substring(self, analyses):
        kpis = compute_kpis([], analyses)
        assert (kpis['hot_leads'], kpis['warm_leads'], kpis['cold_leads']) == (1, 1, 1)

    def test_objections_handled_skips_receptive_sentinels(self, analyses):
        assert compute_kpis([], analyses)['objections_handled'] == 2

    def test_successful_outcomes_exclude_pending_decisions(self, analyses):
        assert compute_kpis([], analyses)['successful_outcomes'] == 1


class TestScoreDistribution:
    """Five fixed, exhaustive buckets."""

    @pytest.mark.parametrize('score,bucket', [
        (100, 'Perfect'), (90, 'Perfect'), (89.9, 'Excellent'), (80, 'Excellent'),
        (79, 'Good'), (70, 'Good'), (69, 'Neutral'), (50, 'Neutral'),
        (49.5, 'Negative'), (0, 'Negative'), (None, 'Negative'),
    ])
    def test_bucket_boundaries(self, score, bucket):
        assert bucket_for(score) == bucket

    def test_counts_sum_to_number_of_analyses(self, make_analysis):
        rng = random.Random(7)
        rows = [make_analysis(i, sentiments_score=rng.choice([None, rng.uniform(0, 100)]),
                              engagement_score=rng.uniform(0, 100))
                for i in range(57)]
        for field in ('sentiments_score', 'engagement_score'):
            dist = score_distribution(rows, field)
            assert sum(b['value'] for b in dist) == 57

    def test_bucket_order_and_colors(self, analyses):
        dist = score_distribution(analyses, 'sentiments_score')
        assert [b['name'] for b in dist] == ['Perfect', 'Excellent', 'Good', 'Neutral', 'Negative']
        assert dist[0]['color'] == '#10B981'
        assert dist[-1]['color'] == '#EF4444'
        assert [b['value'] for b in dist] == [1, 1, 0, 1, 1]


class TestObjectionCategories:

    def test_keyword_matching(self, analyses):
        counts = {c['category']: c['count'] for c in objection_categories(analyses)}
        assert counts['Budget/Price'] == 1
        assert counts['Timeline'] == 1
        assert counts['None'] == 1
        assert counts['Authority'] == 0


class TestTrend:

    def test_takes_latest_seven_days_oldest_first(self):
        metrics = [{'date': f'2026-10-{day:02d}', 'avg_sentiment': day, 'avg_engagement': None}
                   for day in range(1, 11)]
        random.Random(3).shuffle(metrics)
        points = trend(metrics)
        assert len(points) == 7
        assert [p['sentiment'] for p in points] == [4, 5, 6, 7, 8, 9, 10]
        assert points[0]['engagement'] == 0

    def test_weekday_labels(self):
        points = trend([{'date': '2026-10-19', 'avg_sentiment': 1, 'avg_engagement': 2}])
        assert points[0]['date'] == 'Mon'


class TestLastCalls:
    """Last-10 series: chronological, capped, never padded."""

    def test_caps_at_ten_in_chronological_order(self, make_analysis):
        rows = [make_analysis(i) for i in range(15)]
        random.Random(1).shuffle(rows)
        ordered = last_calls(rows)
        assert len(ordered) == 10
        assert [a['id'] for a in ordered] == [f'analysis-{i:03d}' for i in range(5, 15)]

    def test_fewer_than_ten_not_padded(self, make_analysis):
        rows = [make_analysis(i) for i in range(3)]
        data = build_dashboard([], rows, [])
        assert len(data['last_10_calls_sentiment']) == 3
        assert len(data['last_10_calls_confidence']) == 3
        assert len(data['last_10_calls_objections']) == 3

    def test_series_labels_and_names(self, make_analysis):
        rows = [make_analysis(0, file_name='Quarterly Review Call.mp3', sentiments_score=72.6),
                make_analysis(1, file_name='', sentiments_score=None)]
        data = build_dashboard([], rows, [])
        first, second = data['last_10_calls_sentiment']
        assert first['call'] == 'Call 1'
        assert first['call_name'] == 'Quarterly '
        assert first['sentiment'] == 73
        assert first['date'] == 'Oct 1'
        assert second['call_name'] == 'Call 2'
        assert second['sentiment'] == 0

    def test_confidence_names_truncate_to_eight(self, make_analysis):
        data = build_dashboard([], [make_analysis(0, file_name='Discovery.wav')], [])
        assert data['last_10_calls_confidence'][0]['call_name'] == 'Discover'

    def test_objection_series_uses_counts(self, make_analysis):
        rows = [make_analysis(0, no_of_objections_detected=4, no_of_objections_handeled=3)]
        point = build_dashboard([], rows, [])['last_10_calls_objections'][0]
        assert (point['raised'], point['tackled']) == (4, 3)


class TestRecentCalls:

    def test_four_newest_first_with_duration(self, make_analysis):
        rows = [make_analysis(i, duration_seconds=125 if i == 5 else None) for i in range(6)]
        calls = recent_calls(rows)
        assert [c['id'] for c in calls] == ['analysis-005', 'analysis-004', 'analysis-003', 'analysis-002']
        assert calls[0]['duration'] == '2:05'
        assert calls[1]['duration'] == 'N/A'
        assert calls[0]['name'] == 'call_05'

    def test_defaults_for_missing_text(self, make_analysis):
        call = recent_calls([make_analysis(0, status='pending')])[0]
        assert call['next_steps'] == 'TBD'
        assert call['objections'] == 'None'
        assert call['call_outcome'] == 'Unknown'
        assert call['status_label'] == 'Processing'


class TestPurity:
    """Same inputs → same output; totals ignore input order."""

    def test_repeatable(self, analyses):
        recordings = [{'id': str(i)} for i in range(4)]
        metrics = [{'date': '2026-10-01', 'avg_sentiment': 70, 'avg_engagement': 60}]
        assert build_dashboard(recordings, analyses, metrics) == build_dashboard(recordings, analyses, metrics)

    def test_reordering_inputs_does_not_change_output(self, analyses):
        shuffled = list(reversed(analyses))
        assert build_dashboard([], analyses, []) == build_dashboard([], shuffled, [])

    def test_does_not_mutate_inputs(self, analyses):
        snapshot = [dict(a) for a in analyses]
        build_dashboard([], analyses, [])
        assert analyses == snapshot


class TestHelpers:

    @pytest.mark.parametrize('status,label', [
        ('completed', 'Completed'), ('analyzed', 'Completed'), ('pending', 'Processing'),
        ('in_progress', 'Processing'), ('transcribing', 'Transcribing'), ('error', 'Failed'),
        ('cancelled', 'Cancelled'), ('weird_state', 'weird_state'), (None, 'No Analysis'),
    ])
    def test_status_label(self, status, label):
        assert status_label(status) == label

    def test_display_name_strips_any_extension(self):
        assert display_name('call.final.m4a') == 'call.final'
        assert display_name(None, fallback='Call 3') == 'Call 3'

    def test_format_duration(self):
        assert format_duration(59) == '0:59'
        assert format_duration(600) == '10:00'
        assert format_duration(None) == 'N/A'


class TestGetDashboard:
    """Memoized view over the store collections."""

    def test_builds_once_until_invalidated(self, mock_redis):
        with patch('callpulse.services.dashboard.store') as store:
            store.list_recordings.return_value = [{'id': 'r1'}]
            store.list_analyses.return_value = []
            store.list_metrics_aggregates.return_value = []

            first = get_dashboard('u1')
            second = get_dashboard('u1')

        assert first == second
        assert first['kpis']['total_calls'] == 1
        assert store.list_recordings.call_count == 1
        assert 'cache:dashboard_stats:u1' in mock_redis.store
