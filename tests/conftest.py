"""Shared test fixtures."""
import fnmatch
from datetime import datetime, timedelta
from unittest.mock import patch, MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from callpulse.database import Base

USER_ID = 'user-test-001'
OTHER_USER_ID = 'user-test-002'


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import callpulse.models.lead_group
    import callpulse.models.lead
    import callpulse.models.recording
    import callpulse.models.analysis
    import callpulse.models.metrics_aggregate
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_store_session(db_engine):
    """
    Route get_session() calls inside callpulse.services.store to the test engine.

    The module does `from callpulse.database import get_session` at import
    time, so the local binding is what has to be patched. Each call gets its
    own session so close() in the production code is harmless.
    """
    TestSession = sessionmaker(bind=db_engine)
    with patch('callpulse.services.store.get_session', side_effect=lambda: TestSession()):
        yield TestSession


@pytest.fixture(autouse=True)
def mock_redis():
    """
    Dict-backed Redis mock covering the calls the cache and change feed make.

    `mock.store` holds cached values, `mock.published` collects
    (channel, payload) pairs.
    """
    store = {}
    published = []
    mock = MagicMock()
    mock.store = store
    mock.published = published

    mock.get.side_effect = lambda key: store.get(key)

    def _setex(key, ttl, value):
        store[key] = value
        return True
    mock.setex.side_effect = _setex

    def _delete(*keys):
        removed = 0
        for key in keys:
            if store.pop(key, None) is not None:
                removed += 1
        return removed
    mock.delete.side_effect = _delete

    def _incr(key, amount=1):
        store[key] = str(int(store.get(key) or 0) + amount)
        return int(store[key])
    mock.incr.side_effect = _incr

    def _publish(channel, payload):
        published.append((channel, payload))
        return 0
    mock.publish.side_effect = _publish

    mock.keys.side_effect = lambda pattern='*': [k for k in store if fnmatch.fnmatch(k, pattern)]

    with patch('callpulse.extensions.redis_client', mock):
        yield mock


@pytest.fixture(autouse=True)
def no_webhook_calls():
    """Keep intake from scheduling real webhook deliveries."""
    with patch('callpulse.services.intake.notify_analysis_service') as notify:
        yield notify


@pytest.fixture
def app():
    """Flask test app."""
    from callpulse import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def auth_headers():
    return {'X-User-Id': USER_ID}


@pytest.fixture
def make_analysis():
    """Factory fixture — analysis row dicts shaped like store.list_analyses() output."""
    base = datetime(2026, 10, 1, 9, 0, 0)

    def _make(index=0, file_name=None, duration_seconds=None, **overrides):
        created = (base + timedelta(hours=index)).isoformat()
        row = dict(
            id=f'analysis-{index:03d}',
            recording_id=f'recording-{index:03d}',
            user_id=USER_ID,
            status='completed',
            sentiments_score=None,
            engagement_score=None,
            confidence_score_executive=None,
            confidence_score_person=None,
            participants=None,
            lead_type=None,
            objections_handeled=None,
            no_of_objections_detected=None,
            no_of_objections_handeled=None,
            next_steps=None,
            improvements=None,
            call_outcome=None,
            short_summary=None,
            created_at=created,
            recordings={
                'file_name': file_name if file_name is not None else f'call_{index:02d}.mp3',
                'duration_seconds': duration_seconds,
                'created_at': created,
            },
        )
        row.update(overrides)
        return row
    return _make


@pytest.fixture
def seed_recording(db_session):
    """Insert a recording (and optionally its analysis) directly, bypassing intake."""
    from callpulse.models.analysis import Analysis
    from callpulse.models.recording import Recording

    def _seed(file_name='Existing Call', user_id=USER_ID, with_analysis=True, status='pending', **fields):
        recording = Recording(user_id=user_id, file_name=file_name, **fields)
        db_session.add(recording)
        db_session.flush()
        analysis = None
        if with_analysis:
            analysis = Analysis(recording_id=recording.id, user_id=user_id, status=status)
            db_session.add(analysis)
        db_session.commit()
        return recording, analysis
    return _seed
