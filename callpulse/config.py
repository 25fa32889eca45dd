"""
Centralized configuration — all env vars, constants, upload rules.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
CACHE_TTL_SECONDS = int(os.getenv('CACHE_TTL_SECONDS', '300'))

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Cloudflare R2 ─────────────────────────────────────────────────────────────
R2_ACCESS_KEY_ID = os.getenv('R2_ACCESS_KEY_ID')
R2_SECRET_ACCESS_KEY = os.getenv('R2_SECRET_ACCESS_KEY')
R2_BUCKET_NAME = os.getenv('R2_BUCKET_NAME', 'recordings')
R2_ENDPOINT_URL = os.getenv('R2_ENDPOINT_URL')
R2_PUBLIC_URL = os.getenv('R2_PUBLIC_URL')

# ── Analysis webhook ─────────────────────────────────────────────────────────
ANALYSIS_WEBHOOK_URL = os.getenv('ANALYSIS_WEBHOOK_URL')
ANALYSIS_WEBHOOK_TIMEOUT = float(os.getenv('ANALYSIS_WEBHOOK_TIMEOUT', '10'))

# ── Change listener ──────────────────────────────────────────────────────────
CHANGE_LISTENER_ENABLED = os.getenv('CHANGE_LISTENER_ENABLED', '').lower() in ('1', 'true', 'yes')

# ── Flask ────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')

# ── Upload rules ─────────────────────────────────────────────────────────────
SUPPORTED_MEDIA_TYPES = {
    'audio/mpeg',
    'audio/mp3',
    'audio/wav',
    'audio/m4a',
    'audio/ogg',
    'audio/webm',
    'audio/flac',
    'video/mp4',
    'video/webm',
}
SUPPORTED_EXTENSIONS = ('.mp3', '.wav', '.m4a', '.ogg', '.webm', '.flac', '.mp4')
MAX_UPLOAD_BYTES = 100 * 1024 * 1024  # 100 MiB

# ── Analysis status values ───────────────────────────────────────────────────
# Open-ended: the external pipeline may write values outside this list.
ANALYSIS_STATUSES = [
    'pending',
    'processing',
    'transcribing',
    'completed',
    'failed',
    'cancelled',
]

# ── Dashboard score buckets — (label, lower bound inclusive, color) ──────────
SCORE_BUCKETS = [
    ('Perfect', 90, '#10B981'),
    ('Excellent', 80, '#059669'),
    ('Good', 70, '#3B82F6'),
    ('Neutral', 50, '#F59E0B'),
    ('Negative', 0, '#EF4444'),
]
