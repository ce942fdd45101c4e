"""
Prometheus metrics configuration
"""
import os

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import REGISTRY

# Check if we're in multiprocess mode
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    REGISTRY = MultiProcessCollector(REGISTRY)

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'db_queries_total',
    'Total number of database queries',
    ['operation', 'table']
)

db_query_duration_seconds = Histogram(
    'db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)
)

# ============================================================================
# Share Token Metrics
# ============================================================================

share_tokens_encoded_total = Counter(
    'share_tokens_encoded_total',
    'Total number of share tokens encoded',
    ['oversize']
)

share_token_length_chars = Histogram(
    'share_token_length_chars',
    'Length of encoded share tokens',
    buckets=(256, 512, 1024, 2048, 3072, 4096, 6144, 8192)
)

share_tokens_decoded_total = Counter(
    'share_tokens_decoded_total',
    'Total number of share token decode attempts',
    ['outcome']  # ok | format | decode | version
)

contact_merges_total = Counter(
    'contact_merges_total',
    'Total number of contact merges from scanned payloads',
    ['result']  # created | updated
)

# ============================================================================
# Short Link Metrics
# ============================================================================

share_link_mints_total = Counter(
    'share_link_mints_total',
    'Total number of short link mint requests',
    ['result']  # created | reused | rejected | failed
)

share_link_slug_conflicts_total = Counter(
    'share_link_slug_conflicts_total',
    'Total number of slug collisions during minting'
)

share_link_resolutions_total = Counter(
    'share_link_resolutions_total',
    'Total number of short link resolutions',
    ['result']  # found | not_found | failed
)

# Refreshed from the store on every scrape
share_links_stored = Gauge(
    'share_links_stored',
    'Short links currently stored',
    ['state']  # active | expired
)


def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type():
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
