"""
Prometheus metrics for the back-office API
Following standard naming conventions: https://prometheus.io/docs/practices/naming/
"""
from prometheus_client import Counter, Histogram, Gauge, Info
import time

from lib.settings import settings

# ============================================================================
# HTTP Metrics
# ============================================================================

# Total HTTP requests
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

# HTTP request duration
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# HTTP response size
http_response_size_bytes = Histogram(
    'http_response_size_bytes',
    'HTTP response size in bytes',
    ['method', 'endpoint'],
    buckets=[100, 1000, 10000, 100000, 1000000, 10000000]
)

# ============================================================================
# Auth Metrics
# ============================================================================

# Login attempts
login_attempts_total = Counter(
    'login_attempts_total',
    'Total login attempts',
    ['outcome']  # outcome: success, invalid, pending, banned, rejected
)

# Self-service registrations
registrations_total = Counter(
    'registrations_total',
    'Total affiliate self-registrations'
)

# ============================================================================
# Back-office Metrics
# ============================================================================

# Daily metric writes
metric_writes_total = Counter(
    'metric_writes_total',
    'Total daily metric rows written by admins or imports',
    ['operation']  # operation: create, update, bulk_update, delete, import
)

# Affiliate status transitions
affiliate_status_changes_total = Counter(
    'affiliate_status_changes_total',
    'Total affiliate status changes made by admins',
    ['status']
)

# Reporting query duration
report_query_duration_seconds = Histogram(
    'report_query_duration_seconds',
    'Aggregation query execution time in seconds',
    ['report'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# ============================================================================
# Application Info & Health
# ============================================================================

# Application info
app_info = Info(
    'app',
    'Application information'
)
app_info.info({
    'version': '1.0.0',
    'name': 'affilia-backoffice',
    'environment': settings.environment
})

# Application uptime
app_uptime_seconds = Gauge(
    'app_uptime_seconds',
    'Application uptime in seconds'
)

# Health check status
health_check_status = Gauge(
    'health_check_status',
    'Health check status (1 = healthy, 0 = unhealthy)',
    ['check_type']  # check_type: database, migrations
)

# ============================================================================
# Helper Functions
# ============================================================================

def track_report_query(report: str):
    """Context manager to track aggregation query duration"""
    class QueryTimer:
        def __enter__(self):
            self.start_time = time.time()
            return self

        def __exit__(self, *args):
            duration = time.time() - self.start_time
            report_query_duration_seconds.labels(report=report).observe(duration)

    return QueryTimer()

# Initialize app start time for uptime tracking
APP_START_TIME = time.time()

def update_uptime():
    """Update application uptime metric"""
    app_uptime_seconds.set(time.time() - APP_START_TIME)
