from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

auth_logins_total = Counter('auth_logins_total', 'Login attempts', ['outcome'])
auth_refresh_total = Counter('auth_refresh_total', 'Refresh token exchanges', ['outcome'])
auth_registrations_total = Counter('auth_registrations_total', 'Successful registrations')

def metrics_endpoint():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
