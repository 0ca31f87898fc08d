from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from flask import Response, request, g
import time

# Sync Metrics
sync_runs_total = Counter("deckworthy_sync_runs_total", "Completed sync runs", ["source", "status"])

sync_records_total = Counter("deckworthy_sync_records_total", "Records processed by sync runs", ["source", "outcome"])

sync_duration_seconds = Histogram("deckworthy_sync_duration_seconds", "Duration of sync runs", ["source"])

# Upstream Metrics
upstream_requests_total = Counter(
    "deckworthy_upstream_requests_total", "Outbound requests to third-party APIs", ["host", "status"]
)

# API Metrics
api_request_duration_seconds = Histogram(
    "deckworthy_api_request_duration_seconds", "API request duration", ["endpoint", "method"]
)

api_requests_total = Counter(
    "deckworthy_api_requests_total", "Total API requests", ["endpoint", "method", "status_code"]
)


def record_sync(source, result, status):
    """Account a finished sync run"""
    sync_runs_total.labels(source=source, status=status).inc()
    if result is None:
        return
    sync_records_total.labels(source=source, outcome="success").inc(result.success)
    sync_records_total.labels(source=source, outcome="failed").inc(result.failed)
    sync_records_total.labels(source=source, outcome="skipped").inc(result.skipped)
    if result.duration is not None:
        sync_duration_seconds.labels(source=source).observe(result.duration)


def init_metrics(app):
    """Register the /metrics endpoint and per-request timing"""

    @app.before_request
    def _start_timer():
        g.request_started_at = time.time()

    @app.after_request
    def _record_request(response):
        started = getattr(g, "request_started_at", None)
        if started is not None and request.endpoint != "metrics":
            endpoint = request.endpoint or "unknown"
            api_request_duration_seconds.labels(endpoint=endpoint, method=request.method).observe(
                time.time() - started
            )
            api_requests_total.labels(
                endpoint=endpoint, method=request.method, status_code=response.status_code
            ).inc()
        return response

    @app.route("/metrics")
    def metrics():
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)
