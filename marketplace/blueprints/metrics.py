"""
Prometheus metrics blueprint.

/metrics exposes request metrics plus the inventory counters incremented by
the reconciliation, repair and stock services. Restrict it to the internal
network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest
from prometheus_client import multiprocess, REGISTRY

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers write to PROMETHEUS_MULTIPROC_DIR and are merged at scrape time
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

# =====================================================
# HTTP
# =====================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'http_status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'endpoint'],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

# =====================================================
# INVENTORY
# =====================================================

availability_corrections_total = Counter(
    'inventory_availability_corrections_total',
    'Products whose persisted availability flag was corrected',
    ['status']
)

reservation_repairs_total = Counter(
    'inventory_reservation_repairs_total',
    'Abandoned cart items touched by over-reservation repair',
    ['action']
)

stock_adjustments_total = Counter(
    'inventory_stock_adjustments_total',
    'Stock mutations recorded as inventory movements',
    ['type']
)

batch_items_skipped_total = Counter(
    'inventory_batch_items_skipped_total',
    'Items skipped by batch passes after an error',
    ['job']
)


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def start_request_timer():
        g._metrics_started = time.perf_counter()

    @app.after_request
    def record_request_metrics(response):
        started = g.pop('_metrics_started', None)
        if started is None:
            return response

        # Blueprint endpoint names keep label cardinality bounded
        endpoint = request.endpoint or 'unknown'
        http_request_duration_seconds.labels(request.method, endpoint).observe(time.perf_counter() - started)
        http_requests_total.labels(request.method, endpoint, response.status_code).inc()
        return response


@metrics_bp.route('/metrics')
def metrics():
    """Prometheus exposition (text format)."""
    if MULTIPROCESS_MODE:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
    else:
        registry = REGISTRY
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
