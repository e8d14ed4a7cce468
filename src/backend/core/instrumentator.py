"""
HTTP metrics instrumentation.

Request counters and latency histograms for every route, exposed next to
the inventory metrics from core.metrics on /metrics.
"""
from prometheus_fastapi_instrumentator import Instrumentator

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics", "/health"],
    inprogress_name="inventory_http_requests_inprogress",
    inprogress_labels=True,
)
