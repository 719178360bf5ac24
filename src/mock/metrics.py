from prometheus_client import Counter, Histogram

from src.logging import logger

# --- Prometheus Metrics Definition ---

# Total Requests Counter:
# Every request that passes through the recorder, labelled by HTTP method and the
# status code that was finally sent. Preflight requests never reach the recorder.
requests_total = Counter(
    "dummy_logger_requests_total",
    "Total number of recorded requests",
    ["method", "status_code"],
)

# Request Latency Histogram:
# Wall-clock time between the recorder receiving a request and the downstream
# handler finishing its response.
request_latency_seconds = Histogram(
    "dummy_logger_request_latency_seconds",
    "Request latency in seconds",
    buckets=[0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0],
)

# Unmatched Requests Counter:
# Requests answered by the fallback handler. Useful to spot client calls the
# mock does not model yet.
unmatched_requests_total = Counter(
    "dummy_logger_unmatched_requests_total",
    "Total number of requests with no matching route",
    ["method"],
)

# Artifact Error Counter:
# Failures to read a static response artifact, labelled by artifact name.
artifact_errors_total = Counter(
    "dummy_logger_artifact_errors_total",
    "Total number of response artifact load failures",
    ["artifact"],
)


# --- Helper Function for Logging Metric Recording Errors ---
def log_metrics_error(metric_name: str, error: Exception) -> None:
    """
    Logs an error if there's an issue with recording a metric.

    Metric failures must never turn into request failures, so the error is
    logged with its traceback and otherwise ignored.
    """
    logger.error(f"Failed to record metric {metric_name}: {str(error)}", exc_info=True)


# --- Helper Functions to Record Specific Metrics Safely ---
def record_request(method: str, status_code: int) -> None:
    """
    Records a completed request with its method and final status code.
    """
    try:
        requests_total.labels(method=method, status_code=str(status_code)).inc()
    except Exception as e:
        log_metrics_error("requests_total", e)


def observe_request_latency(duration: float) -> None:
    """
    Records the latency of a request in seconds.
    """
    try:
        request_latency_seconds.observe(duration)
    except Exception as e:
        log_metrics_error("request_latency_seconds", e)


def record_unmatched_request(method: str) -> None:
    try:
        unmatched_requests_total.labels(method=method).inc()
    except Exception as e:
        log_metrics_error("unmatched_requests_total", e)


def record_artifact_error(artifact: str) -> None:
    try:
        artifact_errors_total.labels(artifact=artifact).inc()
    except Exception as e:
        log_metrics_error("artifact_errors_total", e)
