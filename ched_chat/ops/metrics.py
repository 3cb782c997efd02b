import time
from contextlib import contextmanager

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


CHAT_REQUESTS_TOTAL = Counter("chat_requests_total", "Total number of chat requests")
CHAT_ERRORS_TOTAL = Counter(
    "chat_errors_total",
    "Total number of failed chat requests",
    ["reason"],
)
MODEL_ATTEMPTS_TOTAL = Counter(
    "model_attempts_total",
    "Remote model attempts by model and outcome",
    ["model", "outcome"],
)
FALLBACK_ANSWERS_TOTAL = Counter(
    "fallback_total",
    "Total number of local fallback answers",
    ["reason"],
)
SCREEN_BLOCKS_TOTAL = Counter(
    "screen_blocks_total",
    "Total number of screen-blocked chat messages",
    ["category"],
)

CHAT_LATENCY_SECONDS = Histogram("chat_seconds", "End-to-end chat latency in seconds")
MODEL_ATTEMPT_SECONDS = Histogram(
    "model_attempt_seconds",
    "Latency of a single remote model attempt in seconds",
)

RECORDS_LOADED = Gauge(
    "records_loaded",
    "Number of institution records published by the last load",
)


@contextmanager
def timer():
    start = time.time()
    yield lambda: time.time() - start


def observe_chat_latency(sec: float) -> None:
    CHAT_LATENCY_SECONDS.observe(sec)


def observe_model_attempt_latency(sec: float) -> None:
    MODEL_ATTEMPT_SECONDS.observe(sec)


def inc_chat_requests() -> None:
    CHAT_REQUESTS_TOTAL.inc()


def inc_chat_error(error_type: str) -> None:
    CHAT_ERRORS_TOTAL.labels(reason=error_type).inc()


def inc_model_attempt(model: str, outcome: str) -> None:
    MODEL_ATTEMPTS_TOTAL.labels(model=model, outcome=outcome).inc()


def inc_fallback_answers(reason: str) -> None:
    FALLBACK_ANSWERS_TOTAL.labels(reason=reason).inc()


def inc_screen_block(category: str) -> None:
    SCREEN_BLOCKS_TOTAL.labels(category=category).inc()


def set_records_loaded(count: int) -> None:
    RECORDS_LOADED.set(max(0, count))


def render_metrics() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
