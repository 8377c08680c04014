from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict

from flask import g, has_request_context, request


_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")


def _normalize_request_id(value: str | None) -> str:
    return str(value or "").strip() or "n/a"


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))


def _background_request_id(default: str | None = None) -> str:
    request_id = str(_LOG_REQUEST_ID_CTX.get() or "").strip()
    if request_id:
        return request_id
    return default or "n/a"


class JsonLogFormatter(logging.Formatter):
    _base_keys = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id(default="n/a")
            payload["path"] = request.path
            payload["method"] = request.method
            if request.url_rule is not None:
                payload["route"] = request.url_rule.rule
        else:
            record_request_id = str(getattr(record, "request_id", "") or "").strip()
            payload["request_id"] = record_request_id or _background_request_id(default="n/a")

        for key, value in record.__dict__.items():
            if key in self._base_keys or key.startswith("_"):
                continue
            if key in payload:
                continue
            if callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if request_id:
        set_log_request_id(request_id)
        return request_id
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    request_id = incoming or str(uuid.uuid4())
    g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _background_request_id(default=default)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._requests_total = 0
            self._errors_total = 0
            self._by_route: Dict[str, Dict[str, float]] = {}
            self._domain_event_emitted_total: Dict[str, int] = {}
            self._purchase_request_operations_total: Dict[tuple[str, str], int] = {}
            self._purchase_request_save_conflicts_total = 0

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        method_key = str(method or "GET").strip().upper() or "GET"
        route_key = str(route or "unknown").strip() or "unknown"

        key = f"{method_key} {route_key}"
        with self._lock:
            bucket = self._by_route.setdefault(
                key,
                {
                    "requests": 0.0,
                    "errors": 0.0,
                    "latency_sum_ms": 0.0,
                    "latency_max_ms": 0.0,
                },
            )
            bucket["requests"] += 1
            bucket["latency_sum_ms"] += max(0.0, float(duration_ms))
            bucket["latency_max_ms"] = max(bucket["latency_max_ms"], max(0.0, float(duration_ms)))
            self._requests_total += 1
            if int(status_code) >= 400:
                bucket["errors"] += 1
                self._errors_total += 1

    def observe_domain_event_emitted(self, event_type: str) -> None:
        key = str(event_type or "unknown").strip() or "unknown"
        with self._lock:
            self._domain_event_emitted_total[key] = int(self._domain_event_emitted_total.get(key, 0)) + 1

    def observe_purchase_request_operation(self, operation: str, outcome: str) -> None:
        key = (str(operation or "unknown").strip() or "unknown", str(outcome or "ok").strip() or "ok")
        with self._lock:
            self._purchase_request_operations_total[key] = int(self._purchase_request_operations_total.get(key, 0)) + 1

    def observe_purchase_request_save_conflict(self, count: int = 1) -> None:
        increment = max(0, int(count or 0))
        if increment <= 0:
            return
        with self._lock:
            self._purchase_request_save_conflicts_total += increment

    def snapshot(self) -> dict:
        with self._lock:
            route_stats = []
            for route, bucket in self._by_route.items():
                requests_count = int(bucket["requests"])
                avg_ms = 0.0
                if requests_count > 0:
                    avg_ms = float(bucket["latency_sum_ms"]) / requests_count
                route_stats.append(
                    {
                        "route": route,
                        "requests": requests_count,
                        "errors": int(bucket["errors"]),
                        "avg_latency_ms": round(avg_ms, 2),
                        "max_latency_ms": round(float(bucket["latency_max_ms"]), 2),
                    }
                )
            route_stats.sort(key=lambda item: item["requests"], reverse=True)
            operations = {
                f"{operation}:{outcome}": int(total)
                for (operation, outcome), total in sorted(self._purchase_request_operations_total.items())
            }
            return {
                "requests_total": int(self._requests_total),
                "errors_total": int(self._errors_total),
                "by_route": route_stats[:40],
                "domain_events": {
                    "emitted_total": int(sum(self._domain_event_emitted_total.values())),
                    "by_type": dict(sorted(self._domain_event_emitted_total.items())),
                },
                "purchase_requests": {
                    "operations": operations,
                    "save_conflicts_total": int(self._purchase_request_save_conflicts_total),
                },
            }


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = float(getattr(g, "_request_started_at", 0.0) or 0.0)
    elapsed_ms = 0.0
    if started > 0.0:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, int(response.status_code), elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_domain_event_emitted(event_type: str) -> None:
    _METRICS.observe_domain_event_emitted(event_type)


def observe_purchase_request_operation(operation: str, outcome: str) -> None:
    _METRICS.observe_purchase_request_operation(operation, outcome)


def observe_purchase_request_save_conflict(count: int = 1) -> None:
    _METRICS.observe_purchase_request_save_conflict(count)


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)


def _prom_label(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _prom_line(name: str, value: int | float, labels: dict[str, object] | None = None) -> str:
    if labels:
        labels_blob = ",".join(f'{key}="{_prom_label(val)}"' for key, val in sorted(labels.items()))
        return f"{name}{{{labels_blob}}} {value}"
    return f"{name} {value}"


def prometheus_metrics_text() -> str:
    snapshot = _METRICS.snapshot()
    lines: list[str] = []

    lines.append("# HELP http_request_total Total HTTP requests by route.")
    lines.append("# TYPE http_request_total counter")
    for bucket in snapshot["by_route"]:
        lines.append(_prom_line("http_request_total", bucket["requests"], labels={"route": bucket["route"]}))

    lines.append("# HELP http_request_errors_total HTTP responses with status >= 400 by route.")
    lines.append("# TYPE http_request_errors_total counter")
    for bucket in snapshot["by_route"]:
        lines.append(_prom_line("http_request_errors_total", bucket["errors"], labels={"route": bucket["route"]}))

    lines.append("# HELP domain_event_emitted_total Domain events published on the in-process bus.")
    lines.append("# TYPE domain_event_emitted_total counter")
    for event_type, total in snapshot["domain_events"]["by_type"].items():
        lines.append(_prom_line("domain_event_emitted_total", total, labels={"event_type": event_type}))

    lines.append("# HELP purchase_request_operation_total Purchase request operations by outcome.")
    lines.append("# TYPE purchase_request_operation_total counter")
    for key, total in snapshot["purchase_requests"]["operations"].items():
        operation, _, outcome = key.partition(":")
        lines.append(
            _prom_line("purchase_request_operation_total", total, labels={"operation": operation, "outcome": outcome})
        )

    lines.append("# HELP purchase_request_save_conflict_total Stale purchase request saves.")
    lines.append("# TYPE purchase_request_save_conflict_total counter")
    lines.append(
        _prom_line("purchase_request_save_conflict_total", snapshot["purchase_requests"]["save_conflicts_total"])
    )
    return "\n".join(lines) + "\n"
