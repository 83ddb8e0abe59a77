"""Public observability primitives: structured logging and bundle metrics."""

from bundle_assembler.observability.logging import (
    configure_logging,
    configure_logging_from_config,
    correlation_scope,
    get_logger,
    redact_event_dict,
)
from bundle_assembler.observability.metrics import MetricsRegistry, compute_bundle_metrics

__all__ = [
    "MetricsRegistry",
    "compute_bundle_metrics",
    "configure_logging",
    "configure_logging_from_config",
    "correlation_scope",
    "get_logger",
    "redact_event_dict",
]
