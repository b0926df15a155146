import structlog
import logging
import sys
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "dualmode-agent"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("APP_ENV", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add trace and client context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    bound = structlog.contextvars.get_contextvars()

    trace_id = bound.get("trace_id")
    if trace_id:
        event_dict["trace_id"] = trace_id

    client_id = bound.get("client_id")
    if client_id and "client_id" not in event_dict:
        event_dict["client_id"] = client_id

    return event_dict


class SessionLogger:
    """Specialized logger for session, tool and intent events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_tool_execution(
        self,
        tool_name: str,
        client_id: str,
        input_data: Dict[str, Any],
        duration_ms: Optional[float] = None,
        success: bool = True,
        error_kind: Optional[str] = None,
        intents: Optional[List[str]] = None
    ):
        """Log tool execution events"""

        self.logger.info(
            "tool_execution",
            tool_name=tool_name,
            client_id=client_id,
            input_data=input_data,
            duration_ms=duration_ms,
            success=success,
            error_kind=error_kind,
            intents=intents or []
        )

    def log_mode_transition(
        self,
        client_id: str,
        from_mode: str,
        to_mode: str,
        trigger: str
    ):
        """Log session mode transitions"""

        self.logger.info(
            "mode_transition",
            client_id=client_id,
            from_mode=from_mode,
            to_mode=to_mode,
            trigger=trigger
        )

    def log_intent(
        self,
        client_id: str,
        intent_type: str,
        timing: str,
        action: str
    ):
        """Log intent scheduling and application"""

        self.logger.info(
            "intent",
            client_id=client_id,
            intent_type=intent_type,
            timing=timing,
            action=action
        )

    def log_context_update(
        self,
        user_id: str,
        fingerprint: Optional[str],
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log conversation context updates"""

        self.logger.info(
            "context_update",
            user_id=user_id,
            fingerprint=fingerprint,
            action=action,
            details=details or {}
        )


session_logger = SessionLogger("dualmode")


class MetricsCollector:
    """Collect and export metrics"""

    def __init__(self):
        self.metrics: Dict[str, Any] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0,
                "min": float('inf'),
                "max": 0
            }

        self.metrics[key]["count"] += 1
        self.metrics[key]["sum"] += duration_ms
        self.metrics[key]["min"] = min(self.metrics[key]["min"], duration_ms)
        self.metrics[key]["max"] = max(self.metrics[key]["max"], duration_ms)

        session_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=duration_ms,
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        if name not in self.metrics:
            self.metrics[name] = 0
        self.metrics[name] += value

        session_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics"""

        summary = {}
        for key, value in self.metrics.items():
            if isinstance(value, dict) and "count" in value:
                summary[key] = {
                    "count": value["count"],
                    "avg": value["sum"] / value["count"] if value["count"] > 0 else 0,
                    "min": value["min"] if value["min"] != float('inf') else 0,
                    "max": value["max"]
                }
            else:
                summary[key] = value

        return summary


metrics = MetricsCollector()
