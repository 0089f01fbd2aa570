"""Metrics collection for the HTTP request wrapper."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ClientMetrics:
    """Metrics for request sending.

    Singleton class that tracks attempt counts, retries, failures,
    received bytes and time spent in send calls.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_attempts_total: int = 0
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_duration_ms_total: float = 0.0
    http_send_count: int = 0

    _instance: ClassVar["ClientMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ClientMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self) -> None:
        """Record a single network attempt."""
        self.http_attempts_total += 1

    def record_request(self, status_code: int, bytes_received: int) -> None:
        """Record a response that was received and parsed.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of body bytes received.
        """
        self.http_requests_total[status_code] = (
            self.http_requests_total.get(status_code, 0) + 1
        )
        self.http_bytes_total += bytes_received

    def record_retry(self) -> None:
        """Record a retry after a failed attempt."""
        self.http_retry_total += 1

    def record_failure(self, error_kind: str) -> None:
        """Record a send call that ended with an error.

        Args:
            error_kind: Name of the error class.
        """
        self.http_failures_total[error_kind] = (
            self.http_failures_total.get(error_kind, 0) + 1
        )

    def record_duration(self, duration_ms: float) -> None:
        """Record the duration of a whole send call, retries included."""
        self.http_duration_ms_total += duration_ms
        self.http_send_count += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary."""
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_attempts_total": self.http_attempts_total,
            "http_retry_total": self.http_retry_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_bytes_total": self.http_bytes_total,
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_send_count": self.http_send_count,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Average duration of a send call in milliseconds."""
        if self.http_send_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_send_count
