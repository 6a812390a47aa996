"""Telemetry for background lookups, reported to PostHog."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from posthog import Posthog

logger = logging.getLogger(__name__)

DISTINCT_ID = "vinyl-enrichment-service"


@dataclass
class StepResult:
    """Result of a tracked step."""

    duration_ms: float
    success: bool = True
    error_type: str | None = None


@dataclass
class LookupTelemetry:
    """Tracks timings and outcome for a single enrichment lookup."""

    key: str
    kind: str
    steps: dict[str, StepResult] = field(default_factory=dict)
    start_time: float = field(default_factory=time.perf_counter)

    @contextmanager
    def track_step(self, step_name: str):
        """Context manager to time a step.

        Cancellation is recorded as a failed step and re-raised.

        Args:
            step_name: Name of the step being tracked

        Yields:
            None
        """
        step_start = time.perf_counter()
        error_type = None

        try:
            yield
        except BaseException as e:
            error_type = type(e).__name__
            raise
        finally:
            self.steps[step_name] = StepResult(
                duration_ms=(time.perf_counter() - step_start) * 1000,
                success=error_type is None,
                error_type=error_type,
            )

    def get_total_duration_ms(self) -> float:
        """Get total elapsed time since telemetry was created."""
        return (time.perf_counter() - self.start_time) * 1000

    def get_step_timings(self) -> dict[str, float]:
        """Get timing for each step in milliseconds."""
        return {f"{name}_ms": step.duration_ms for name, step in self.steps.items()}

    def send_to_posthog(
        self,
        posthog_client: Posthog,
        outcome: str,
        extra_properties: dict[str, Any] | None = None,
    ) -> None:
        """Send the lookup summary event to PostHog.

        Args:
            posthog_client: PostHog client instance
            outcome: Terminal state of the lookup ("completed", "failed")
            extra_properties: Additional properties to include in the event
        """
        posthog_client.capture(
            distinct_id=DISTINCT_ID,
            event="enrichment_lookup_finished",
            properties={
                "kind": self.kind,
                "outcome": outcome,
                "total_duration_ms": round(self.get_total_duration_ms(), 2),
                "steps": self.get_step_timings(),
                "failed_steps": [n for n, s in self.steps.items() if not s.success],
                **(extra_properties or {}),
            },
        )

        logger.debug(
            f"Sent telemetry for {self.key}: {outcome}, "
            f"total {self.get_total_duration_ms():.1f}ms"
        )
