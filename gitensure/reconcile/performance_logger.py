"""Performance logging utilities for reconciliation phases."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional

SLOW_OPERATION_SECONDS = 10.0


@dataclass
class PerformanceMetrics:
    """Timing of one reconciliation phase."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class PerformanceLogger:
    """
    Timing utilities for the phases of one reconciliation.

    One instance belongs to one reconciliation call; instances are not
    shared between calls.
    """

    def __init__(self, logger_name: str = 'gitensure.reconcile.performance', enabled: bool = True):
        """
        Initialize performance logger.

        Args:
            logger_name: Name for the logger instance
            enabled: When False, phases run untimed and nothing is recorded
        """
        self.logger = logging.getLogger(logger_name)
        self.enabled = enabled
        self._metrics: List[PerformanceMetrics] = []

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing a phase.

        Args:
            operation: Name of the phase being timed
            context: Additional context information
            log_level: Logging level for completion messages
        """
        if not self.enabled:
            yield
            return

        start_time = time.time()
        self.logger.log(log_level, f"⏱️ Starting {operation}")

        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.error(f"❌ {operation} failed after {time.time() - start_time:.3f}s: {e}")
            raise
        finally:
            end_time = time.time()
            duration = end_time - start_time
            self._metrics.append(PerformanceMetrics(
                operation=operation,
                duration=duration,
                start_time=start_time,
                end_time=end_time,
                context=context,
                success=success
            ))

            if success:
                self.logger.log(log_level, f"✅ {operation} completed in {duration:.3f}s")
                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"📊 {operation} context: {context_str}")
            if duration > SLOW_OPERATION_SECONDS:
                self.logger.warning(f"⚠️ Slow reconciliation phase: '{operation}' took {duration:.3f}s")

    @property
    def metrics(self) -> List[PerformanceMetrics]:
        return list(self._metrics)

    def get_performance_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the recorded phases.

        Returns:
            Dictionary containing performance summary
        """
        if not self._metrics:
            return {"total_operations": 0, "average_duration": 0.0}

        total_operations = len(self._metrics)
        total_duration = sum(m.duration for m in self._metrics)
        successful_ops = sum(1 for m in self._metrics if m.success)
        slowest_op = max(self._metrics, key=lambda m: m.duration)

        return {
            "total_operations": total_operations,
            "total_duration": total_duration,
            "average_duration": total_duration / total_operations,
            "success_rate": successful_ops / total_operations,
            "slowest_operation": {
                "name": slowest_op.operation,
                "duration": slowest_op.duration
            }
        }

    def log_performance_summary(self) -> None:
        """Log a summary of all recorded phases."""
        summary = self.get_performance_summary()

        if summary["total_operations"] == 0:
            self.logger.debug("📊 No performance metrics available")
            return

        self.logger.info(
            f"📊 Performance Summary: {summary['total_operations']} phases, "
            f"{summary['total_duration']:.3f}s total, "
            f"{summary['success_rate']:.1%} success rate"
        )
