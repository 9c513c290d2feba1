"""Performance logging utilities for backend command execution."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Any, Generator, List

SLOW_COMMAND_SECONDS = 10.0
VERY_SLOW_COMMAND_SECONDS = 60.0


@dataclass
class PerformanceMetrics:
    """Performance metrics for a single timed operation."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class PerformanceLogger:
    """
    Performance logger for backend operations.

    Provides timing utilities and keeps the metrics of the most recent run
    of each operation so long-running phases (dump/load, update) can be
    inspected after the fact.
    """

    def __init__(self, logger_name: str = 'svnws.backend.performance'):
        """
        Initialize performance logger.

        Args:
            logger_name: Name for the logger instance
        """
        self.logger = logging.getLogger(logger_name)
        self._metrics: Dict[str, PerformanceMetrics] = {}

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            context: Additional context information
            log_level: Logging level for performance messages
        """
        start_time = time.time()
        self.logger.log(log_level, f"Starting {operation}")

        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.log(log_level, f"{operation} failed after {time.time() - start_time:.3f}s: {e}")
            raise
        finally:
            end_time = time.time()
            duration = end_time - start_time

            self._metrics[operation] = PerformanceMetrics(
                operation=operation,
                duration=duration,
                start_time=start_time,
                end_time=end_time,
                context=context,
                success=success
            )

            if success:
                self.logger.log(log_level, f"{operation} completed in {duration:.3f}s")
                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"{operation} context: {context_str}")

    def log_command_performance(self, command: List[str], duration: float, success: bool = True) -> None:
        """
        Log performance of one backend command execution.

        Args:
            command: Argument vector that was executed
            duration: Duration in seconds
            success: Whether the command exited successfully
        """
        command_str = " ".join(command[:3])
        status = "ok" if success else "failed"
        self.logger.debug(f"Command '{command_str}' {status} in {duration:.3f}s")

        if duration > VERY_SLOW_COMMAND_SECONDS:
            self.logger.error(f"Very slow backend operation: '{command_str}' took {duration:.3f}s")
        elif duration > SLOW_COMMAND_SECONDS:
            self.logger.warning(f"Slow backend operation detected: '{command_str}' took {duration:.3f}s")

    def get_metrics(self, operation: str) -> Optional[PerformanceMetrics]:
        """Get the metrics recorded for the last run of ``operation``."""
        return self._metrics.get(operation)


# Global performance logger instance
_performance_logger: Optional[PerformanceLogger] = None


def get_performance_logger() -> PerformanceLogger:
    """Get the global performance logger instance."""
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger()
    return _performance_logger
