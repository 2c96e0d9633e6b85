"""
Utilities for the Anonymous Reaction Subsystem
Logging setup and operation latency monitoring
"""

import logging
import platform
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

import numpy as np
import psutil


@dataclass
class PerformanceMetrics:
    operation: str
    duration_seconds: float
    memory_mb: float
    timestamp: float
    failed: bool = False


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None,
                  log_dir: Optional[Path] = None):
    """Send root logging to a timestamped file under log_dir and to the console"""
    if log_file is None:
        log_dir = Path(log_dir or "logs")
        log_file = log_dir / \
            f"reactions_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Clear existing handlers to avoid duplicates
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized. Log file: {log_file}")

    return logger


DEFAULT_METRICS_HISTORY = 10000


class PerformanceMonitor:
    """
    Latency of named operations; worker threads record into it concurrently.

    Only the most recent max_history executions are kept, so summaries
    describe a rolling window rather than the node's whole lifetime.
    """

    def __init__(self, max_history: int = DEFAULT_METRICS_HISTORY):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self.metrics: Deque[PerformanceMetrics] = deque(maxlen=max_history)
        self.process = psutil.Process()
        self._lock = threading.Lock()

    def start_operation(self, operation_name: str) -> 'OperationContext':
        """Time the enclosed block as one execution of operation_name"""
        return OperationContext(self, operation_name)

    def record_metric(self, metric: PerformanceMetrics):
        with self._lock:
            self.metrics.append(metric)

    def get_summary(self) -> Dict[str, Any]:
        """Per-operation counts, failures and latency percentiles"""
        with self._lock:
            metrics = list(self.metrics)

        by_operation: Dict[str, List[PerformanceMetrics]] = {}
        for metric in metrics:
            by_operation.setdefault(metric.operation, []).append(metric)

        operations = {}
        for name, op_metrics in by_operation.items():
            durations = np.array([m.duration_seconds for m in op_metrics])
            operations[name] = {
                'count': len(op_metrics),
                'failures': sum(1 for m in op_metrics if m.failed),
                'total_duration': float(durations.sum()),
                'avg_duration': float(durations.mean()),
                'p95_duration': float(np.percentile(durations, 95)),
                'max_duration': float(durations.max()),
                'peak_memory_mb': max(m.memory_mb for m in op_metrics),
            }

        return {
            'total_operations': len(metrics),
            'total_duration': sum(op['total_duration'] for op in operations.values()),
            'operations': operations,
        }

    def reset(self):
        with self._lock:
            self.metrics.clear()


class OperationContext:
    """Context manager recording one timed execution"""

    def __init__(self, monitor: PerformanceMonitor, operation_name: str):
        self.monitor = monitor
        self.operation_name = operation_name
        self.start_time = 0.0

    def _memory_mb(self) -> float:
        try:
            return self.monitor.process.memory_info().rss / 1024 / 1024
        except psutil.Error as e:
            logging.debug(f"Performance monitoring error: {e}")
            return 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        self.monitor.record_metric(PerformanceMetrics(
            operation=self.operation_name,
            duration_seconds=duration,
            memory_mb=self._memory_mb(),
            timestamp=time.time(),
            failed=exc_type is not None,
        ))
        return False


def get_system_info() -> Dict[str, Any]:
    """Host details printed by show-config"""
    vm = psutil.virtual_memory()
    return {
        'platform': platform.platform(),
        'python_version': platform.python_version(),
        'cpu_count_logical': psutil.cpu_count(logical=True),
        'total_memory_gb': round(vm.total / 1024 ** 3, 2),
        'available_memory_gb': round(vm.available / 1024 ** 3, 2),
    }


def create_performance_report(monitor: PerformanceMonitor) -> str:
    """Plain-text latency table for the demo and operators"""
    summary = monitor.get_summary()

    lines = [
        "=" * 80,
        "ANONYMOUS REACTIONS - PERFORMANCE REPORT",
        "=" * 80,
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Total Operations: {summary['total_operations']}",
        f"Total Duration: {format_duration(summary['total_duration'])}",
        "",
    ]

    if not summary['operations']:
        lines.append("No performance data available.")
    else:
        lines.append(f"{'OPERATION':<28}{'COUNT':>7}{'FAILED':>8}{'AVG':>11}{'P95':>11}{'MAX':>11}")
        lines.append("-" * 76)
        for name, op in sorted(summary['operations'].items()):
            lines.append(
                f"{name:<28}{op['count']:>7}{op['failures']:>8}"
                f"{format_duration(op['avg_duration']):>11}"
                f"{format_duration(op['p95_duration']):>11}"
                f"{format_duration(op['max_duration']):>11}")

    lines.append("=" * 80)
    return "\n".join(lines)


def format_duration(seconds: float) -> str:
    """Human-readable duration"""
    if seconds < 1:
        return f"{seconds*1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.1f}s"
