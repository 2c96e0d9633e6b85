"""Utilities for the anonymous reaction subsystem."""

from .utils import (
    setup_logging,
    PerformanceMonitor,
    PerformanceMetrics,
    create_performance_report,
    get_system_info,
    format_duration
)

__all__ = [
    'setup_logging',
    'PerformanceMonitor',
    'PerformanceMetrics',
    'create_performance_report',
    'get_system_info',
    'format_duration'
]
