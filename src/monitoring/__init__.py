"""
모니터링 모듈
=============
구조화 로깅과 최적화 지표 로깅을 제공합니다.
"""

from .logging_config import (
    setup_logging,
    StructuredLogger,
    LogContext,
    LogConfig,
    JSONFormatter,
    ColoredFormatter,
    OptimizationMetricsLogger,
    create_logger,
    log_execution,
)

__all__ = [
    'setup_logging',
    'StructuredLogger',
    'LogContext',
    'LogConfig',
    'JSONFormatter',
    'ColoredFormatter',
    'OptimizationMetricsLogger',
    'create_logger',
    'log_execution',
]
