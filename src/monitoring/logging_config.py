"""
구조화 로깅 설정
================
JSON/텍스트 로깅, 스레드 로컬 로그 컨텍스트, 최적화 지표 로깅을 제공합니다.

코어 모듈은 logging.getLogger(__name__)만 사용하고,
핸들러/포매터 구성은 setup_logging()에서 한 번 수행합니다.
"""

import functools
import json
import logging
import logging.handlers
import sys
import threading
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union


class JSONFormatter(logging.Formatter):
    """JSON 한 줄 포매터

    레코드 기본 필드 + 고정 필드(extra_fields) + 로그 컨텍스트 + 구조화 필드 순으로 병합.
    """

    def __init__(self, include_thread: bool = False, extra_fields: Dict[str, Any] = None):
        super().__init__()
        self.include_thread = include_thread
        self.extra_fields = dict(extra_fields or {})

    def _exception_info(self, exc_info) -> Dict[str, Any]:
        exc_type, exc_value, _ = exc_info
        return {
            'type': exc_type.__name__ if exc_type else None,
            'message': str(exc_value) if exc_value else None,
            'traceback': ''.join(traceback.format_exception(*exc_info)),
        }

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        # 병렬 그리드 스캔 워커 구분
        if self.include_thread:
            payload['thread'] = record.threadName

        if record.exc_info:
            payload['exception'] = self._exception_info(record.exc_info)

        context = getattr(record, 'context', None)
        if context:
            payload['context'] = context

        payload.update(self.extra_fields)
        payload.update(getattr(record, 'extra_data', None) or {})

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """컬러 콘솔 포매터"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: str = None):
        super().__init__(fmt or '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    def format(self, record: logging.LogRecord) -> str:
        """컬러 포맷 적용 (다른 핸들러에 색상 코드가 새지 않도록 복사본 사용)"""
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, '')
        colored.levelname = f'{color}{record.levelname}{self.RESET}'
        return super().format(colored)


class LogContext:
    """스레드 로컬 로그 컨텍스트

    그리드 스캔, 앙상블 학습 등 호출 단위 정보를 로그에 붙인다.
    """

    _local = threading.local()

    @classmethod
    def _data(cls) -> Dict[str, Any]:
        data = getattr(cls._local, 'data', None)
        if data is None:
            data = cls._local.data = {}
        return data

    @classmethod
    def set(cls, **kwargs) -> None:
        cls._data().update(kwargs)

    @classmethod
    def get(cls) -> Dict[str, Any]:
        return dict(cls._data())

    @classmethod
    def clear(cls) -> None:
        cls._local.data = {}

    @classmethod
    @contextmanager
    def scope(cls, **kwargs):
        """with 블록 동안만 컨텍스트 추가"""
        previous = cls.get()
        cls.set(**kwargs)
        try:
            yield
        finally:
            cls._local.data = previous


class ContextFilter(logging.Filter):
    """핸들러 단계에서 현재 스레드 컨텍스트를 레코드에 첨부"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = LogContext.get()
        return True


class StructuredLogger:
    """키워드 인자를 구조화 필드(extra_data)로 기록하는 로거

    Example:
        >>> log = create_logger('bidding.metrics')
        >>> log.info('Metric: grid_converged_ratio=0.92', metric_value=0.92)
    """

    def __init__(self, name: str, level: int = logging.NOTSET):
        self.name = name
        self._logger = logging.getLogger(name)
        if level:
            self._logger.setLevel(level)

    def log(self, level: int, message: str, exc_info: bool = False, **fields) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(
            self.name, level, '', 0, message, (),
            sys.exc_info() if exc_info else None,
        )
        record.extra_data = fields
        self._logger.handle(record)

    def debug(self, message: str, **fields) -> None:
        self.log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields) -> None:
        self.log(logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields) -> None:
        self.log(logging.ERROR, message, exc_info=True, **fields)


@dataclass
class LogConfig:
    """로그 설정"""
    level: Union[int, str] = logging.INFO
    format: str = 'text'  # 'json' or 'text'
    output: str = 'console'  # 'console', 'file', or 'both'
    log_dir: str = './logs'
    app_name: str = 'neurodynamic-bidding'
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    include_thread: bool = False
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def level_value(self) -> int:
        if isinstance(self.level, str):
            return logging.getLevelName(self.level.upper())
        return self.level


def _rotating_file_handler(path: Path, config: LogConfig) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding='utf-8'
    )


def setup_logging(config: LogConfig = None) -> None:
    """
    루트 로거 구성

    기존 루트 핸들러는 모두 제거된다. 파일 출력 시 ERROR 이상은
    `<app_name>.error.log`에도 따로 기록한다.

    Args:
        config: 로그 설정 (None이면 기본값 사용)
    """
    config = config or LogConfig()

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level_value)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    if config.format == 'json':
        formatter = JSONFormatter(
            include_thread=config.include_thread,
            extra_fields={'app': config.app_name, **config.extra_fields}
        )
    else:
        formatter = ColoredFormatter()

    handlers = []
    if config.output in ('console', 'both'):
        handlers.append(logging.StreamHandler(sys.stdout))

    if config.output in ('file', 'both'):
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        handlers.append(_rotating_file_handler(log_dir / f'{config.app_name}.log', config))

        error_handler = _rotating_file_handler(log_dir / f'{config.app_name}.error.log', config)
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(ContextFilter())
        root_logger.addHandler(handler)

    logging.info(
        f'Logging configured: level={logging.getLevelName(config.level_value)}, '
        f'format={config.format}, output={config.output}'
    )


def create_logger(name: str, level: int = logging.NOTSET) -> StructuredLogger:
    return StructuredLogger(name, level)


def log_execution(logger: StructuredLogger = None, level: int = logging.INFO):
    """함수 시작/완료/실패와 소요 시간을 기록하는 데코레이터 (예외는 다시 발생)"""
    def decorator(func: Callable) -> Callable:
        func_name = f'{func.__module__}.{func.__name__}'

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or create_logger(func.__module__)
            log.log(level, f'Starting {func_name}', function=func_name)
            started = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f'Failed {func_name}: {e}',
                    function=func_name,
                    elapsed_seconds=time.perf_counter() - started,
                    error_type=type(e).__name__,
                )
                raise

            log.log(
                level,
                f'Completed {func_name}',
                function=func_name,
                elapsed_seconds=time.perf_counter() - started,
            )
            return result

        return wrapper
    return decorator


class OptimizationMetricsLogger:
    """최적화/앙상블 결과 지표 로깅"""

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger('bidding.metrics')

    def log_metric(
        self,
        name: str,
        value: float,
        unit: str = None,
        tags: Dict[str, str] = None
    ) -> None:
        self.logger.info(
            f'Metric: {name}={value}',
            metric_name=name,
            metric_value=value,
            metric_unit=unit,
            metric_tags=tags or {}
        )

    def log_convergence(self, stats: Dict[str, Any]) -> None:
        """그리드 수렴 통계"""
        self.log_metric('grid_converged_ratio', stats.get('converged_ratio', 0.0))
        self.log_metric('grid_converged_points', stats.get('converged_points', 0))

    def log_ensemble_weights(self, weights: Dict[str, float], method: str) -> None:
        """앙상블 가중치"""
        for model_name, weight in weights.items():
            self.log_metric(
                'ensemble_weight',
                weight,
                tags={'model': model_name, 'method': method}
            )
