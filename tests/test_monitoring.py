"""
로깅 모듈 테스트
================
구조화 로깅, 로그 컨텍스트, 최적화 지표 로깅 테스트
"""

import json
import logging
import tempfile
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture
def restore_root_logger():
    """setup_logging이 바꾼 루트 로거 복원"""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


# ============================================================================
# Formatter Tests
# ============================================================================

class TestFormatters:
    """포매터 테스트"""

    def _record(self, msg='Test message', level=logging.INFO):
        return logging.LogRecord(
            name='test',
            level=level,
            pathname='test.py',
            lineno=1,
            msg=msg,
            args=(),
            exc_info=None
        )

    def test_json_formatter(self):
        """JSON 포매터"""
        from src.monitoring.logging_config import JSONFormatter

        formatted = JSONFormatter().format(self._record())
        parsed = json.loads(formatted)

        assert parsed['message'] == 'Test message'
        assert parsed['level'] == 'INFO'
        assert 'timestamp' in parsed
        assert 'thread' not in parsed

    def test_json_formatter_extra_fields(self):
        """고정 필드, 컨텍스트, 스레드 이름"""
        from src.monitoring.logging_config import JSONFormatter

        record = self._record()
        record.context = {'grid_size': 76}
        record.extra_data = {'metric_name': 'grid_converged_ratio'}

        formatter = JSONFormatter(include_thread=True, extra_fields={'app': 'bidding'})
        parsed = json.loads(formatter.format(record))

        assert parsed['app'] == 'bidding'
        assert parsed['context'] == {'grid_size': 76}
        assert parsed['metric_name'] == 'grid_converged_ratio'
        assert 'thread' in parsed

    def test_json_formatter_exception(self):
        """예외 정보 포함"""
        from src.monitoring.logging_config import JSONFormatter

        try:
            raise ValueError('boom')
        except ValueError:
            record = self._record()
            record.exc_info = sys.exc_info()

        parsed = json.loads(JSONFormatter().format(record))

        assert parsed['exception']['type'] == 'ValueError'
        assert parsed['exception']['message'] == 'boom'

    def test_colored_formatter_keeps_record(self):
        """컬러 포매터는 원본 레코드를 바꾸지 않음"""
        from src.monitoring.logging_config import ColoredFormatter

        record = self._record(level=logging.WARNING)
        formatted = ColoredFormatter().format(record)

        assert '\033[33m' in formatted
        assert record.levelname == 'WARNING'


# ============================================================================
# Context Tests
# ============================================================================

class TestLogContext:
    """로그 컨텍스트 테스트"""

    def test_log_context(self):
        """로그 컨텍스트"""
        from src.monitoring.logging_config import LogContext

        LogContext.clear()
        LogContext.set(grid_size=76, price_range=[350, 500])

        context = LogContext.get()
        assert context['grid_size'] == 76
        assert context['price_range'] == [350, 500]

        LogContext.clear()
        assert LogContext.get() == {}

    def test_log_context_scope(self):
        """로그 컨텍스트 스코프"""
        from src.monitoring.logging_config import LogContext

        LogContext.clear()
        LogContext.set(outer='value')

        with LogContext.scope(inner='scoped'):
            context = LogContext.get()
            assert context['inner'] == 'scoped'
            assert context['outer'] == 'value'

        context = LogContext.get()
        assert 'inner' not in context
        assert context['outer'] == 'value'
        LogContext.clear()

    def test_scope_restored_on_error(self):
        """예외 발생 시에도 복원"""
        from src.monitoring.logging_config import LogContext

        LogContext.clear()
        with pytest.raises(RuntimeError):
            with LogContext.scope(ensemble_method='voting'):
                raise RuntimeError('fail')

        assert LogContext.get() == {}


# ============================================================================
# Logger Tests
# ============================================================================

class TestLoggers:
    """로거 테스트"""

    def test_structured_logger(self, caplog):
        """구조화된 로거"""
        from src.monitoring.logging_config import StructuredLogger

        logger = StructuredLogger('test.structured')

        with caplog.at_level(logging.INFO):
            logger.info('Test message', key='value')
            logger.warning('Warning message')
            logger.debug('Hidden message')

        messages = [r.getMessage() for r in caplog.records]
        assert 'Test message' in messages
        assert 'Warning message' in messages
        assert 'Hidden message' not in messages
        assert caplog.records[0].extra_data == {'key': 'value'}

    def test_log_config_level(self):
        """문자열/정수 레벨"""
        from src.monitoring.logging_config import LogConfig

        assert LogConfig(level='debug').level_value == logging.DEBUG
        assert LogConfig(level=logging.WARNING).level_value == logging.WARNING

    def test_log_execution(self, caplog):
        """실행 로깅 데코레이터"""
        from src.monitoring.logging_config import log_execution

        @log_execution()
        def add(a, b):
            return a + b

        with caplog.at_level(logging.INFO):
            assert add(1, 2) == 3

        assert add.__name__ == 'add'
        assert any(r.getMessage().startswith('Completed') for r in caplog.records)

    def test_log_execution_reraises(self, caplog):
        """실패는 기록 후 다시 발생"""
        from src.monitoring.logging_config import log_execution

        @log_execution()
        def fail():
            raise ValueError('bad input')

        with caplog.at_level(logging.INFO):
            with pytest.raises(ValueError):
                fail()

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert errors
        assert errors[0].extra_data['error_type'] == 'ValueError'

    def test_metrics_logger(self, caplog):
        """앙상블 가중치 지표"""
        from src.monitoring.logging_config import OptimizationMetricsLogger

        with caplog.at_level(logging.INFO):
            OptimizationMetricsLogger().log_ensemble_weights({'a': 0.7, 'b': 0.3}, 'weighted_average')

        records = [r for r in caplog.records if r.name == 'bidding.metrics']
        assert len(records) == 2
        assert records[0].extra_data['metric_tags'] == {'model': 'a', 'method': 'weighted_average'}


# ============================================================================
# Setup Tests
# ============================================================================

class TestSetupLogging:
    """로깅 설정 테스트"""

    def test_console_text(self, restore_root_logger):
        """콘솔 + 텍스트"""
        from src.monitoring.logging_config import ColoredFormatter, LogConfig, setup_logging

        setup_logging(LogConfig(level='WARNING'))

        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, ColoredFormatter)

    def test_file_output(self, restore_root_logger):
        """파일 출력 (에러 로그 별도)"""
        from src.monitoring.logging_config import LogConfig, setup_logging

        with tempfile.TemporaryDirectory() as tmpdir:
            config = LogConfig(
                log_dir=tmpdir,
                format='json',
                output='file',
                app_name='bidding-test'
            )
            setup_logging(config)

            logging.info('Test log message')
            logging.error('Test error message')
            for handler in restore_root_logger.handlers:
                handler.flush()

            assert (Path(tmpdir) / 'bidding-test.log').exists()
            assert (Path(tmpdir) / 'bidding-test.error.log').exists()

            error_lines = (Path(tmpdir) / 'bidding-test.error.log').read_text(encoding='utf-8').splitlines()
            assert len(error_lines) == 1
            assert json.loads(error_lines[0])['message'] == 'Test error message'

            for handler in restore_root_logger.handlers[:]:
                restore_root_logger.removeHandler(handler)
                handler.close()
