"""Tests for StageRunner failure containment."""
import time
import logging
from unittest.mock import Mock

from intelligence.orchestration.stage_runner import StageRunner


class TestStageRunner:

    def test_success_wraps_data(self):
        result = StageRunner().run('industry_detection', lambda: {'primaryIndustry': 'Travel'})
        assert result.success is True
        assert result.key == 'industry_detection'
        assert result.data == {'primaryIndustry': 'Travel'}
        assert result.error_message is None
        assert result.duration_ms >= 0

    def test_exception_becomes_failure(self):
        def boom():
            raise ConnectionError('upstream down')

        result = StageRunner().run('citation_analysis', boom)
        assert result.success is False
        assert result.data is None
        assert result.error_message == 'upstream down'

    def test_empty_message_uses_exception_name(self):
        def boom():
            raise KeyError()

        result = StageRunner().run('x', boom)
        assert result.error_message == 'KeyError'

    def test_soft_timeout(self):
        runner = StageRunner(timeout_seconds=0.05)
        result = runner.run('slow', lambda: time.sleep(0.5))
        assert result.success is False
        assert result.error_message == 'exceeded soft time budget of 0.05s'

    def test_fast_stage_within_timeout(self):
        result = StageRunner(timeout_seconds=5).run('fast', lambda: 42)
        assert result.success is True
        assert result.data == 42

    def test_listeners_notified_and_isolated(self):
        seen = Mock()
        broken = Mock(side_effect=RuntimeError('listener bug'))
        runner = StageRunner(listeners=[broken])
        runner.add_listener(seen)

        result = runner.run('a', lambda: 1)

        broken.assert_called_once_with(result)
        seen.assert_called_once_with(result)

    def test_failure_logged_with_stage_fields(self, caplog):
        caplog.set_level(logging.DEBUG, logger='intelligence.orchestration.stage_runner')

        def boom():
            raise ValueError('bad')

        StageRunner().run('geo_score', boom)
        record = next(r for r in caplog.records if r.levelno == logging.ERROR)
        assert record.stage == 'geo_score'
        assert record.success is False
        assert record.error == 'bad'
