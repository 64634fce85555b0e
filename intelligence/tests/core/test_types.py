"""Tests for request options, metrics and the field helpers."""
import math

import numpy as np
import pytest

from intelligence.core.fields import clamp, coerce_number, is_in_range, read_field, text_of, unique
from intelligence.core.types import (
    IntelligenceResponse,
    OrchestrationMetrics,
    OrchestrationOptions,
    StageExecutionResult,
)


class TestOrchestrationOptions:

    def test_none_gives_defaults(self):
        opts = OrchestrationOptions.from_value(None)
        assert opts.include_opportunities and opts.include_recommendations
        assert opts.max_opportunities == 50

    def test_camel_case_dict(self):
        opts = OrchestrationOptions.from_value({'includeOpportunities': False, 'maxOpportunities': 3})
        assert opts.include_opportunities is False
        assert opts.include_recommendations is True
        assert opts.max_opportunities == 3

    def test_snake_case_wins_over_camel_case(self):
        opts = OrchestrationOptions.from_value({'max_opportunities': 4, 'maxOpportunities': 9})
        assert opts.max_opportunities == 4

    def test_bad_max_falls_back_to_default(self):
        opts = OrchestrationOptions.from_value({'maxOpportunities': 'lots'}, default_max_opportunities=20)
        assert opts.max_opportunities == 20

    def test_instance_passes_through(self):
        opts = OrchestrationOptions(max_opportunities=2)
        assert OrchestrationOptions.from_value(opts) is opts


class TestOrchestrationMetrics:

    def test_record_and_skip(self):
        metrics = OrchestrationMetrics()
        metrics.record(StageExecutionResult(key='a', success=True, duration_ms=1.5))
        metrics.record(StageExecutionResult(key='b', success=False, error_message='x', duration_ms=2.0))
        metrics.skip('c')
        assert metrics.successful_steps == ['a']
        assert metrics.failed_steps == ['b']
        assert metrics.skipped_steps == ['c']
        assert metrics.failure_ratio(4) == 0.25
        assert metrics.failure_ratio(0) == 0.0

    def test_to_frame(self):
        metrics = OrchestrationMetrics()
        metrics.record(StageExecutionResult(key='a', success=True, duration_ms=1.5))
        metrics.record(StageExecutionResult(key='b', success=False, duration_ms=2.0))
        metrics.skip('c')
        frame = metrics.to_frame()
        assert list(frame.columns) == ['stage', 'duration_ms', 'status']
        assert frame['status'].tolist() == ['ok', 'failed', 'skipped']


class TestFieldHelpers:

    def test_read_field_mapping_and_object(self):
        assert read_field({'brandName': 'Acme'}, 'brand_name', 'brandName') == 'Acme'
        response = IntelligenceResponse(workspace_id='w', brand_name='Acme', domain='d')
        assert read_field(response, 'brand_name', 'brandName') == 'Acme'
        assert read_field(None, 'x', default=3) == 3

    def test_read_field_skips_none(self):
        assert read_field({'a': None, 'b': 2}, 'a', 'b') == 2

    @pytest.mark.parametrize('value,expected', [
        (5, 5.0),
        ('7.5', 7.5),
        (np.float64(0.25), 0.25),
        (True, None),
        (None, None),
        ('abc', None),
        (float('nan'), None),
        ([1], None),
    ])
    def test_coerce_number(self, value, expected):
        assert coerce_number(value) == expected

    def test_coerce_number_keeps_infinity(self):
        assert math.isinf(coerce_number(float('inf')))

    def test_coerce_number_huge_int_becomes_infinity(self):
        assert coerce_number(10 ** 400) == math.inf
        assert coerce_number(-10 ** 400) == -math.inf
        assert not is_in_range(10 ** 400, 0, 100)

    def test_clamp_and_range(self):
        assert clamp(float('inf'), 0, 100) == 100.0
        assert clamp(-3, 0, 1) == 0.0
        assert is_in_range(0.5, 0, 1)
        assert not is_in_range(float('inf'), 0, 100)
        assert not is_in_range('x', 0, 1)

    def test_text_of_and_unique(self):
        assert text_of('  hi ') == 'hi'
        assert text_of({'a': 1}) == ''
        assert text_of(None) == ''
        assert unique(['b', 'a', 'b']) == ['b', 'a']
