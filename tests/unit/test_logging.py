"""
Unit tests for the structlog configuration.
"""

import json

import numpy as np
import structlog

from gameinsights.utils.logging import add_severity, build_processors, coerce_numpy_values


class TestCoerceNumpyValues:
    def test_scalars_become_builtins(self):
        event = coerce_numpy_values(
            None, "info", {"event": "fit", "slope": np.float64(0.25), "rows": np.int64(60)}
        )
        assert event["slope"] == 0.25
        assert type(event["slope"]) is float
        assert type(event["rows"]) is int

    def test_arrays_become_lists(self):
        event = coerce_numpy_values(None, "info", {"event": "fit", "dow": np.array([1.0, 1.2])})
        assert event["dow"] == [1.0, 1.2]

    def test_plain_values_untouched(self):
        event = coerce_numpy_values(None, "info", {"event": "fit", "model": "revenue", "n": 3})
        assert event == {"event": "fit", "model": "revenue", "n": 3}

    def test_json_renderer_accepts_coerced_event(self):
        event = coerce_numpy_values(
            None, "info", {"event": "fit", "r2": np.float32(0.5), "months": np.ones(2)}
        )
        rendered = structlog.processors.JSONRenderer()(None, "info", event)
        assert json.loads(rendered) == {"event": "fit", "r2": 0.5, "months": [1.0, 1.0]}


class TestProcessorChain:
    def test_severity_from_method_name(self):
        assert add_severity(None, "warning", {"event": "x"})["severity"] == "WARNING"

    def test_json_chain_ends_with_json_renderer(self):
        processors = build_processors(json_format=True)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert processors.index(coerce_numpy_values) < len(processors) - 1

    def test_console_chain_ends_with_console_renderer(self):
        processors = build_processors(json_format=False)
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
