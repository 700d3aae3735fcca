#!/usr/bin/env python3
"""
Unit tests for molert/tracing_utils.py

Tests cover:
- OTEL_ENABLED opt-in
- No-op spans and attributes when disabled
- Span creation and attribute cleanup when enabled
"""

import os
import unittest
from unittest.mock import MagicMock, patch

from molert import tracing_utils


class TracingTestCase(unittest.TestCase):

    def setUp(self):
        tracing_utils._tracing_enabled = False
        tracing_utils._tracer = None

    def tearDown(self):
        tracing_utils._tracing_enabled = False
        tracing_utils._tracer = None


class TestSetupTracing(TracingTestCase):
    """Test when tracing turns on."""

    @patch.dict(os.environ, {}, clear=True)
    def test_tracing_disabled_by_default(self):
        self.assertFalse(tracing_utils.setup_tracing("molert", "1.0.0"))
        self.assertFalse(tracing_utils.is_tracing_enabled())

    @patch.dict(os.environ, {"OTEL_ENABLED": "false"}, clear=True)
    def test_explicitly_disabled(self):
        self.assertFalse(tracing_utils.setup_tracing("molert", "1.0.0"))

    @patch.dict(os.environ, {
        "OTEL_ENABLED": "true",
        "OTEL_EXPORTER_OTLP_ENDPOINT": "http://collector:4317",
        "OTEL_RESOURCE_ATTRIBUTES": "deployment.environment=test,team=sre",
    }, clear=True)
    @patch("molert.tracing_utils._enable_auto_instrumentation")
    @patch("molert.tracing_utils.trace")
    @patch("molert.tracing_utils.OTLPSpanExporter")
    def test_tracing_enabled(self, mock_exporter, mock_trace, mock_instrument):
        self.assertTrue(tracing_utils.setup_tracing("molert", "1.0.0"))

        self.assertTrue(tracing_utils.is_tracing_enabled())
        mock_exporter.assert_called_once_with(endpoint="http://collector:4317", insecure=True)
        mock_trace.set_tracer_provider.assert_called_once()
        mock_instrument.assert_called_once_with(None)

        provider = mock_trace.set_tracer_provider.call_args[0][0]
        attributes = provider.resource.attributes
        self.assertEqual(attributes["service.name"], "molert")
        self.assertEqual(attributes["team"], "sre")

    @patch.dict(os.environ, {"OTEL_ENABLED": "true"}, clear=True)
    @patch("molert.tracing_utils._enable_auto_instrumentation")
    @patch("molert.tracing_utils.trace")
    @patch("molert.tracing_utils.OTLPSpanExporter")
    def test_idempotent(self, mock_exporter, mock_trace, mock_instrument):
        tracing_utils.setup_tracing("molert", "1.0.0")
        tracing_utils.setup_tracing("molert", "1.0.0")

        mock_trace.set_tracer_provider.assert_called_once()


class TestSpans(TracingTestCase):
    """Test manual spans."""

    def test_create_span_when_disabled(self):
        with tracing_utils.create_span("molert.scan", attributes={"scan.id": "1a2b"}) as span:
            self.assertIsNone(span)

    def test_set_span_attribute_when_disabled(self):
        with patch("molert.tracing_utils.trace") as mock_trace:
            tracing_utils.set_span_attribute("scan.sent", 3)

        mock_trace.get_current_span.assert_not_called()

    def test_create_span_when_enabled(self):
        mock_span = MagicMock()
        mock_tracer = MagicMock()
        mock_tracer.start_as_current_span.return_value.__enter__.return_value = mock_span
        tracing_utils._tracer = mock_tracer
        tracing_utils._tracing_enabled = True

        with tracing_utils.create_span("molert.scan", attributes={"scan.id": "1a2b", "keys": ["a"]}) as span:
            self.assertIs(span, mock_span)

        mock_tracer.start_as_current_span.assert_called_once_with(
            "molert.scan", attributes={"scan.id": "1a2b", "keys": "['a']"}
        )

    @patch("molert.tracing_utils.trace")
    def test_set_span_attribute(self, mock_trace):
        tracing_utils._tracing_enabled = True
        mock_span = MagicMock()
        mock_span.is_recording.return_value = True
        mock_trace.get_current_span.return_value = mock_span

        tracing_utils.set_span_attribute("scan.sent", 3)

        mock_span.set_attribute.assert_called_once_with("scan.sent", 3)


if __name__ == "__main__":
    unittest.main()
