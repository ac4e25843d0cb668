"""Unit tests for bootstrap health module."""

from __future__ import annotations

import ssl
from unittest.mock import MagicMock

import httpx
import pytest

from kubefed_cli.bootstrap import HealthPoller, PollCancelledError, Poller, PollTimeoutError
from kubefed_cli.bootstrap.health import build_ssl_context, is_healthy_body


def _response(status_code=200, text="ok"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


def _wait(trust, poller):
    return HealthPoller(poller, request_timeout=1.0).wait_for_healthy(
        "https://10.0.0.1",
        trust.ca.cert_pem,
        trust.admin.cert_pem,
        trust.admin.key_pem,
    )


class TestIsHealthyBody:
    """Tests for is_healthy_body."""

    @pytest.mark.parametrize("body", ["ok", "OK", "Ok"])
    def test_ok_any_case(self, body):
        assert is_healthy_body(body)

    @pytest.mark.parametrize("body", ["", "ok\n", "not ok", "healthy"])
    def test_other_bodies(self, body):
        assert not is_healthy_body(body)


class TestBuildSslContext:
    """Tests for build_ssl_context."""

    def test_loads_ca_and_client_certificate(self, trust):
        context = build_ssl_context(trust.ca.cert_pem, trust.admin.cert_pem, trust.admin.key_pem)

        assert isinstance(context, ssl.SSLContext)
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert len(context.get_ca_certs()) == 1


class TestHealthPoller:
    """Tests for HealthPoller."""

    def test_healthy(self, trust, healthy_http):
        result = _wait(trust, Poller(0))

        assert result.healthy
        assert result.attempts == 1
        assert result.poll_error is None
        healthy_http.get.assert_called_with("https://10.0.0.1/healthz")

    def test_uppercase_ok_is_healthy(self, trust, healthy_http):
        healthy_http.get.return_value = _response(text="OK")

        assert _wait(trust, Poller(0)).healthy

    def test_retries_until_ok(self, trust, healthy_http):
        healthy_http.get.side_effect = [
            httpx.ConnectError("refused"),
            _response(status_code=503, text="unavailable"),
            _response(text="warming up"),
            _response(text="ok"),
        ]

        result = _wait(trust, Poller(0))

        assert result.healthy
        assert result.attempts == 4

    def test_bounded_wait_reports_unhealthy(self, trust, healthy_http):
        healthy_http.get.side_effect = httpx.ReadTimeout("slow")

        result = _wait(trust, Poller(0, max_attempts=3))

        assert not result.healthy
        assert result.attempts == 3
        assert "Request timeout" in result.error
        assert isinstance(result.poll_error, PollTimeoutError)

    def test_cancelled_wait_reports_unhealthy(self, trust, healthy_http):
        poller = Poller(0)
        poller.cancel_event.set()

        result = _wait(trust, poller)

        assert not result.healthy
        assert "cancelled" in result.error
        assert isinstance(result.poll_error, PollCancelledError)
        healthy_http.get.assert_not_called()
