import logging

import pytest

from commandkit import Command, LoggingNotifier, WebhookNotifier, configure_notifier, get_notifier
from commandkit.notifier import NOTIFIED_ATTR, already_notified, report

from command_classes import SquareRoot


class FakeResponse:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


class FakeSession:
    def __init__(self, status_code: int = 200):
        self.calls: list[dict] = []
        self.status_code = status_code

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        return FakeResponse(self.status_code)


def test_report_marks_error_and_skips_repeats(notifier):
    error = RuntimeError("once")

    assert report(error) is True
    assert report(error) is False

    assert already_notified(error)
    assert getattr(error, NOTIFIED_ATTR) is True
    assert notifier.notified == [error]


def test_configure_notifier_validates_interface():
    class Incomplete:
        def notify(self, error):
            return None

    with pytest.raises(TypeError, match="Notifier missing required method: breadcrumb"):
        configure_notifier(Incomplete())


def test_configure_notifier_none_restores_logging_default():
    configure_notifier(None)

    assert isinstance(get_notifier(), LoggingNotifier)


def test_failing_notifier_does_not_mask_command_failure(caplog):
    class Exploding:
        def notify(self, error):
            raise ConnectionError("sink down")

        def breadcrumb(self, data, label):
            raise ConnectionError("sink down")

    configure_notifier(Exploding())
    caplog.set_level(logging.ERROR, logger="commandkit.notifier")

    result = SquareRoot.invoke(number=-1)

    assert result.failed
    assert "Notifier failed while reporting StopAndFail" in caplog.text
    assert "Notifier failed while recording breadcrumb for SquareRoot" in caplog.text


def test_logging_notifier_logs_error_and_breadcrumbs(caplog):
    configure_notifier(LoggingNotifier())
    caplog.set_level(logging.DEBUG, logger="commandkit.faults")

    SquareRoot.invoke(number=-9)

    messages = [record.getMessage() for record in caplog.records if record.name == "commandkit.faults"]
    assert any(message.startswith("Breadcrumb SquareRoot:") for message in messages)
    assert "Command failure reported: StopAndFail('Cannot take the square root of a negative number')" in messages


def test_webhook_notifier_posts_error_with_buffered_breadcrumbs():
    session = FakeSession()
    webhook = WebhookNotifier("https://faults.example.com/hook", timeout_seconds=2.5, session=session)
    configure_notifier(webhook)

    result = SquareRoot.invoke(number=-2)

    assert result.failed
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"] == "https://faults.example.com/hook"
    assert call["timeout"] == 2.5
    payload = call["json"]
    assert payload["error"]["type"] == "StopAndFail"
    assert payload["error"]["message"] == "Cannot take the square root of a negative number"
    assert [crumb["label"] for crumb in payload["breadcrumbs"]] == ["SquareRoot"]
    assert payload["created_at"].endswith("Z")

    SquareRoot.invoke(number=-3)
    assert [crumb["label"] for crumb in session.calls[1]["json"]["breadcrumbs"]] == ["SquareRoot"]


def test_webhook_http_error_is_logged(caplog):
    configure_notifier(WebhookNotifier("https://faults.example.com/hook", session=FakeSession(500)))
    caplog.set_level(logging.ERROR, logger="commandkit.notifier")

    class Broken(Command):
        def call(self):
            raise ValueError("bad")

    assert Broken.invoke().failed
    assert "Notifier failed while reporting ValueError('bad')" in caplog.text


def test_webhook_notifier_requires_url():
    with pytest.raises(ValueError, match="non-empty string"):
        WebhookNotifier("  ", session=FakeSession())
