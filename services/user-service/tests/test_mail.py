from __future__ import annotations

import logging

import pytest

from app import mail
from app.domain.errors import MailDeliveryFailed
from app.mail import (
    MailDispatcher,
    MailerNotConfigured,
    SmtpMailer,
    build_verification_url,
    render_verification_email,
)


class SlowFailingMailer:
    def send(self, recipient, subject, html_body):
        raise TimeoutError("smtp timed out")


def test_verification_email_links_to_frontend():
    url = build_verification_url("http://frontend.test/", "abc123")
    message = render_verification_email("a@x.com", "<Alice>", url, 10)

    assert url == "http://frontend.test/verify-email?token=abc123"
    assert message.recipient == "a@x.com"
    assert url in message.html_body
    assert "expire in 10 minutes" in message.html_body
    assert "&lt;Alice&gt;" in message.html_body


def test_required_send_raises_on_failure():
    dispatcher = MailDispatcher(SlowFailingMailer(), timeout_seconds=1)
    message = render_verification_email("a@x.com", "Alice", "http://x/verify-email?token=t", 10)
    try:
        with pytest.raises(MailDeliveryFailed):
            dispatcher.send(message)
    finally:
        dispatcher.shutdown()


def test_best_effort_send_swallows_failure():
    dispatcher = MailDispatcher(SlowFailingMailer(), timeout_seconds=1)
    message = render_verification_email("a@x.com", "Alice", "http://x/verify-email?token=t", 10)
    try:
        future = dispatcher.send_best_effort(message)
        assert isinstance(future.exception(timeout=2), TimeoutError)
    finally:
        dispatcher.shutdown()


def test_unconfigured_smtp_mailer_refuses_to_send(monkeypatch):
    def explode(*args, **kwargs):
        raise AssertionError("SMTP should not be contacted")

    monkeypatch.setattr(mail.smtplib, "SMTP", explode)
    with pytest.raises(MailerNotConfigured):
        SmtpMailer("", 587, sender="no-reply@x.com").send("a@x.com", "subject", "<p>body</p>")


def test_required_send_through_unconfigured_mailer_fails():
    dispatcher = MailDispatcher(SmtpMailer("", 587, sender="no-reply@x.com"), timeout_seconds=1)
    message = render_verification_email("a@x.com", "Alice", "http://x/verify-email?token=t", 10)
    try:
        with pytest.raises(MailDeliveryFailed):
            dispatcher.send(message)
    finally:
        dispatcher.shutdown()


def test_dispatch_logs_name_the_account_not_the_address(caplog):
    dispatcher = MailDispatcher(SlowFailingMailer(), timeout_seconds=1)
    message = render_verification_email(
        "secret.person@x.com", "Alice", "http://x/verify-email?token=t", 10, reference="acct-42"
    )
    caplog.set_level(logging.INFO, logger="app.mail")
    try:
        with pytest.raises(MailDeliveryFailed):
            dispatcher.send(message)
        dispatcher.send_best_effort(message).exception(timeout=2)
    finally:
        dispatcher.shutdown(wait=True)

    assert "acct-42" in caplog.text
    assert "secret.person@x.com" not in caplog.text


def test_smtp_mailer_sends_through_relay(monkeypatch):
    calls = {}

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            calls["connect"] = (host, port, timeout)

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            calls["tls"] = True

        def login(self, user, password):
            calls["login"] = (user, password)

        def sendmail(self, sender, recipients, body):
            calls["sendmail"] = (sender, recipients, body)

    monkeypatch.setattr(mail.smtplib, "SMTP", FakeSMTP)
    mailer = SmtpMailer(
        "smtp.test", 2525, sender="no-reply@x.com", username="user", password="pw", timeout=3
    )
    mailer.send("a@x.com", "Verify Your Email Address", "<p>hi</p>")

    assert calls["connect"] == ("smtp.test", 2525, 3)
    assert calls["tls"] is True
    assert calls["login"] == ("user", "pw")
    sender, recipients, body = calls["sendmail"]
    assert sender == "no-reply@x.com"
    assert recipients == ["a@x.com"]
    assert "Verify Your Email Address" in body
