"""Tests for notifications."""

from unittest.mock import MagicMock, patch

from flowsched.notify import LoggingNotifier, Notifier, SmtpNotifier, notify


class TestNotify:

    def test_sends_to_address(self):
        notifier = MagicMock(spec=Notifier)

        assert notify(notifier, "lab@example.org", "done") is True
        notifier.send_email.assert_called_once_with("lab@example.org", "done")

    def test_skips_without_address(self):
        notifier = MagicMock(spec=Notifier)

        assert notify(notifier, "", "done") is False
        notifier.send_email.assert_not_called()

    def test_failure_is_logged_not_raised(self, caplog):
        notifier = MagicMock(spec=Notifier)
        notifier.send_email.side_effect = ConnectionRefusedError("no relay")

        assert notify(notifier, "lab@example.org", "done") is False
        assert "Failed to notify lab@example.org" in caplog.text

    def test_logging_notifier(self, caplog):
        caplog.set_level("INFO", logger="flowsched")

        LoggingNotifier().send_email("lab@example.org", "Schedule x finished")

        assert "Schedule x finished" in caplog.text


class TestSmtpNotifier:

    def test_sends_message(self):
        with patch("flowsched.notify.smtplib.SMTP") as smtp_cls:
            SmtpNotifier("mail.example.org", 2525, sender="scheduler@example.org").send_email(
                "lab@example.org", "Schedule x finished at EXIT"
            )

        smtp_cls.assert_called_once_with("mail.example.org", 2525, timeout=10.0)
        smtp = smtp_cls.return_value.__enter__.return_value
        message = smtp.send_message.call_args.args[0]
        assert message["To"] == "lab@example.org"
        assert message["From"] == "scheduler@example.org"
        assert message["Subject"] == "Schedule x finished at EXIT"
