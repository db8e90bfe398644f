from datetime import datetime
from unittest.mock import patch

# bound before the autouse mail mocks replace the module attributes
from rentalhub.services.mail_service import send_payment_success_email, send_trial_welcome_email


def test_trial_welcome_renders_and_sends():
    with patch("resend.Emails.send", return_value={"id": "email_1"}) as send:
        result = send_trial_welcome_email(
            to="owner@example.com",
            full_name="Nguyen Van A",
            duration_days=7,
            start_date=datetime(2026, 3, 1),
            end_date=datetime(2026, 3, 8),
            max_rooms=-1,
        )

    assert result == {"success": True, "error": None}
    params = send.call_args.args[0]
    assert params["to"] == ["owner@example.com"]
    assert "7-day trial" in params["subject"]
    assert "08/03/2026" in params["html"]
    assert "Unlimited" in params["html"]


def test_payment_success_renders_amount_and_transaction():
    with patch("resend.Emails.send", return_value={"id": "email_2"}) as send:
        result = send_payment_success_email(
            to="owner@example.com",
            full_name="Nguyen Van A",
            action="Renewal",
            package_name="Standard",
            duration_days=30,
            amount=300000,
            start_date=datetime(2026, 3, 12),
            end_date=datetime(2026, 4, 11),
            transaction_no="14012345",
        )

    assert result["success"] is True
    html = send.call_args.args[0]["html"]
    assert "300.000" in html
    assert "14012345" in html
    assert "Standard" in html


def test_send_failure_is_reported_not_raised():
    with patch("resend.Emails.send", side_effect=RuntimeError("resend down")):
        result = send_payment_success_email(
            to="owner@example.com",
            full_name="Nguyen Van A",
            action="New activation",
            package_name="Standard",
            duration_days=30,
            amount=300000,
            start_date=datetime(2026, 3, 1),
            end_date=datetime(2026, 3, 31),
        )

    assert result == {"success": False, "error": "resend down"}
