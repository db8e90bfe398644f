"""Transactional mail for the billing flow (Resend + Jinja2 templates)"""
from datetime import datetime
from pathlib import Path
from typing import Optional

import resend
from jinja2 import Environment, FileSystemLoader, select_autoescape

from rentalhub.core.config import settings
from rentalhub.core.logging import get_logger

logger = get_logger(__name__)

template_dir = Path(__file__).parent.parent / "templates" / "email"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y") if value else "-"


def _format_vnd(amount: int) -> str:
    return f"{amount:,}".replace(",", ".") + " ₫"


def _send(to_email: str, subject: str, html: str) -> dict:
    resend.api_key = settings.RESEND_API_KEY
    result = resend.Emails.send({
        "from": f"{settings.SITE_NAME} <{settings.RESEND_FROM_EMAIL}>",
        "to": [to_email],
        "subject": subject,
        "html": html,
    })
    return result


def send_trial_welcome_email(
    to: str,
    full_name: str,
    duration_days: int,
    start_date: datetime,
    end_date: datetime,
    max_rooms: int,
) -> dict:
    """Trial activated"""
    try:
        template = jinja_env.get_template("trial_welcome.html")
        html = template.render(
            full_name=full_name,
            duration_days=duration_days,
            start_date=_format_date(start_date),
            end_date=_format_date(end_date),
            max_rooms="Unlimited" if max_rooms == -1 else max_rooms,
            dashboard_url=settings.CLIENT_URL,
            site_name=settings.SITE_NAME,
        )
        _send(to, f"Welcome {full_name} - your {duration_days}-day trial is active", html)
        logger.info(f"Trial welcome mail sent: {to}")
        return {"success": True, "error": None}
    except Exception as e:
        logger.error(f"Trial welcome mail failed: {to} - {e}")
        return {"success": False, "error": str(e)}


def send_payment_success_email(
    to: str,
    full_name: str,
    action: str,
    package_name: str,
    duration_days: int,
    amount: int,
    start_date: datetime,
    end_date: datetime,
    transaction_no: Optional[str] = None,
) -> dict:
    """Payment confirmed (new activation or renewal)"""
    try:
        template = jinja_env.get_template("payment_success.html")
        html = template.render(
            full_name=full_name,
            action=action,
            package_name=package_name,
            duration_days=duration_days,
            amount=_format_vnd(amount),
            start_date=_format_date(start_date),
            end_date=_format_date(end_date),
            transaction_no=transaction_no or "N/A",
            dashboard_url=f"{settings.CLIENT_URL}/dashboard",
            site_name=settings.SITE_NAME,
        )
        _send(to, f"Payment successful - {action} {package_name}", html)
        logger.info(f"Payment success mail sent: {to}, action={action}")
        return {"success": True, "error": None}
    except Exception as e:
        logger.error(f"Payment success mail failed: {to} - {e}")
        return {"success": False, "error": str(e)}
