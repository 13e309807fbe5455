"""Email service using Brevo API for SpendSavvy payment reminders"""

import os
import logging
import requests
import html

from utils.currency import format_currency

# Configure logging
logger = logging.getLogger(__name__)

# Environment configuration
BREVO_API_KEY = os.getenv("BREVO_API_KEY")  # Your Brevo API key
FROM_EMAIL = os.getenv("FROM_EMAIL")  # Verified sender email in Brevo
FROM_NAME = os.getenv("FROM_NAME", "SpendSavvy")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Brevo API endpoint
BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"

# Expenses listed in a reminder email
REMINDER_EXPENSE_LIMIT = 5


def is_email_configured() -> bool:
    """Check if email service is properly configured"""
    return bool(BREVO_API_KEY and FROM_EMAIL)


def _brevo_message(to_email: str, subject: str, html_content: str, text_content: str) -> dict:
    """Request body for Brevo's transactional email endpoint."""
    return {
        "sender": {"name": FROM_NAME, "email": FROM_EMAIL},
        "to": [{"email": to_email}],
        "subject": subject,
        "htmlContent": html_content,
        "textContent": text_content,
    }


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str
) -> bool:
    """
    Deliver one email through Brevo.

    Delivery problems never raise: an unconfigured channel, a non-201
    answer, a timeout or a connection failure are logged and reported as
    ``False`` so the caller can fall back to the in-app notification.
    """
    if not is_email_configured():
        logger.error("Email service not configured: BREVO_API_KEY and FROM_EMAIL required")
        return False

    headers = {
        "accept": "application/json",
        "api-key": BREVO_API_KEY,
        "content-type": "application/json",
    }
    message = _brevo_message(to_email, subject, html_content, text_content)

    try:
        response = requests.post(BREVO_API_URL, json=message, headers=headers, timeout=10)
    except requests.exceptions.Timeout:
        logger.error(f"Brevo API request timed out sending '{subject}'")
        return False
    except requests.exceptions.RequestException as e:
        logger.error(f"Brevo API request failed sending '{subject}': {e}")
        return False

    if response.status_code != 201:
        logger.error(f"Brevo API rejected '{subject}' ({response.status_code}): {response.text}")
        return False

    logger.info(f"Sent '{subject}' to {to_email} (Message ID: {response.json().get('messageId')})")
    return True


async def send_payment_reminder_email(
    to_email: str,
    to_name: str,
    from_name: str,
    amount_cents: int,
    expenses: list[dict]
) -> bool:
    """
    Remind a friend of what they owe, listing the most recent unpaid expenses.

    Args:
        to_email: Friend's email address
        to_name: Friend's display name
        from_name: Name of the user who is owed the money
        amount_cents: Net amount the friend owes, in cents
        expenses: Outstanding expense entries from compute_balances
            (description, amount in dollars, category, date)

    Returns:
        bool: True if email sent successfully
    """
    safe_to_name = html.escape(to_name)
    safe_from_name = html.escape(from_name)
    amount_text = format_currency(amount_cents)
    shown = expenses[:REMINDER_EXPENSE_LIMIT]

    subject = f"Payment reminder from {from_name}"

    rows = "".join(
        f"""
                <tr>
                    <td>{html.escape(e['description'] or 'Expense')}</td>
                    <td>{html.escape(e['category'] or '')}</td>
                    <td style="text-align: right;">${e['amount']:.2f}</td>
                </tr>"""
        for e in shown
    )

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background-color: #4F46E5; color: white; padding: 20px; text-align: center; }}
            .content {{ padding: 20px; background-color: #f9f9f9; }}
            .amount {{ font-size: 28px; font-weight: bold; text-align: center; margin: 20px 0; }}
            table {{ width: 100%; border-collapse: collapse; }}
            td {{ padding: 8px; border-bottom: 1px solid #e5e7eb; }}
            .button {{ display: inline-block; padding: 12px 24px; background-color: #4F46E5; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
            .footer {{ padding: 20px; text-align: center; font-size: 12px; color: #666; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>Payment Reminder</h1>
            </div>
            <div class="content">
                <p>Hi {safe_to_name},</p>
                <p>{safe_from_name} sent you a friendly reminder about your outstanding balance.</p>
                <p class="amount">{amount_text}</p>
                <table>{rows}
                </table>
                <p style="text-align: center;">
                    <a href="{FRONTEND_URL}/expenses" class="button">Settle Up</a>
                </p>
            </div>
            <div class="footer">
                <p>This is an automated message from SpendSavvy. Please do not reply to this email.</p>
            </div>
        </div>
    </body>
    </html>
    """

    lines = "\n".join(
        f"- {e['description'] or 'Expense'} ({e['category']}): ${e['amount']:.2f}" for e in shown
    )
    text_content = f"""
Hi {to_name},

{from_name} sent you a friendly reminder: you owe {amount_text}.

{lines}

Settle up at {FRONTEND_URL}/expenses

---
This is an automated message from SpendSavvy.
    """

    return await send_email(to_email, subject, html_content, text_content)
