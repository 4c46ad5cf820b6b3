"""
Email Service using Resend

Transactional notifications for signup decisions, scholarship and voucher
decisions, and vendor redemption decisions.

Every helper returns True/False and never raises; callers treat a False
result as a warning, not a failure of the underlying operation.
"""

import asyncio
import logging
from decimal import Decimal
from html import escape

import resend

from voucher_portal.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

ORGANIZATION_NAME = "Global Bright Futures Foundation Inc."
SUPPORT_EMAIL = "support@globalbrightfutures.org"

_BASE_STYLE = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1e3a8a; margin-bottom: 24px; }
            .success-banner { background-color: #d1fae5; border: 1px solid #22c55e; padding: 16px; border-radius: 8px; margin: 16px 0; text-align: center; }
            .code-box { background-color: #f9fafb; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .code-box p { margin: 8px 0; }
            .code { font-family: ui-monospace, monospace; font-size: 20px; letter-spacing: 2px; }
            .reason-box { background-color: #fef2f2; border: 1px solid #fecaca; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .reason-box p { margin: 0; }
            .button { display: inline-block; background-color: #1e3a8a; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _render(title: str, body: str) -> str:
    """Wrap an already-escaped body in the shared layout."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>If you have questions, please contact us at {SUPPORT_EMAIL}.</p>
                <p>{ORGANIZATION_NAME}</p>
            </div>
        </div>
    </body>
    </html>
    """


def _format_amount(amount: Decimal | float | None) -> str:
    if amount is None:
        return "N/A"
    return f"${Decimal(str(amount)):,.2f}"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Without RESEND_API_KEY the email is logged instead of sent.

    Returns:
        True if the email was sent (or logged), False on delivery failure
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_scholarship_approved(
    to_email: str,
    student_name: str,
    school_name: str,
    voucher_code: str | None,
    voucher_amount: Decimal | float | None,
) -> bool:
    """Notify an applicant that their scholarship was approved, with the voucher code if any."""
    safe_student_name = escape(student_name)
    safe_school_name = escape(school_name)

    if voucher_code:
        voucher_section = f"""
            <p>Present the voucher code below to an approved vendor to redeem it.</p>

            <div class="code-box">
                <p><strong>Voucher code:</strong> <span class="code">{escape(voucher_code)}</span></p>
                <p><strong>Amount:</strong> {_format_amount(voucher_amount)}</p>
            </div>

            <p>Keep this code private. It can be redeemed once.</p>
        """
    else:
        voucher_section = """
            <p>No voucher amount has been assigned yet. Your school will contact you about next steps.</p>
        """

    body = f"""
            <div class="success-banner">
                <strong>Congratulations!</strong> The scholarship application for <strong>{safe_student_name}</strong> has been approved.
            </div>

            <p>Dear {safe_student_name},</p>

            <p>Your scholarship at <strong>{safe_school_name}</strong> is confirmed.</p>
{voucher_section}    """

    return await send_email(
        to_email=to_email,
        subject="Your scholarship has been approved",
        html_content=_render("Scholarship Approved", body),
    )


async def send_scholarship_rejected(
    to_email: str,
    student_name: str,
    school_name: str,
    reason: str | None,
) -> bool:
    """Notify an applicant that their scholarship application was not approved."""
    safe_student_name = escape(student_name)
    safe_school_name = escape(school_name)
    safe_reason = escape(reason or "No reason was provided.")

    body = f"""
            <p>Dear {safe_student_name},</p>

            <p>Thank you for applying for a scholarship at <strong>{safe_school_name}</strong>. After review, we are unable to approve the application at this time.</p>

            <div class="reason-box">
                <p><strong>Reason:</strong></p>
                <p>{safe_reason}</p>
            </div>
    """

    return await send_email(
        to_email=to_email,
        subject="Update on your scholarship application",
        html_content=_render("Scholarship Application Update", body),
    )


async def send_voucher_issued(
    to_email: str,
    school_name: str,
    voucher_code: str,
    amount: Decimal | float,
    purpose: str,
) -> bool:
    """Notify a school that its voucher request was approved and a voucher issued."""
    safe_school_name = escape(school_name)
    safe_code = escape(voucher_code)
    safe_purpose = escape(purpose)
    dashboard_url = f"{settings.frontend_url}/school/vouchers"

    body = f"""
            <div class="success-banner">
                Your voucher request for <strong>{safe_purpose}</strong> has been approved.
            </div>

            <p>Hello {safe_school_name},</p>

            <div class="code-box">
                <p><strong>Voucher code:</strong> <span class="code">{safe_code}</span></p>
                <p><strong>Amount:</strong> {_format_amount(amount)}</p>
                <p><strong>Purpose:</strong> {safe_purpose}</p>
            </div>

            <a href="{dashboard_url}" class="button">View Vouchers</a>
    """

    return await send_email(
        to_email=to_email,
        subject="Your voucher has been issued",
        html_content=_render("Voucher Issued", body),
    )


async def send_voucher_request_rejected(
    to_email: str,
    school_name: str,
    amount: Decimal | float,
    purpose: str,
    reason: str | None,
) -> bool:
    """Notify a school that its voucher request was rejected."""
    safe_school_name = escape(school_name)
    safe_purpose = escape(purpose)
    safe_reason = escape(reason or "No reason was provided.")

    body = f"""
            <p>Hello {safe_school_name},</p>

            <p>Your request for a voucher of {_format_amount(amount)} ({safe_purpose}) was not approved.</p>

            <div class="reason-box">
                <p><strong>Reason:</strong></p>
                <p>{safe_reason}</p>
            </div>
    """

    return await send_email(
        to_email=to_email,
        subject="Update on your voucher request",
        html_content=_render("Voucher Request Update", body),
    )


async def send_signup_decision(
    to_email: str,
    contact_name: str,
    organization_name: str,
    account_type: str,
    decision: str,
    notes: str | None = None,
) -> bool:
    """
    Notify a school or vendor about a decision on their signup.

    Args:
        account_type: "school" or "vendor"
        decision: The new signup status (approved, rejected, waitlisted, ...)
    """
    safe_contact_name = escape(contact_name)
    safe_organization = escape(organization_name)
    safe_decision = escape(decision.replace("_", " "))
    login_url = f"{settings.frontend_url}/login"

    if decision in ("approved", "active"):
        outcome = f"""
            <div class="success-banner">
                The {escape(account_type)} account for <strong>{safe_organization}</strong> is now <strong>{safe_decision}</strong>.
            </div>

            <a href="{login_url}" class="button">Sign In</a>
        """
    else:
        outcome = f"""
            <p>The {escape(account_type)} signup for <strong>{safe_organization}</strong> is now <strong>{safe_decision}</strong>.</p>
        """

    notes_html = ""
    if notes:
        notes_html = f"""
            <div class="reason-box">
                <p><strong>Notes from our team:</strong></p>
                <p>{escape(notes)}</p>
            </div>
        """

    body = f"""
            <p>Hello {safe_contact_name},</p>
            {outcome}
            {notes_html}
    """

    return await send_email(
        to_email=to_email,
        subject=f"Your {account_type} signup is {decision.replace('_', ' ')}",
        html_content=_render("Signup Update", body),
    )


async def send_redemption_decision(
    to_email: str,
    voucher_code: str,
    approved: bool,
    notes: str | None = None,
) -> bool:
    """Notify a vendor whether a submitted voucher code was accepted for redemption."""
    safe_code = escape(voucher_code)
    verdict = "approved" if approved else "rejected"

    notes_html = ""
    if notes:
        notes_html = f"""
            <div class="reason-box">
                <p><strong>Review notes:</strong></p>
                <p>{escape(notes)}</p>
            </div>
        """

    body = f"""
            <p>Your redemption of voucher <span class="code">{safe_code}</span> has been <strong>{verdict}</strong>.</p>
            {notes_html}
    """

    return await send_email(
        to_email=to_email,
        subject=f"Voucher redemption {verdict}",
        html_content=_render("Redemption Update", body),
    )
