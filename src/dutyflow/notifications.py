"""
notifications.py — Email duty notices
=====================================
Sends each invigilator their duty list (HTML body + duty-summary PDF).

  send_simple_email       pure SMTP helper, all credentials as arguments
  attempt_send_email      same, credentials from SmtpConfig (.env)
  build_duty_notice_html  HTML body listing one person's duties
  send_bulk_emails        send many, report per-recipient outcome
  notify_invigilators     one notice per invigilator in an allotment

Delivery never raises; every helper returns ``(ok, message)`` or a
BulkEmailResult.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
import textwrap
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Callable, Optional

from dutyflow.config import SmtpConfig, get_settings
from dutyflow.export import generate_duty_summary_pdf
from dutyflow.models import Invigilator, SavedAllotment
from dutyflow.reports import DutyLine, invigilator_duty_summary

logger = logging.getLogger(__name__)


# ─── Email dispatch ───────────────────────────────────────────────────────────

def send_simple_email(
    smtp_host: str,
    smtp_port: int,
    to_emails: "str | list[str]",
    subject: str,
    body_text: str,
    sender_email: str,
    sender_pass: str,
    pdf_bytes: Optional[bytes] = None,
    pdf_filename: str = "duty.pdf",
    login_user: Optional[str] = None,
) -> tuple[bool, str]:
    """
    Send one duty notice.  Port 465 uses implicit SSL, anything else STARTTLS.
    *login_user* overrides the SMTP username (SendGrid logs in as "apikey").
    Never raises; returns ``(ok, message)``.
    """
    if not sender_email or not sender_pass:
        return False, "sender_email and sender_pass are required."

    recipients = [to_emails] if isinstance(to_emails, str) else list(to_emails)
    user = login_user or sender_email

    is_html = body_text.strip().startswith("<")
    mime_subtype = "html" if is_html else "plain"

    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"]    = sender_email
    msg["To"]      = ", ".join(recipients)

    alt_part = MIMEMultipart("alternative")
    alt_part.attach(MIMEText(body_text, mime_subtype, "utf-8"))
    msg.attach(alt_part)

    if pdf_bytes:
        pdf_part = MIMEApplication(pdf_bytes, _subtype="pdf")
        pdf_part.add_header("Content-Disposition", "attachment", filename=pdf_filename)
        msg.attach(pdf_part)

    try:
        if smtp_port == 465:
            ctx = ssl.create_default_context()
            with smtplib.SMTP_SSL(smtp_host, smtp_port, context=ctx, timeout=15) as server:
                server.login(user, sender_pass)
                server.sendmail(sender_email, recipients, msg.as_string())
        else:
            with smtplib.SMTP(smtp_host, smtp_port, timeout=15) as server:
                server.ehlo()
                server.starttls()
                server.login(user, sender_pass)
                server.sendmail(sender_email, recipients, msg.as_string())
        attach_note = " (PDF attached)" if pdf_bytes else ""
        return True, f"Email sent successfully{attach_note}!"
    except smtplib.SMTPAuthenticationError:
        return False, (
            "Authentication failed. Check SMTP_USER and SMTP_PASS. "
            "SendGrid: username is 'apikey', password is your API key. "
            "Gmail: use an App Password."
        )
    except (smtplib.SMTPException, OSError) as exc:
        return False, f"Failed to send email: {exc}"


def attempt_send_email(
    to_address: str,
    subject: str,
    html_body: str,
    pdf_bytes: Optional[bytes] = None,
    pdf_filename: str = "Duty_Summary.pdf",
    smtp: SmtpConfig | None = None,
) -> tuple[bool, str]:
    """Send an email using SMTP_* settings from the environment."""
    smtp = smtp or get_settings().smtp
    if not smtp.is_configured:
        return False, (
            "Email not configured. Set SMTP_USER and SMTP_PASS in your .env file."
        )
    return send_simple_email(
        smtp_host=smtp.host,
        smtp_port=smtp.port,
        to_emails=to_address,
        subject=subject,
        body_text=html_body,
        sender_email=smtp.sender or smtp.user,
        sender_pass=smtp.password,
        pdf_bytes=pdf_bytes,
        pdf_filename=pdf_filename,
        login_user=smtp.user,
    )


# ─── Duty notices ─────────────────────────────────────────────────────────────

def build_duty_notice_html(
    invigilator: Invigilator,
    duties: list[DutyLine],
    exam_title: str = "",
    college_name: str = "",
) -> str:
    """HTML email body listing *duties* for *invigilator*."""
    rows = "\n".join(
        f"<tr><td>{escape(d.date)}</td><td>{escape(d.day)}</td>"
        f"<td>{escape(d.subject)}</td><td>{escape(d.time)}</td></tr>"
        for d in duties
    ) or '<tr><td colspan="4">No duties allotted.</td></tr>'
    return textwrap.dedent(f"""
    <html>
    <body style="font-family:Arial,sans-serif;color:#1f2937;">
      <h2 style="color:#1e3a8a;margin-bottom:0;">{escape(college_name)}</h2>
      <h3 style="margin-top:4px;">{escape(exam_title)} — Invigilation Duty</h3>
      <p>Dear {escape(invigilator.name)},</p>
      <p>You have been allotted the following invigilation duties:</p>
      <table border="1" cellpadding="6" cellspacing="0" style="border-collapse:collapse;">
        <thead style="background:#1e3a8a;color:#fff;">
          <tr><th>Date</th><th>Day</th><th>Subject</th><th>Time</th></tr>
        </thead>
        <tbody>
          {rows}
        </tbody>
      </table>
      <p>Total duties: <b>{len(duties)}</b>. Your duty summary is attached as a PDF.</p>
    </body>
    </html>
    """).strip()


@dataclass
class EmailRequest:
    to:           str
    subject:      str
    html_body:    str
    pdf_bytes:    Optional[bytes] = None
    pdf_filename: str = "Duty_Summary.pdf"


@dataclass
class EmailOutcome:
    to:      str
    success: bool
    message: str


@dataclass
class BulkEmailResult:
    total:      int = 0
    successful: int = 0
    failed:     int = 0
    results:    list[EmailOutcome] = field(default_factory=list)


Sender = Callable[..., "tuple[bool, str]"]


def send_bulk_emails(
    requests: list[EmailRequest],
    sender: Sender | None = None,
) -> BulkEmailResult:
    """Send each request in turn; one failure does not stop the rest."""
    sender = sender or attempt_send_email
    result = BulkEmailResult(total=len(requests))
    for req in requests:
        ok, message = sender(
            to_address=req.to,
            subject=req.subject,
            html_body=req.html_body,
            pdf_bytes=req.pdf_bytes,
            pdf_filename=req.pdf_filename,
        )
        result.results.append(EmailOutcome(to=req.to, success=ok, message=message))
        if ok:
            result.successful += 1
        else:
            result.failed += 1
            logger.warning("Email to %s failed: %s", req.to, message)
    logger.info("Bulk email: %d sent, %d failed", result.successful, result.failed)
    return result


def build_notices(allotment: SavedAllotment) -> list[EmailRequest]:
    """One EmailRequest per invigilator who has an email address and duties."""
    requests = []
    for inv in allotment.invigilators:
        duties = invigilator_duty_summary(inv, allotment.assignments)
        if not inv.email or not duties:
            continue
        requests.append(EmailRequest(
            to=inv.email,
            subject=f"Invigilation duty — {allotment.exam_title}",
            html_body=build_duty_notice_html(
                inv, duties, allotment.exam_title, allotment.college_name,
            ),
            pdf_bytes=generate_duty_summary_pdf(
                inv, allotment.assignments, allotment.college_name, allotment.exam_title,
            ),
            pdf_filename=f"{inv.name.replace(' ', '_')}-duty-summary.pdf",
        ))
    return requests


def notify_invigilators(
    allotment: SavedAllotment,
    sender: Sender | None = None,
) -> BulkEmailResult:
    """Email every invigilator with duties their notice and PDF."""
    return send_bulk_emails(build_notices(allotment), sender=sender)
