"""
notify/emails.py -- Email bodies rendered from Jinja2 templates.

Templates live in notify/templates/. Autoescaping is on for .html, so student
names and scholarship titles cannot inject markup.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent / "templates")),
    autoescape=select_autoescape(["html"]),
)

VERIFICATION_SUBJECT = "Verify Your Scholarship Portal Account"

# status -> (subject, accent colour, heading, body paragraphs)
_STATUS_VARIANTS: dict[str, tuple[str, str, str, list[str]]] = {
    "approved": (
        "Scholarship Application APPROVED!",
        "#4CAF50",
        "Congratulations!",
        [
            "We are pleased to inform you that your application for the {scholarship} has been APPROVED!",
            "You can now log in to the portal to view the details of your award.",
            "Please follow the next steps outlined in the portal or contact the administration office.",
        ],
    ),
    "rejected": (
        "Update on Your Scholarship Application",
        "#F44336",
        "Application Update",
        [
            "We regret to inform you that your application for the {scholarship} has been REJECTED at this time.",
            "You may check the portal for further details or criteria, or contact the administration for clarification.",
            "We encourage you to apply again next term if eligible.",
        ],
    ),
    "cancelled": (
        "Application Status Update: Cancelled",
        "#FF9800",
        "Application Status Change",
        [
            "This is to confirm that the status of your application for the {scholarship} has been updated to CANCELLED.",
            "This action may have been performed by the administration or by yourself. "
            "If you believe this is an error, please contact the administration office immediately.",
        ],
    ),
    "pending": (
        "Application Status Update: Pending",
        "#2196F3",
        "Application Status Change",
        [
            "This is to confirm that the status of your application for the {scholarship} has been updated to PENDING.",
            "Your application is currently being reviewed. "
            "You will receive another email notification when a final decision has been made.",
        ],
    ),
}

STATUSES: tuple[str, ...] = tuple(_STATUS_VARIANTS)


def verification_link(public_url: str, token: str, email: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{public_url.rstrip('/')}/verify-link?{query}"


def render_verification_email(code: str, link: str, ttl_minutes: int) -> tuple[str, str]:
    """Return (subject, html) for the account verification email."""
    html = _env.get_template("verification_email.html").render(code=code, link=link, ttl_minutes=ttl_minutes)
    return VERIFICATION_SUBJECT, html


def render_status_email(student_name: str, scholarship_type: str, status: str) -> tuple[str, str]:
    """Return (subject, html) for an application status notice.

    Unknown statuses fall back to the pending wording, matching how the
    portal has always announced "under review" states.
    """
    subject, color, heading, paragraphs = _STATUS_VARIANTS.get(status.lower(), _STATUS_VARIANTS["pending"])
    html = _env.get_template("status_email.html").render(
        student_name=student_name,
        color=color,
        heading=heading,
        paragraphs=[p.format(scholarship=scholarship_type) for p in paragraphs],
    )
    return subject, html
