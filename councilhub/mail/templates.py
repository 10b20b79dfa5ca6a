"""Builders for every email the council sends."""
from __future__ import annotations

from html import escape
from typing import Optional

from councilhub.mail.base import EmailMessage
from councilhub.settings import settings


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif;"
        " color: #333; max-width: 600px; margin: 0 auto; padding: 20px;\">"
        f"<h2 style=\"color: #1e40af;\">{escape(title)}</h2>"
        f"{body}"
        f"<p style=\"color: #888; font-size: 12px;\">{escape(settings.site_name)}</p>"
        "</body></html>"
    )


def _button(url: str, label: str) -> str:
    return (
        f"<p><a href=\"{escape(url)}\" style=\"background: #1e40af; color: #fff;"
        f" padding: 10px 20px; text-decoration: none; border-radius: 4px;\">"
        f"{escape(label)}</a></p>"
        f"<p>Or copy this link: {escape(url)}</p>"
    )


def verification_email(to: str, name: str, token: str) -> EmailMessage:
    url = f"{settings.site_url}/verify-email?token={token}"
    body = (
        f"<p>Hi {escape(name)},</p>"
        "<p>Thanks for registering. Please confirm your email address.</p>"
        f"{_button(url, 'Verify email')}"
        f"<p>This link expires in {settings.verification_token_hours} hours.</p>"
    )
    return EmailMessage(
        to=to,
        subject=f"Verify your email for {settings.site_name}",
        html=_layout("Verify your email", body),
        text=f"Verify your email: {url}",
    )


def account_approved_email(to: str, name: str) -> EmailMessage:
    url = f"{settings.site_url}/login"
    body = (
        f"<p>Hi {escape(name)},</p>"
        "<p>Your account has been approved. You can now sign in.</p>"
        f"{_button(url, 'Sign in')}"
    )
    return EmailMessage(
        to=to,
        subject=f"Your {settings.site_name} account is approved",
        html=_layout("Account approved", body),
        text=f"Your account has been approved. Sign in at {url}",
    )


def account_rejected_email(to: str, name: str, reason: Optional[str] = None) -> EmailMessage:
    body = (
        f"<p>Hi {escape(name)},</p>"
        "<p>Unfortunately your account request was not approved.</p>"
    )
    text = "Your account request was not approved."
    if reason:
        body += f"<p><strong>Reason:</strong> {escape(reason)}</p>"
        text += f" Reason: {reason}"
    return EmailMessage(
        to=to,
        subject=f"Your {settings.site_name} account request",
        html=_layout("Account request", body),
        text=text,
    )


def new_registration_email(to: str, *, user_name: str, user_email: str) -> EmailMessage:
    url = f"{settings.site_url}/admin/users"
    body = (
        "<p>A new user verified their email and is waiting for approval.</p>"
        f"<p><strong>Name:</strong> {escape(user_name)}<br>"
        f"<strong>Email:</strong> {escape(user_email)}</p>"
        f"{_button(url, 'Review registrations')}"
    )
    return EmailMessage(
        to=to,
        subject=f"New registration: {user_name}",
        html=_layout("New registration", body),
    )


def task_assignment_email(
    to: str, *, assignee_name: str, task_title: str, event_title: str
) -> EmailMessage:
    body = (
        f"<p>Hi {escape(assignee_name)},</p>"
        f"<p>You have been assigned <strong>{escape(task_title)}</strong>"
        f" for {escape(event_title)}.</p>"
        f"{_button(settings.site_url + '/admin/dashboard', 'Open dashboard')}"
    )
    return EmailMessage(
        to=to,
        subject=f"New task: {task_title}",
        html=_layout("Task assigned", body),
    )


def connection_check_email(to: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"{settings.site_name} test email",
        html=_layout("Test email", "<p>Your email integration is working.</p>"),
        text="Your email integration is working.",
    )
