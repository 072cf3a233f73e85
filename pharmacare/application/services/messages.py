"""Notification content for the account lifecycle emails."""

from __future__ import annotations

from dataclasses import dataclass
from html import escape


@dataclass(frozen=True, slots=True)
class EmailMessage:
    subject: str
    html_body: str


def _minutes_phrase(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def verification_code_message(first_name: str, code: str, ttl_minutes: int) -> EmailMessage:
    return EmailMessage(
        subject="Your PharmaCare verification code",
        html_body=f"""
        <h2>Verify your email</h2>
        <p>Hello {escape(first_name)},</p>
        <p>Your verification code is:</p>
        <h1 style="color:blue;">{escape(code)}</h1>
        <p>This code expires in {_minutes_phrase(ttl_minutes)}.</p>
        """,
    )


def resent_code_message(first_name: str, code: str, ttl_minutes: int) -> EmailMessage:
    return EmailMessage(
        subject="Your New PharmaCare Verification Code",
        html_body=f"""
        <h2>New Verification Code</h2>
        <p>Hello {escape(first_name)},</p>
        <p>Your new verification code is:</p>
        <h1 style="color:blue;">{escape(code)}</h1>
        <p>This code will expire in {_minutes_phrase(ttl_minutes)}.</p>
        """,
    )


def password_reset_message(first_name: str, reset_link: str, ttl_minutes: int) -> EmailMessage:
    return EmailMessage(
        subject="Password Reset Request",
        html_body=f"""
        <h2>Password Reset Request</h2>
        <p>Hello {escape(first_name)},</p>
        <p>You requested a password reset. Click the link below to reset your password:</p>
        <a href="{escape(reset_link, quote=True)}">Reset your password</a>
        <p>This link will expire in {_minutes_phrase(ttl_minutes)}.</p>
        <p>If you did not request a password reset, you can ignore this email.</p>
        """,
    )
