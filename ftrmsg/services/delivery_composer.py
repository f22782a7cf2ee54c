"""
Builds the outbound email for one message.

Pure: no I/O. The only hard failure is an unusable recipient address;
a missing body renders empty and a missing video link drops that section.
"""
from dataclasses import dataclass
from html import escape
from typing import Optional

from ftrmsg.core.config import settings
from ftrmsg.core.errors import ValidationError


@dataclass(frozen=True)
class ComposedEmail:
    subject: str
    html: str


def is_deliverable_address(email: Optional[str]) -> bool:
    return bool(email) and "@" in email


_VIDEO_SECTION = """
              <div style="background: #BAE6FD; border: 2px solid #000000; border-radius: 8px; padding: 20px; margin-bottom: 20px; text-align: center;">
                <p style="margin: 0 0 15px 0; font-weight: 700; color: #000000;">Video Message Attached</p>
                <a href="{video_url}" style="display: inline-block; background: #BBF7D0; color: #000000; text-decoration: none; padding: 12px 24px; border: 2px solid #000000; border-radius: 8px; font-weight: 700; box-shadow: 4px 4px 0px 0px #000000;">
                  Watch Video
                </a>
                <p style="margin: 15px 0 0 0; font-size: 12px; color: #555555;">
                  Video link expires in {expiry_days} days
                </p>
              </div>"""

_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Your FtrMsg Message</title>
</head>
<body style="margin: 0; padding: 0; background-color: #FFFDF7; font-family: 'Helvetica Neue', Arial, sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #FFFDF7; padding: 40px 20px;">
    <tr>
      <td align="center">
        <table width="100%" cellpadding="0" cellspacing="0" style="max-width: 600px; background: #FFFFFF; border: 3px solid #000000; border-radius: 8px; box-shadow: 8px 8px 0px 0px #000000;">
          <tr>
            <td style="background: #FDE68A; padding: 30px; border-bottom: 3px solid #000000; border-radius: 5px 5px 0 0;">
              <h1 style="margin: 0; font-size: 28px; font-weight: 800; color: #000000; text-transform: uppercase;">FTRMSG</h1>
              <p style="margin: 10px 0 0 0; font-size: 16px; color: #333333;">Your message from the past has arrived!</p>
            </td>
          </tr>
          <tr>
            <td style="padding: 30px;">
              <div style="background: #F9F9F9; border: 2px solid #000000; border-radius: 8px; padding: 25px; margin-bottom: 20px;">
                <p style="margin: 0; font-size: 16px; line-height: 1.6; color: #000000; white-space: pre-wrap;">{message_text}</p>
              </div>{video_section}
            </td>
          </tr>
          <tr>
            <td style="background: #F5F5F5; padding: 20px 30px; border-top: 2px solid #000000; border-radius: 0 0 5px 5px;">
              <p style="margin: 0; font-size: 14px; color: #555555; text-align: center;">
                Sent with love from your past self via <a href="{app_url}" style="color: #000000; font-weight: 700;">FtrMsg</a>
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def compose(
    message,
    video_url: Optional[str] = None,
    subject: Optional[str] = None,
    app_url: Optional[str] = None,
    link_ttl_seconds: Optional[int] = None,
) -> ComposedEmail:
    """
    Render the delivery email for `message`.

    Raises:
        ValidationError: delivery_email has no '@'
    """
    if not is_deliverable_address(message.delivery_email):
        raise ValidationError(f"Invalid delivery email: {message.delivery_email}")

    ttl = link_ttl_seconds or settings.SIGNED_URL_TTL_SECONDS
    video_section = ""
    if video_url:
        video_section = _VIDEO_SECTION.format(
            video_url=escape(video_url, quote=True),
            expiry_days=max(1, ttl // 86400),
        )

    html = _TEMPLATE.format(
        message_text=escape(message.message_text or ""),
        video_section=video_section,
        app_url=escape(app_url or settings.APP_URL, quote=True),
    )
    return ComposedEmail(subject=subject or settings.EMAIL_SUBJECT, html=html)
