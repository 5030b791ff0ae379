import datetime as dt
from html import escape

from opti_api.config import settings

_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { color: white; padding: 20px; text-align: center; }
    .content { padding: 20px; background-color: #f9f9f9; }
    .box { background-color: #fff; padding: 15px; margin: 20px 0; }
    .footer { text-align: center; padding: 20px; font-size: 12px; color: #666; }
"""


def _layout(title: str, color: str, body: str) -> str:
    year = dt.date.today().year
    app = escape(settings.APP_NAME)
    return f"""<!DOCTYPE html><html><head><style>{_STYLE}</style></head>
<body>
  <div class="container">
    <div class="header" style="background-color:{color};"><h1>{escape(title)}</h1></div>
    <div class="content">{body}</div>
    <div class="footer">
      <p>This is an automated email. Please do not reply.</p>
      <p>&copy; {year} {app}. All rights reserved.</p>
    </div>
  </div>
</body></html>"""


def compose_credentials_email(*, name: str, email: str, temp_password: str) -> tuple[str, str]:
    subject = f"Your {settings.APP_NAME} Account Credentials"
    body = f"""
      <p>Hello {escape(name)},</p>
      <p>Your account has been created. Here are your login credentials:</p>
      <div class="box" style="border-left:4px solid #4CAF50;">
        <p><strong>Email:</strong> {escape(email)}</p>
        <p><strong>Temporary Password:</strong> {escape(temp_password)}</p>
      </div>
      <p><strong>Important:</strong> you will be required to change your password on first login.</p>
      <p><a href="{escape(settings.frontend_url)}/login">Sign in</a></p>"""
    return subject, _layout(f"Welcome to {settings.APP_NAME}!", "#4CAF50", body)


def compose_otp_email(*, otp: str, ttl_minutes: int) -> tuple[str, str]:
    subject = f"Your {settings.APP_NAME} Password Reset OTP"
    body = f"""
      <p>Hello,</p>
      <p>We received a request to reset your password. Use the code below to continue:</p>
      <div class="box" style="text-align:center;border:2px dashed #2196F3;">
        <p style="font-size:32px;font-weight:bold;color:#2196F3;letter-spacing:5px;">{escape(otp)}</p>
        <p style="font-size:12px;color:#999;">Valid for {ttl_minutes} minutes</p>
      </div>
      <p>If you didn't request a password reset, please ignore this email.</p>"""
    return subject, _layout("Password Reset Request", "#2196F3", body)


def compose_password_changed_email(*, name: str) -> tuple[str, str]:
    subject = "Your Password Has Been Changed"
    body = f"""
      <p>Hello {escape(name)},</p>
      <p>This email confirms that your password was changed successfully.</p>
      <p>If you did not make this change, contact your administrator immediately.</p>"""
    return subject, _layout("Password Changed", "#FF9800", body)
