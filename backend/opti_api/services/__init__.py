"""
Services Module

Business logic behind the HTTP routers:
- accounts: Credential store for admins and users
- auth: Login, password change, OTP recovery, refresh and logout
- otp_ledger: One-time password records and the expiry sweeper
- provisioning: Admin registration, company plan and user management
- mailer / email_templates: Outbound email (log or SendGrid)
"""
