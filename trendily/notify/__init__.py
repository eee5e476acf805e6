"""
Email delivery: the Mailer interface and the Resend adapter.

Credential placement (.env, gitignored):
  TRENDILY_RESEND_API_KEY   Resend API key (RESEND_API_KEY also accepted)
  TRENDILY_EMAIL_FROM       Sender identity
"""
