"""Keys held in the per-browser session."""

SESSION_USER_ID = "user_id"
SESSION_USER_NAME = "user_name"
SESSION_USER_ROLE = "user_role"
SESSION_PENDING_EMAIL = "pending_email"
SESSION_CSRF_TOKEN = "csrf_token"
