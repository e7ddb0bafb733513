"""Session-based authentication with Google OAuth login."""
from .session import current_user, optional_user, login_session, logout_session
from .google import router, oauth_configured

__all__ = ['current_user', 'optional_user', 'login_session', 'logout_session', 'router', 'oauth_configured']
