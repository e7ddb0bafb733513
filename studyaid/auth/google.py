"""Google OAuth 2.0 login routes.

The OAuth exchange itself is delegated to google-auth-oauthlib; this module
only stores the state in the session, upserts the Google profile as a user
and records the user id in the session.
"""
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from google_auth_oauthlib.flow import Flow

from studyaid.storage import Database, get_database
from studyaid.utils import get_logger
from .session import login_session, logout_session, optional_user

LOG = get_logger()

GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
GOOGLE_CLIENT_SECRET = os.getenv('GOOGLE_CLIENT_SECRET')
GOOGLE_CALLBACK_URL = os.getenv('GOOGLE_CALLBACK_URL', 'http://localhost:8000/api/auth/google/callback')
CLIENT_URL = os.getenv('CLIENT_URL', 'http://localhost:5173')
USERINFO_URL = 'https://openidconnect.googleapis.com/v1/userinfo'
SCOPES = ['openid', 'https://www.googleapis.com/auth/userinfo.email', 'https://www.googleapis.com/auth/userinfo.profile']
OAUTH_STATE_KEY = 'oauth_state'

router = APIRouter(prefix='/api/auth', tags=['auth'])


def oauth_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)


def build_flow(state: Optional[str] = None) -> Flow:
    client_config = {
        'web': {
            'client_id': GOOGLE_CLIENT_ID,
            'client_secret': GOOGLE_CLIENT_SECRET,
            'auth_uri': 'https://accounts.google.com/o/oauth2/auth',
            'token_uri': 'https://oauth2.googleapis.com/token',
            'redirect_uris': [GOOGLE_CALLBACK_URL],
        }
    }
    flow = Flow.from_client_config(client_config, scopes=SCOPES, state=state)
    flow.redirect_uri = GOOGLE_CALLBACK_URL
    return flow


def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {'id': user['id'], 'email': user['email'], 'name': user['name'], 'profileImage': user['profileImage']}


@router.get('/google')
async def google_login(request: Request):
    if not oauth_configured():
        return JSONResponse(status_code=503, content={'success': False, 'error': 'Google OAuth is not configured'})
    flow = build_flow()
    authorization_url, state = flow.authorization_url(access_type='online', include_granted_scopes='true', prompt='select_account')
    request.session[OAUTH_STATE_KEY] = state
    return RedirectResponse(authorization_url)


@router.get('/google/callback')
async def google_callback(request: Request, db: Database = Depends(get_database)):
    failure = RedirectResponse(f'{CLIENT_URL}/login?error=auth_failed')
    state = request.session.pop(OAUTH_STATE_KEY, None)
    if not state or request.query_params.get('state') != state:
        LOG.warning('oauth_state_mismatch')
        return failure
    try:
        flow = build_flow(state=state)
        flow.fetch_token(authorization_response=str(request.url))
        info = flow.authorized_session().get(USERINFO_URL, timeout=10).json()
        user = db.upsert_user(
            info['sub'],
            info.get('email', ''),
            name=info.get('name', ''),
            profile_image=info.get('picture', ''),
        )
    except Exception:
        LOG.exception('oauth_callback_failed', exc_info=True)
        return failure
    login_session(request, user)
    LOG.info('user_logged_in', extra={'user_id': user['id']})
    return RedirectResponse(CLIENT_URL)


@router.get('/user')
async def get_user(user: Optional[Dict[str, Any]] = Depends(optional_user)):
    if user is None:
        return JSONResponse(status_code=401, content={'success': False, 'error': 'Not authenticated'})
    return _public_user(user)


@router.get('/status')
async def auth_status(user: Optional[Dict[str, Any]] = Depends(optional_user)):
    return {'isAuthenticated': user is not None, 'user': _public_user(user) if user else None}


@router.post('/logout')
async def logout(request: Request):
    logout_session(request)
    return {'message': 'Logged out successfully'}
