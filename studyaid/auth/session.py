from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from studyaid.storage import Database, get_database
from studyaid.utils import set_request_context, get_request_context

SESSION_USER_KEY = 'user_id'


def login_session(request: Request, user: Dict[str, Any]):
    request.session[SESSION_USER_KEY] = user['id']


def logout_session(request: Request):
    request.session.clear()


def optional_user(request: Request, db: Database = Depends(get_database)) -> Optional[Dict[str, Any]]:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    user = db.get_user(user_id)
    if user is None:
        # stale session for a deleted user
        request.session.pop(SESSION_USER_KEY, None)
        return None
    return user


def current_user(user: Optional[Dict[str, Any]] = Depends(optional_user)) -> Dict[str, Any]:
    if user is None:
        raise HTTPException(status_code=401, detail='Unauthorized')
    ctx = get_request_context()
    set_request_context(ctx.get('request_id'), user_id=user['id'])
    return user
