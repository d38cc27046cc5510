from __future__ import annotations

import hashlib

from django.core.cache import cache

from dashboard.backend import AuthSession
from dashboard.backend import get_backend


SESSION_KEY = "dashboard_auth"
USER_CACHE_SECONDS = 60


def _user_cache_key(access_token: str) -> str:
    return "auth:user:" + hashlib.sha256(access_token.encode("utf-8")).hexdigest()


def forget_token(access_token: str) -> None:
    cache.delete(_user_cache_key(access_token))


def _verified_user(session: AuthSession) -> dict | None:
    key = _user_cache_key(session.access_token)
    user = cache.get(key)
    if user:
        return user
    user = get_backend().get_user(session.access_token)
    if user:
        cache.set(key, user, USER_CACHE_SECONDS)
    return user


class AdminUserMiddleware:
    """Attach the signed-in user and a backend bound to their token."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.admin_user = None
        request.auth_session = None
        request.backend = None
        session = AuthSession.from_dict(request.session.get(SESSION_KEY))
        if session:
            user = _verified_user(session)
            if user:
                request.admin_user = user
                request.auth_session = session
                request.backend = get_backend().bind(session)
            else:
                request.session.pop(SESSION_KEY, None)
        return self.get_response(request)
