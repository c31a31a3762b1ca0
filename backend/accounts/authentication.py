"""Credential extraction for the REST API."""

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication


class HeaderOrCookieJWTAuthentication(JWTAuthentication):
    """
    JWT authentication that accepts the token from either place the clients send it:

    1. `Authorization: Bearer <token>` header (mobile / API clients)
    2. the HttpOnly access token cookie set at login (browser clients)

    The header wins when both are present.
    """

    def authenticate(self, request):
        header = self.get_header(request)
        if header is not None:
            return super().authenticate(request)

        raw_token = request.COOKIES.get(settings.AUTH_COOKIE_NAME)
        if not raw_token:
            return None

        validated_token = self.get_validated_token(raw_token)
        return self.get_user(validated_token), validated_token
