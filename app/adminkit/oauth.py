from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from app.adminkit.modules.accounts.auth_service import FederatedIdentity

GOOGLE_PROVIDER = "google"
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)


class OAuthError(RuntimeError):
    pass


@dataclass(frozen=True)
class GoogleOAuthClient:
    client_id: str
    client_secret: str
    redirect_uri: str
    timeout_seconds: int = 15

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "state": state,
            "access_type": "online",
        }
        return GOOGLE_AUTH_URL + "?" + urllib.parse.urlencode(params)

    def _request_json(self, req: urllib.request.Request) -> dict[str, Any]:
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            try:
                body = e.read().decode("utf-8", errors="ignore")
            except OSError:
                body = ""
            raise OAuthError(f"HTTP {e.code} from Google: {body[:300]}") from e
        except (urllib.error.URLError, OSError) as e:
            raise OAuthError(f"Google request failed: {e}") from e
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise OAuthError("Invalid JSON from Google") from e

    def exchange_code(self, code: str) -> str:
        """Trade the callback code for an access token."""
        if not code:
            raise OAuthError("Missing authorization code.")
        data = urllib.parse.urlencode(
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            }
        ).encode("utf-8")
        req = urllib.request.Request(GOOGLE_TOKEN_URL, data=data, method="POST")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")
        token = self._request_json(req).get("access_token")
        if not token:
            raise OAuthError("Token response did not include an access_token.")
        return str(token)

    def fetch_userinfo(self, access_token: str) -> FederatedIdentity:
        req = urllib.request.Request(GOOGLE_USERINFO_URL, method="GET")
        req.add_header("Authorization", f"Bearer {access_token}")
        info = self._request_json(req)
        provider_id = str(info.get("id") or "").strip()
        email = str(info.get("email") or "").strip()
        if not provider_id or not email:
            raise OAuthError("User info is missing id or email.")
        return FederatedIdentity(
            provider=GOOGLE_PROVIDER,
            provider_id=provider_id,
            email=email,
            name=str(info.get("name") or "").strip(),
        )


def google_client_from_config(config: dict) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        client_id=(config.get("GOOGLE_CLIENT_ID") or "").strip(),
        client_secret=config.get("GOOGLE_CLIENT_SECRET") or "",
        redirect_uri=(config.get("GOOGLE_REDIRECT_URI") or "").strip(),
    )
