#!/usr/bin/env python3
"""Obtain a Google OAuth refresh token for the Drive backend.

Prints a consent URL, then exchanges the authorization code you paste
back for tokens. The refresh token is what the server needs:

  - Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET in your .env first
  - Run this script and open the printed URL
  - After consenting, the browser is redirected to http://localhost/?code=...
    (the page will not load); copy the ``code`` value and paste it here
  - Put the printed GOOGLE_REFRESH_TOKEN into your .env

Scope is ``drive.file``: the app can only see files it created.
"""

from __future__ import annotations

import os
import sys
from urllib.parse import urlencode

import httpx

_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_TOKEN_URL = "https://oauth2.googleapis.com/token"
_REDIRECT_URI = "http://localhost"
_SCOPE = "https://www.googleapis.com/auth/drive.file"


def main() -> None:
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        print(
            "Error: GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set.",
            file=sys.stderr,
        )
        sys.exit(1)

    query = urlencode({
        "client_id": client_id,
        "redirect_uri": _REDIRECT_URI,
        "response_type": "code",
        "scope": _SCOPE,
        "access_type": "offline",
        "prompt": "consent",
    })
    print("=== Cashbook Drive authorization ===")
    print()
    print("1. Open this URL and grant access:")
    print(f"  {_AUTH_URL}?{query}")
    print()
    code = input("2. Paste the authorization code: ").strip()
    if not code:
        print("Error: no code entered.", file=sys.stderr)
        sys.exit(1)

    resp = httpx.post(
        _TOKEN_URL,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": _REDIRECT_URI,
            "grant_type": "authorization_code",
        },
        timeout=15.0,
    )
    if resp.status_code >= 400:
        print(f"Error: token exchange failed: {resp.text}", file=sys.stderr)
        sys.exit(1)

    refresh_token = resp.json().get("refresh_token")
    if not refresh_token:
        print(
            "Error: no refresh token returned. Revoke the app's access in your "
            "Google account and run this script again.",
            file=sys.stderr,
        )
        sys.exit(1)

    print()
    print("--- Add to .env ---")
    print(f"  GOOGLE_REFRESH_TOKEN={refresh_token}")


if __name__ == "__main__":
    main()
