"""Credentials for the HTTPS remote."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote, urlparse, urlunparse

TOKEN_USERNAME = "x-access-token"


@dataclass(frozen=True)
class Credential:
    """Fixed-username/token basic auth, usable for both fetch and push."""

    token: str | None
    username: str = TOKEN_USERNAME

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, token={'***' if self.token else None})"

    def apply(self, url: str) -> str:
        """Inject the credential into an HTTP(S) URL.

        Non-HTTP URLs, URLs that already contain credentials, and an
        empty token leave *url* unchanged.
        """
        if not self.token:
            return url
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            return url
        if parsed.username:
            return url

        netloc = f"{quote(self.username, safe='')}:{quote(self.token, safe='')}@{parsed.hostname}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))

    def scrub(self, text: str) -> str:
        """Replace every occurrence of the token in *text* with ``***``."""
        if not self.token:
            return text
        for secret in {self.token, quote(self.token, safe="")}:
            text = text.replace(secret, "***")
        return text


def redact(url: str) -> str:
    """Strip any password from *url* for display."""
    parsed = urlparse(url)
    if not parsed.password:
        return url
    netloc = f"{parsed.username}:***@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))
