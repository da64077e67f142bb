"""Session token shared by every request of one executor."""

import logging
import re
from collections.abc import Iterable

__all__ = ["SessionContext"]

logger = logging.getLogger(__name__)


class SessionContext:
    """Mutable session state sent with every outgoing request.

    The token is refreshed from ``Set-Cookie`` values of any completed
    exchange. Overlapping exchanges update it last-writer-wins; callers
    needing strict ordering serialize their requests themselves.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        cookie_name: str = "csrftoken",
        header_name: str = "X-CSRFToken",
        token: str = "",
    ) -> None:
        """Initialize session context.

        Args:
            base_url: Sent as Referer header when set.
            cookie_name: Cookie holding the token.
            header_name: Header the token is sent in.
            token: Initial token value.
        """
        self.base_url = base_url
        self.cookie_name = cookie_name
        self.header_name = header_name
        self.token = token
        self._pattern = re.compile(rf"(?:^|;\s*){re.escape(cookie_name)}=([^;]+)")

    def extract_token(self, cookies: Iterable[str]) -> str | None:
        """Find the token in raw Set-Cookie values.

        Args:
            cookies: Set-Cookie header values.

        Returns:
            The first token found, or None.
        """
        for cookie in cookies:
            match = self._pattern.search(cookie)
            if match:
                return match.group(1).strip()
        return None

    def update_from_cookies(self, cookies: Iterable[str]) -> bool:
        """Adopt a token found in response cookies.

        Returns:
            True if a token was found (and stored).
        """
        token = self.extract_token(cookies)
        if token is None:
            return False
        if token != self.token:
            logger.debug(f"Session token refreshed from {self.cookie_name} cookie")
        self.token = token
        return True

    def build_headers(self) -> dict[str, str]:
        """Headers for the next outgoing request."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            self.header_name: self.token,
        }
        if self.base_url:
            headers["Referer"] = self.base_url
        return headers
