"""
Session cookie refresh via a headless browser.

Visits the site with the current ``at``/``st`` cookies; the site rotates
them on a normal page load, and the new values are read back from the
browser's cookie store. Logged-out detection is a page-content heuristic,
so treat a pass as best-effort rather than a guarantee.
"""

import logging
from typing import List, Dict

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .models import TokenPair

logger = logging.getLogger(__name__)


class RefreshError(Exception):
    """Raised when the token refresh cannot complete."""
    pass


class MissingTokensError(RefreshError):
    """No current tokens to start from."""
    pass


class CredentialExtractionFailure(RefreshError):
    """Tokens were absent from the cookie store after navigation."""
    pass


class LoggedOutFailure(RefreshError):
    """The site served a logged-out page; tokens need a manual update."""
    pass


def looks_logged_out(html: str) -> bool:
    """True if the page offers a login and shows no sign of an account session."""
    return 'Login' in html and 'logout' not in html and 'account' not in html


def find_cookie(cookies: List[Dict], name: str):
    for cookie in cookies:
        if cookie.get('name') == name:
            return cookie.get('value')
    return None


class TokenRefresher:
    """Drives Chromium with the current cookies and extracts rotated ones."""

    def __init__(
        self,
        site_url: str = 'https://www.cult.fit',
        landing_path: str = '/cult',
        cookie_domain: str = '.cult.fit',
        user_agent: str = (
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
            '(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36'
        ),
        headless: bool = True,
        timeout_ms: int = 15000,
        settle_ms: int = 2000
    ):
        self.site_url = site_url.rstrip('/')
        self.landing_path = landing_path
        self.cookie_domain = cookie_domain
        self.user_agent = user_agent
        self.headless = headless
        self.timeout_ms = timeout_ms
        self.settle_ms = settle_ms

    def refresh(self, tokens: TokenPair) -> TokenPair:
        """
        Load a page with the current tokens and return the rotated pair.

        Args:
            tokens: Current at/st cookies

        Returns:
            Fresh TokenPair (values may equal the input if the site did not rotate them)

        Raises:
            MissingTokensError: If either input token is blank
            CredentialExtractionFailure: If the cookies are gone after navigation
            LoggedOutFailure: If the page looks logged out
            RefreshError: If the browser cannot start or the navigation fails
        """
        if not tokens.at or not tokens.st:
            raise MissingTokensError("Missing AT or ST")

        url = f"{self.site_url}{self.landing_path}"
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=self.headless)
                try:
                    context = browser.new_context(user_agent=self.user_agent)
                    context.add_cookies([
                        {'name': 'at', 'value': tokens.at, 'domain': self.cookie_domain, 'path': '/'},
                        {'name': 'st', 'value': tokens.st, 'domain': self.cookie_domain, 'path': '/'},
                    ])

                    page = context.new_page()
                    logger.debug(f"[refresh] Opening {url}")
                    page.goto(url, wait_until='networkidle', timeout=self.timeout_ms)
                    page.wait_for_timeout(self.settle_ms)
                    cookies = context.cookies(self.site_url)
                    html = page.content()
                finally:
                    browser.close()
        except PlaywrightError as e:
            # Covers a missing Chromium install as well as navigation failures
            raise RefreshError(f"Browser session failed: {e}") from e

        fresh_at = find_cookie(cookies, 'at')
        fresh_st = find_cookie(cookies, 'st')
        if not fresh_at or not fresh_st:
            raise CredentialExtractionFailure(
                "Could not extract cookies - session may be fully expired"
            )

        if looks_logged_out(html):
            raise LoggedOutFailure("Session expired - not logged in")

        return TokenPair(at=fresh_at, st=fresh_st)
