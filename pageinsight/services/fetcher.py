from __future__ import annotations

import logging
from typing import Optional

import requests

from pageinsight.domain.deadline import Deadline
from pageinsight.domain.http_response import HttpResponse
from pageinsight.exceptions import HttpFetchError
from pageinsight.services.safe_transport import MAX_REDIRECTS, MAX_RESPONSE_BYTES, LimitedBody, redirect_target

logger = logging.getLogger(__name__)


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset":
            return value.strip().strip("'\"") or None
    return None


class HttpFetcher:
    """
    Fetches the page under analysis through an injected requests session.

    The session is expected to come from `safe_transport.build_session`, which
    carries the address policy. Redirects are followed here, one hop at a
    time, so every hop is dialed through that policy and no 3xx body is ever
    read. The final body is streamed and handed back unread, capped at
    `max_body_bytes`.
    """

    def __init__(
        self,
        session: requests.Session,
        user_agent: str,
        timeout: float = 10,
        max_body_bytes: int = MAX_RESPONSE_BYTES,
        max_redirects: int = MAX_REDIRECTS,
    ):
        self.session = session
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_body_bytes = max_body_bytes
        self.max_redirects = max_redirects

    def fetch(self, url: str, deadline: Optional[Deadline] = None) -> HttpResponse:
        """Fetch URL and return status code, body stream, Content-Type and charset."""
        deadline = deadline if deadline is not None else Deadline.never()
        budget = deadline.child(self.timeout)
        try:
            resp = self._get_following_redirects(url, budget)
        except requests.exceptions.RequestException as e:
            raise HttpFetchError(url, e) from e

        content_type = resp.headers.get("Content-Type")
        logger.debug("Fetched %s -> status %s (%s)", url, resp.status_code, content_type)
        return HttpResponse(
            status_code=resp.status_code,
            body=LimitedBody(resp, limit=self.max_body_bytes, budget=budget),
            content_type=content_type,
            encoding=charset_from_content_type(content_type),
        )

    def _get_following_redirects(self, url: str, budget: Deadline) -> requests.Response:
        headers = {"User-Agent": self.user_agent, "Accept": "text/html"}
        hops = 0
        while True:
            resp = self.session.get(
                url,
                headers=headers,
                timeout=budget.clip(self.timeout),
                stream=True,
                allow_redirects=False,
            )
            try:
                target = redirect_target(resp)
            except requests.exceptions.RequestException:
                resp.close()
                raise
            if target is None:
                return resp
            # Closing an unread streamed response drops the connection
            # without draining the body.
            resp.close()
            hops += 1
            if hops > self.max_redirects:
                raise requests.exceptions.TooManyRedirects(
                    f"Exceeded {self.max_redirects} redirects", response=resp
                )
            logger.debug("Redirect %d: %s -> %s", hops, url, target)
            url = target
