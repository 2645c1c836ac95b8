from __future__ import annotations

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

import requests

from pageinsight.domain.deadline import Deadline
from pageinsight.exceptions import ContextDoneError

logger = logging.getLogger(__name__)

MAX_LINKS = 1000
# Some origins reject HEAD outright but serve GET.
HEAD_REJECTED_STATUSES = (403, 405)

_WORKER_DONE = object()


class LinkProber:
    """Counts inaccessible links with a fixed-size pool of worker threads.

    Workers pull URLs from one shared job queue and push a verdict per URL
    onto a results queue; the calling thread is the only reader of that queue
    and the only place the tally is kept. `probe` returns after every worker
    has exited.
    """

    def __init__(
        self,
        session: requests.Session,
        concurrency: int,
        timeout: float = 4,
        user_agent: Optional[str] = None,
        max_links: int = MAX_LINKS,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.session = session
        self.concurrency = concurrency
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_links = max_links

    def probe(self, urls: Iterable[str], deadline: Optional[Deadline] = None) -> int:
        deadline = deadline if deadline is not None else Deadline.never()
        links = list(urls)[: self.max_links]
        if not links:
            return 0

        jobs: queue.Queue = queue.Queue(maxsize=len(links))
        for link in links:
            jobs.put_nowait(link)
        results: queue.Queue = queue.Queue()

        num_workers = min(len(links), self.concurrency)
        inaccessible = 0
        with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="link-prober") as executor:
            futures = [executor.submit(self._worker, jobs, results, deadline) for _ in range(num_workers)]
            finished = 0
            while finished < num_workers:
                verdict = results.get()
                if verdict is _WORKER_DONE:
                    finished += 1
                elif verdict:
                    inaccessible += 1
        for future in futures:
            # Surface bugs from a worker instead of reporting a partial count.
            future.result()

        logger.debug("Probed %d links with %d workers: %d inaccessible", len(links), num_workers, inaccessible)
        return inaccessible

    def _worker(self, jobs: queue.Queue, results: queue.Queue, deadline: Deadline) -> None:
        try:
            while True:
                try:
                    link = jobs.get_nowait()
                except queue.Empty:
                    return
                results.put(self.check_link(link, deadline))
        finally:
            results.put(_WORKER_DONE)

    def check_link(self, link: str, deadline: Deadline) -> bool:
        """Return True when `link` is inaccessible.

        A request that fails because the deadline is done (cancelled or
        expired) does not count against the link.
        """
        try:
            head = self._prepare("HEAD", link)
        except (requests.exceptions.RequestException, ValueError):
            return True

        status = self._send(head, deadline)
        if status in HEAD_REJECTED_STATUSES:
            status = self._send(self._prepare("GET", link, {"Range": "bytes=0-0"}), deadline)

        if status is None:
            return not deadline.done()
        return status >= 400

    def _prepare(self, method: str, link: str, extra_headers: Optional[dict] = None) -> requests.PreparedRequest:
        headers = {}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        if extra_headers:
            headers.update(extra_headers)
        return requests.Request(method, link, headers=headers).prepare()

    def _send(self, prepared: requests.PreparedRequest, deadline: Deadline) -> Optional[int]:
        """Send without following redirects; None means the request failed."""
        try:
            resp = self.session.send(
                prepared,
                timeout=deadline.clip(self.timeout),
                allow_redirects=False,
                stream=True,
            )
        except (requests.exceptions.RequestException, ContextDoneError) as e:
            logger.debug("Probe %s %s failed: %s", prepared.method, prepared.url, e)
            return None
        resp.close()
        return resp.status_code
