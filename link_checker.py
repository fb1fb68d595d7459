"""
Link liveness checking for bookmark URLs
"""

import os
import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import urljoin, urlparse, urlunparse

import requests
from tqdm import tqdm

from bookmark_models import BookmarkNode, LinkCheckResult, LinkStatus
from organizer_config import OrganizerConfig

logger = logging.getLogger("bookmark_organizer.link_checker")

ProgressCallback = Callable[[int, int, Optional[LinkCheckResult], Optional[str]], None]

PERMANENT_REDIRECTS = (301, 308)
TEMPORARY_REDIRECTS = (302, 303, 307)
ACCESS_MESSAGES = {
    401: "authentication required, the site exists but needs a login",
    403: "access forbidden, the site exists but refuses automated checks",
    429: "too many requests, the site exists but is rate limiting",
}


def setup_logger(log_dir: str = "./logs") -> logging.Logger:
    """Set up the file logger shared by all bookmark_organizer modules"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    # Create logs directory if it doesn't exist
    os.makedirs(log_dir, exist_ok=True)

    log_filename = os.path.join(log_dir, f"{timestamp}.log")

    logger = logging.getLogger('bookmark_organizer')
    logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Don't propagate to root logger to avoid console spam
    logger.propagate = False

    logger.info("=== Bookmark Organizer Log Started ===")
    logger.info(f"Log file: {log_filename}")

    # Print to console so user knows where logs are
    print(f"📝 Detailed logging enabled: {log_filename}")

    return logger


def normalize_url(url: str) -> str:
    """Strip query string and fragment"""
    try:
        parsed = urlparse(url)
        return urlunparse(parsed._replace(query="", fragment=""))
    except ValueError:
        return url


def are_urls_similar(url1: str, url2: str) -> bool:
    return normalize_url(url1) == normalize_url(url2)


def classify_response(url: str, status_code: int, location: Optional[str] = None) -> LinkCheckResult:
    """Map an HTTP status code to a link status"""
    if 200 <= status_code < 300:
        return LinkCheckResult(url=url, status=LinkStatus.NORMAL)

    redirect_url = urljoin(url, location) if location else None

    if status_code in PERMANENT_REDIRECTS:
        return LinkCheckResult(url=url, status=LinkStatus.NORMAL, status_code=status_code,
                               redirect_url=redirect_url)
    if status_code in TEMPORARY_REDIRECTS:
        return LinkCheckResult(url=url, status=LinkStatus.REDIRECT, status_code=status_code,
                               redirect_url=redirect_url, error="temporary redirect, verify the target")
    if 300 <= status_code < 400:
        return LinkCheckResult(url=url, status=LinkStatus.REDIRECT, status_code=status_code,
                               redirect_url=redirect_url)

    if status_code == 404:
        return LinkCheckResult(url=url, status=LinkStatus.BROKEN, status_code=status_code,
                               error="page not found")
    if status_code == 410:
        return LinkCheckResult(url=url, status=LinkStatus.BROKEN, status_code=status_code,
                               error="resource permanently removed")
    if status_code in ACCESS_MESSAGES:
        return LinkCheckResult(url=url, status=LinkStatus.ERROR, status_code=status_code,
                               error=ACCESS_MESSAGES[status_code])
    if 400 <= status_code < 500:
        message = f"client error: HTTP {status_code}"
    elif 500 <= status_code < 600:
        message = f"server error: HTTP {status_code}"
    else:
        message = f"HTTP {status_code}"
    return LinkCheckResult(url=url, status=LinkStatus.ERROR, status_code=status_code, error=message)


class LinkChecker:
    """Sequential link checker with pause, resume and cancel"""

    def __init__(self, config: OrganizerConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': config.user_agent})
        self.strict_mode = config.strict_mode
        self.is_checking = False
        self.current_url: Optional[str] = None
        self._cancelled = False
        # Set while running; cleared by pause()
        self._resume_event = threading.Event()
        self._resume_event.set()
        self._run_lock = threading.Lock()

    # -- controls ------------------------------------------------------------

    def pause(self):
        logger.info("Link check paused")
        self._resume_event.clear()

    def resume(self):
        logger.info("Link check resumed")
        self._resume_event.set()

    @property
    def is_paused(self) -> bool:
        return not self._resume_event.is_set()

    def cancel(self):
        logger.info("Link check cancelled")
        self._cancelled = True
        self._resume_event.set()

    def reset_cancel(self):
        self._cancelled = False

    def is_check_cancelled(self) -> bool:
        return self._cancelled

    def set_strict_mode(self, strict: bool):
        self.strict_mode = strict

    def get_strict_mode(self) -> bool:
        return self.strict_mode

    def get_current_checking_url(self) -> Optional[str]:
        return self.current_url

    # -- single URL ----------------------------------------------------------

    def check_url(self, url: str) -> LinkCheckResult:
        if not url or not url.startswith('http'):
            return LinkCheckResult(url=url or "", status=LinkStatus.ERROR, error="invalid URL")

        self._resume_event.wait()
        self.current_url = url

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._check, url)
        try:
            return future.result(timeout=self.config.check_timeout)
        except FutureTimeout:
            logger.warning(f"Check timed out: {url}")
            return LinkCheckResult(url=url, status=LinkStatus.TIMEOUT, error="check timed out")
        except Exception as e:
            logger.error(f"Unexpected error checking {url}: {e}")
            return LinkCheckResult(url=url, status=LinkStatus.ERROR, error=str(e))
        finally:
            # A stuck request is left to its own timeout
            executor.shutdown(wait=False)

    def _check(self, url: str) -> LinkCheckResult:
        try:
            response = self.session.head(url, timeout=self.config.request_timeout, allow_redirects=False)
        except requests.Timeout:
            return LinkCheckResult(url=url, status=LinkStatus.TIMEOUT, error="request timed out")
        except requests.ConnectionError as e:
            logger.debug(f"HEAD failed for {url}, retrying with GET: {e}")
            return self._fallback_get(url)
        except requests.RequestException as e:
            return LinkCheckResult(url=url, status=LinkStatus.ERROR, error=str(e))

        if response.status_code in (405, 501):
            logger.debug(f"HEAD not allowed for {url} (HTTP {response.status_code}), retrying with GET")
            return self._fallback_get(url)

        result = classify_response(url, response.status_code, response.headers.get('Location'))
        logger.debug(f"{url} -> {result.status.value} ({response.status_code})")
        return result

    def _fallback_get(self, url: str) -> LinkCheckResult:
        """GET without reading the body; the verdict leans on timing"""
        start = time.monotonic()
        try:
            response = self.session.get(url, timeout=self.config.request_timeout, stream=True)
            response.close()
        except requests.Timeout:
            return LinkCheckResult(url=url, status=LinkStatus.TIMEOUT, error="request timed out")
        except requests.ConnectionError:
            return LinkCheckResult(url=url, status=LinkStatus.ERROR, error="network connection failed")
        except requests.RequestException as e:
            return LinkCheckResult(url=url, status=LinkStatus.ERROR, error=str(e))
        elapsed = time.monotonic() - start

        if elapsed < self.config.too_fast_threshold:
            return LinkCheckResult(url=url, status=LinkStatus.ERROR, error="response too fast, possibly invalid")
        if elapsed > self.config.check_timeout - 0.5:
            return LinkCheckResult(url=url, status=LinkStatus.TIMEOUT, error="response too slow")
        if response.status_code >= 400:
            return classify_response(url, response.status_code)
        if self.strict_mode:
            return LinkCheckResult(url=url, status=LinkStatus.ERROR,
                                   error="could not verify accurately, check manually")
        return LinkCheckResult(url=url, status=LinkStatus.NORMAL,
                               error="limited information, site likely reachable")

    # -- batches -------------------------------------------------------------

    def check_all_urls(self, nodes: List[BookmarkNode],
                       on_progress: Optional[ProgressCallback] = None) -> List[LinkCheckResult]:
        urls = []
        for root in nodes:
            for node in root.walk():
                if node.url and node.url.startswith('http'):
                    urls.append(node.url)
        return self.check_urls(urls, on_progress)

    def check_urls(self, urls: List[str], on_progress: Optional[ProgressCallback] = None) -> List[LinkCheckResult]:
        if not self._run_lock.acquire(blocking=False):
            logger.warning("A link check is already running, ignoring new request")
            return []

        results: List[LinkCheckResult] = []
        total = len(urls)
        progress = tqdm(total=total, desc="Checking links", disable=not self.config.show_progress)
        try:
            self.is_checking = True
            logger.info(f"Checking {total} URLs")
            if on_progress:
                on_progress(0, total, None, None)

            for i, url in enumerate(urls):
                if self._cancelled:
                    logger.info(f"Link check cancelled after {i} of {total} URLs")
                    break
                self._resume_event.wait()
                if self._cancelled:
                    logger.info(f"Link check cancelled after {i} of {total} URLs")
                    break

                try:
                    result = self.check_url(url)
                except Exception as e:
                    logger.error(f"Failed to check {url}: {e}")
                    result = LinkCheckResult(url=url, status=LinkStatus.ERROR, error=str(e))
                results.append(result)
                progress.update(1)
                if on_progress:
                    on_progress(i + 1, total, result, url)

                if i < total - 1 and self.config.batch_delay > 0:
                    time.sleep(self.config.batch_delay)
        finally:
            progress.close()
            self.is_checking = False
            self.current_url = None
            self._cancelled = False
            self._run_lock.release()

        logger.info(f"Link check finished: {len(results)} results")
        return results


def create_link_checker(config: Optional[OrganizerConfig] = None) -> LinkChecker:
    """Factory function to create a link checker from environment"""
    return LinkChecker(config or OrganizerConfig.from_env())
