"""
Web-scrape collaborator.

The GitHub pipeline only needs "URL in, markdown out"; PageScraper is that
seam and FirecrawlScraper the production implementation.
"""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from firecrawl import FirecrawlApp

from .config import SCRAPE_CONFIG
from .errors import ConfigurationError, ScrapeError, VerificationCancelled
from .orchestrator import run_cancellable
from .settings import get_settings

logger = logging.getLogger(__name__)


class PageScraper(ABC):
    @abstractmethod
    async def scrape_markdown(self, url: str, cancel_event: Optional[asyncio.Event] = None) -> str:
        """Return the page as markdown; an empty string when the page has no content."""


def _markdown_from_result(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, dict):
        data = result.get("data") if isinstance(result.get("data"), dict) else result
        return data.get("markdown") or ""
    return getattr(result, "markdown", None) or ""


class FirecrawlScraper(PageScraper):
    """Scrapes pages through the Firecrawl API (markdown format, main content only)."""

    def __init__(self, api_key: Optional[str] = None, timeout_seconds: Optional[float] = None, app: Any = None):
        if app is None:
            api_key = api_key or get_settings().firecrawl_api_key
            if not api_key:
                raise ConfigurationError("FIRECRAWL_API_KEY is not configured")
            app = FirecrawlApp(api_key=api_key)
        self.app = app
        self.timeout_seconds = timeout_seconds or SCRAPE_CONFIG["timeout_seconds"]

    def _scrape(self, url: str) -> str:
        result = self.app.scrape_url(url, formats=["markdown"], only_main_content=True)
        return _markdown_from_result(result)

    async def scrape_markdown(self, url: str, cancel_event: Optional[asyncio.Event] = None) -> str:
        logger.info(f"Scraping {url}")
        try:
            markdown = await run_cancellable(asyncio.to_thread(self._scrape, url), cancel_event, self.timeout_seconds)
        except VerificationCancelled:
            raise
        except asyncio.TimeoutError as exc:
            raise ScrapeError(f"Scrape timed out after {self.timeout_seconds}s: {url}", cause=exc) from exc
        except Exception as exc:
            raise ScrapeError(f"Scrape failed for {url}: {exc}", cause=exc) from exc

        logger.info(f"Scraped {url} ({len(markdown)} chars)")
        return markdown
