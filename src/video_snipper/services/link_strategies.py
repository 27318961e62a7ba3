"""
Heuristics that turn a user-supplied link into downloadable URLs.

Share links from hosting services often point at a viewer page rather than
at the media bytes. A ``LinkStrategy`` lists the URL shapes worth trying for
a link and knows how to dig a real download link out of an HTML interstitial.
These are best-effort heuristics and are expected to miss some pages.
"""

import html
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import parse_qs, urlparse


@dataclass(frozen=True)
class DownloadLink:
    """A link scraped from an interstitial page, optionally needing a confirm token."""

    url: str
    confirm: Optional[str] = None


class LinkStrategy:
    """Passes the link through untouched."""

    name = "direct"
    # Whether an HTML answer means "not the media yet" for this strategy.
    inspects_html = False

    def matches(self, url: str) -> bool:
        return True

    def candidate_urls(self, url: str) -> List[str]:
        return [url]

    def extract_download_link(self, page: str) -> Optional[DownloadLink]:
        return None


class DirectLinkStrategy(LinkStrategy):
    pass


class GoogleDriveLinkStrategy(LinkStrategy):
    """Share links of the form ``drive.google.com/file/d/<id>/...`` or ``?id=<id>``."""

    name = "google_drive"
    inspects_html = True

    HOSTS = ("drive.google.com", "docs.google.com", "drive.usercontent.google.com")

    _FILE_PATH = re.compile(r"/file/d/([A-Za-z0-9_-]+)")

    _DOWNLOAD_PATTERNS = (
        re.compile(r'href="([^"]*uc[^"]*export=download[^"]*)"'),
        re.compile(r'action="([^"]*(?:uc|download)[^"]*)"'),
        re.compile(r'window\.location\.href\s*=\s*[\'"]([^\'"]*uc[^\'"]*export=download[^\'"]*)[\'"]'),
        re.compile(r'downloadUrl\s*=\s*[\'"]([^\'"]*uc[^\'"]*export=download[^\'"]*)[\'"]'),
    )

    _CONFIRM_PATTERNS = (
        re.compile(r'name="confirm" value="([^"]*)"'),
        re.compile(r'confirm=([^&"]*)'),
        re.compile(r'"confirm":"([^"]*)"'),
    )

    def matches(self, url: str) -> bool:
        try:
            host = (urlparse(url).hostname or "").lower()
        except ValueError:
            return False
        return host in self.HOSTS and self.file_id(url) is not None

    def file_id(self, url: str) -> Optional[str]:
        parsed = urlparse(url)
        match = self._FILE_PATH.search(parsed.path)
        if match:
            return match.group(1)
        ids = parse_qs(parsed.query).get("id")
        return ids[0] if ids else None

    def candidate_urls(self, url: str) -> List[str]:
        file_id = self.file_id(url)
        if file_id is None:
            return [url]
        return [
            f"https://drive.google.com/uc?export=download&id={file_id}&confirm=t&uuid=",
            f"https://drive.google.com/uc?export=download&id={file_id}",
            f"https://drive.google.com/uc?export=download&id={file_id}&confirm=t",
        ]

    def extract_download_link(self, page: str) -> Optional[DownloadLink]:
        download_url = None
        for pattern in self._DOWNLOAD_PATTERNS:
            match = pattern.search(page)
            if match:
                download_url = html.unescape(match.group(1))
                break

        if download_url is None:
            return None

        confirm = None
        for pattern in self._CONFIRM_PATTERNS:
            match = pattern.search(page)
            if match and match.group(1):
                confirm = match.group(1)
                break

        return DownloadLink(url=download_url, confirm=confirm)


DEFAULT_STRATEGIES: Sequence[LinkStrategy] = (GoogleDriveLinkStrategy(), DirectLinkStrategy())


def select_strategy(url: str, strategies: Sequence[LinkStrategy] = DEFAULT_STRATEGIES) -> LinkStrategy:
    """Return the first strategy that claims ``url``; falls back to a direct link."""
    for strategy in strategies:
        try:
            matched = strategy.matches(url)
        except ValueError:
            continue
        if matched:
            return strategy
    return DirectLinkStrategy()
