"""
Rendering adapter: turns planned and resolved page links into HTML and places that
HTML in the blog's pager markup.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit, urlunsplit

from bs4 import BeautifulSoup
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import config
from context import items_per_page_from_url, parse_positive_int


logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

templates = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


@dataclass(frozen=True)
class PageLink:
    """
    One rendered element of the number strip.

    kind is "page", "current", "ellipsis", "prev" or "next". href is None when the
    target page could not be resolved yet; such links render inert.
    """
    kind: str
    label: str
    page: int
    href: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "label": self.label, "page": self.page, "href": self.href}


def page_indicator(current_page: int, total_pages: int, settings=config) -> str:
    """The "Hoja X de Y" text."""
    return settings.PAGE_INDICATOR.format(current=current_page, total=total_pages)


def render_pagination(
    links: List[PageLink],
    page_info: Dict[str, Any],
    prev_link: Optional[PageLink] = None,
    next_link: Optional[PageLink] = None,
    settings=config,
) -> str:
    """
    Render the pagination wrapper.

    Args:
        links: Number strip, left to right (empty means pagination is hidden)
        page_info: Paginator.get_page_info() output
        prev_link: Link to the newer page, if any
        next_link: Link to the older page, if any
        settings: Config providing labels and class names

    Returns:
        HTML fragment, or "" when there is nothing to show
    """
    if not links:
        return ""

    template = templates.get_template("pagination.html")
    return template.render(
        wrapper_class=settings.NUMBERS_WRAPPER_CLASS,
        indicator=page_indicator(page_info["current_page"], page_info["total_pages"], settings),
        links=links,
        prev=prev_link,
        next=next_link,
    ).strip()


def _with_max_results(href: str, items_per_page: int) -> str:
    parts = urlsplit(href)
    if "max-results" in parse_qs(parts.query):
        return href
    query = f"{parts.query}&max-results={items_per_page}" if parts.query else f"max-results={items_per_page}"
    return urlunsplit(parts._replace(query=query))


def carry_items_per_page(soup: BeautifulSoup, items_per_page: int) -> int:
    """
    Make label links and search forms open listings at the blog's page size.

    Blogger falls back to its own default page size on label and search listings
    that do not carry max-results, which would put the number strip out of step
    with the posts actually shown.

    Returns:
        Number of links and forms changed
    """
    changed = 0
    for anchor in soup.select('a[href*="/search/label/"]'):
        href = anchor["href"]
        updated = _with_max_results(href, items_per_page)
        if updated != href:
            anchor["href"] = updated
            changed += 1

    for form in soup.select("form[action]"):
        if not urlsplit(form["action"]).path.rstrip("/").endswith("/search"):
            continue
        if form.find("input", attrs={"name": "max-results"}) is not None:
            continue
        form.append(soup.new_tag("input", attrs={"type": "hidden", "name": "max-results", "value": str(items_per_page)}))
        changed += 1

    return changed


def inject_pagination(document_html: str, fragment: str, settings=config, items_per_page: Optional[int] = None) -> str:
    """
    Place a rendered fragment inside the page's pager container.

    Any wrapper left by an earlier call is removed first, so injecting twice gives
    the same document as injecting once. A page without the container keeps its
    markup, apart from the page size carried by label links and search forms.

    Args:
        document_html: Full page (or partial) HTML
        fragment: Output of render_pagination ("" just clears earlier output)
        settings: Config providing selectors
        items_per_page: Page size to add to label links and search forms, if any

    Returns:
        The updated HTML
    """
    soup = BeautifulSoup(document_html, "html.parser")
    per_page = parse_positive_int(items_per_page)
    changed = carry_items_per_page(soup, per_page) if per_page else 0

    pager = soup.select_one(settings.PAGER_SELECTOR)
    if pager is None:
        logger.debug(f"{settings.PAGER_SELECTOR} not found, nothing injected")
        return str(soup) if changed else document_html

    for existing in pager.select(f".{settings.NUMBERS_WRAPPER_CLASS}"):
        existing.decompose()

    if not fragment:
        return str(soup)

    wrapper = BeautifulSoup(fragment, "html.parser").find(class_=settings.NUMBERS_WRAPPER_CLASS)
    if wrapper is None:
        logger.warning("Rendered fragment has no pagination wrapper, nothing injected")
        return str(soup)

    newer = pager.select_one(settings.NEWER_LINK_SELECTOR)
    older = pager.select_one(settings.OLDER_LINK_SELECTOR)

    if newer is not None:
        newer.insert_before(wrapper)
    elif older is not None:
        pager.append(wrapper)
    else:
        pager.clear()
        pager.append(wrapper)

    return str(soup)


def find_items_per_page(document_html: Optional[str], default: Optional[int] = None, settings=config) -> Optional[int]:
    """
    Discover the blog's posts-per-page setting from its navigation links.

    Blogger's older/newer links carry max-results; any other link with max-results
    is used as a fallback.
    """
    if not document_html:
        return default

    soup = BeautifulSoup(document_html, "html.parser")
    candidates = []
    for selector in (settings.OLDER_LINK_SELECTOR, settings.NEWER_LINK_SELECTOR):
        for node in soup.select(selector):
            anchor = node if node.name == "a" else node.find("a")
            if anchor is not None:
                candidates.append(anchor)
    candidates.extend(soup.select('a[href*="max-results="]'))

    for anchor in candidates:
        value = items_per_page_from_url(anchor.get("href", ""))
        if value:
            return value

    return default
