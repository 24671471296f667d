"""Journalist byline and contact extraction from article HTML/text.

Everything here is pure and deterministic: no network, no clock. Inputs may be
arbitrary (broken) HTML, so every parser step degrades to "not found".

Name resolution order:
1. structured metadata author (scrape API / provider author list)
2. JSON-LD Person markup
3. <meta> author tags
4. byline markup and "By First Last" text patterns
"""

from __future__ import annotations

import html as html_lib
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup

@dataclass(frozen=True)
class Byline:
    name: str
    outlet: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None


PLACEHOLDER_NAMES = (
    "guest author",
    "staff writer",
    "staff reporter",
    "staff report",
    "editorial board",
    "editorial staff",
    "news desk",
    "web desk",
    "newsroom",
    "associated press",
    "ap news",
    "reuters",
    "bloomberg news",
    "press release",
    "admin",
    "administrator",
    "contributor",
    "guest contributor",
    "special to",
    "wire service",
)
_PLACEHOLDER_RE = re.compile(r"\b(?:" + "|".join(re.escape(p) for p in PLACEHOLDER_NAMES) + r")\b")

AGENCY_NAMES = ("reuters", "ap", "afp", "associated press", "staff", "admin", "editor", "guest")

ROLE_ACCOUNTS = {
    "info",
    "tips",
    "newstips",
    "editor",
    "editors",
    "contact",
    "press",
    "news",
    "newsroom",
    "support",
    "noreply",
    "no-reply",
    "donotreply",
    "subscribe",
    "subscriptions",
    "letters",
    "feedback",
    "webmaster",
    "admin",
    "advertising",
    "sales",
    "help",
    "privacy",
    "hello",
}

UI_HANDLES = {
    "share",
    "intent",
    "home",
    "search",
    "login",
    "signup",
    "i",
    "hashtag",
    "explore",
    "settings",
    "privacy",
    "tos",
    "messages",
    "notifications",
    "compose",
    "widgets",
    "media",
    "twitter",
    "x",
    # CSS at-rules and JSON-LD keywords that look like handles in raw HTML
    "import",
    "font",
    "keyframes",
    "charset",
    "supports",
    "page",
    "context",
    "type",
    "graph",
    "id",
    "vocab",
}

_TITLE_SUFFIX_RE = re.compile(
    r"\s+(?:Reporter|Editor|Correspondent|Writer|Staff|Columnist|Contributor|AP|AFP|Reuters)\b.*$", re.I
)
_NAME_CHARS_RE = re.compile(r"^[^\W\d_][^\W\d_.'’ -]*(?:[ .'’-]+[^\W\d_]+)*\.?$")

_LD_JSON_TYPE_RE = re.compile(r"application/ld\+json", re.I)
_META_AUTHOR_KEYS = ("author", "article:author", "byl", "parsely-author", "sailthru.author", "dc.creator")
_BYLINE_CLASS_RE = re.compile(r"\b(?:byline|author|writer)", re.I)
_MARKUP_TEXT_MAX = 120
_BY_RE = re.compile(r"\b[Bb][Yy]:?\s+([A-Z][A-Za-z'’-]+(?:\s+[A-Z]\.)?(?:\s+[A-Z][A-Za-z'’-]+){1,2})")

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]{1,64}@[A-Za-z0-9-]{1,63}(?:\.[A-Za-z0-9-]{1,63})*\.[A-Za-z]{2,24}")
_TWITTER_RE = re.compile(
    r"(?:(?<![\w@.])@|(?<![\w.-])(?:www\.|mobile\.)?(?:twitter|x)\.com/)([A-Za-z0-9_]{1,15})(?![A-Za-z0-9_])",
    re.I,
)
_PHONE_RE = re.compile(
    r"(?:tel|phone|call|reach)[:\s]{0,5}(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}", re.I
)
_TEL_HREF_RE = re.compile(r"href=[\"']tel:([+\d().\s-]{10,20})[\"']", re.I)
_LINKEDIN_HREF_RE = re.compile(
    r"href=[\"'](https?://(?:[a-z]{2,3}\.)?linkedin\.com/in/[A-Za-z0-9_%-]+/?)[\"']", re.I
)
_LINKEDIN_TEXT_RE = re.compile(r"linkedin\.com/in/([A-Za-z0-9_%-]{3,100})", re.I)
_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")


def clean_name(name: Any) -> str:
    if not isinstance(name, str):
        return ""
    s = html_lib.unescape(name)
    s = " ".join(s.split())
    s = re.sub(r"^by:?\s+", "", s, flags=re.I)
    s = re.split(r"[,|]", s, maxsplit=1)[0]
    s = _TITLE_SUFFIX_RE.sub("", s)
    return s.strip(" -–—:;")


def is_valid_name(name: Any) -> bool:
    if not isinstance(name, str):
        return False
    if len(name) < 2 or len(name) > 60:
        return False
    if len(name.split()) < 2:
        return False
    if not (name[0].isalpha() and name[0].isupper()):
        return False
    if not _NAME_CHARS_RE.match(name):
        return False
    return not _PLACEHOLDER_RE.search(name.lower())


def _accept(raw: Any) -> Optional[str]:
    name = clean_name(raw)
    return name if is_valid_name(name) else None


def _walk_ld_authors(node: Any, depth: int = 0) -> Iterator[Any]:
    if depth > 6:
        return
    if isinstance(node, list):
        for item in node:
            yield from _walk_ld_authors(item, depth + 1)
    elif isinstance(node, dict):
        author = node.get("author") or node.get("creator")
        if isinstance(author, (dict, str)):
            author = [author]
        if isinstance(author, list):
            for a in author:
                if isinstance(a, dict):
                    yield a.get("name")
                else:
                    yield a
        if node.get("@type") == "Person":
            yield node.get("name")
        graph = node.get("@graph")
        if graph is not None:
            yield from _walk_ld_authors(graph, depth + 1)


def _soup(html: str) -> Optional[BeautifulSoup]:
    if not html.strip():
        return None
    try:
        return BeautifulSoup(html, "html.parser")
    except Exception:
        return None


def _name_from_json_ld(soup: Optional[BeautifulSoup]) -> Optional[str]:
    if soup is None:
        return None
    for script in soup.find_all("script", attrs={"type": _LD_JSON_TYPE_RE}):
        block = script.string or script.get_text()
        try:
            data = json.loads(block.strip())
        except (ValueError, RecursionError):
            continue
        for raw in _walk_ld_authors(data):
            name = _accept(raw)
            if name:
                return name
    return None


def _name_from_meta(soup: Optional[BeautifulSoup]) -> Optional[str]:
    if soup is None:
        return None
    for tag in soup.find_all("meta"):
        key = str(tag.get("name") or tag.get("property") or "").lower()
        if key in _META_AUTHOR_KEYS:
            name = _accept(tag.get("content"))
            if name:
                return name
    return None


def _name_from_markup(soup: Optional[BeautifulSoup]) -> Optional[str]:
    """Byline containers (class="byline", "author-name", ...) and rel=author links."""
    if soup is None:
        return None
    elements = soup.find_all(class_=_BYLINE_CLASS_RE) + soup.find_all(attrs={"rel": "author"})
    for el in elements:
        raw = el.get_text(" ", strip=True)
        if len(raw) > _MARKUP_TEXT_MAX:
            continue
        name = _accept(raw)
        if name:
            return name
    return None


def _name_from_text(soup: Optional[BeautifulSoup], text: str) -> Optional[str]:
    head = " ".join(text.splitlines()[:10])
    page_text = soup.get_text(" ") if soup is not None else ""
    for source in (head, text, page_text):
        for m in _BY_RE.finditer(source):
            name = _accept(m.group(1))
            if name:
                return name
    return None


def _metadata_author(metadata: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(metadata, dict):
        return None
    raw = metadata.get("author")
    if isinstance(raw, list):
        raw = next((a for a in raw if isinstance(a, str)), None)
    return _accept(raw)


def extract_byline(html: Optional[str], text: Optional[str], metadata: Optional[Dict[str, Any]] = None) -> Optional[str]:
    html = html if isinstance(html, str) else ""
    text = text if isinstance(text, str) else ""
    name = _metadata_author(metadata)
    if name:
        return name
    soup = _soup(html)
    return (
        _name_from_json_ld(soup)
        or _name_from_meta(soup)
        or _name_from_markup(soup)
        or _name_from_text(soup, text)
    )


def _emails(sources: Iterable[str]) -> List[str]:
    found: List[str] = []
    for s in sources:
        for e in _EMAIL_RE.findall(s):
            e = e.strip(".").lower()
            if e.endswith(_IMAGE_SUFFIXES) or e in found:
                continue
            found.append(e)
    return found


def extract_email(html: str, text: str) -> Optional[str]:
    """First address that isn't a role account (tips@, info@, ...)."""
    for e in _emails((text, html)):
        local = e.split("@", 1)[0]
        if local not in ROLE_ACCOUNTS:
            return e
    return None


def extract_twitter(html: str, text: str, author_name: Optional[str]) -> Optional[str]:
    handles: List[str] = []
    for source in (text, html):
        for m in _TWITTER_RE.finditer(source):
            h = m.group(1).lower()
            if h not in UI_HANDLES and h not in handles:
                handles.append(h)
    if not handles:
        return None
    if author_name:
        parts = [p for p in re.split(r"[^a-z]+", author_name.lower()) if len(p) >= 3]
        for h in handles:
            if any(p in h for p in parts):
                return f"@{h}"
    return f"@{handles[0]}"


def _format_phone(raw: str) -> Optional[str]:
    digits = re.sub(r"\D", "", raw)
    if len(digits) < 10:
        return None
    d = digits[-10:]
    return f"({d[:3]}) {d[3:6]}-{d[6:]}"


def extract_phone(html: str, text: str) -> Optional[str]:
    m = _PHONE_RE.search(text)
    if m:
        phone = _format_phone(m.group(0))
        if phone:
            return phone
    m = _TEL_HREF_RE.search(html)
    if m:
        return _format_phone(m.group(1))
    return None


def extract_linkedin(html: str, text: str = "") -> Optional[str]:
    """Only URLs present in the page; never guessed from the author name."""
    m = _LINKEDIN_HREF_RE.search(html)
    if m:
        return m.group(1)
    for source in (html, text):
        m = _LINKEDIN_TEXT_RE.search(source)
        if m:
            return f"https://linkedin.com/in/{m.group(1)}"
    return None


def extract_journalist(
    html: Optional[str],
    text: Optional[str],
    outlet: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[Byline]:
    html = html if isinstance(html, str) else ""
    text = text if isinstance(text, str) else ""
    name = extract_byline(html, text, metadata)
    if not name:
        return None
    email = None
    if isinstance(metadata, dict) and isinstance(metadata.get("author_email"), str):
        email = metadata["author_email"]
    return Byline(
        name=name,
        outlet=outlet or None,
        email=email or extract_email(html, text),
        phone=extract_phone(html, text),
        twitter=extract_twitter(html, text, name),
        linkedin=extract_linkedin(html, text),
    )


def extract_author_info(authors: Sequence[Any]) -> Dict[str, Optional[str]]:
    """Pick the reporter from a NewsAPI.ai author list.

    Agencies and generic names are skipped. The author `uri` often encodes an
    email as `first_last@outlet.com`.
    """
    for a in authors or []:
        if not isinstance(a, dict) or a.get("isAgency"):
            continue
        name = clean_name(a.get("name"))
        lower = name.lower()
        if any(re.search(r"\b" + re.escape(g) + r"\b", lower) for g in AGENCY_NAMES):
            continue
        if not is_valid_name(name):
            continue
        uri = a.get("uri") if isinstance(a.get("uri"), str) else ""
        email = uri.replace("_", ".") if "@" in uri else None
        return {"name": name, "email": email}
    return {"name": None, "email": None}
