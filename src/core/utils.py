"""
Shared utilities.
"""
import re
from typing import Optional

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_WWW_RE = re.compile(r"^(www\.)+")


def normalize_domain(url: Optional[str]) -> str:
    """
    Normalize a website/URL into a domain key.

    - Lowercase, strip scheme, credentials, port, path, query and fragment
    - Strip any leading "www." prefix

    "https://WWW.Example.com/" and "example.com" both become "example.com".
    Applying it to its own output is a no-op. None/empty become "".
    """
    if not url:
        return ""

    s = url.strip().lower()
    s = _SCHEME_RE.sub("", s)
    s = s.lstrip("/")

    for sep in ("/", "?", "#"):
        s = s.split(sep, 1)[0]

    s = s.rsplit("@", 1)[-1]
    s = s.split(":", 1)[0]
    s = _WWW_RE.sub("", s)

    return s.strip(".")


def ensure_scheme(url: str) -> str:
    """Prefix bare domains with https:// so they can be fetched."""
    url = url.strip()
    if _SCHEME_RE.match(url.lower()):
        return url
    return f"https://{url.lstrip('/')}"


def build_favicon_url(website: Optional[str]) -> Optional[str]:
    """Google favicon service URL (64px) for a website, or None when there is no host."""
    domain = normalize_domain(website)
    if not domain:
        return None
    return f"https://www.google.com/s2/favicons?sz=64&domain_url={domain}"


def normalize_string(value) -> Optional[str]:
    """Trimmed string, or None for non-strings and blanks."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def strip_code_fences(content: str) -> str:
    """Remove ```json fences LLMs wrap around JSON payloads."""
    trimmed = content.strip()
    if trimmed.startswith("```"):
        return trimmed.replace("```json", "").replace("```JSON", "").replace("```", "").strip()
    return trimmed
