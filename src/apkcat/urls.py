"""URL helpers.

Repository addresses are configured by users in many shapes:

- https://f-droid.org/repo
- https://f-droid.org/repo/
- f-droid.org/repo

Index and package URLs are always built as ``{repo}/{file}``, so the
repository address is normalized once: scheme added when missing, trailing
slashes dropped.
"""

from __future__ import annotations

from urllib.parse import urlparse

INDEX_FILE_NAME = "index-v1.jar"


def _ensure_scheme(url: str) -> str:
    url = (url or "").strip()
    if not url:
        return url
    # Allow "example.org/repo" style inputs.
    if "://" not in url:
        return "https://" + url
    return url


def normalize_repo_url(url: str) -> str:
    """Return a repository address with a scheme and no trailing slash."""
    u = urlparse(_ensure_scheme(url))
    if not u.scheme:
        return ""
    return f"{u.scheme}://{u.netloc}{u.path}".rstrip("/")


def index_url(repo_url: str, file_name: str = INDEX_FILE_NAME) -> str:
    """URL of a repository's index container."""
    return f"{normalize_repo_url(repo_url)}/{file_name}"
