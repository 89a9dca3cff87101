"""
Rewriting of ``url(...)`` references inside stylesheets.

Two passes are provided: stamping each local asset with its modification
time for cache busting, and prefixing local assets with an asset host such
as a CDN origin. Only the reference inside each ``url(...)`` token changes;
quotes, whitespace and the rest of the stylesheet are left as they were.
"""

import logging
import os
import re
from urllib.parse import unquote

from errors import ConfigurationError, MissingAssetReferenceError

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"""url\(\s*(?P<quote>['"]?)(?P<ref>[^'"()\n]*?)(?P=quote)\s*\)""", re.IGNORECASE)
SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
MTIME_QUERY_PATTERN = re.compile(r"^\d+$")


def is_local_reference(ref):
    """Return True if ``ref`` points at a file served by the application itself."""
    ref = ref.strip()
    if not ref or ref.startswith(("//", "#")):
        return False
    return SCHEME_PATTERN.match(ref) is None


def split_reference(ref):
    """Split a reference into ``(path, query, fragment)``; missing parts are ``None``."""
    path, hash_mark, fragment = ref.partition("#")
    path, question_mark, query = path.partition("?")
    return path, (query if question_mark else None), (fragment if hash_mark else None)


def join_reference(path, query=None, fragment=None):
    ref = path
    if query is not None:
        ref += f"?{query}"
    if fragment is not None:
        ref += f"#{fragment}"
    return ref


def resolve_asset_path(path, base_dir=".", public_dir="public"):
    """Map a reference path to the file on disk.

    Root-relative paths (``/images/x.png``) live under ``public_dir``; other
    paths are relative to the stylesheet's directory.
    """
    path = unquote(path)
    if path.startswith("/"):
        return os.path.join(public_dir, path.lstrip("/"))
    return os.path.join(base_dir, path)


def asset_mtime(ref, base_dir=".", public_dir="public"):
    """
    Return the modification time of the file behind ``ref`` as an int.

    Raises:
        MissingAssetReferenceError: If the file does not exist
    """
    path, _, _ = split_reference(ref)
    filepath = resolve_asset_path(path, base_dir, public_dir)
    try:
        return int(os.path.getmtime(filepath))
    except OSError:
        raise MissingAssetReferenceError(ref, filepath)


def _rewrite_references(css, rewrite):
    """Apply ``rewrite(ref) -> ref`` to every ``url()`` reference in ``css``."""

    def replace(match):
        ref = match.group("ref")
        new_ref = rewrite(ref)
        if new_ref == ref:
            return match.group(0)
        text = match.group(0)
        start = match.start("ref") - match.start(0)
        end = match.end("ref") - match.start(0)
        return text[:start] + new_ref + text[end:]

    return URL_PATTERN.sub(replace, css)


def add_asset_mtimes(css, base_dir=".", public_dir="public"):
    """
    Append ``?<mtime>`` to every local asset referenced by ``css``.

    A timestamp added by an earlier run is replaced. References whose file
    cannot be found, or which already carry some other query string, are
    left untouched.

    Args:
        css (str): Stylesheet source
        base_dir (str): Directory that relative references resolve against
        public_dir (str): Directory that root-relative references resolve against

    Returns:
        str: Stylesheet with stamped references
    """

    def stamp(ref):
        if not is_local_reference(ref):
            return ref
        path, query, fragment = split_reference(ref)
        if query is not None and not MTIME_QUERY_PATTERN.match(query):
            logger.debug("Skipping %s: already has a query string", ref)
            return ref
        try:
            mtime = asset_mtime(path, base_dir, public_dir)
        except MissingAssetReferenceError as e:
            logger.debug("Skipping mtime for %s", e)
            return ref
        return join_reference(path, str(mtime), fragment)

    return _rewrite_references(css, stamp)


def add_asset_hosts(css, host):
    """
    Prefix every local asset referenced by ``css`` with ``host``.

    Args:
        css (str): Stylesheet source
        host (str): Asset host, e.g. ``http://cdn.example.com``

    Returns:
        str: Stylesheet with absolute references

    Raises:
        ConfigurationError: If ``host`` is blank
    """
    if host is None or not str(host).strip():
        raise ConfigurationError("An asset host is required to add asset hosts")
    host = str(host).strip().rstrip("/")

    def prefix(ref):
        if not is_local_reference(ref):
            return ref
        return f"{host}/{ref.lstrip('/')}"

    return _rewrite_references(css, prefix)


__all__ = [
    "add_asset_mtimes",
    "add_asset_hosts",
    "asset_mtime",
    "is_local_reference",
    "resolve_asset_path",
]
