"""Minifier engines for stylesheets and scripts."""

import logging
import re
import shutil
import subprocess

from cssmin import cssmin
from jsmin import jsmin

from errors import ConfigurationError, MinificationError

logger = logging.getLogger(__name__)

DEFAULT_ENGINES = {
    "css": "cssmin",
    "js": "jsmin",
}


def _has_uglify():
    return shutil.which("uglifyjs") is not None


def weak_minify_css(content):
    """Strip comments and collapse whitespace without touching declarations."""
    # Keep /*! ... */ license comments
    content = re.sub(r"/\*(?!!)[\s\S]*?\*/", "", content)
    content = re.sub(r"\s+", " ", content)
    content = re.sub(r"\s*([{};,])\s*", r"\1", content)
    content = re.sub(r"\s*:\s*", ":", content)
    content = re.sub(r";}", "}", content)
    return content.strip()


def uglify_js(content):
    """Minify JS with uglify-js if available or the jsmin fallback."""
    if not _has_uglify():
        logger.debug("uglifyjs not found, using jsmin")
        return jsmin(content)
    result = subprocess.run(
        ["uglifyjs", "-c", "-m"],
        input=content,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


ENGINES = {
    "css": {
        "cssmin": cssmin,
        "weak": weak_minify_css,
    },
    "js": {
        "jsmin": jsmin,
        "uglifyjs": uglify_js,
    },
}


def get_engine(kind, name=None):
    """
    Return the minifier callable for ``kind``.

    Args:
        kind (str): ``"css"`` or ``"js"``
        name (str, optional): Engine name; defaults to the kind's default engine

    Raises:
        ConfigurationError: If the kind or engine is unknown
    """
    engines = ENGINES.get(kind)
    if engines is None:
        raise ConfigurationError(f"No minifiers available for asset kind {kind!r}")
    name = name or DEFAULT_ENGINES[kind]
    try:
        return engines[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown {kind.upper()} engine {name!r}; expected one of {', '.join(sorted(engines))}"
        )


def get_minifier(kind, config=None):
    """Return the minifier configured for ``kind``; other kinds' engines are not checked."""
    section = (config or {}).get(kind) or {}
    return get_engine(kind, section.get("engine"))


def get_minifiers(config=None):
    """Return ``{kind: minify(text) -> text}`` for the engines chosen in ``config``."""
    return {kind: get_minifier(kind, config) for kind in ENGINES}


def run_minifier(minifier, content, source):
    """Call ``minifier`` on ``content`` and wrap any failure with the source path."""
    try:
        return minifier(content)
    except Exception as e:
        raise MinificationError(f"Failed to minify {source}: {e}") from e
