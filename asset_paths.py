"""Path helpers for source assets, bundles and their minified outputs."""

import os
import re

from errors import ConfigurationError

# Directory under ``public_dir`` holding each asset kind
KIND_DIRECTORIES = {
    "css": "stylesheets",
    "js": "javascripts",
}

BUNDLES_DIRNAME = "bundles"
LOCALES_DIRNAME = "locales"


def derive_min_path(original_path, extension):
    """
    Return the path of the minified counterpart of ``original_path``.

    ``css/app.css`` becomes ``css/app.min.css``. Paths that already carry a
    ``.min`` marker, or that do not end in ``.<extension>``, come back
    unchanged, so applying this twice is the same as applying it once.

    Args:
        original_path (str): Source path
        extension (str): Extension without the dot, e.g. ``"css"``

    Returns:
        str: Minified path
    """
    directory, filename = os.path.split(original_path)
    suffix = f".{extension}"
    if not filename.endswith(suffix) or filename == suffix:
        return original_path
    stem = filename[: -len(suffix)]
    if stem.endswith(".min"):
        return original_path
    return os.path.join(directory, f"{stem}.min{suffix}")


def is_minified(path, extension):
    """Return True if ``path`` names an already-minified ``extension`` file."""
    return re.search(rf"\.min\.{re.escape(extension)}$", os.path.basename(path)) is not None


def base_dir(kind, public_dir="public"):
    """Return the directory holding source files of ``kind``."""
    try:
        return os.path.join(public_dir, KIND_DIRECTORIES[kind])
    except KeyError:
        raise ConfigurationError(f"Unknown asset kind {kind!r}; expected one of {sorted(KIND_DIRECTORIES)}")


def source_path(kind, logical_name, public_dir="public"):
    """Map a logical name from ``assets.yml`` to its file path."""
    return os.path.join(base_dir(kind, public_dir), f"{logical_name}.{kind}")


def bundle_path(kind, bundle_name, public_dir="public"):
    """Return the output path of a bundle, e.g. ``public/stylesheets/bundles/app.min.css``."""
    path = os.path.join(base_dir(kind, public_dir), BUNDLES_DIRNAME, f"{bundle_name}.{kind}")
    return derive_min_path(path, kind)


def locale_path(locale, public_dir="public"):
    """Return the output path of a locale's i18n bundle."""
    path = os.path.join(base_dir("js", public_dir), LOCALES_DIRNAME, locale, "i18n.js")
    return derive_min_path(path, "js")
