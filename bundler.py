"""
Bundle assembly: concatenating, minifying and post-processing assets.
"""

import logging
import os
import stat
import tempfile

from asset_paths import base_dir, bundle_path, derive_min_path, is_minified, source_path
from config import get_bundle_filenames, get_bundle_names
from css_urls import add_asset_hosts, add_asset_mtimes
from errors import AssetEncodingError, AssetError, ConfigurationError
from minify import get_minifier, run_minifier
from models import AssetFile, Bundle, BundleRunResult, FileResult, format_percent

logger = logging.getLogger(__name__)

KIND_LABELS = {"css": "CSS", "js": "JS"}


def read_asset(kind, path):
    """Read a source file as an :class:`AssetFile`."""
    with open(path, "rb") as f:
        raw = f.read()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AssetEncodingError(f"{path} is not valid UTF-8: {e}") from e
    return AssetFile(kind=kind, path=path, content=content)


def _target_mode(path):
    # Existing files keep their mode; new files get the umask default
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_atomic(path, data):
    """
    Write ``data`` to ``path`` via a temporary file and rename.

    Parent directories are created as needed. The written file has the
    mode ``path`` already had, or the umask default for a new file.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    mode = _target_mode(path)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=os.path.basename(path))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def process_asset(asset, minifier, public_dir="public", asset_host=None):
    """
    Minify one asset and, for stylesheets, rewrite its asset URLs.

    Scripts already named ``*.min.js`` are passed through unchanged.

    Returns:
        str: Processed content
    """
    content = asset.content
    if asset.kind == "js" and is_minified(asset.path, "js"):
        logger.debug("%s is already minified", asset.path)
    else:
        content = run_minifier(minifier, content, asset.path)

    if asset.kind == "css":
        stylesheet_dir = os.path.dirname(asset.path) or "."
        content = add_asset_mtimes(content, base_dir=stylesheet_dir, public_dir=public_dir)
        if asset_host:
            content = add_asset_hosts(content, asset_host)
    return content


def assemble_bundle(kind, bundle_name, config, public_dir="public", asset_host=None, minifiers=None):
    """
    Build a bundle in memory from its configured member files.

    Args:
        kind (str): ``"css"`` or ``"js"``
        bundle_name (str): Bundle name from ``assets.yml``
        config (dict): Loaded asset configuration
        public_dir (str): Root of the public assets
        asset_host (str, optional): Host prefixed onto stylesheet URLs
        minifiers (dict, optional): ``{kind: minify(text) -> text}`` overrides

    Returns:
        Bundle: Unpacks as ``(output_bytes, old_size, new_size, member_paths)``

    Raises:
        ConfigurationError: If the bundle is undefined or empty
        MinificationError: If a member fails to minify
        OSError: If a member cannot be read
    """
    base_dir(kind, public_dir)  # rejects unknown kinds
    filenames = get_bundle_filenames(config, kind, bundle_name)
    minifier = minifiers[kind] if minifiers else get_minifier(kind, config)

    bundle = Bundle(name=bundle_name, kind=kind)
    for filename in filenames:
        path = source_path(kind, filename, public_dir)
        asset = read_asset(kind, path)
        content = process_asset(asset, minifier, public_dir=public_dir, asset_host=asset_host)
        bundle.add(path, asset.size, content)
    return bundle


def write_bundle(bundle, public_dir="public"):
    """Write an assembled bundle to its output path and return that path."""
    target = bundle_path(bundle.kind, bundle.name, public_dir)
    write_atomic(target, bundle.output)
    return target


def log_bundle_summary(bundle, target):
    label = KIND_LABELS[bundle.kind]
    logger.info(f"Wrote {label} bundle: {target}")
    for path in bundle.member_paths:
        logger.info(f"        contains: {path}")
    if bundle.percent_saved is not None:
        logger.info(f"        MINIFIED: {format_percent(bundle.percent_saved)}")


def minify_bundle(kind, bundle_name, config, public_dir="public", asset_host=None, minifiers=None):
    """
    Assemble one bundle, write it and report what was written.

    Nothing is written when assembly fails.

    Returns:
        tuple: ``(target_path, bundle)``
    """
    bundle = assemble_bundle(
        kind, bundle_name, config, public_dir=public_dir, asset_host=asset_host, minifiers=minifiers
    )
    target = write_bundle(bundle, public_dir)
    log_bundle_summary(bundle, target)
    return target, bundle


def minify_all(kind, config, public_dir="public", asset_host=None, minifiers=None):
    """
    Build every bundle of ``kind`` defined in ``config``.

    A failing bundle is logged and recorded; the remaining bundles are still
    built.

    Returns:
        list[BundleRunResult]: One result per bundle, in config order
    """
    if minifiers is None:
        minifiers = {kind: get_minifier(kind, config)}

    results = []
    for name in get_bundle_names(config, kind):
        try:
            target, bundle = minify_bundle(
                kind, name, config, public_dir=public_dir, asset_host=asset_host, minifiers=minifiers
            )
        except (AssetError, OSError) as e:
            logger.error(f"Could not build {KIND_LABELS[kind]} bundle {name}: {e}")
            results.append(BundleRunResult(name=name, error=str(e)))
            continue
        results.append(BundleRunResult(name=name, path=target, bundle=bundle))

    failed = [r.name for r in results if not r.ok]
    if failed:
        logger.warning(f"{len(failed)} of {len(results)} {KIND_LABELS[kind]} bundles failed: {', '.join(failed)}")
    return results


def minify_file(kind, path, minifiers=None):
    """
    Minify a single file to its ``.min`` counterpart.

    Returns:
        FileResult or None: ``None`` when ``path`` is already minified

    Raises:
        ConfigurationError: If ``path`` lacks the kind's extension, so its
            ``.min`` path would be ``path`` itself; the file is not touched
    """
    if is_minified(path, kind):
        logger.warning(f"{path} is already minified.")
        return None
    if minifiers is None:
        minifiers = {kind: get_minifier(kind)}
    if kind not in minifiers:
        raise ConfigurationError(f"Unknown asset kind {kind!r}")
    target = derive_min_path(path, kind)
    if target == path:
        raise ConfigurationError(f"{path} does not end in .{kind}; refusing to overwrite it")

    asset = read_asset(kind, path)
    output = run_minifier(minifiers[kind], asset.content, path)
    write_atomic(target, output)

    result = FileResult(source=path, target=target, old_size=asset.size, new_size=len(output.encode("utf-8")))
    logger.info(f"- Minified to {target} ({format_percent(result.percent_saved)} saved)")
    return result


def add_asset_mtimes_to_file(path, public_dir="public"):
    """Stamp asset mtimes into a stylesheet in place."""
    css = read_asset("css", path).content
    css = add_asset_mtimes(css, base_dir=os.path.dirname(path) or ".", public_dir=public_dir)
    write_atomic(path, css)
    logger.info(f"- Added asset mtimes to {path}")
    return path


def add_asset_hosts_to_file(path, host, environment=None):
    """
    Prefix asset URLs in a stylesheet with ``host`` in place.

    Raises:
        ConfigurationError: If ``host`` is blank; the file is not touched
    """
    if host is None or not str(host).strip():
        label = f"This environment ({environment})" if environment else "This environment"
        raise ConfigurationError(f"{label} doesn't have an asset host configured.")
    css = read_asset("css", path).content
    write_atomic(path, add_asset_hosts(css, host))
    logger.info(f"- Added asset hosts to {path}")
    return path
