"""
Generation of locale-specific JavaScript bundles.

Each locale's ``i18n`` script is rendered by the web application, fetched
either over HTTP or in-process through a Flask test client, minified and
written to ``public/javascripts/locales/<locale>/i18n.min.js``.
"""

import importlib
import logging

import requests

from asset_paths import locale_path
from bundler import write_atomic
from errors import AssetError, ConfigurationError, PageFetchError
from minify import get_minifier, run_minifier
from models import LocaleResult

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:3000"
LOCALE_REQUEST_PATH = "/javascripts/i18n.{locale}.js"


class HttpPageFetcher:
    """Fetch rendered pages from a running application over HTTP."""

    def __init__(self, host=DEFAULT_HOST, timeout=10):
        """
        Initialize the fetcher.

        Args:
            host (str): Base URL of the application
            timeout (int): Request timeout in seconds
        """
        if not host or not host.strip():
            raise ConfigurationError("A host is required to fetch locale pages")
        self.host = host.strip().rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "asset-tasks/1.0",
            "Accept": "application/javascript, text/javascript, */*",
        })

    def fetch(self, request_path):
        """Return the body of ``request_path`` as text."""
        url = f"{self.host}{request_path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise PageFetchError(f"Could not fetch {url}: {e}") from e
        try:
            if not response.ok:
                raise PageFetchError(f"Could not fetch {url}: status code {response.status_code}")
            return response.text
        finally:
            response.close()

    def close(self):
        self.session.close()


class AppPageFetcher:
    """Fetch rendered pages from a Flask application in-process."""

    def __init__(self, app):
        self.app = app
        self.client = app.test_client()

    @classmethod
    def from_import_path(cls, import_path):
        """Build a fetcher from ``"module:attribute"``, e.g. ``"App:app"``."""
        module_name, _, attribute = import_path.partition(":")
        if not module_name:
            raise ConfigurationError(f"Invalid application path {import_path!r}; expected module:attribute")
        module = importlib.import_module(module_name)
        try:
            app = getattr(module, attribute or "app")
        except AttributeError:
            raise ConfigurationError(f"Module {module_name} has no application named {attribute or 'app'!r}")
        return cls(app)

    def fetch(self, request_path):
        response = self.client.get(request_path)
        try:
            if response.status_code >= 400:
                raise PageFetchError(f"Could not fetch {request_path}: status code {response.status_code}")
            return response.get_data(as_text=True)
        finally:
            response.close()

    def close(self):
        pass


def generate_locale(locale, fetcher, public_dir="public", minifier=None):
    """
    Generate the minified i18n bundle for one locale.

    Args:
        locale (str): Locale code, e.g. ``"en"``
        fetcher: Object with a ``fetch(request_path) -> str`` method
        public_dir (str): Root of the public assets
        minifier (callable, optional): JS minifier; defaults to jsmin

    Returns:
        str: Path of the written file
    """
    if not locale or not str(locale).strip():
        raise ConfigurationError("A locale is required to generate locale assets")
    locale = str(locale).strip()
    minifier = minifier or get_minifier("js")

    request_path = LOCALE_REQUEST_PATH.format(locale=locale)
    target = locale_path(locale, public_dir)
    body = fetcher.fetch(request_path)
    output = run_minifier(minifier, body, request_path)
    write_atomic(target, output)
    logger.info(f"- Generated {target}")
    return target


def generate_locales(locales, fetcher, public_dir="public", minifier=None):
    """
    Generate i18n bundles for every locale in ``locales``.

    Each locale is generated independently; failures are logged and
    collected instead of stopping the batch.

    Returns:
        list[LocaleResult]: One result per locale, in input order
    """
    results = []
    for locale in locales:
        try:
            target = generate_locale(locale, fetcher, public_dir=public_dir, minifier=minifier)
        except (AssetError, OSError) as e:
            logger.error(f"Could not generate locale assets for {locale}: {e}")
            results.append(LocaleResult(locale=locale, error=str(e)))
            continue
        results.append(LocaleResult(locale=locale, path=target))

    failed = [r.locale for r in results if not r.ok]
    if failed:
        logger.warning(f"{len(failed)} of {len(results)} locales failed: {', '.join(failed)}")
    return results
