#!/usr/bin/env python3
"""
Command-line tasks for building CSS/JS bundles and locale assets.

Examples:
    asset-tasks minify
    asset-tasks css minify-bundle application
    asset-tasks js minify-file public/javascripts/app.js
    asset-tasks css add-asset-hosts public/stylesheets/app.css --host http://cdn.example.com
    asset-tasks locales generate --host http://localhost:3000
"""

import argparse
import logging
import os
import sys

import bundler
import config as config_module
import locales as locales_module
from app_setup import configure_logging
from errors import AssetError, ConfigurationError
from minify import get_minifier

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog="asset-tasks", description="Build CSS/JS bundles and locale assets")
    parser.add_argument("--config", type=str, help="Path to assets.yml (default: config/assets.yml)")
    parser.add_argument("--public-dir", type=str, help="Root of the public assets (default: public)")
    parser.add_argument("--env", type=str, help="Environment used to look up the asset host")
    parser.add_argument("--log-dir", type=str, help="Also write a rotating log file to this directory")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    commands = parser.add_subparsers(dest="namespace", required=True)
    commands.add_parser("minify", help="Minify all CSS and JS bundles")

    css = commands.add_parser("css", help="Stylesheet tasks").add_subparsers(dest="task", required=True)
    css.add_parser("minify", help="Concatenate and minify all CSS bundles")
    css.add_parser("minify-bundle", help="Minify one CSS bundle").add_argument("bundle")
    css.add_parser("minify-file", help="Minify one CSS file").add_argument("filepath")
    css.add_parser("add-asset-mtimes", help="Add mtimes to asset URLs in CSS").add_argument("filename")
    hosts = css.add_parser("add-asset-hosts", help="Add hosts to asset URLs in CSS")
    hosts.add_argument("filename")
    hosts.add_argument("--host", type=str, help="Asset host (default: configured for the environment)")

    js = commands.add_parser("js", help="JavaScript tasks").add_subparsers(dest="task", required=True)
    js.add_parser("minify", help="Concatenate and minify all JS bundles")
    js.add_parser("minify-bundle", help="Minify one JS bundle").add_argument("bundle")
    js.add_parser("minify-file", help="Minify one JS file").add_argument("filepath")

    loc = commands.add_parser("locales", help="Locale asset tasks").add_subparsers(dest="task", required=True)
    generate = loc.add_parser("generate", help="Generate locale-specific assets for all locales")
    generate_for = loc.add_parser("generate-for", help="Generate locale-specific assets for one locale")
    generate_for.add_argument("locale")
    for sub in (generate, generate_for):
        source = sub.add_mutually_exclusive_group()
        source.add_argument("--host", type=str, help=f"Application host (default: {locales_module.DEFAULT_HOST})")
        source.add_argument("--app", type=str, help="Render pages in-process from a Flask app, e.g. App:app")

    return parser.parse_args(argv)


class TaskContext:
    """Settings shared by every task of one invocation."""

    def __init__(self, args):
        self.args = args
        self.config_path = args.config or config_module.CONFIG_FILE
        self.environment = args.env or config_module.get_environment()
        self._config = None

    @property
    def config(self):
        if self._config is None:
            self._config = config_module.load_config(self.config_path)
        return self._config

    @property
    def optional_config(self):
        """The loaded config, or an empty one when no assets.yml exists.

        Single-file and locale tasks run without a config file unless one
        was passed explicitly.
        """
        if self.args.config or os.path.exists(self.config_path):
            return self.config
        return {}

    @property
    def public_dir(self):
        if self.args.public_dir:
            return self.args.public_dir
        return config_module.get_public_dir(self.optional_config)

    @property
    def asset_host(self):
        return config_module.get_asset_host(self.optional_config, self.environment)


def _report_batch(results):
    return 0 if all(result.ok for result in results) else 1


def run_minify_all(ctx, kind):
    results = bundler.minify_all(kind, ctx.config, public_dir=ctx.public_dir, asset_host=ctx.asset_host)
    return _report_batch(results)


def run_minify_bundle(ctx, kind, name):
    bundler.minify_bundle(kind, name, ctx.config, public_dir=ctx.public_dir, asset_host=ctx.asset_host)
    return 0


def run_minify_file(ctx, kind, path):
    result = bundler.minify_file(kind, path, minifiers={kind: get_minifier(kind, ctx.optional_config)})
    return 0 if result is not None else 1


def run_add_asset_hosts(ctx, path):
    host = ctx.args.host or ctx.asset_host
    bundler.add_asset_hosts_to_file(path, host, environment=ctx.environment)
    return 0


def _locale_fetcher(args):
    if args.app:
        return locales_module.AppPageFetcher.from_import_path(args.app)
    return locales_module.HttpPageFetcher(args.host or locales_module.DEFAULT_HOST)


def run_locales(ctx, locale=None):
    locales = [locale] if locale is not None else config_module.get_locales(ctx.config)
    if not locales:
        raise ConfigurationError(f"No locales are listed in {ctx.config_path}.")
    minifier = get_minifier("js", ctx.optional_config)
    fetcher = _locale_fetcher(ctx.args)
    try:
        results = locales_module.generate_locales(locales, fetcher, public_dir=ctx.public_dir, minifier=minifier)
    finally:
        fetcher.close()
    return _report_batch(results)


def dispatch(ctx):
    """Run the task selected by the parsed arguments and return an exit code."""
    args = ctx.args
    if args.namespace == "minify":
        css_status = run_minify_all(ctx, "css")
        js_status = run_minify_all(ctx, "js")
        return max(css_status, js_status)

    if args.namespace in ("css", "js"):
        kind = args.namespace
        if args.task == "minify":
            return run_minify_all(ctx, kind)
        if args.task == "minify-bundle":
            return run_minify_bundle(ctx, kind, args.bundle)
        if args.task == "minify-file":
            return run_minify_file(ctx, kind, args.filepath)
        if args.task == "add-asset-mtimes":
            bundler.add_asset_mtimes_to_file(args.filename, public_dir=ctx.public_dir)
            return 0
        if args.task == "add-asset-hosts":
            return run_add_asset_hosts(ctx, args.filename)

    if args.namespace == "locales":
        if args.task == "generate":
            return run_locales(ctx)
        return run_locales(ctx, args.locale)

    raise ConfigurationError(f"Unknown task: {args.namespace} {getattr(args, 'task', '')}".strip())


def main(argv=None):
    """Command-line entry point for the asset tasks."""
    args = parse_arguments(argv)
    level = "DEBUG" if args.debug else ("WARNING" if args.quiet else None)
    configure_logging(args.log_dir, level)

    try:
        return dispatch(TaskContext(args))
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except (AssetError, OSError) as e:
        logger.error(f"Task failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
