import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so tests can import modules
ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))


def write_file(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def public_dir(tmp_path):
    """An empty ``public`` tree with stylesheet and script directories."""
    public = tmp_path / "public"
    (public / "stylesheets").mkdir(parents=True)
    (public / "javascripts").mkdir(parents=True)
    return public


@pytest.fixture(autouse=True)
def clean_asset_env(monkeypatch):
    for name in ("ASSET_HOST", "ASSET_ENV", "APP_ENV"):
        monkeypatch.delenv(name, raising=False)
