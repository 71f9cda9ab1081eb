"""
Pytest configuration and shared fixtures.
"""
import json
import os
import sys
from unittest.mock import MagicMock

import pytest

# Ensure src is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from miniapp_assets.utils.config import AssetConfig  # noqa: E402

ENV_VARS = [
    "SCREENSHOT_URL",
    "BROWSERLESS_API_URL",
    "BROWSERLESS_TOKEN",
    "NEXT_PUBLIC_APP_DOMAIN",
    "TOGETHER_API_KEY",
    "TOGETHER_API_BASE",
    "SCREENSHOT_DELAY_SECONDS",
    "SCREENSHOT_READY_TEXT",
    "SCREENSHOT_READY_TIMEOUT_MS",
    "MINIAPP_ASSETS_REQUEST_TIMEOUT",
    "MINIAPP_ASSETS_DEBUG",
]

SAMPLE_MANIFEST = {
    "accountAssociation": {
        "header": "eyJmaWQiOjEyMzR9",
        "payload": "eyJkb21haW4iOiJvbGQuZXhhbXBsZSJ9",
        "signature": "0xabc",
    },
    "miniapp": {
        "version": "1",
        "name": "Foo",
        "iconUrl": "https://old.example/images/flux-icon-old.png",
        "homeUrl": "https://old.example",
        "imageUrl": "https://old.example/images/screenshot-embed-old.png",
        "buttonTitle": "Launch",
        "splashImageUrl": "https://old.example/images/screenshot-splash-old.png",
        "splashBackgroundColor": "#000000",
        "webhookUrl": "https://old.example/api/webhook",
    },
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from the developer's shell and .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(AssetConfig, "_env_loaded", True)


@pytest.fixture
def project_dir(tmp_path, monkeypatch):
    """
    A Mini App checkout with public/.well-known/farcaster.json and no images yet.
    The working directory is switched to it for the duration of the test.
    """
    well_known = tmp_path / "public" / ".well-known"
    well_known.mkdir(parents=True)
    (well_known / "farcaster.json").write_text(json.dumps(SAMPLE_MANIFEST, indent=2), encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def manifest_path(project_dir):
    return project_dir / "public" / ".well-known" / "farcaster.json"


@pytest.fixture
def images_dir(project_dir):
    return project_dir / "public" / "images"


def read_manifest(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def make_response(status_code=200, content=b"", headers=None, json_data=None, text="", reason="OK"):
    """Builds a stand-in for requests.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.reason = reason
    resp.content = content
    resp.text = text
    resp.headers = headers or {}
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = json_data
    return resp
