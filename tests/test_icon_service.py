import base64
from unittest.mock import patch

import pytest

from miniapp_assets.models import ICON_DIMENSIONS
from miniapp_assets.services.icon_service import (
    FLUX_MODEL,
    MAX_SEED,
    IconGenerationError,
    IconService,
    build_icon_prompt,
    is_rate_limit_error,
)
from miniapp_assets.services.manifest_service import ManifestService
from miniapp_assets.utils.config import ConfigError
from conftest import make_response, read_manifest

ICON_BYTES = b"\x89PNG\r\n\x1a\nicon"
ICON_B64 = base64.b64encode(ICON_BYTES).decode()


@pytest.fixture
def service(images_dir):
    return IconService("tg-key", api_base="https://api.together.example/v1/", images_dir=images_dir)


def test_prompt_contains_quoted_app_name():
    prompt = build_icon_prompt("Foo")
    assert "'Foo'" in prompt
    assert prompt.startswith("Create a clean, minimalist app icon")


def test_payload(service):
    payload = service.build_payload("a prompt", ICON_DIMENSIONS, seed=42)
    assert payload == {
        "model": FLUX_MODEL["id"],
        "prompt": "a prompt",
        "width": 208,
        "height": 208,
        "steps": 4,
        "n": 1,
        "seed": 42,
        "response_format": "b64_json",
    }


def test_payload_random_seed_in_range(service):
    seeds = {service.build_payload("p", ICON_DIMENSIONS)["seed"] for _ in range(50)}
    assert all(0 <= s < MAX_SEED for s in seeds)


@patch("miniapp_assets.services.icon_service.requests.post")
def test_generate_icon_writes_png(mock_post, service, images_dir):
    mock_post.return_value = make_response(json_data={"data": [{"b64_json": ICON_B64}]})

    asset = service.generate_icon("p")

    assert asset.filename.startswith("flux-icon-") and asset.filename.endswith(".png")
    assert (images_dir / asset.filename).read_bytes() == ICON_BYTES
    args, kwargs = mock_post.call_args
    assert args[0] == "https://api.together.example/v1/images/generations"
    assert kwargs["headers"]["Authorization"] == "Bearer tg-key"


@patch("miniapp_assets.services.icon_service.requests.post")
def test_empty_result_raises_without_writing(mock_post, service, images_dir):
    mock_post.return_value = make_response(json_data={"data": []})

    with pytest.raises(IconGenerationError, match="No image data received from API"):
        service.generate_icon("p")
    assert not images_dir.exists()


@patch("miniapp_assets.services.icon_service.requests.post")
def test_missing_base64_raises(mock_post, service, images_dir):
    mock_post.return_value = make_response(json_data={"data": [{"url": "https://cdn/x.png"}]})

    with pytest.raises(IconGenerationError, match="No base64 image data in response"):
        service.generate_icon("p")
    assert not images_dir.exists()


@patch("miniapp_assets.services.icon_service.download_image")
@patch("miniapp_assets.services.icon_service.requests.post")
def test_url_response_format_downloads(mock_post, mock_download, service, images_dir):
    mock_post.return_value = make_response(json_data={"data": [{"url": "https://cdn/x.png"}]})

    service.generate_icon("p", response_format="url")

    assert mock_post.call_args.kwargs["json"]["response_format"] == "url"
    url, filename, target = mock_download.call_args.args
    assert url == "https://cdn/x.png"
    assert filename.startswith("flux-icon-")
    assert target == images_dir


@patch("miniapp_assets.services.icon_service.requests.post")
def test_http_429_is_rate_limit(mock_post, service):
    mock_post.return_value = make_response(status_code=429, reason="Too Many Requests", text="slow down")

    with pytest.raises(IconGenerationError) as excinfo:
        service.generate_icon("p")

    assert excinfo.value.status_code == 429
    assert is_rate_limit_error(excinfo.value)


def test_is_rate_limit_error():
    assert is_rate_limit_error(RuntimeError("Rate limit exceeded"))
    assert not is_rate_limit_error(RuntimeError("500 Internal Server Error"))


@patch("miniapp_assets.services.icon_service.requests.post")
def test_run_builds_prompt_from_manifest(mock_post, service, images_dir, manifest_path):
    (images_dir).mkdir(parents=True)
    (images_dir / "flux-icon-old.png").write_bytes(b"old")
    mock_post.return_value = make_response(json_data={"data": [{"b64_json": ICON_B64}]})

    asset = service.run(ManifestService(manifest_path), app_domain="fallback.example")

    sent_prompt = mock_post.call_args.kwargs["json"]["prompt"]
    assert "'Foo'" in sent_prompt
    assert [p.name for p in images_dir.iterdir()] == [asset.filename]
    assert read_manifest(manifest_path)["miniapp"]["iconUrl"] == f"https://old.example/images/{asset.filename}"


@patch("miniapp_assets.services.icon_service.requests.post")
def test_run_custom_prompt_and_missing_manifest(mock_post, service, tmp_path):
    mock_post.return_value = make_response(json_data={"data": [{"b64_json": ICON_B64}]})

    service.run(ManifestService(tmp_path / "missing.json"), custom_prompt="a rocket")

    assert mock_post.call_args.kwargs["json"]["prompt"] == "a rocket"


def test_from_config_requires_api_key(project_dir):
    with pytest.raises(ConfigError, match="TOGETHER_API_KEY"):
        IconService.from_config()


@patch("miniapp_assets.services.icon_service.requests.post")
def test_non_list_data_raises_without_writing(mock_post, service, images_dir):
    mock_post.return_value = make_response(json_data={"data": {"b64_json": ICON_B64}})

    with pytest.raises(IconGenerationError, match="No image data received from API"):
        service.generate_icon("p")
    assert not images_dir.exists()
