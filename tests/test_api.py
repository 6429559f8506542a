from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from conftest import build_config, make_image_bytes
from image_splitter import __version__
from image_splitter.core import SplitService
from image_splitter.errors import ConfigError, FetchError
from image_splitter.logging import JsonLogger
from image_splitter.strategies.native import NativeStrategy


class OfflineStrategy(NativeStrategy):
    def __init__(self, body: bytes | None) -> None:
        super().__init__()
        self.body = body
        self.fetched: list[str] = []

    def fetch(self, url: str, destination: Path) -> None:
        self.fetched.append(url)
        if self.body is None:
            raise FetchError(f"failed to download image: HTTP 404 for {url}")
        destination.write_bytes(self.body)


def build_client(
    storage_root: Path, *, fail_fetch: bool = False, **server: str
) -> tuple[TestClient, io.StringIO]:
    config = build_config(storage_root)
    for key, value in server.items():
        setattr(config.server, key, value)
    body = None if fail_fetch else make_image_bytes(20, 120)
    service = SplitService(config, strategy=OfflineStrategy(body))
    out = io.StringIO()
    app = create_app(config, service=service, logger=JsonLogger(out=out))
    return TestClient(app), out


def test_health_reports_version(storage_root: Path) -> None:
    client, _ = build_client(storage_root)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_split_image_success(storage_root: Path) -> None:
    client, out = build_client(storage_root)
    response = client.post(
        "/split-image",
        json={"url": "comics/p.jpg", "images_prefix": "p", "create_zip": True},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "success"
    assert payload["message"] == "Successfully split image into 3 parts and created zip file"
    assert len(payload["images"]) == 3
    assert payload["zipUrl"].endswith("/p.zip")
    assert (storage_root / payload["zipUrl"]).is_file()
    logged = [json.loads(line) for line in out.getvalue().splitlines()]
    assert logged[-1]["level"] == "INFO"


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"images_prefix": "p"}, "URL is required"),
        ({"url": "a.jpg", "images_prefix": "p", "max_images": -2}, "max_images must be a positive integer"),
        ({"url": "a.jpg"}, "images_prefix is required"),
        ({"url": "a.jpg", "images_prefix": "a/b"}, "images_prefix contains invalid characters"),
    ],
)
def test_split_image_validation_errors(storage_root: Path, body: dict, message: str) -> None:
    client, _ = build_client(storage_root)
    response = client.post("/split-image", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": message}
    assert not any(storage_root.iterdir())


def test_split_image_rejects_malformed_json(storage_root: Path) -> None:
    client, _ = build_client(storage_root)
    response = client.post(
        "/split-image", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON"}


def test_split_image_wrong_method(storage_root: Path) -> None:
    client, _ = build_client(storage_root)
    response = client.get("/split-image")
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_split_image_pipeline_failure_is_500(storage_root: Path) -> None:
    client, out = build_client(storage_root, fail_fetch=True)
    response = client.post("/split-image", json={"url": "gone.jpg", "images_prefix": "g"})
    assert response.status_code == 500
    assert "HTTP 404" in response.json()["error"]
    logged = [json.loads(line) for line in out.getvalue().splitlines()]
    assert logged[-1]["level"] == "ERROR"
    assert logged[-1]["properties"]["code"] == "FETCH_FAILED"


def test_basic_auth_is_enforced_when_configured(storage_root: Path) -> None:
    client, _ = build_client(storage_root, username="admin", password="s3cret")
    body = {"url": "a.jpg", "images_prefix": "a"}

    missing = client.post("/split-image", json=body)
    assert missing.status_code == 401
    assert missing.json() == {"error": "Unauthorized"}
    assert missing.headers["WWW-Authenticate"] == 'Basic realm="Restricted"'

    wrong = client.post("/split-image", json=body, auth=("admin", "nope"))
    assert wrong.status_code == 401

    allowed = client.post("/split-image", json=body, auth=("admin", "s3cret"))
    assert allowed.status_code == 200

    assert client.get("/health").status_code == 200


def test_create_app_validates_config(tmp_path: Path) -> None:
    config = build_config(tmp_path / "does-not-exist")
    with pytest.raises(ConfigError, match="does not exist"):
        create_app(config, logger=JsonLogger(out=io.StringIO()))


def test_split_image_never_fetches_outside_url_host(storage_root: Path) -> None:
    config = build_config(storage_root)
    strategy = OfflineStrategy(make_image_bytes(10, 10))
    app = create_app(
        config,
        service=SplitService(config, strategy=strategy),
        logger=JsonLogger(out=io.StringIO()),
    )
    client = TestClient(app)

    response = client.post(
        "/split-image",
        json={"url": "http://169.254.169.254/latest/meta-data", "images_prefix": "x"},
    )

    assert response.status_code == 200
    assert strategy.fetched == ["https://images.example.com/http://169.254.169.254/latest/meta-data"]
