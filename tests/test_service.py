from __future__ import annotations

import json
from pathlib import Path
from zipfile import ZipFile

import pytest
from PIL import Image

from conftest import build_config, make_image_bytes
from image_splitter import core
from image_splitter.core import SplitService, validate_request
from image_splitter.errors import ConfigError, FetchError, InvalidRequestError, ProbeError, SplitError
from image_splitter.models import SplitRequest
from image_splitter.strategies.native import NativeStrategy


class OfflineStrategy(NativeStrategy):
    """Native pipeline that serves the source image from memory instead of the network."""

    def __init__(self, body: bytes | None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.body = body
        self.fetched: list[str] = []

    def fetch(self, url: str, destination: Path) -> None:
        self.fetched.append(url)
        if self.body is None:
            raise FetchError(f"failed to download image: HTTP 404 for {url}")
        destination.write_bytes(self.body)


def read_log(storage_root: Path) -> list[dict]:
    lines = (storage_root / "runs.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_split_with_archive(storage_root: Path) -> None:
    strategy = OfflineStrategy(make_image_bytes(30, 120))
    service = SplitService(build_config(storage_root), strategy=strategy)

    result = service.handle(
        SplitRequest(url="comics/page.jpg", images_prefix="page", create_zip=True)
    )

    assert strategy.fetched == ["https://images.example.com/comics/page.jpg"]
    assert result.message == "Successfully split image into 3 parts and created zip file"
    assert result.images == [
        f"{result.run_id}/page_01.jpg",
        f"{result.run_id}/page_02.jpg",
        f"{result.run_id}/page_03.jpg",
    ]
    assert result.zip_url == f"{result.run_id}/page.zip"

    run_dir = storage_root / result.run_id
    assert sorted(p.name for p in run_dir.iterdir()) == [
        "original_image.jpg",
        "page.zip",
        "page_01.jpg",
        "page_02.jpg",
        "page_03.jpg",
    ]
    with ZipFile(run_dir / "page.zip") as archive:
        assert archive.namelist() == ["page_01.jpg", "page_02.jpg", "page_03.jpg"]
        assert archive.read("page_03.jpg") == (run_dir / "page_03.jpg").read_bytes()
    with Image.open(run_dir / "page_03.jpg") as last:
        assert last.size == (30, 20)

    entry = read_log(storage_root)[-1]
    assert entry["status"] == "success"
    assert entry["run_id"] == result.run_id
    assert entry["chunk_count"] == 3
    assert entry["strategy"] == "native"


def test_split_without_archive_respects_limits(storage_root: Path) -> None:
    service = SplitService(build_config(storage_root), strategy=OfflineStrategy(make_image_bytes(40, 200)))

    result = service.handle(
        SplitRequest(url="tall.jpg", images_prefix="t", width=25, max_images=2)
    )

    assert result.message == "Successfully split image into 2 parts"
    assert result.archive is None
    assert result.to_response() == {
        "status": "success",
        "message": "Successfully split image into 2 parts",
        "zipUrl": "",
        "images": [f"{result.run_id}/t_01.jpg", f"{result.run_id}/t_02.jpg"],
    }
    with Image.open(storage_root / result.run_id / "t_02.jpg") as chunk:
        assert chunk.size == (25, 50)


def test_png_source_is_kept_as_png(storage_root: Path) -> None:
    service = SplitService(build_config(storage_root), strategy=OfflineStrategy(make_image_bytes(10, 60, fmt="PNG")))

    result = service.handle(SplitRequest(url="strip.png", images_prefix="s"))

    run_dir = storage_root / result.run_id
    assert (run_dir / "original_image.png").exists()
    with Image.open(run_dir / "s_01.jpg") as chunk:
        assert chunk.format == "PNG"


def test_runs_get_distinct_directories(storage_root: Path) -> None:
    service = SplitService(build_config(storage_root), strategy=OfflineStrategy(make_image_bytes(10, 10)))
    first = service.handle(SplitRequest(url="a.jpg", images_prefix="a"))
    second = service.handle(SplitRequest(url="a.jpg", images_prefix="a"))
    assert first.run_id != second.run_id
    assert (storage_root / first.run_id / "a_01.jpg").exists()
    assert (storage_root / second.run_id / "a_01.jpg").exists()


def test_fetch_failure_keeps_empty_run_dir_by_default(storage_root: Path) -> None:
    service = SplitService(build_config(storage_root), strategy=OfflineStrategy(None))

    with pytest.raises(FetchError):
        service.handle(SplitRequest(url="missing.jpg", images_prefix="m"))

    entry = read_log(storage_root)[-1]
    assert entry["status"] == "failure"
    assert entry["error_code"] == "FETCH_FAILED"
    run_dir = storage_root / entry["run_id"]
    assert run_dir.is_dir()
    assert list(run_dir.iterdir()) == []


def test_failed_run_is_removed_when_configured(storage_root: Path) -> None:
    config = build_config(storage_root, keep_failed_runs=False)
    service = SplitService(config, strategy=OfflineStrategy(b"definitely not an image"))

    with pytest.raises(ProbeError):
        service.handle(SplitRequest(url="broken.jpg", images_prefix="b"))

    entry = read_log(storage_root)[-1]
    assert entry["error_code"] == "PROBE_FAILED"
    assert not (storage_root / entry["run_id"]).exists()


@pytest.mark.parametrize(
    ("request_", "message"),
    [
        (SplitRequest(url="", images_prefix="p"), "URL is required"),
        (SplitRequest(url="a.jpg", images_prefix="p", max_images=-1), "max_images must be a positive integer"),
        (SplitRequest(url="a.jpg", images_prefix=""), "images_prefix is required"),
        (SplitRequest(url="a.jpg", images_prefix="../etc"), "images_prefix contains invalid characters"),
    ],
)
def test_invalid_requests_are_rejected_before_any_work(
    storage_root: Path, request_: SplitRequest, message: str
) -> None:
    with pytest.raises(InvalidRequestError, match=message):
        validate_request(request_)

    strategy = OfflineStrategy(make_image_bytes(10, 10))
    service = SplitService(build_config(storage_root), strategy=strategy)
    with pytest.raises(InvalidRequestError):
        service.handle(request_)
    assert strategy.fetched == []
    assert list(storage_root.iterdir()) == []


def test_service_picks_strategy_from_config(storage_root: Path) -> None:
    assert SplitService(build_config(storage_root)).strategy.name == "native"
    cli_service = SplitService(build_config(storage_root, strategy="cli"))
    assert cli_service.strategy.name == "cli"
    assert cli_service.strategy.message_suffix == " using CLI tools"


def test_absolute_request_url_stays_under_url_host(storage_root: Path) -> None:
    strategy = OfflineStrategy(make_image_bytes(10, 10))
    service = SplitService(build_config(storage_root), strategy=strategy)

    service.handle(SplitRequest(url="http://169.254.169.254/latest/meta-data", images_prefix="x"))

    assert strategy.fetched == ["https://images.example.com/http://169.254.169.254/latest/meta-data"]


def test_storage_failure_is_logged_and_existing_dir_left_alone(
    storage_root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(core, "generate_run_id", lambda: "1700000000-deadbeef")
    occupied = storage_root / "1700000000-deadbeef"
    occupied.mkdir()
    (occupied / "keep.jpg").write_bytes(b"x")
    strategy = OfflineStrategy(make_image_bytes(10, 10))
    service = SplitService(build_config(storage_root, keep_failed_runs=False), strategy=strategy)

    with pytest.raises(SplitError) as excinfo:
        service.handle(SplitRequest(url="a.jpg", images_prefix="a"))

    assert excinfo.value.code == "STORAGE_FAILED"
    assert strategy.fetched == []
    assert (occupied / "keep.jpg").exists()
    entry = read_log(storage_root)[-1]
    assert entry["run_id"] == "1700000000-deadbeef"
    assert entry["status"] == "failure"
    assert entry["error_code"] == "STORAGE_FAILED"


def test_unknown_strategy_is_a_config_error(storage_root: Path) -> None:
    with pytest.raises(ConfigError, match="Unknown strategy"):
        SplitService(build_config(storage_root, strategy="gpu"))
