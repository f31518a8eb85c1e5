"""Tests for the shared Pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from trayar.models import (
    ApiErrorInfo,
    ApiResponse,
    ClientConfig,
    HTTPMethod,
    RequestDescriptor,
    UploadFile,
)


def _err(status: int = 500) -> ApiErrorInfo:
    return ApiErrorInfo(code="SERVER_ERROR", message="down", status_code=status)


class TestApiResponse:
    def test_ok(self) -> None:
        resp = ApiResponse.ok({"a": 1}, status_code=201)
        assert (resp.success, resp.data, resp.error, resp.status_code) == (True, {"a": 1}, None, 201)

    def test_ok_without_body(self) -> None:
        assert ApiResponse.ok(None).data == {}

    def test_ok_keeps_falsy_data(self) -> None:
        assert ApiResponse.ok([]).data == []
        assert ApiResponse.ok(0).data == 0

    def test_fail_takes_status_from_error(self) -> None:
        resp = ApiResponse.fail(_err(503))
        assert resp.success is False
        assert resp.data is None
        assert resp.status_code == 503

    @pytest.mark.parametrize(
        "fields",
        [
            {"success": True, "data": {"a": 1}, "error": _err()},
            {"success": True},
            {"success": False},
            {"success": False, "data": {"a": 1}, "error": _err()},
        ],
    )
    def test_invariant_enforced(self, fields: dict) -> None:
        with pytest.raises(ValidationError):
            ApiResponse(**fields)

    def test_frozen(self) -> None:
        resp = ApiResponse.ok({"a": 1})
        with pytest.raises(ValidationError):
            resp.success = False


class TestRequestDescriptor:
    def test_defaults(self) -> None:
        d = RequestDescriptor(path="/health")
        assert d.method is HTTPMethod.GET
        assert d.is_cacheable

    def test_lowercase_method(self) -> None:
        assert RequestDescriptor(method="post", path="/x").method is HTTPMethod.POST

    def test_unknown_method(self) -> None:
        with pytest.raises(ValidationError):
            RequestDescriptor(method="TRACE", path="/x")

    @pytest.mark.parametrize(
        "fields",
        [
            {"method": "POST"},
            {"bypass_cache": True},
            {"files": {"file": UploadFile(name="a.m4a", content=b"x")}},
        ],
    )
    def test_not_cacheable(self, fields: dict) -> None:
        assert not RequestDescriptor(path="/x", **fields).is_cacheable

    @pytest.mark.parametrize("field", ["timeout", "cache_ttl"])
    def test_positive_durations(self, field: str) -> None:
        with pytest.raises(ValidationError):
            RequestDescriptor(path="/x", **{field: 0})

    def test_progress_callback_not_dumped(self) -> None:
        d = RequestDescriptor(path="/x", on_progress=lambda pct: None)
        assert "on_progress" not in d.model_dump()

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RequestDescriptor(path="/x", bypass_cach=True)

    def test_refresh_on_401_default(self) -> None:
        assert RequestDescriptor(path="/x").refresh_on_401 is True


class TestUploadFile:
    def test_default_content_type(self) -> None:
        assert UploadFile(name="rec", content=b"").content_type == "audio/mp4"

    def test_from_path(self, tmp_path) -> None:
        path = tmp_path / "visit.mp3"
        path.write_bytes(b"ID3")
        upload = UploadFile.from_path(path)
        assert upload.name == "visit.mp3"
        assert upload.content == b"ID3"
        assert upload.content_type == "audio/mpeg"

    def test_from_path_unknown_extension(self, tmp_path) -> None:
        path = tmp_path / "recording.zzzq"
        path.write_bytes(b"")
        assert UploadFile.from_path(path).content_type == "audio/mp4"

    def test_from_path_explicit_type(self, tmp_path) -> None:
        path = tmp_path / "a.mp3"
        path.write_bytes(b"")
        assert UploadFile.from_path(path, content_type="audio/ogg").content_type == "audio/ogg"


class TestClientConfig:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.base_url == "https://api.trayar.dental/v1"
        assert config.request.retry_base_delay_ms == 1000
        assert config.request.retry_jitter_ms == 0
        assert config.cache.enabled is True
