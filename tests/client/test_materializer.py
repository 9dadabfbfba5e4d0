"""Tests for turning stream events into image handles."""

from __future__ import annotations

import binascii

import pytest

from client.handles import ObjectUrlRegistry
from client.materializer import (
    ImageMaterializer,
    decode_base64_payload,
    progress_text,
    split_data_uri,
)
from schemas.stream_events import ImageEvent, LogEvent


def image_event(url: str | None) -> ImageEvent:
    return ImageEvent.model_validate({"images": [{"url": url}]})


class TestSplitDataUri:
    def test_png(self) -> None:
        assert split_data_uri("data:image/png;base64,AAAA") == ("image/png", "AAAA")

    def test_metadata_without_base64_defaults_to_jpeg(self) -> None:
        assert split_data_uri("data:image/webp,AAAA") == ("image/jpeg", "AAAA")

    @pytest.mark.parametrize(
        "url",
        [
            "https://cdn.example.com/icon.png",
            "data:text/plain;base64,AAAA",
            "data:image/png;base64",
        ],
    )
    def test_rejects_non_image_data_uris(self, url: str) -> None:
        assert split_data_uri(url) is None


def test_decode_is_deterministic() -> None:
    assert decode_base64_payload("AQID") == b"\x01\x02\x03"
    assert decode_base64_payload("AQID") == decode_base64_payload("AQID")
    with pytest.raises(binascii.Error):
        decode_base64_payload("not base64!")


def test_decode_accepts_missing_padding() -> None:
    assert decode_base64_payload("AQI") == b"\x01\x02"
    assert decode_base64_payload("AQ") == b"\x01"
    assert decode_base64_payload("AQ==") == b"\x01"
    with pytest.raises(binascii.Error):
        decode_base64_payload("AQIDB")


def test_progress_text() -> None:
    logs = LogEvent.model_validate(
        {"logs": [{"message": "step 1/28"}, {"message": "step 2/28"}]}
    )

    assert progress_text(logs) == "Progress: step 2/28"
    assert progress_text(LogEvent.model_validate({"logs": [{}]})) is None
    assert progress_text(image_event("data:image/png;base64,AQID")) is None


class TestImageMaterializer:
    def test_first_image_creates_handle(self) -> None:
        registry = ObjectUrlRegistry()
        materializer = ImageMaterializer(registry)

        handle = materializer.apply(image_event("data:image/png;base64,AQID"), None)

        assert handle is not None
        blob = registry.resolve(handle)
        assert blob.content_type == "image/png"
        assert blob.data == b"\x01\x02\x03"

    def test_replacement_releases_previous_handle(self) -> None:
        registry = ObjectUrlRegistry()
        materializer = ImageMaterializer(registry)

        first = materializer.apply(image_event("data:image/png;base64,AQID"), None)
        second = materializer.apply(image_event("data:image/png;base64,BAUG"), first)

        assert second != first
        assert registry.live_handles == [second]
        assert registry.created_count == 2
        assert registry.released_count == 1

    def test_unpadded_payload_materializes(self) -> None:
        registry = ObjectUrlRegistry()
        materializer = ImageMaterializer(registry)

        handle = materializer.apply(image_event("data:image/png;base64,AAA"), None)

        assert handle is not None
        assert registry.resolve(handle).data == b"\x00\x00"

    def test_log_event_keeps_current_handle(self) -> None:
        registry = ObjectUrlRegistry()
        materializer = ImageMaterializer(registry)
        current = materializer.apply(image_event("data:image/png;base64,AQID"), None)

        logs = LogEvent.model_validate({"logs": [{"message": "step 3/28"}]})

        assert materializer.apply(logs, current) == current
        assert registry.created_count == 1

    @pytest.mark.parametrize(
        "url",
        [None, "https://cdn.example.com/icon.png", "data:image/png;base64,@@@"],
    )
    def test_unusable_image_is_a_no_op(self, url: str | None) -> None:
        registry = ObjectUrlRegistry()
        materializer = ImageMaterializer(registry)
        current = materializer.apply(image_event("data:image/png;base64,AQID"), None)

        assert materializer.apply(image_event(url), current) == current
        assert registry.live_handles == [current]
        assert registry.released_count == 0
