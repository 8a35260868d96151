"""Unit tests for progress tracking."""
from __future__ import annotations

import pytest

from spa_prerender.renderer.progress import RenderProgress, format_duration, format_size


class TestRenderProgress:
    def test_eta_unknown_before_first_route(self):
        assert RenderProgress().eta(10) is None

    def test_eta_uses_average_duration(self):
        progress = RenderProgress()
        progress.record(2.0, 100)
        progress.record(4.0, 300)

        assert progress.processed_count == 2
        assert progress.bytes_written == 400
        assert progress.eta(5) == pytest.approx(15.0)

    def test_start_is_recorded_once(self):
        progress = RenderProgress()
        progress.start()
        first = progress.start_time
        progress.start()

        assert progress.start_time == first
        assert progress.elapsed >= 0.0

    def test_elapsed_zero_before_start(self):
        assert RenderProgress().elapsed == 0.0


class TestFormatting:
    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (None, "--:--"),
            (0, "0:00:00"),
            (59.6, "0:01:00"),
            (3725, "1:02:05"),
        ],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize(
        "size,expected",
        [
            (512, "512 B"),
            (2048, "2.0 KB"),
            (3 * 1024 * 1024, "3.0 MB"),
        ],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected
