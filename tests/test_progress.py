"""Tests for the progress subscription channel."""

from __future__ import annotations

from reclaim.core.progress import ProgressChannel
from reclaim.models.clean_result import CleanProgress


def _progress(current: int) -> CleanProgress:
    return CleanProgress(current=current, total=3, current_category="cache", files_removed=current, bytes_freed=0)


class TestProgressChannel:
    def test_publish_in_order(self):
        channel = ProgressChannel()
        seen = []
        channel.subscribe(seen.append)
        for i in range(1, 4):
            channel.publish(_progress(i))
        assert [p.current for p in seen] == [1, 2, 3]

    def test_unsubscribe_mid_stream(self):
        channel = ProgressChannel()
        seen = []
        channel.subscribe(seen.append)
        channel.publish(_progress(1))
        channel.unsubscribe(seen.append)
        channel.publish(_progress(2))
        assert [p.current for p in seen] == [1]
        assert len(channel) == 0

    def test_unknown_unsubscribe_ignored(self):
        ProgressChannel().unsubscribe(print)

    def test_failing_subscriber_does_not_block_others(self):
        channel = ProgressChannel()
        seen = []

        def broken(progress):
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.publish(_progress(1))
        assert len(seen) == 1

    def test_subscribe_twice_delivers_once(self):
        channel = ProgressChannel()
        seen = []
        channel.subscribe(seen.append)
        channel.subscribe(seen.append)
        channel.publish(_progress(1))
        assert len(seen) == 1
