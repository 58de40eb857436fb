"""Tests for the permission probe."""

from __future__ import annotations

import os

import pytest

from reclaim.core.probe import estimate, probe
from reclaim.models.scan_result import Access
from tests.conftest import make_file


class TestProbe:
    def test_accessible_directory_counts_entries(self, tmp_path):
        make_file(tmp_path / "a.txt")
        make_file(tmp_path / "b.txt")
        (tmp_path / "sub").mkdir()

        result = probe(tmp_path)
        assert result.access is Access.ACCESSIBLE
        assert result.accessible
        assert result.entry_count == 3

    def test_missing_path_is_absent(self, tmp_path):
        result = probe(tmp_path / "nope")
        assert result.access is Access.ABSENT
        assert not result.accessible

    def test_path_below_a_file_is_absent(self, tmp_path):
        make_file(tmp_path / "file")
        result = probe(tmp_path / "file" / "child")
        assert result.access is Access.ABSENT

    def test_regular_file_is_accessible(self, tmp_path):
        path = make_file(tmp_path / "single.bin", b"data")
        result = probe(path)
        assert result.accessible
        assert result.entry_count == 1

    @pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root")
    def test_unreadable_directory_is_denied(self, tmp_path):
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0)
        try:
            result = probe(locked)
            assert result.access is Access.DENIED
            assert result.reason
        finally:
            locked.chmod(0o755)

    def test_to_dict(self, tmp_path):
        data = probe(tmp_path).to_dict()
        assert data["access"] == "accessible"
        assert data["path"] == str(tmp_path)


class TestEstimate:
    def test_sums_top_level_files(self, tmp_path):
        make_file(tmp_path / "a", b"x" * 10)
        make_file(tmp_path / "b", b"x" * 20)
        make_file(tmp_path / "sub" / "deep", b"x" * 1000)

        total, count = estimate(tmp_path)
        assert total == 30
        assert count == 2

    def test_sample_limit(self, tmp_path):
        for i in range(10):
            make_file(tmp_path / f"f{i}", b"xx")

        total, count = estimate(tmp_path, sample=3)
        assert count <= 3
        assert total == count * 2

    def test_missing_directory(self, tmp_path):
        assert estimate(tmp_path / "missing") == (0, 0)
