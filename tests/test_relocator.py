"""Tests for single-file relocation."""

import pytest

from conftest import FakeHost, blob_sha
from gh import ConflictError, NotFoundError, UpstreamUnavailableError
from repotree import MoveStatus, RelocationError, Relocator
from repotree.errors import failure_category


class TestRelocate:
    def test_same_path_is_skipped_without_calls(self, host, coordinate):
        status = Relocator(host).relocate(coordinate, "readme.md", "whatever", "readme.md")

        assert status == MoveStatus.SKIPPED
        assert host.calls == []

    def test_moves_content_and_removes_source(self, host, coordinate):
        sha = host.files()["src/main.js"].sha

        status = Relocator(host).relocate(coordinate, "src/main.js", sha, "lib/main.js")

        assert status == MoveStatus.MOVED
        files = host.files()
        assert "src/main.js" not in files
        assert host.content("lib/main.js") == b"import './utils/a.js';\n"
        assert files["lib/main.js"].sha == sha

    def test_step_order_is_read_lookup_write_delete(self, host, coordinate):
        sha = host.files()["readme.md"].sha

        Relocator(host).relocate(coordinate, "readme.md", sha, "docs/readme.md")

        assert host.calls == [
            ("read_file", "readme.md"),
            ("get_file_sha", "docs/readme.md"),
            ("write_file", "docs/readme.md"),
            ("delete_file", "readme.md"),
        ]

    def test_existing_destination_is_updated_in_place(self, coordinate):
        host = FakeHost({"a.txt": b"new", "dest/a.txt": b"old"})
        sha = host.files()["a.txt"].sha

        status = Relocator(host).relocate(coordinate, "a.txt", sha, "dest/a.txt")

        assert status == MoveStatus.MOVED
        assert host.content("dest/a.txt") == b"new"
        assert "a.txt" not in host.files()

    def test_read_failure_issues_no_write(self, host, coordinate):
        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "missing.txt", "abc", "other.txt")

        assert excinfo.value.stage == "read"
        assert isinstance(excinfo.value.cause, NotFoundError)
        assert host.mutating_calls() == []

    def test_destination_lookup_failure_issues_no_write(self, host, coordinate):
        host.fail("get_file_sha", UpstreamUnavailableError("down", 503))
        sha = host.files()["readme.md"].sha

        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "readme.md", sha, "docs/readme.md")

        assert excinfo.value.stage == "lookup"
        assert host.mutating_calls() == []

    def test_write_failure_leaves_source_untouched(self, host, coordinate):
        before = host.files()["readme.md"]
        host.fail("write_file", ConflictError("conflict", 409))

        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "readme.md", before.sha, "docs/readme.md")

        assert excinfo.value.stage == "write"
        assert not excinfo.value.duplicated
        assert "delete_file" not in host.call_names()
        assert host.files()["readme.md"] == before
        assert "docs/readme.md" not in host.files()

    def test_delete_failure_leaves_duplicate_and_is_reported(self, host, coordinate):
        sha = host.files()["readme.md"].sha
        host.fail("delete_file", ConflictError("sha mismatch", 409))

        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "readme.md", sha, "docs/readme.md")

        assert excinfo.value.stage == "delete"
        assert excinfo.value.duplicated
        assert host.content("docs/readme.md") == b"# hello\n"
        assert host.content("readme.md") == b"# hello\n"

    def test_stale_content_id_fails_at_delete(self, host, coordinate):
        stale = blob_sha(b"something else")

        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "readme.md", stale, "docs/readme.md")

        assert excinfo.value.stage == "delete"
        assert isinstance(excinfo.value.cause, ConflictError)

    def test_retry_after_duplicate_completes_the_move(self, host, coordinate):
        sha = host.files()["readme.md"].sha
        host.fail("delete_file", ConflictError("transient", 409))
        relocator = Relocator(host)
        with pytest.raises(RelocationError):
            relocator.relocate(coordinate, "readme.md", sha, "docs/readme.md")

        status = relocator.relocate(coordinate, "readme.md", sha, "docs/readme.md")

        assert status == MoveStatus.MOVED
        assert "readme.md" not in host.files()
        assert host.content("docs/readme.md") == b"# hello\n"

    def test_unexpected_error_is_wrapped_with_its_stage(self, host, coordinate):
        sha = host.files()["readme.md"].sha
        host.fail("write_file", KeyError("content"))

        with pytest.raises(RelocationError) as excinfo:
            Relocator(host).relocate(coordinate, "readme.md", sha, "docs/readme.md")

        assert excinfo.value.stage == "write"
        assert isinstance(excinfo.value.cause, KeyError)
        assert failure_category(excinfo.value) == "unknown"
        assert "readme.md" in host.files()
