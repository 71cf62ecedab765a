from __future__ import annotations

import pytest

from r2sync.diff import classify, join_key, plan_sync, stale_decisions
from r2sync.errors import FingerprintError
from r2sync.filters import build_exclusion_matcher
from r2sync.models import Delete, LocalFileRecord, RemoteObjectRecord, Skip, Upload
from tests.conftest import etag_for


def _local(relative: str, size: int = 1, path: str | None = None) -> LocalFileRecord:
    return LocalFileRecord(
        absolute_path=path or f"/src/{relative}",
        relative_path=relative,
        size=size,
        mod_time=0.0,
    )


def _remote(key: str, content: bytes) -> RemoteObjectRecord:
    return RemoteObjectRecord(
        key=key, size=len(content), last_modified=None, fingerprint=etag_for(content)
    )


def _uploads(decisions) -> list[str]:
    return sorted(d.remote_key for d in decisions if isinstance(d, Upload))


def _deletes(decisions) -> list[str]:
    return sorted(d.remote_key for d in decisions if isinstance(d, Delete))


class TestJoinKey:
    @pytest.mark.parametrize(
        "prefix,relative,expected",
        [
            ("", "a.txt", "a.txt"),
            ("prefix", "a.txt", "prefix/a.txt"),
            ("prefix/", "a.txt", "prefix/a.txt"),
            ("prefix//nested/", "sub/a.txt", "prefix/nested/sub/a.txt"),
            ("prefix\\win", "sub\\a.txt", "prefix/win/sub/a.txt"),
        ],
    )
    def test_join(self, prefix, relative, expected):
        assert join_key(prefix, relative) == expected


class TestClassify:
    def test_missing_remote_is_upload(self):
        inventory: dict = {}
        decision = classify(_local("a.txt"), inventory, remote_prefix="prefix/")
        assert decision == Upload(local_path="/src/a.txt", remote_key="prefix/a.txt", size=1)

    def test_size_mismatch_is_upload_without_hashing(self):
        inventory = {"p/a.txt": _remote("p/a.txt", b"xy")}

        def no_hash(path):
            raise AssertionError("fingerprint should not be computed")

        decision = classify(_local("a.txt", size=1), inventory, remote_prefix="p", fingerprint=no_hash)
        assert isinstance(decision, Upload)

    def test_size_only_equal_size_is_skip_even_if_content_differs(self):
        inventory = {"p/a.txt": _remote("p/a.txt", b"y")}

        def no_hash(path):
            raise AssertionError("fingerprint should not be computed")

        decision = classify(
            _local("a.txt", size=1), inventory, remote_prefix="p", size_only=True, fingerprint=no_hash
        )
        assert isinstance(decision, Skip)

    def test_full_mode_equal_size_different_content_is_upload(self):
        inventory = {"p/a.txt": _remote("p/a.txt", b"y")}
        decision = classify(
            _local("a.txt", size=1), inventory, remote_prefix="p", fingerprint=lambda _: etag_for(b"x")
        )
        assert isinstance(decision, Upload)

    def test_full_mode_identical_is_skip(self):
        inventory = {"p/a.txt": _remote("p/a.txt", b"x")}
        decision = classify(
            _local("a.txt", size=1), inventory, remote_prefix="p", fingerprint=lambda _: etag_for(b"x")
        )
        assert decision == Skip(remote_key="p/a.txt", reason="identical")

    @pytest.mark.parametrize("size_only", [True, False])
    def test_key_is_claimed_whatever_the_outcome(self, size_only):
        inventory = {
            "p/a.txt": _remote("p/a.txt", b"x"),
            "p/b.txt": _remote("p/b.txt", b"long content"),
            "p/stale.txt": _remote("p/stale.txt", b"s"),
        }
        for name in ("a.txt", "b.txt", "new.txt"):
            classify(
                _local(name, size=1),
                inventory,
                remote_prefix="p",
                size_only=size_only,
                fingerprint=lambda _: etag_for(b"x"),
            )
        assert list(inventory) == ["p/stale.txt"]

    def test_fingerprint_failure_skips_and_claims(self, caplog):
        inventory = {"p/a.txt": _remote("p/a.txt", b"x")}

        def broken(path):
            raise FingerprintError(f"cannot hash {path}: permission denied")

        with caplog.at_level("ERROR", logger="r2sync"):
            decision = classify(_local("a.txt"), inventory, remote_prefix="p", fingerprint=broken)

        assert decision == Skip(remote_key="p/a.txt", reason="fingerprint failed")
        assert inventory == {}
        assert "permission denied" in caplog.text


class TestStaleDecisions:
    def test_delete_enabled_returns_sorted_deletes(self):
        inventory = {"p/z": _remote("p/z", b"z"), "p/a": _remote("p/a", b"a")}
        assert stale_decisions(inventory, delete_enabled=True) == [Delete("p/a"), Delete("p/z")]

    def test_delete_targets_the_stored_key(self):
        inventory = {"p/a/b.txt": _remote("p\\a\\b.txt", b"x")}
        assert stale_decisions(inventory, delete_enabled=True) == [Delete("p\\a\\b.txt")]

    def test_delete_disabled_returns_nothing(self):
        inventory = {"p/old.txt": _remote("p/old.txt", b"o")}
        assert stale_decisions(inventory, delete_enabled=False) == []


class TestPlanSync:
    def test_empty_remote_uploads_every_eligible_file(self, make_tree):
        root = make_tree({"a.txt": "a", "sub/b.txt": "b", "sub/c.tmp": "c"})
        decisions = plan_sync(
            str(root),
            {},
            remote_prefix="prefix",
            recursive=True,
            delete_enabled=True,
            matcher=build_exclusion_matcher(["*.tmp"]),
        )
        assert _uploads(decisions) == ["prefix/a.txt", "prefix/sub/b.txt"]
        assert _deletes(decisions) == []

    def test_scenario_a_non_recursive_skips_nested_files(self, make_tree):
        root = make_tree({"a.txt": "x", "sub/b.txt": "y"})
        decisions = plan_sync(str(root), {}, remote_prefix="", recursive=False)
        assert decisions == [Upload(local_path=decisions[0].local_path, remote_key="a.txt", size=1)]

    def test_scenario_b_identical_remote_is_no_op(self, make_tree):
        root = make_tree({"a.txt": "x"})
        inventory = {"prefix/a.txt": _remote("prefix/a.txt", b"x")}
        decisions = plan_sync(
            str(root), inventory, remote_prefix="prefix", recursive=True, delete_enabled=True
        )
        assert _uploads(decisions) == []
        assert _deletes(decisions) == []

    @pytest.mark.parametrize("delete_enabled,expected", [(True, ["prefix/old.txt"]), (False, [])])
    def test_scenario_c_stale_remote(self, make_tree, delete_enabled, expected):
        root = make_tree({})
        inventory = {"prefix/old.txt": _remote("prefix/old.txt", b"old")}
        decisions = plan_sync(
            str(root), inventory, remote_prefix="prefix", delete_enabled=delete_enabled
        )
        assert _deletes(decisions) == expected
        assert _uploads(decisions) == []

    def test_excluded_subtree_never_surfaces(self, make_tree):
        root = make_tree({"keep.txt": "k", "logs/app.txt": "a", "logs/deep/trace.txt": "t"})
        inventory = {"p/logs/app.txt": _remote("p/logs/app.txt", b"a")}
        decisions = plan_sync(
            str(root),
            inventory,
            remote_prefix="p",
            recursive=True,
            matcher=build_exclusion_matcher(["logs"]),
        )
        keys = [d.remote_key for d in decisions]
        assert keys == ["p/keep.txt"]

    def test_second_run_is_idempotent(self, make_tree):
        root = make_tree({"a.txt": "alpha", "sub/b.txt": "beta"})
        inventory = {
            "p/a.txt": _remote("p/a.txt", b"alpha"),
            "p/sub/b.txt": _remote("p/sub/b.txt", b"beta"),
        }
        decisions = plan_sync(
            str(root), inventory, remote_prefix="p", recursive=True, delete_enabled=True
        )
        assert all(isinstance(d, Skip) for d in decisions)
        assert len(decisions) == 2
