"""Tests for process-tree discovery."""

from types import SimpleNamespace
from unittest.mock import patch

from procguard.process import tree
from procguard.process.tree import ProcessTreeSnapshot, descendants, snapshot_tree
from tests.unit.process_fixtures import wait_for_descendants


def _fake_table(pairs):
    """process_iter() replacement yielding objects with an ``info`` dict."""
    procs = [SimpleNamespace(info={"pid": pid, "ppid": ppid}) for pid, ppid in pairs]
    return lambda attrs=None: iter(procs)


class TestDescendants:
    def test_walks_all_generations(self):
        table = [(1, 0), (10, 1), (11, 10), (12, 10), (13, 11), (20, 1)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert descendants(10) == {11, 12, 13}

    def test_root_is_not_included(self):
        table = [(10, 1), (11, 10)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert 10 not in descendants(10)

    def test_unrelated_processes_are_ignored(self):
        table = [(10, 1), (11, 10), (30, 1), (31, 30)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert descendants(10) == {11}

    def test_leaf_process_has_no_descendants(self):
        table = [(10, 1), (11, 10)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert descendants(11) == set()

    def test_unknown_pid_has_no_descendants(self):
        with patch.object(tree.psutil, "process_iter", _fake_table([(10, 1)])):
            assert descendants(99999) == set()

    def test_self_parented_root_terminates(self):
        """pid 0 reports itself as its parent on some platforms."""
        table = [(0, 0), (1, 0), (2, 1)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert descendants(0) == {1, 2}

    def test_missing_ppid_is_skipped(self):
        table = [(10, 1), (11, None), (12, 10)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            assert descendants(10) == {12}

    def test_real_children_are_found(self, process_tree):
        proc = process_tree()
        children = wait_for_descendants(proc.pid, 2)

        assert len(children) == 2
        assert descendants(proc.pid) >= children


class TestSnapshot:
    def test_snapshot_is_immutable_and_timestamped(self):
        table = [(10, 1), (11, 10), (12, 11)]
        with patch.object(tree.psutil, "process_iter", _fake_table(table)):
            snap = snapshot_tree(10)

        assert isinstance(snap, ProcessTreeSnapshot)
        assert snap.root_pid == 10
        assert snap.pids == frozenset({11, 12})
        assert snap.taken_at > 0
        assert len(snap) == 2
        assert 12 in snap
        assert 10 not in snap

    def test_snapshot_is_not_refreshed(self, process_tree):
        proc = process_tree("sleep 30 & wait")
        wait_for_descendants(proc.pid, 1)
        snap = snapshot_tree(proc.pid)

        for child in list(snap.pids):
            tree.psutil.Process(child).kill()

        assert len(snap) == 1
