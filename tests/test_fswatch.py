import pytest

from packlauncher.fswatch import RecursiveFileWatcher


def jar_matcher(rel):
    return rel.endswith(".jar")


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "b.jar").write_text("b")
    (tmp_path / "c.jar").write_text("c")
    (tmp_path / "d.txt").write_text("d")
    return tmp_path


def test_scan_lists_matching_files_dirs_first(tree):
    watcher = RecursiveFileWatcher(jar_matcher)
    watcher.set_root_dir(tree)
    assert watcher.files == ["a/b.jar", "c.jar"]


def test_no_matcher_gives_empty(tree):
    watcher = RecursiveFileWatcher()
    watcher.set_root_dir(tree)
    assert watcher.scan() == []


def test_hidden_files_are_scanned(tree):
    (tree / ".hidden.jar").write_text("h")
    watcher = RecursiveFileWatcher(jar_matcher)
    watcher.set_root_dir(tree)
    assert ".hidden.jar" in watcher.files


def test_new_file_detected_by_poll(tree):
    calls = []
    watcher = RecursiveFileWatcher(jar_matcher, on_files_changed=lambda: calls.append(1))
    watcher.set_root_dir(tree)
    calls.clear()
    watcher.enable()
    assert watcher.poll() == []
    (tree / "a" / "new.jar").write_text("n")
    changed = watcher.poll()
    assert str(tree / "a") in changed
    assert "a/new.jar" in watcher.files
    assert calls == [1]


def test_non_matching_file_does_not_change_files(tree):
    calls = []
    watcher = RecursiveFileWatcher(jar_matcher, on_files_changed=lambda: calls.append(1))
    watcher.set_root_dir(tree)
    calls.clear()
    watcher.enable()
    (tree / "notes.txt").write_text("x")
    watcher.poll()
    assert calls == []


def test_file_change_reported_when_watching_files(tree):
    seen = []
    watcher = RecursiveFileWatcher(jar_matcher, watch_files=True, on_file_changed=seen.append)
    watcher.set_root_dir(tree)
    watcher.enable()
    (tree / "c.jar").write_text("much longer content")
    watcher.poll()
    assert seen == [str(tree / "c.jar")]


def test_disabled_watcher_does_not_poll(tree):
    watcher = RecursiveFileWatcher(jar_matcher)
    watcher.set_root_dir(tree)
    watcher.enable()
    watcher.disable()
    (tree / "z.jar").write_text("z")
    assert watcher.poll() == []
    assert watcher.watched_paths == []


def test_set_watch_files_rebuilds_watch_list(tree):
    watcher = RecursiveFileWatcher(jar_matcher)
    watcher.set_root_dir(tree)
    watcher.enable()
    assert str(tree / "c.jar") not in watcher.watched_paths
    watcher.set_watch_files(True)
    assert watcher.enabled
    assert str(tree / "c.jar") in watcher.watched_paths


def test_enable_without_root_raises():
    with pytest.raises(ValueError):
        RecursiveFileWatcher(jar_matcher).enable()