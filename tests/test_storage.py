# ==============================================================================
# Tests for the persisted key/value slots — storage.py
# ==============================================================================
"""
Covers both backends, best-effort writes, and isolation of keys written
concurrently through separate file handles.
"""

import os
import threading

import pytest

from metrix_core.constants import KEY_AJAX_STATE, KEY_MAIN_QUEUE
from metrix_core.storage import FileStorage, MemoryStorage, origin_dir_name


class TestMemoryStorage:

    def test_set_get_remove(self):
        s = MemoryStorage()
        s.set_item("k", "v")
        assert s.get_item("k") == "v"
        s.remove_item("k")
        assert s.get_item("k") is None

    def test_rejects_non_string_values(self):
        with pytest.raises(TypeError):
            MemoryStorage().set_item("k", 5)

    def test_persist_item_stringifies(self):
        s = MemoryStorage()
        s.persist_item("n", 42)
        assert s.get_item("n") == "42"
        assert s.get_number("n") == 42

    def test_get_number_unparsable_is_none(self):
        s = MemoryStorage({"n": "not-a-number"})
        assert s.get_number("n") is None

    def test_get_json_raises_on_corruption(self):
        s = MemoryStorage({"q": "[{broken"})
        with pytest.raises(ValueError):
            s.get_json("q")


class TestBestEffortWrites:

    def test_persist_item_swallows_os_errors(self, monkeypatch):
        s = MemoryStorage()

        def quota_exceeded(key, value):
            raise OSError("quota exceeded")

        monkeypatch.setattr(s, "set_item", quota_exceeded)
        s.persist_item("k", "v")  # must not raise
        assert s.get_item("k") is None

    def test_persist_json_swallows_unencodable_values(self):
        s = MemoryStorage()
        s.persist_json("k", {"bad": object()})
        assert s.get_item("k") is None


class TestFileStorage:

    def test_two_instances_share_slots(self, tmp_path):
        a = FileStorage(tmp_path, "https://shop.example")
        b = FileStorage(tmp_path, "https://shop.example")
        a.set_item("METRIX_SESSION_ID", "abc")
        assert b.get_item("METRIX_SESSION_ID") == "abc"
        b.remove_item("METRIX_SESSION_ID")
        assert a.get_item("METRIX_SESSION_ID") is None

    def test_origins_are_isolated(self, tmp_path):
        FileStorage(tmp_path, "https://a.example").set_item("k", "a")
        assert FileStorage(tmp_path, "https://b.example").get_item("k") is None

    def test_remove_missing_key_is_noop(self, tmp_path):
        FileStorage(tmp_path, "https://shop.example").remove_item("absent")

    def test_no_temp_files_left_behind(self, tmp_path):
        s = FileStorage(tmp_path, "https://shop.example")
        s.set_item("k", "v")
        s.set_item("k", "w")
        assert [p.name for p in s.path.iterdir()] == ["k.slot"]
        assert s.get_item("k") == "w"


class TestInterleavedWrites:

    def test_write_to_other_key_survives_interleaving(self, tmp_path, monkeypatch):
        a = FileStorage(tmp_path, "https://shop.example")
        b = FileStorage(tmp_path, "https://shop.example")
        queue = '[{"type":"custom"}]'
        real_replace = os.replace

        # Handle a writes the queue while b is in the middle of its own write.
        def replace_after_other_write(src, dst):
            if str(dst).endswith(KEY_AJAX_STATE + ".slot"):
                a.set_item(KEY_MAIN_QUEUE, queue)
            real_replace(src, dst)

        monkeypatch.setattr("metrix_core.storage.os.replace", replace_after_other_write)
        b.set_item(KEY_AJAX_STATE, "stop")

        assert a.get_item(KEY_MAIN_QUEUE) == queue
        assert b.get_item(KEY_MAIN_QUEUE) == queue
        assert a.get_item(KEY_AJAX_STATE) == "stop"

    def test_threads_writing_distinct_keys_keep_every_value(self, tmp_path):
        def writer(index):
            s = FileStorage(tmp_path, "https://shop.example")
            for n in range(20):
                s.set_item(f"key{index}", str(n))

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        s = FileStorage(tmp_path, "https://shop.example")
        assert [s.get_item(f"key{i}") for i in range(4)] == ["19"] * 4


def test_origin_dir_name():
    assert origin_dir_name("https://shop.example:8443/") == "shop.example_8443"
    assert origin_dir_name("") == "default"
