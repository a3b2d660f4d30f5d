# ==============================================================================
# Tests for the fire-at-most-once listener and IdentityStore — identity.py
# ==============================================================================

from unittest.mock import MagicMock

from metrix_core.constants import KEY_CLIENT_ID
from metrix_core.identity import IdentityStore, OnceListener
from metrix_core.storage import MemoryStorage


class TestOnceListener:

    def test_register_then_set_fires_once(self):
        cell = OnceListener("test")
        callback = MagicMock()
        cell.register(callback)
        callback.assert_not_called()

        cell.set("v1")
        cell.set("v1")
        callback.assert_called_once_with("v1")

    def test_set_then_register_fires_once(self):
        cell = OnceListener("test")
        cell.set("v1")
        callback = MagicMock()
        cell.register(callback)
        cell.register(callback)
        callback.assert_called_once_with("v1")

    def test_first_value_wins(self):
        cell = OnceListener("test")
        cell.set("v1")
        cell.set("v2")
        assert cell.value == "v1"

    def test_rearm_allows_one_more_firing(self):
        cell = OnceListener("test", value="s1")
        callback = MagicMock()
        cell.register(callback)
        cell.rearm("s2")
        cell.set("s2")
        assert [c.args[0] for c in callback.call_args_list] == ["s1", "s2"]

    def test_non_callable_is_ignored(self):
        cell = OnceListener("test", value="v")
        cell.register("not callable")
        assert not cell.fired

    def test_raising_callback_does_not_propagate(self):
        cell = OnceListener("test")
        cell.register(MagicMock(side_effect=RuntimeError("boom")))
        cell.set("v")  # must not raise
        assert cell.fired


class TestIdentityStore:

    def test_assign_persists_first_id_only(self):
        storage = MemoryStorage()
        identity = IdentityStore(storage)
        assert identity.assign("U1") is True
        assert identity.assign("U2") is False
        assert storage.get_item(KEY_CLIENT_ID) == "U1"

    def test_listener_registered_before_assignment(self):
        identity = IdentityStore(MemoryStorage())
        callback = MagicMock()
        identity.set_listener(callback)
        identity.assign("U1")
        identity.assign("U1")
        callback.assert_called_once_with("U1")

    def test_known_identity_after_reload_fires_on_registration(self):
        identity = IdentityStore(MemoryStorage({KEY_CLIENT_ID: "U9"}))
        callback = MagicMock()
        identity.set_listener(callback)
        callback.assert_called_once_with("U9")
        assert identity.known

    def test_invalid_ids_are_ignored(self):
        identity = IdentityStore(MemoryStorage())
        assert identity.assign("") is False
        assert identity.assign(None) is False
        assert not identity.known
