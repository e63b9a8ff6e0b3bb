#!/usr/bin/env python3
"""
Unit tests for store.py module (facade behaviour, retries, provider).
"""

from pathlib import Path

import pytest

from mailreconcile.errors import AccessError, CopyError, FatalConnectError
from mailreconcile.models import Folder, Item
from mailreconcile.store import Store, StoreHandle, StoreProvider


class FlakyStore(Store):
    """Minimal backend whose hooks can be told to fail."""

    def __init__(self, copy_failures=0, fail_reads=False, **kwargs):
        super().__init__("Flaky", **kwargs)
        self.copy_failures = copy_failures
        self.fail_reads = fail_reads
        self.copy_attempts = 0
        self.copied = []
        self.closed_calls = 0

    @property
    def root(self):
        return Folder("")

    def _list_children(self, folder):
        if self.fail_reads:
            raise OSError("permission denied")
        return [Folder("Inbox", ("Inbox",)), Folder("inbox", ("inbox",))]

    def _item_count(self, folder):
        if self.fail_reads:
            raise OSError("permission denied")
        return 2

    def _enumerate_items(self, folder):
        yield Item(subject="one")
        if self.fail_reads:
            raise OSError("read error")
        yield Item(subject="two")

    def _copy_folder(self, folder, destination_parent):
        return self._attempt(folder)

    def _copy_item(self, item, destination_folder):
        self._attempt(item)

    def _attempt(self, obj):
        self.copy_attempts += 1
        if self.copy_attempts <= self.copy_failures:
            raise CopyError("server busy")
        self.copied.append(obj)
        return obj

    def _close(self):
        self.closed_calls += 1


class TestReads:

    def test_list_children_soft_fails(self):
        assert FlakyStore(fail_reads=True).list_children(Folder("")) == []

    def test_item_count_soft_fails_to_zero(self):
        assert FlakyStore(fail_reads=True).item_count(Folder("")) == 0

    def test_enumerate_items_is_restartable(self):
        store = FlakyStore()
        first = [i.subject for i in store.enumerate_items(Folder(""))]
        second = [i.subject for i in store.enumerate_items(Folder(""))]
        assert first == second == ["one", "two"]

    def test_enumerate_items_wraps_backend_errors(self):
        store = FlakyStore(fail_reads=True)
        with pytest.raises(AccessError):
            list(store.enumerate_items(Folder("Inbox", ("Inbox",))))

    def test_find_child_is_case_sensitive(self):
        store = FlakyStore()
        assert store.find_child(Folder(""), "inbox").path == ("inbox",)
        assert store.find_child(Folder(""), "INBOX") is None


class TestCopyRetries:

    def test_copy_succeeds_after_transient_failures(self):
        sleeps = []
        store = FlakyStore(copy_failures=2, copy_retries=3, copy_retry_delay=1.5, sleep=sleeps.append)
        store.copy_item(Item(subject="x"), Folder("Inbox", ("Inbox",)))
        assert store.copy_attempts == 3
        assert sleeps == [1.5, 1.5]
        assert len(store.copied) == 1

    def test_copy_gives_up_after_bounded_attempts(self):
        sleeps = []
        store = FlakyStore(copy_failures=10, copy_retries=3, copy_retry_delay=0, sleep=sleeps.append)
        with pytest.raises(CopyError):
            store.copy_folder(Folder("Inbox", ("Inbox",)), Folder(""))
        assert store.copy_attempts == 3
        assert len(sleeps) == 2

    def test_non_retryable_failure_stops_immediately(self):
        class Refusing(FlakyStore):
            def _copy_folder(self, folder, destination_parent):
                self.copy_attempts += 1
                raise CopyError("Destination folder already exists", retryable=False)

        sleeps = []
        store = Refusing(copy_retries=3, copy_retry_delay=2.0, sleep=sleeps.append)
        with pytest.raises(CopyError):
            store.copy_folder(Folder("Inbox", ("Inbox",)), Folder(""))
        assert store.copy_attempts == 1
        assert sleeps == []

    def test_unexpected_backend_error_becomes_copy_error(self):
        class Broken(FlakyStore):
            def _copy_item(self, item, destination_folder):
                raise RuntimeError("boom")

        store = Broken(copy_retries=1, sleep=lambda s: None)
        with pytest.raises(CopyError) as exc:
            store.copy_item(Item(), Folder("Inbox", ("Inbox",)))
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_invalid_retry_settings(self):
        with pytest.raises(ValueError):
            FlakyStore(copy_retries=0)
        with pytest.raises(ValueError):
            FlakyStore(copy_retry_delay=-1)


class TestLifetime:

    def test_context_manager_closes_once(self):
        store = FlakyStore()
        with store:
            pass
        store.close()
        assert store.closed
        assert store.closed_calls == 1

    def test_closes_on_error(self):
        store = FlakyStore()
        with pytest.raises(RuntimeError):
            with store:
                raise RuntimeError("engine failure")
        assert store.closed

    def test_identity_includes_path(self):
        assert FlakyStore().identity == "Flaky"
        store = FlakyStore()
        store.path = Path("/srv/mail")
        assert store.identity == f"Flaky ({Path('/srv/mail')})"


class TestStoreProvider:

    def _provider(self, factory=None):
        handles = [StoreHandle(0, "Mailbox", Path("/a")), StoreHandle(1, "Archive", Path("/b"))]
        return StoreProvider(handles, factory or (lambda h: FlakyStore()))

    def test_list_stores(self):
        stores = self._provider().list_stores()
        assert [(h.index, h.name) for h in stores] == [(0, "Mailbox"), (1, "Archive")]

    @pytest.mark.parametrize("index", [-1, 2, 99])
    def test_validate_rejects_unknown_index(self, index):
        with pytest.raises(ValueError):
            self._provider().validate(index)

    def test_open_unknown_index_is_fatal(self):
        with pytest.raises(FatalConnectError):
            self._provider().open(5)

    def test_open_wraps_factory_errors(self):
        def factory(handle):
            raise OSError("no such volume")

        with pytest.raises(FatalConnectError) as exc:
            self._provider(factory).open(1)
        assert "Archive" in str(exc.value)

    def test_from_settings_opens_maildir(self, test_settings):
        from mailreconcile.maildir_store import MaildirStore

        provider = StoreProvider.from_settings(test_settings)
        store = provider.open(0)
        assert isinstance(store, MaildirStore)
        assert store.name == "Mailbox"
        assert store.copy_retries == test_settings.copy_retries

    def test_from_settings_missing_root_is_fatal(self, test_settings, tmp_path):
        test_settings.stores[1].path = tmp_path / "does-not-exist"
        provider = StoreProvider.from_settings(test_settings)
        with pytest.raises(FatalConnectError):
            provider.open(1)
