"""Tests for the reconciliation session state machine."""

from unittest.mock import MagicMock, call

import pytest

from vaultsync._types import ChangeKind, ChangeSetItem, UnchangedPolicy, VersionedFolder
from vaultsync.exceptions import AuthError, BackendCallError, PreconditionError
from vaultsync.session import ReconciliationSession, SessionState


def _mock_backend(pending=()):
    client = MagicMock()
    client.working_folder.return_value = None
    client.list_pending_changes.return_value = list(pending)
    client.list_folder.return_value = VersionedFolder("$/p")
    client.add.return_value = []
    client.commit.return_value = 0
    backend = MagicMock()
    backend.login.return_value = client
    return backend, client


def _session(backend, tmp_path, **kwargs):
    return ReconciliationSession(
        backend, "srv", "$/p", tmp_path / "wc",
        repository="main", user="u", password="pw", **kwargs,
    )


class TestLifecycle:
    def test_open_runs_login_bind_clean(self, tmp_path):
        backend, client = _mock_backend()
        s = _session(backend, tmp_path).open()
        assert s.state is SessionState.CLEAN
        backend.login.assert_called_once_with("srv", "u", "pw", "main")
        client.bind_working_folder.assert_called_once_with("$/p", str(tmp_path / "wc"))
        client.unbind_working_folder.assert_not_called()

    def test_existing_binding_replaced(self, tmp_path):
        backend, client = _mock_backend()
        client.working_folder.return_value = "/old/place"
        _session(backend, tmp_path).open()
        assert client.mock_calls[:3] == [
            call.working_folder("$/p"),
            call.unbind_working_folder("$/p"),
            call.bind_working_folder("$/p", str(tmp_path / "wc")),
        ]

    def test_clean_undoes_every_pending_change(self, tmp_path):
        pending = [ChangeSetItem("$/p/a", ChangeKind.ADD), ChangeSetItem("$/p/b", ChangeKind.MODIFY)]
        backend, client = _mock_backend(pending)
        _session(backend, tmp_path).open()
        assert client.undo_pending_change.call_args_list == [call(0), call(0)]

    def test_dispose_order(self, tmp_path):
        backend, client = _mock_backend()
        with _session(backend, tmp_path, keep_local_copy=False) as s:
            client.reset_mock()
        assert s.state is SessionState.DISPOSED
        assert client.mock_calls == [
            call.undo_checkout(["$/p"], True, False),
            call.list_pending_changes("$/p"),
            call.unbind_working_folder("$/p"),
            call.logout(),
        ]

    def test_dispose_idempotent(self, tmp_path):
        backend, client = _mock_backend()
        s = _session(backend, tmp_path).open()
        s.dispose()
        s.dispose()
        client.logout.assert_called_once()

    def test_dispose_on_error_in_body(self, tmp_path):
        backend, client = _mock_backend()
        with pytest.raises(RuntimeError):
            with _session(backend, tmp_path):
                raise RuntimeError("boom")
        client.unbind_working_folder.assert_called_once_with("$/p")
        client.logout.assert_called_once()

    def test_dispose_when_bind_fails(self, tmp_path):
        backend, client = _mock_backend()
        client.bind_working_folder.side_effect = BackendCallError("nope")
        s = _session(backend, tmp_path)
        with pytest.raises(BackendCallError):
            s.open()
        assert s.state is SessionState.DISPOSED
        client.unbind_working_folder.assert_not_called()
        client.logout.assert_called_once()

    def test_logout_even_if_undo_fails(self, tmp_path):
        backend, client = _mock_backend()
        s = _session(backend, tmp_path).open()
        client.undo_checkout.side_effect = BackendCallError("nope")
        with pytest.raises(BackendCallError):
            s.dispose()
        client.unbind_working_folder.assert_called_once()
        client.logout.assert_called_once()
        assert s.state is SessionState.DISPOSED

    def test_login_failure(self, tmp_path):
        backend = MagicMock()
        backend.login.side_effect = AuthError("bad")
        s = _session(backend, tmp_path)
        with pytest.raises(AuthError):
            s.open()
        assert s.state is SessionState.DISPOSED


class TestOperations:
    def test_reconcile_before_open_rejected(self, tmp_path):
        backend, _client = _mock_backend()
        with pytest.raises(PreconditionError):
            _session(backend, tmp_path).reconcile()

    def test_commit_before_reconcile_rejected(self, tmp_path):
        backend, _client = _mock_backend()
        with _session(backend, tmp_path) as s:
            with pytest.raises(PreconditionError):
                s.commit()

    def test_label_before_commit_rejected(self, tmp_path):
        backend, _client = _mock_backend()
        with _session(backend, tmp_path) as s:
            s.reconcile()
            with pytest.raises(PreconditionError):
                s.label("v1")

    def test_empty_change_set_not_submitted(self, tmp_path):
        backend, client = _mock_backend()
        with _session(backend, tmp_path) as s:
            changes = s.reconcile()
            assert changes.in_sync
            assert s.commit() == 0
            assert s.state is SessionState.COMMITTED
        client.commit.assert_not_called()
        client.apply_label.assert_not_called()

    def test_commit_passes_policy(self, tmp_path):
        backend, client = _mock_backend()
        (tmp_path / "wc").mkdir()
        (tmp_path / "wc" / "new.txt").write_text("n")
        item = ChangeSetItem("$/p/new.txt", ChangeKind.ADD)
        client.add.return_value = [item]
        client.commit.return_value = 1
        with _session(backend, tmp_path, unchanged_policy=UnchangedPolicy.UNDO_CHECKOUT) as s:
            assert s.reconcile().items == [item]
            assert s.commit() == 1
            s.label("v1")
        client.commit.assert_called_once_with([item], UnchangedPolicy.UNDO_CHECKOUT, True)
        client.apply_label.assert_called_once_with("$/p", "v1")

    def test_reconcile_includes_backend_pending(self, tmp_path):
        backend, client = _mock_backend()
        edited = ChangeSetItem("$/p/edited.txt", ChangeKind.MODIFY)
        with _session(backend, tmp_path) as s:
            client.list_pending_changes.return_value = [edited]
            assert s.reconcile().items == [edited]
        client.list_pending_changes.assert_called_with("$/p")

    def test_get_in_clean_state(self, tmp_path):
        backend, client = _mock_backend()
        with _session(backend, tmp_path) as s:
            s.get()
        client.get.assert_called_once_with("$/p")

    def test_operations_after_dispose_rejected(self, tmp_path):
        backend, _client = _mock_backend()
        with _session(backend, tmp_path) as s:
            pass
        with pytest.raises(PreconditionError):
            s.get()
