"""
Unit tests for database termination.
"""

import oci
import pytest


@pytest.fixture
def make_teardown(mock_clients, reporter, checkpoint_store):
    from provisioner.services.teardown_service import DatabaseTeardown
    from provisioner.services.work_request_poller import DELETE_POLICY, WorkRequestPoller
    from provisioner.core.progress import Section

    def _make(config, db_name="DRAGON"):
        poller = WorkRequestPoller(
            mock_clients,
            reporter,
            Section.DATABASE_TERMINATION,
            DELETE_POLICY,
            sleep=lambda seconds: None,
        )
        return DatabaseTeardown(
            config, mock_clients, reporter, checkpoint_store, db_name, poller=poller
        )

    return _make


class TestDestroy:
    """Tests for the termination flow."""

    @pytest.mark.unit
    def test_existing_database_terminated(
        self, make_teardown, free_tier_config, mock_clients, make_summary, checkpoint_store, sample_checkpoint, reporter
    ):
        """Test termination, lifecycle wait and checkpoint removal."""
        from provisioner.core.progress import Section
        from provisioner.models.database import LifecycleState
        from provisioner.services.teardown_service import TeardownStatus

        target = make_summary("DRAGON")
        mock_clients.list_databases.return_value = [make_summary("OTHER"), target]
        checkpoint_store.save(sample_checkpoint)

        status = make_teardown(free_tier_config).destroy()

        assert status == TeardownStatus.DESTROYED
        mock_clients.delete_database.assert_called_once_with(target.id)
        mock_clients.wait_for_database_state.assert_called_once_with(
            target.id, LifecycleState.TERMINATED
        )
        assert checkpoint_store.exists() is False
        assert reporter.closed(Section.DATABASE_TERMINATION) == "ok"

    @pytest.mark.unit
    def test_missing_database_is_nothing_to_do(
        self, make_teardown, free_tier_config, mock_clients, checkpoint_store, sample_checkpoint, reporter
    ):
        """Test that an absent database still removes the checkpoint."""
        from provisioner.core.progress import Section
        from provisioner.services.teardown_service import TeardownStatus

        checkpoint_store.save(sample_checkpoint)

        status = make_teardown(free_tier_config).destroy()

        assert status == TeardownStatus.NOTHING_TO_DO
        mock_clients.delete_database.assert_not_called()
        assert checkpoint_store.exists() is False
        assert reporter.events[-1] == ("ok", Section.DATABASE_TERMINATION, "nothing to do")

    @pytest.mark.unit
    def test_second_destroy_is_noop(self, make_teardown, free_tier_config, mock_clients, make_summary):
        """Test idempotence across two runs."""
        from provisioner.services.teardown_service import TeardownStatus

        mock_clients.list_databases.side_effect = [
            [make_summary("DRAGON")],
            [make_summary("DRAGON", lifecycle_state="TERMINATED")],
        ]
        teardown = make_teardown(free_tier_config)

        assert teardown.destroy() == TeardownStatus.DESTROYED
        assert teardown.destroy() == TeardownStatus.NOTHING_TO_DO
        assert mock_clients.delete_database.call_count == 1

    @pytest.mark.unit
    def test_free_tier_request_ignores_paid_database(
        self, make_teardown, free_tier_config, mock_clients, make_summary
    ):
        """Test that a free tier scoped request never touches a paid database."""
        from provisioner.services.teardown_service import TeardownStatus

        mock_clients.list_databases.return_value = [make_summary("DRAGON", is_free_tier=False)]

        assert make_teardown(free_tier_config).destroy() == TeardownStatus.NOTHING_TO_DO
        mock_clients.delete_database.assert_not_called()

    @pytest.mark.unit
    def test_paid_request_matches_any_tier(self, make_teardown, paid_config, mock_clients, make_summary):
        """Test that a paid configuration matches by name only."""
        from provisioner.services.teardown_service import TeardownStatus

        mock_clients.list_databases.return_value = [make_summary("DRAGON", is_free_tier=True)]

        assert make_teardown(paid_config).destroy() == TeardownStatus.DESTROYED

    @pytest.mark.unit
    def test_failed_work_request_keeps_checkpoint(
        self, make_teardown, free_tier_config, mock_clients, make_summary, checkpoint_store, sample_checkpoint, reporter
    ):
        """Test that a failed termination raises with the remote errors."""
        from provisioner.core.exceptions import WorkRequestFailedError
        from provisioner.core.progress import Section

        mock_clients.list_databases.return_value = [make_summary("DRAGON")]
        mock_clients.get_work_request.side_effect = [("FAILED", 0.0)]
        mock_clients.list_work_request_errors.return_value = ["Termination protection enabled"]
        checkpoint_store.save(sample_checkpoint)

        with pytest.raises(WorkRequestFailedError) as exc_info:
            make_teardown(free_tier_config).destroy()

        assert exc_info.value.operation == "destroy"
        assert exc_info.value.errors == ["Termination protection enabled"]
        assert checkpoint_store.exists() is True
        assert reporter.closed(Section.DATABASE_TERMINATION) == "ko"

    @pytest.mark.unit
    def test_terminated_state_wait_failure(self, make_teardown, free_tier_config, mock_clients, make_summary):
        """Test the lifecycle wait after a successful work request."""
        from provisioner.core.exceptions import AvailabilityWaitError

        mock_clients.list_databases.return_value = [make_summary("DRAGON")]
        mock_clients.wait_for_database_state.side_effect = oci.exceptions.MaximumWaitTimeExceeded("timeout")

        with pytest.raises(AvailabilityWaitError) as exc_info:
            make_teardown(free_tier_config).destroy()

        assert exc_info.value.expected_state == "TERMINATED"

    @pytest.mark.unit
    def test_listing_rejected(self, make_teardown, free_tier_config, mock_clients, checkpoint_store, sample_checkpoint, reporter):
        """Test that a failing listing is typed and keeps the checkpoint."""
        from provisioner.core.exceptions import CloudRequestError
        from provisioner.core.progress import Section

        mock_clients.list_databases.side_effect = oci.exceptions.ServiceError(
            500, "InternalServerError", {}, "listing failed"
        )
        checkpoint_store.save(sample_checkpoint)

        with pytest.raises(CloudRequestError):
            make_teardown(free_tier_config).destroy()

        assert checkpoint_store.exists() is True
        assert reporter.closed(Section.DATABASE_TERMINATION) == "ko"

    @pytest.mark.unit
    def test_termination_rejected(self, make_teardown, free_tier_config, mock_clients, make_summary, reporter):
        """Test that a refused delete call is typed and closes the step."""
        from provisioner.core.exceptions import CloudRequestError, ErrorKind
        from provisioner.core.progress import Section

        mock_clients.list_databases.return_value = [make_summary("DRAGON")]
        mock_clients.delete_database.side_effect = oci.exceptions.ServiceError(
            409, "Conflict", {}, "database is busy"
        )

        with pytest.raises(CloudRequestError) as exc_info:
            make_teardown(free_tier_config).destroy()

        assert exc_info.value.operation == "terminate database"
        assert exc_info.value.kind == ErrorKind.REMOTE_CONFLICT
        assert reporter.closed(Section.DATABASE_TERMINATION) == "ko"


class TestLocateDatabase:
    """Tests for target selection."""

    @pytest.mark.unit
    def test_terminated_entries_skipped(self, make_summary):
        """Test that only live databases are candidates."""
        from provisioner.services.teardown_service import locate_database

        live = make_summary("DRAGON")
        resources = [make_summary("DRAGON", lifecycle_state="TERMINATED"), live]

        assert locate_database(resources, "DRAGON", free_tier_only=True) == live
        assert locate_database(resources, "OTHER", free_tier_only=False) is None
