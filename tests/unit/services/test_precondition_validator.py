"""
Unit tests for the creation precondition checks.
"""

import pytest


class TestQuota:
    """Tests for the Always Free database cap."""

    @pytest.mark.unit
    def test_cap_reached_rejects_free_tier_request(self, make_summary):
        """Test A and B free tier with cap 2: creating C is rejected."""
        from provisioner.core.exceptions import QuotaExceededError
        from provisioner.services.precondition_validator import validate

        listing = [make_summary("A"), make_summary("B")]

        with pytest.raises(QuotaExceededError) as exc_info:
            validate(listing, "C", is_free_tier_request=True, free_tier_cap=2)

        assert exc_info.value.cap == 2
        assert exc_info.value.detected_remotely is False

    @pytest.mark.unit
    def test_one_below_cap_accepted(self, make_summary):
        """Test that count == cap - 1 is accepted."""
        from provisioner.services.precondition_validator import validate

        validate([make_summary("A")], "C", is_free_tier_request=True, free_tier_cap=2)

    @pytest.mark.unit
    def test_terminated_databases_not_counted(self, make_summary):
        """Test that terminated free tier databases free their slot."""
        from provisioner.services.precondition_validator import validate

        listing = [make_summary("A"), make_summary("B", lifecycle_state="TERMINATED")]

        validate(listing, "C", is_free_tier_request=True)

    @pytest.mark.unit
    def test_paid_request_ignores_cap(self, make_summary):
        """Test that paid databases are not subject to the free tier cap."""
        from provisioner.services.precondition_validator import validate

        listing = [make_summary("A"), make_summary("B")]

        validate(listing, "C", is_free_tier_request=False)

    @pytest.mark.unit
    def test_names_counted_once(self, make_summary):
        """Test that the cap counts distinct names."""
        from provisioner.core.exceptions import DuplicateNameError
        from provisioner.services.precondition_validator import validate

        listing = [make_summary("A"), make_summary("A", lifecycle_state="STOPPED")]

        with pytest.raises(DuplicateNameError):
            validate(listing, "A", is_free_tier_request=True, free_tier_cap=2)

    @pytest.mark.unit
    def test_quota_checked_before_duplicate(self, make_summary):
        """Test that a request hitting both conditions reports the quota."""
        from provisioner.core.exceptions import QuotaExceededError
        from provisioner.services.precondition_validator import validate

        listing = [make_summary("A"), make_summary("B")]

        with pytest.raises(QuotaExceededError):
            validate(listing, "A", is_free_tier_request=True)

    @pytest.mark.unit
    def test_default_cap_is_two(self):
        """Test the fixed free tier cap."""
        from provisioner.services.precondition_validator import FREE_TIER_DATABASE_LIMIT

        assert FREE_TIER_DATABASE_LIMIT == 2


class TestDuplicateName:
    """Tests for name uniqueness."""

    @pytest.mark.unit
    @pytest.mark.parametrize("free_tier", [True, False])
    def test_live_name_rejected(self, make_summary, free_tier):
        """Test FOO existing: creating FOO fails on any tier."""
        from provisioner.core.exceptions import DuplicateNameError
        from provisioner.services.precondition_validator import validate

        with pytest.raises(DuplicateNameError) as exc_info:
            validate([make_summary("FOO", is_free_tier=False)], "FOO", is_free_tier_request=free_tier)

        assert exc_info.value.name == "FOO"

    @pytest.mark.unit
    @pytest.mark.parametrize("existing_free_tier", [True, False])
    def test_rejection_independent_of_existing_tier(self, make_summary, existing_free_tier):
        """Test that the existing database tier does not matter."""
        from provisioner.core.exceptions import DuplicateNameError
        from provisioner.services.precondition_validator import validate

        with pytest.raises(DuplicateNameError):
            validate([make_summary("FOO", is_free_tier=existing_free_tier)], "FOO", is_free_tier_request=False)

    @pytest.mark.unit
    def test_terminated_name_reusable(self, make_summary):
        """Test that a terminated database name can be reused."""
        from provisioner.services.precondition_validator import validate

        validate([make_summary("FOO", lifecycle_state="TERMINATED")], "FOO", is_free_tier_request=True)

    @pytest.mark.unit
    def test_empty_listing(self):
        """Test that an empty tenancy accepts anything."""
        from provisioner.services.precondition_validator import validate

        validate([], "FOO", is_free_tier_request=True)
