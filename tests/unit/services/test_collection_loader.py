"""
Unit tests for the collection loader.

Uploads go to a mocked CloudClients, load calls to an ORDS endpoint
simulated with httpx.MockTransport.
"""

from unittest.mock import MagicMock

import oci
import pytest

ADMIN_SQL_DEV_WEB_URL = "https://abc123-dragon.adb.eu-frankfurt-1.oraclecloudapps.com/ords/admin/_sdw/"


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    return directory


def make_loader(clients, ords, reporter, data_dir):
    from provisioner.services.collection_loader import CollectionLoader

    rest = ords.factory(ADMIN_SQL_DEV_WEB_URL, "DRAGON", "secret")
    return CollectionLoader(
        clients,
        rest,
        reporter,
        namespace="ns",
        region="eu-frankfurt-1",
        db_name="DRAGON",
        data_path=data_dir,
        max_workers=2,
    )


class TestLoadAll:
    """Tests for collection uploads and load calls."""

    @pytest.mark.unit
    def test_orders_files_uploaded_then_loaded_once(self, data_dir, ords, reporter):
        """Test orders_1.json and orders_2.json: two uploads then one load call."""
        (data_dir / "orders_1.json").write_text('{"id": 1}\n')
        (data_dir / "orders_2.json").write_text('{"id": 2}\n')
        (data_dir / "customers_1.json").write_text('{"id": 3}\n')
        clients = MagicMock()

        loaded = make_loader(clients, ords, reporter, data_dir).load_all(["orders"])

        assert loaded == {"orders": 2}
        uploaded = sorted(c.args[2] for c in clients.upload_file.call_args_list)
        assert uploaded == ["DRAGON/orders/orders_1.json", "DRAGON/orders/orders_2.json"]
        assert all(c.args[0] == "ns" and c.args[1] == "dragon" for c in clients.upload_file.call_args_list)

        scripts = ords.scripts()
        assert len(scripts) == 1
        assert "collection_name => 'orders'" in scripts[0]
        assert "/n/ns/b/dragon/o/DRAGON/orders/*'" in scripts[0]

    @pytest.mark.unit
    def test_upload_progress_reported(self, data_dir, ords, reporter):
        """Test per file upload progress messages."""
        from provisioner.core.progress import Section

        (data_dir / "orders_1.json").write_text("{}")
        (data_dir / "orders_2.json").write_text("{}")

        make_loader(MagicMock(), ords, reporter, data_dir).load_all(["orders"])

        messages = reporter.messages(Section.DATA_LOADING)
        assert "collection orders: uploading file 1/2" in messages
        assert "collection orders: uploading file 2/2" in messages
        assert messages[-1] == "collection orders: loading..."

    @pytest.mark.unit
    def test_collection_without_files_skipped(self, data_dir, ords, reporter):
        """Test that a collection with no local file issues no call."""
        clients = MagicMock()

        loaded = make_loader(clients, ords, reporter, data_dir).load_all(["orders"])

        assert loaded == {}
        clients.upload_file.assert_not_called()
        assert ords.scripts() == []

    @pytest.mark.unit
    def test_bookkeeping_collection_never_loaded(self, data_dir, ords, reporter):
        """Test that the dragon collection is excluded."""
        (data_dir / "dragon_1.json").write_text("{}")
        clients = MagicMock()

        loaded = make_loader(clients, ords, reporter, data_dir).load_all(["dragon"])

        assert loaded == {}
        clients.upload_file.assert_not_called()

    @pytest.mark.unit
    def test_load_failure_aborts_remaining(self, data_dir, ords, reporter):
        """Test that a failing load raises and stops later collections."""
        from provisioner.core.exceptions import CollectionNotLoadedError

        (data_dir / "orders_1.json").write_text("{}")
        (data_dir / "customers_1.json").write_text("{}")
        ords.fail_when = lambda request: b"'orders'" in request.content
        clients = MagicMock()

        with pytest.raises(CollectionNotLoadedError) as exc_info:
            make_loader(clients, ords, reporter, data_dir).load_all(["orders", "customers"])

        assert exc_info.value.collection == "orders"
        assert len(ords.scripts()) == 1
        assert all("customers" not in c.args[2] for c in clients.upload_file.call_args_list)

    @pytest.mark.unit
    def test_upload_failure_raises(self, data_dir, ords, reporter):
        """Test that a failed upload is reported as a collection load failure."""
        from provisioner.core.exceptions import CollectionNotLoadedError

        (data_dir / "orders_1.json").write_text("{}")
        clients = MagicMock()
        clients.upload_file.side_effect = oci.exceptions.ServiceError(404, "BucketNotFound", {}, "no bucket")

        with pytest.raises(CollectionNotLoadedError):
            make_loader(clients, ords, reporter, data_dir).load_all(["orders"])

        assert ords.scripts() == []


class TestFindCollectionFiles:
    """Tests for data file discovery."""

    @pytest.mark.unit
    def test_prefix_match_only(self, data_dir):
        """Test the <collection>_*.json naming convention."""
        from provisioner.services.collection_loader import find_collection_files

        for name in ("orders_1.json", "orders_b.json", "orders.json", "orders_1.txt", "backorders_1.json"):
            (data_dir / name).write_text("{}")

        files = find_collection_files(data_dir, "orders")

        assert [path.name for path in files] == ["orders_1.json", "orders_b.json"]
