"""Unit tests for drain markers and desired state building."""

from unittest.mock import Mock

from vipsync.core.config import DrainConfig
from vipsync.core.context import create_context
from vipsync.services.desired import DesiredStateBuilder, VipStatus
from vipsync.services.drain import DrainMarkerStore
from vipsync.services.metadata import ForwardedVip


class TestDrainMarkerStore:
    """Tests for marker file lookups."""

    def test_marker_path(self, markers, run_dir):
        assert markers.marker_path("10.0.0.1") == run_dir / "10.0.0.1.down"

    def test_is_down_reflects_filesystem(self, markers, run_dir):
        """Each call sees the current state of the directory."""
        assert markers.is_down("10.0.0.1") is False

        (run_dir / "10.0.0.1.down").touch()
        assert markers.is_down("10.0.0.1") is True

        (run_dir / "10.0.0.1.down").unlink()
        assert markers.is_down("10.0.0.1") is False

    def test_content_is_irrelevant(self, markers, run_dir):
        (run_dir / "10.0.0.1.down").write_text("maintenance window\n")
        assert markers.is_down("10.0.0.1") is True

    def test_list_down(self, markers, run_dir):
        (run_dir / "10.0.0.2.down").touch()
        (run_dir / "10.0.0.1.down").touch()
        (run_dir / "README").touch()
        (run_dir / ".down").touch()

        assert markers.list_down() == ["10.0.0.1", "10.0.0.2"]

    def test_list_down_missing_directory(self, tmp_path):
        store = DrainMarkerStore(create_context(), DrainConfig(run_dir=tmp_path / "absent"))
        assert store.list_down() == []

    def test_ensure_directory_creates(self, tmp_path):
        run_dir = tmp_path / "run" / "cloud-routes"
        store = DrainMarkerStore(create_context(), DrainConfig(run_dir=run_dir))

        store.ensure_directory()
        store.ensure_directory()

        assert run_dir.is_dir()

    def test_ensure_directory_dry_run(self, tmp_path):
        run_dir = tmp_path / "cloud-routes"
        store = DrainMarkerStore(create_context(dry_run=True), DrainConfig(run_dir=run_dir))

        store.ensure_directory()

        assert not run_dir.exists()

    def test_custom_suffix(self, tmp_path):
        store = DrainMarkerStore(
            create_context(),
            DrainConfig(run_dir=tmp_path, marker_suffix=".drain"),
        )
        (tmp_path / "10.0.0.1.drain").touch()
        assert store.is_down("10.0.0.1") is True


class TestDesiredStateBuilder:
    """Tests for combining metadata and markers."""

    def _builder(self, ctx, markers, vips):
        metadata = Mock()
        metadata.list_forwarded_vips.return_value = vips
        return DesiredStateBuilder(ctx, metadata, markers)

    def test_all_active_without_markers(self, ctx, markers):
        builder = self._builder(ctx, markers, [
            ForwardedVip("10.0.0.1", "0/"),
            ForwardedVip("10.0.0.2", "0/"),
        ])

        assert builder.build() == {
            "10.0.0.1": VipStatus.ACTIVE,
            "10.0.0.2": VipStatus.ACTIVE,
        }

    def test_marker_marks_down(self, ctx, markers, run_dir):
        (run_dir / "10.0.0.2.down").touch()
        builder = self._builder(ctx, markers, [
            ForwardedVip("10.0.0.1", "0/"),
            ForwardedVip("10.0.0.2", "0/"),
        ])

        assert builder.build() == {
            "10.0.0.1": VipStatus.ACTIVE,
            "10.0.0.2": VipStatus.DOWN,
        }

    def test_marker_for_unknown_vip_ignored(self, ctx, markers, run_dir):
        """Markers only matter for VIPs the metadata server reports."""
        (run_dir / "10.9.9.9.down").touch()
        builder = self._builder(ctx, markers, [ForwardedVip("10.0.0.1", "0/")])

        assert builder.build() == {"10.0.0.1": VipStatus.ACTIVE}

    def test_duplicate_vip_across_interfaces(self, ctx, markers):
        builder = self._builder(ctx, markers, [
            ForwardedVip("10.0.0.1", "0/"),
            ForwardedVip("10.0.0.1", "1/"),
        ])

        assert builder.build() == {"10.0.0.1": VipStatus.ACTIVE}

    def test_each_build_is_fresh(self, ctx, markers):
        """No state carries over from a previous cycle."""
        metadata = Mock()
        metadata.list_forwarded_vips.side_effect = [
            [ForwardedVip("10.0.0.1", "0/")],
            [],
        ]
        builder = DesiredStateBuilder(ctx, metadata, markers)

        assert builder.build() == {"10.0.0.1": VipStatus.ACTIVE}
        assert builder.build() == {}
