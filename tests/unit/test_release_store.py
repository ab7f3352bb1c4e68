"""Tests for ReleaseStore: listing, integrity, resolution, manifests."""

from __future__ import annotations

from pathlib import Path

import pytest

from hostrelease.core.errors import (
    AmbiguousReleaseError,
    ConfigurationError,
    IntegrityError,
    ReleaseNotFoundError,
)
from hostrelease.core.release_store import (
    ReleaseStore,
    find_vcs_metadata,
    validate_release_name,
)
from hostrelease.models.config import ReleaseConfig
from hostrelease.models.release import MANIFEST_FILENAME

REV_A = "abc1" + "0" * 36
REV_B = "abc2" + "0" * 36
REV_C = "def0" + "0" * 36


@pytest.fixture
def store(store_config: ReleaseConfig) -> ReleaseStore:
    return ReleaseStore(store_config)


class TestLayout:
    def test_list_releases_sorted_and_skips_staging(self, store, make_release):
        make_release(REV_C)
        make_release(REV_A)
        (store.releases_dir / ".staging.abc1.x").mkdir()
        (store.releases_dir / "stray-file").write_text("x")
        assert store.list_releases() == [REV_A, REV_C]

    def test_list_releases_empty_when_missing(self, store):
        assert store.list_releases() == []

    def test_validate_root_rejects_file(self, store_config: ReleaseConfig):
        store_config.release_root.parent.mkdir(parents=True, exist_ok=True)
        store_config.release_root.write_text("not a dir")
        with pytest.raises(ConfigurationError):
            ReleaseStore(store_config).validate_root()

    def test_validate_root_accepts_missing(self, store):
        store.validate_root()

    def test_validate_root_under_regular_file(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a dir")
        store = ReleaseStore(ReleaseConfig(release_root=blocker / "store"))
        with pytest.raises(ConfigurationError, match="unusable release store path"):
            store.validate_root()

    @pytest.mark.parametrize("name", ["", ".hidden", "a/b", " padded"])
    def test_invalid_release_names(self, name):
        with pytest.raises(ConfigurationError):
            validate_release_name(name)


class TestIntegrity:
    def test_clean_release_passes(self, make_release):
        ReleaseStore.verify_release(make_release(REV_A))

    def test_missing_release_fails(self, tmp_path: Path):
        with pytest.raises(IntegrityError):
            ReleaseStore.verify_release(tmp_path / "nope")

    @pytest.mark.parametrize("vcs", [".git", ".hg", ".svn"])
    def test_nested_vcs_metadata_fails(self, make_release, vcs):
        release = make_release(REV_A)
        (release / "deep" / "er" / vcs).mkdir(parents=True)
        assert find_vcs_metadata(release) == release / "deep" / "er" / vcs
        with pytest.raises(IntegrityError, match="version-control metadata"):
            ReleaseStore.verify_release(release)


class TestResolve:
    def test_exact_match(self, store, make_release):
        make_release(REV_A)
        make_release(REV_B)
        assert store.resolve(REV_A) == store.releases_dir / REV_A

    def test_unique_prefix(self, store, make_release):
        make_release(REV_A)
        make_release(REV_C)
        assert store.resolve("abc") == store.releases_dir / REV_A

    def test_ambiguous_prefix_lists_candidates(self, store, make_release):
        make_release(REV_A)
        make_release(REV_B)
        with pytest.raises(AmbiguousReleaseError) as exc_info:
            store.resolve("abc")
        assert exc_info.value.candidates == [REV_A, REV_B]
        assert exc_info.value.step == "resolve"

    def test_unknown_revision(self, store, make_release):
        make_release(REV_A)
        with pytest.raises(ReleaseNotFoundError):
            store.resolve("fff")

    def test_staging_dirs_never_match(self, store, make_release):
        make_release(REV_A)
        (store.releases_dir / ".staging.abc").mkdir()
        with pytest.raises(ReleaseNotFoundError):
            store.resolve(".staging.abc")

    def test_previous_requires_link(self, store, make_release):
        make_release(REV_A)
        with pytest.raises(ReleaseNotFoundError, match="no previous"):
            store.resolve("previous")

    def test_previous_follows_link(self, store, make_release):
        release = make_release(REV_A)
        store.config.previous_link.symlink_to(release)
        assert store.resolve("previous") == release.resolve()


class TestManifest:
    def test_round_trips_revision(self, store, make_release):
        release = make_release(REV_A)
        manifest = ReleaseStore.read_manifest(release)
        assert manifest is not None
        assert manifest.revision_id == REV_A
        assert store.expected_revision(release) == REV_A

    def test_missing_manifest_falls_back_to_dir_name(self, store, make_release):
        release = make_release(REV_A, manifest=False)
        assert ReleaseStore.read_manifest(release) is None
        assert store.expected_revision(release) == REV_A

    @pytest.mark.parametrize("text", ["{nope", "[]", '{"branch": "main"}'])
    def test_corrupt_manifest_is_integrity_error(self, store, make_release, text):
        release = make_release(REV_A, manifest=False)
        (release / MANIFEST_FILENAME).write_text(text)
        with pytest.raises(IntegrityError, match="manifest corrupt"):
            store.expected_revision(release)


class TestRememberedSource:
    def test_nothing_remembered(self, store):
        assert store.remembered_source() == (None, None)

    def test_remember_and_recall(self, store):
        store.remember_source("/srv/agent.git", "stable")
        assert store.remembered_source() == ("/srv/agent.git", "stable")
        assert store.config.source_url_file.read_text() == "/srv/agent.git\n"

    def test_blank_file_counts_as_unset(self, store):
        store.root.mkdir(parents=True)
        store.config.source_branch_file.write_text("\n")
        assert store.remembered_source() == (None, None)

    def test_unreadable_source_file_is_configuration_error(self, store):
        store.config.source_url_file.mkdir(parents=True)
        with pytest.raises(ConfigurationError, match="cannot read remembered source"):
            store.remembered_source()

    def test_undecodable_source_file_is_configuration_error(self, store):
        store.root.mkdir(parents=True)
        store.config.source_branch_file.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(ConfigurationError, match="cannot read remembered source"):
            store.remembered_source()

    def test_unwritable_root_is_configuration_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a dir")
        store = ReleaseStore(ReleaseConfig(release_root=blocker / "store"))
        with pytest.raises(ConfigurationError, match="cannot write remembered source"):
            store.remember_source("/srv/agent.git", "main")
