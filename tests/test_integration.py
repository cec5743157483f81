"""
Integration tests for dep-promoter.
Tests complete load -> plan -> write workflows on real files.
"""

import pytest
import toml

from dep_promoter.engine import PromotionEngine
from dep_promoter.error_handling import ManifestError
from dep_promoter.workspace import (
    build_snapshot,
    discover_members,
    find_root_manifest,
    load_documents,
    load_workspace,
    parse_manifest,
)
from dep_promoter.writer import render_manifest, write_manifests


def promote(workspace_root, minimum_occurrences=2):
    root_path, root_document, member_documents = load_documents(workspace_root)
    snapshot = build_snapshot(root_path, root_document, member_documents)
    result = PromotionEngine(minimum_occurrences).run(snapshot)
    documents = dict(member_documents)
    documents[root_path] = root_document
    written = write_manifests(result.plan, documents)
    return result, written


def read_toml(path):
    return toml.loads(path.read_text(encoding="utf-8"))


class TestEndToEndPromotion:
    """Test complete promotion workflows."""

    def test_serde_workspace(self, serde_workspace):
        """Test load -> plan -> write on the two-of-three serde workspace."""
        gamma = serde_workspace / "crates" / "gamma" / "Cargo.toml"
        gamma_before = gamma.read_text(encoding="utf-8")

        result, written = promote(serde_workspace)

        assert len(written) == 3
        root = read_toml(serde_workspace / "Cargo.toml")
        assert root["workspace"]["dependencies"]["serde"] == {
            "version": "1.0",
            "default-features": False,
        }
        assert root["workspace"]["members"] == [
            "crates/alpha",
            "crates/beta",
            "crates/gamma",
        ]

        alpha = read_toml(serde_workspace / "crates" / "alpha" / "Cargo.toml")
        assert alpha["dependencies"]["serde"] == {
            "workspace": True,
            "features": ["derive"],
            "default-features": True,
        }
        assert alpha["package"]["name"] == "alpha"

        beta = read_toml(serde_workspace / "crates" / "beta" / "Cargo.toml")
        assert beta["dependencies"]["serde"] == {
            "workspace": True,
            "default-features": False,
        }

        assert gamma.read_text(encoding="utf-8") == gamma_before

    def test_rerun_produces_no_ops(self, serde_workspace):
        """Test that promoting an already promoted workspace changes nothing."""
        promote(serde_workspace)
        alpha = serde_workspace / "crates" / "alpha" / "Cargo.toml"
        after_first = alpha.read_text(encoding="utf-8")

        result, written = promote(serde_workspace)

        assert result.plan.is_empty
        assert written == []
        assert alpha.read_text(encoding="utf-8") == after_first

    def test_entries_stay_inline(self, serde_workspace):
        """Test that rewritten entries are written as inline tables."""
        promote(serde_workspace)

        content = (serde_workspace / "crates" / "beta" / "Cargo.toml").read_text(
            encoding="utf-8"
        )
        assert "[dependencies.serde]" not in content
        assert "workspace = true" in content

    def test_unrelated_content_preserved(self, make_workspace):
        """Test that entries not named by the plan survive the rewrite."""
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                anyhow = "1"
                local = { path = "../local" }

                [features]
                default = ["std"]
                std = []
                """,
                "beta": """
                [dependencies]
                anyhow = "1.0"
                """,
            },
            root_extra="""
            [profile.release]
            lto = true
            """,
        )

        promote(workspace)

        root = read_toml(workspace / "Cargo.toml")
        assert root["profile"]["release"]["lto"] is True
        assert root["workspace"]["resolver"] == "2"

        alpha = read_toml(workspace / "crates" / "alpha" / "Cargo.toml")
        assert alpha["dependencies"]["local"] == {"path": "../local"}
        assert alpha["features"] == {"default": ["std"], "std": []}
        assert alpha["dependencies"]["anyhow"] == {"workspace": True, "default-features": True}


class TestRealWorldScenarios:
    """Test realistic workspace layouts."""

    def test_git_dependencies(self, make_workspace):
        """Test promotion of a shared git dependency."""
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                tower = { git = "https://github.com/tower-rs/tower", branch = "master" }
                """,
                "beta": """
                [dependencies]
                tower = { git = "https://github.com/tower-rs/tower.git", branch = "master", features = ["util"] }
                """,
            }
        )

        result, _ = promote(workspace)

        assert [d.name for d in result.decisions] == ["tower"]
        root = read_toml(workspace / "Cargo.toml")
        assert root["workspace"]["dependencies"]["tower"] == {
            "git": "https://github.com/tower-rs/tower",
            "branch": "master",
            "default-features": False,
        }
        beta = read_toml(workspace / "crates" / "beta" / "Cargo.toml")
        assert beta["dependencies"]["tower"]["features"] == ["util"]

    def test_mixed_sources_left_alone(self, make_workspace):
        """Test that a registry/git split is reported and not rewritten."""
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                rand = "0.8"
                """,
                "beta": """
                [dependencies]
                rand = { git = "https://github.com/rust-random/rand" }
                """,
            }
        )

        result, written = promote(workspace)

        assert written == []
        assert result.skipped_groups[0].skip_reason.value == "incompatible_sources"
        assert "dependencies" not in read_toml(workspace / "Cargo.toml")["workspace"]

    def test_dev_and_build_dependencies(self, make_workspace):
        """Test that each dependency kind is rewritten in its own table."""
        workspace = make_workspace(
            {
                "alpha": """
                [build-dependencies]
                cc = "1.0"

                [dev-dependencies]
                proptest = "1"
                """,
                "beta": """
                [build-dependencies]
                cc = "1.0.83"

                [dev-dependencies]
                proptest = { version = "1", default-features = false, features = ["std"] }
                """,
            }
        )

        result, _ = promote(workspace)

        assert result.decisions[0].divergent_requirements == (("beta", "1.0.83"),)
        beta = read_toml(workspace / "crates" / "beta" / "Cargo.toml")
        assert beta["build-dependencies"]["cc"] == {"workspace": True, "default-features": True}
        assert beta["dev-dependencies"]["proptest"] == {
            "workspace": True,
            "features": ["std"],
            "default-features": False,
        }
        assert "dependencies" not in beta

    def test_existing_workspace_dependency_is_refined(self, make_workspace):
        """Test a partially migrated workspace whose root entry keeps default features."""
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                log = { workspace = true }
                """,
                "beta": """
                [dependencies]
                log = { version = "0.4", default-features = false }
                """,
            },
            root_extra="""
            [workspace.dependencies]
            log = "0.4"
            """,
        )

        promote(workspace)

        root = read_toml(workspace / "Cargo.toml")
        assert root["workspace"]["dependencies"]["log"] == {
            "version": "0.4",
            "default-features": False,
        }
        alpha = read_toml(workspace / "crates" / "alpha" / "Cargo.toml")
        assert alpha["dependencies"]["log"] == {"workspace": True, "default-features": True}

    def test_target_specific_inheritor_keeps_defaults(self, make_workspace):
        """Test that a platform table inheriting the rewritten root entry is pinned."""
        workspace = make_workspace(
            {
                "alpha": """
                [target.'cfg(unix)'.dependencies]
                libc = { workspace = true }
                """,
                "beta": """
                [dependencies]
                libc = "0.2"
                """,
                "gamma": """
                [dependencies]
                libc = "0.2"
                """,
            },
            root_extra="""
            [workspace.dependencies]
            libc = "0.2"
            """,
        )

        result, written = promote(workspace)

        assert len(written) == 4
        root = read_toml(workspace / "Cargo.toml")
        assert root["workspace"]["dependencies"]["libc"] == {
            "version": "0.2",
            "default-features": False,
        }
        alpha = read_toml(workspace / "crates" / "alpha" / "Cargo.toml")
        assert alpha["target"]["cfg(unix)"]["dependencies"]["libc"] == {
            "workspace": True,
            "default-features": True,
        }
        assert "dependencies" not in alpha
        assert promote(workspace)[0].plan.is_empty

    def test_root_package_is_a_member(self, temp_dir, manifest_writer):
        """Test a workspace whose root manifest is also a package."""
        manifest_writer(
            temp_dir / "Cargo.toml",
            """
            [package]
            name = "app"
            version = "0.1.0"

            [workspace]
            members = ["lib"]

            [dependencies]
            regex = "1.10"
            """,
        )
        manifest_writer(
            temp_dir / "lib" / "Cargo.toml",
            """
            [package]
            name = "lib"
            version = "0.1.0"

            [dependencies]
            regex = "1.10"
            """,
        )

        result, written = promote(temp_dir)

        assert len(written) == 2
        root = read_toml(temp_dir / "Cargo.toml")
        assert root["workspace"]["dependencies"]["regex"]["version"] == "1.10"
        assert root["dependencies"]["regex"] == {"workspace": True, "default-features": True}
        assert promote(temp_dir)[0].plan.is_empty

    def test_higher_threshold(self, serde_workspace):
        """Test that a threshold above the sharing count leaves files alone."""
        result, written = promote(serde_workspace, minimum_occurrences=3)

        assert result.no_eligible_groups
        assert written == []


class TestWorkspaceDiscovery:
    """Test member discovery and manifest loading."""

    def test_glob_members_and_exclude(self, temp_dir, manifest_writer):
        manifest_writer(
            temp_dir / "Cargo.toml",
            """
            [workspace]
            members = ["crates/*"]
            exclude = ["crates/legacy"]
            """,
        )
        for name in ("one", "two", "legacy"):
            manifest_writer(
                temp_dir / "crates" / name / "Cargo.toml",
                f'[package]\nname = "{name}"\nversion = "0.1.0"\n',
            )
        (temp_dir / "crates" / "notes").mkdir()

        root_path = find_root_manifest(temp_dir)
        members = discover_members(root_path, parse_manifest(root_path))

        assert [path.parent.name for path in members] == ["one", "two"]

    def test_snapshot_member_ids(self, serde_workspace):
        snapshot = load_workspace(serde_workspace)

        assert [m.member_id for m in snapshot.members] == ["alpha", "beta", "gamma"]
        assert [r.first_seen_order for r in snapshot.records] == [0, 1, 2]


class TestErrorRecovery:
    """Test failures surface as typed errors."""

    def test_missing_root_manifest(self, temp_dir):
        with pytest.raises(ManifestError):
            find_root_manifest(temp_dir)

    def test_invalid_toml(self, temp_dir, manifest_writer):
        path = manifest_writer(temp_dir / "Cargo.toml", "[workspace\nmembers = [")
        with pytest.raises(ManifestError) as exc_info:
            parse_manifest(path)
        assert "Invalid TOML" in str(exc_info.value)

    def test_manifest_without_workspace_or_package(self, temp_dir, manifest_writer):
        path = manifest_writer(temp_dir / "Cargo.toml", '[lib]\nname = "x"\n')
        with pytest.raises(ManifestError):
            discover_members(path, parse_manifest(path))

    def test_non_array_features(self, make_workspace):
        workspace = make_workspace(
            {
                "alpha": """
                [dependencies]
                serde = { version = "1", features = "derive" }
                """,
            }
        )
        with pytest.raises(ManifestError):
            load_workspace(workspace)


class TestDataIntegrity:
    """Test rendering keeps manifests loadable."""

    def test_render_round_trip(self, serde_workspace):
        path = serde_workspace / "crates" / "alpha" / "Cargo.toml"
        document = parse_manifest(path)

        assert toml.loads(render_manifest(document)) == document
