"""
Shared fixtures for dep-promoter tests.
"""

import tempfile
import textwrap
from pathlib import Path

import pytest

from dep_promoter.cli_config import reset_config
from dep_promoter.error_handling import get_error_handler


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user config files and DEP_PROMOTER_* variables out of every test."""
    for key in (
        "DEP_PROMOTER_MIN_OCCURRENCES",
        "DEP_PROMOTER_WORKSPACE_ROOT",
        "DEP_PROMOTER_QUIET",
        "DEP_PROMOTER_VERBOSE",
        "DEP_PROMOTER_MAX_FILE_SIZE_MB",
        "DEP_PROMOTER_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    reset_config()
    get_error_handler().reset_stats()
    yield
    reset_config()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_manifest(path: Path, *parts: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    content = "".join(textwrap.dedent(part) for part in parts)
    path.write_text(content.lstrip(), encoding="utf-8")
    return path


@pytest.fixture
def manifest_writer():
    """Write a dedented manifest to disk, creating parent directories."""
    return write_manifest


@pytest.fixture
def make_workspace(temp_dir):
    """
    Build a workspace on disk.

    Takes a mapping of member directory name to the body of its Cargo.toml
    (without the [package] header) and an optional root manifest body.
    """

    def _make(members, root_extra="", root_members=None):
        member_list = ", ".join(f'"crates/{name}"' for name in (root_members or members))
        write_manifest(
            temp_dir / "Cargo.toml",
            f"""
            [workspace]
            members = [{member_list}]
            resolver = "2"
            """,
            root_extra,
        )
        for name, body in members.items():
            write_manifest(
                temp_dir / "crates" / name / "Cargo.toml",
                f"""
                [package]
                name = "{name}"
                version = "0.1.0"
                edition = "2021"
                """,
                body,
            )
        return temp_dir

    return _make


@pytest.fixture
def serde_workspace(make_workspace):
    """Two members sharing serde with different feature postures, one without it."""
    return make_workspace(
        {
            "alpha": """
            [dependencies]
            serde = { version = "1.0", features = ["derive"] }
            """,
            "beta": """
            [dependencies]
            serde = { version = "1.0.2", default-features = false }
            """,
            "gamma": """
            [dependencies]
            log = "0.4"
            """,
        }
    )
