"""Unit tests for add command.

Tests for the CLI add command implementation.
"""

from pathlib import Path

import pytest
import tomlkit
from depedit.cli.commands.add import AddOptions, check_conflicts
from depedit.cli.main import app
from depedit.core.errors import DependencySpecError
from typer.testing import CliRunner

runner = CliRunner()

INDEX_FILE = """\
[[release]]
name = "serde_json"
version = "1.0.117"
features = { std = [], preserve_order = ["indexmap"] }

[[git]]
url = "https://example.com/serde.git"
features = ["derive"]
"""


def _read(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text())


@pytest.fixture
def index_config(tmp_path: Path, isolated_config_home: Path) -> Path:
    """Settings pointing at a registry index snapshot."""
    index_path = tmp_path / "index.toml"
    index_path.write_text(INDEX_FILE)
    config_path = isolated_config_home / "depedit" / "config.toml"
    config_path.parent.mkdir(parents=True)
    config_path.write_text(f'index_file = "{index_path}"\n')
    return config_path


@pytest.fixture
def workspace(tmp_path: Path, write_package) -> Path:
    """Workspace with an app package and a shared library."""
    (tmp_path / "Cargo.toml").write_text('[workspace]\nmembers = ["app", "shared"]\n')
    write_package("app")
    write_package("shared", version="0.3.0")
    return tmp_path


class TestAddCommandHelp:
    """Tests for add command help."""

    def test_add_help(self) -> None:
        """Add command shows help."""
        result = runner.invoke(app, ["add", "--help"])
        assert result.exit_code == 0
        assert "Add dependencies to a manifest" in result.output
        assert "--features" in result.output
        assert "--manifest-path" in result.output

    def test_add_requires_dependency(self) -> None:
        """Add command needs at least one dependency id."""
        result = runner.invoke(app, ["add"])
        assert result.exit_code != 0


class TestAddRegistryDependencies:
    """Tests for adding registry dependencies."""

    def test_add_new_dependency(self, manifest_file: Path) -> None:
        """A versioned id is written in short form."""
        result = runner.invoke(app, ["add", "rand@0.8", "--manifest-path", str(manifest_file)])

        assert result.exit_code == 0
        assert "Adding rand v0.8 to dependencies" in result.output
        written = manifest_file.read_text()
        assert _read(manifest_file)["dependencies"]["rand"] == "0.8"
        assert "# logging stack" in written

    def test_add_dev_dependency(self, manifest_file: Path) -> None:
        """--dev targets dev-dependencies."""
        result = runner.invoke(
            app, ["add", "tempfile@3", "--dev", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        assert "Adding tempfile v3 to dev-dependencies" in result.output
        assert _read(manifest_file)["dev-dependencies"]["tempfile"] == "3"

    def test_add_build_dependency(self, manifest_file: Path) -> None:
        """--build targets build-dependencies, creating the section."""
        result = runner.invoke(
            app, ["add", "cc@1.0", "-B", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        assert "to build-dependencies" in result.output
        assert _read(manifest_file)["build-dependencies"]["cc"] == "1.0"

    def test_add_optional_target_dependency(self, manifest_file: Path) -> None:
        """Optional target dependencies are reported and written."""
        result = runner.invoke(
            app,
            [
                "add",
                "clap@0.1.0",
                "--optional",
                "--target",
                "mytarget",
                "--manifest-path",
                str(manifest_file),
            ],
        )

        assert result.exit_code == 0
        assert (
            "Adding clap v0.1.0 to optional dependencies for target `mytarget`" in result.output
        )
        entry = _read(manifest_file)["target"]["mytarget"]["dependencies"]["clap"]
        assert entry.unwrap() == {"version": "0.1.0", "optional": True}
        assert 'clap = { version = "0.1.0", optional = true }' in manifest_file.read_text()

    def test_add_features_merges(self, manifest_file: Path) -> None:
        """Features are split on spaces and commas and merged with existing ones."""
        result = runner.invoke(
            app,
            [
                "add",
                "serde@1.0",
                "--features",
                "rc,alloc std",
                "--manifest-path",
                str(manifest_file),
            ],
        )

        assert result.exit_code == 0
        entry = _read(manifest_file)["dependencies"]["serde"]
        assert list(entry["features"]) == ["derive", "rc", "alloc", "std"]

    def test_add_rename(self, manifest_file: Path) -> None:
        """--rename writes the alias as the key."""
        result = runner.invoke(
            app, ["add", "log@0.3", "-r", "log03", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        deps = _read(manifest_file)["dependencies"]
        assert deps["log03"].unwrap() == {"version": "0.3", "package": "log"}
        assert deps["log"] == "0.4"

    def test_add_registry(self, manifest_file: Path) -> None:
        """--registry is written next to the version."""
        result = runner.invoke(
            app, ["add", "rand@0.8", "--registry", "alt", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        entry = _read(manifest_file)["dependencies"]["rand"]
        assert entry.unwrap() == {"version": "0.8", "registry": "alt"}

    def test_add_no_default_features(self, manifest_file: Path) -> None:
        """--no-default-features is written as default-features = false."""
        result = runner.invoke(
            app,
            ["add", "rand@0.8", "--no-default-features", "--manifest-path", str(manifest_file)],
        )

        assert result.exit_code == 0
        entry = _read(manifest_file)["dependencies"]["rand"]
        assert entry.unwrap() == {"version": "0.8", "default-features": False}

    def test_add_several(self, manifest_file: Path) -> None:
        """Several ids are added in one invocation."""
        result = runner.invoke(
            app, ["add", "rand@0.8", "itoa@1", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        deps = _read(manifest_file)["dependencies"]
        assert deps["rand"] == "0.8"
        assert deps["itoa"] == "1"

    def test_quiet(self, manifest_file: Path) -> None:
        """--quiet suppresses progress messages."""
        result = runner.invoke(
            app, ["--quiet", "add", "rand@0.8", "--manifest-path", str(manifest_file)]
        )

        assert result.exit_code == 0
        assert "Adding" not in result.output


class TestAddWithIndex:
    """Tests for versions and features looked up in the registry index."""

    @pytest.mark.usefixtures("index_config")
    def test_latest_version_selected(self, manifest_file: Path) -> None:
        """A bare name gets the latest version from the index."""
        result = runner.invoke(app, ["add", "serde_json", "--manifest-path", str(manifest_file)])

        assert result.exit_code == 0
        assert "Adding serde_json v1.0.117 to dependencies" in result.output
        assert _read(manifest_file)["dependencies"]["serde_json"] == "1.0.117"

    @pytest.mark.usefixtures("index_config")
    def test_unknown_feature_warns(self, manifest_file: Path) -> None:
        """Features the package does not expose produce a warning."""
        result = runner.invoke(
            app,
            ["add", "serde_json", "-F", "std nope", "--manifest-path", str(manifest_file)],
        )

        assert result.exit_code == 0
        assert "Unrecognized feature `nope`" in result.output
        assert "`std`" not in result.output

    @pytest.mark.usefixtures("index_config")
    def test_partial_version_checks_features(self, manifest_file: Path) -> None:
        """A partial requirement finds the compatible release and its features."""
        result = runner.invoke(
            app,
            ["add", "serde_json@1.0", "-F", "std,nope", "--manifest-path", str(manifest_file)],
        )

        assert result.exit_code == 0
        assert "Adding serde_json v1.0 to dependencies" in result.output
        assert "Unrecognized feature `nope`" in result.output
        assert "`std`" not in result.output

    @pytest.mark.usefixtures("index_config")
    def test_unknown_package(self, manifest_file: Path) -> None:
        """Packages missing from the index fail."""
        before = manifest_file.read_text()
        result = runner.invoke(app, ["add", "nope", "--manifest-path", str(manifest_file)])

        assert result.exit_code == 1
        assert "could not be found" in result.output
        assert manifest_file.read_text() == before

    def test_no_index_configured(self, manifest_file: Path) -> None:
        """A bare name without an index cannot be versioned."""
        result = runner.invoke(app, ["add", "serde_json", "--manifest-path", str(manifest_file)])

        assert result.exit_code == 1
        assert "No version given" in result.output

    def test_default_registry_from_settings(
        self, manifest_file: Path, isolated_config_home: Path
    ) -> None:
        """The configured default registry applies to registry dependencies."""
        config_path = isolated_config_home / "depedit" / "config.toml"
        config_path.parent.mkdir(parents=True)
        config_path.write_text('default_registry = "internal"\n')

        result = runner.invoke(app, ["add", "rand@0.8", "--manifest-path", str(manifest_file)])

        assert result.exit_code == 0
        entry = _read(manifest_file)["dependencies"]["rand"]
        assert entry.unwrap() == {"version": "0.8", "registry": "internal"}


class TestAddGitAndPath:
    """Tests for git and path dependencies."""

    @pytest.mark.usefixtures("index_config")
    def test_add_git(self, manifest_file: Path) -> None:
        """Git dependencies carry the URL and reference."""
        result = runner.invoke(
            app,
            [
                "add",
                "serde",
                "--git",
                "https://example.com/serde.git",
                "--tag",
                "v1",
                "-F",
                "derive",
                "--manifest-path",
                str(manifest_file),
            ],
        )

        assert result.exit_code == 0
        assert "Adding serde (https://example.com/serde.git?tag=v1)" in result.output
        assert "Unrecognized feature" not in result.output
        entry = _read(manifest_file)["dependencies"]["serde"]
        assert entry.unwrap() == {
            "git": "https://example.com/serde.git",
            "tag": "v1",
            "features": ["derive"],
        }

    def test_add_path_in_workspace(self, workspace: Path) -> None:
        """A path to a workspace member is versioned and written relative."""
        app_manifest = workspace / "app" / "Cargo.toml"
        result = runner.invoke(
            app, ["add", str(workspace / "shared"), "--manifest-path", str(app_manifest)]
        )

        assert result.exit_code == 0
        assert "Adding shared v0.3.0 to dependencies" in result.output
        entry = _read(app_manifest)["dependencies"]["shared"]
        assert entry.unwrap() == {"version": "0.3.0", "path": "../shared"}

    def test_add_member_by_name(self, workspace: Path) -> None:
        """A bare name matching a workspace member becomes a path dependency."""
        app_manifest = workspace / "app" / "Cargo.toml"
        result = runner.invoke(app, ["add", "shared", "--manifest-path", str(app_manifest)])

        assert result.exit_code == 0
        entry = _read(app_manifest)["dependencies"]["shared"]
        assert entry.unwrap() == {"version": "0.3.0", "path": "../shared"}

    def test_dev_path_not_versioned(self, workspace: Path) -> None:
        """Path dev-dependencies are written without a version."""
        app_manifest = workspace / "app" / "Cargo.toml"
        result = runner.invoke(
            app, ["add", "shared", "--dev", "--manifest-path", str(app_manifest)]
        )

        assert result.exit_code == 0
        entry = _read(app_manifest)["dev-dependencies"]["shared"]
        assert entry.unwrap() == {"path": "../shared"}

    def test_virtual_manifest_rejected(self, workspace: Path) -> None:
        """Dependencies cannot be added to a workspace-only manifest."""
        root_manifest = workspace / "Cargo.toml"
        before = root_manifest.read_text()
        result = runner.invoke(app, ["add", "rand@0.8", "--manifest-path", str(root_manifest)])

        assert result.exit_code == 1
        assert "virtual manifest" in result.output
        assert root_manifest.read_text() == before

    def test_missing_manifest(self, tmp_path: Path) -> None:
        """A missing manifest file is reported."""
        result = runner.invoke(
            app, ["add", "rand@0.8", "--manifest-path", str(tmp_path / "Cargo.toml")]
        )

        assert result.exit_code == 1
        assert "Manifest not found" in result.output


class TestAddConflicts:
    """Tests for rejected flag combinations."""

    @pytest.mark.parametrize(
        ("args", "message"),
        [
            (["a@1", "b@2", "--features", "x"], "multiple packages with features"),
            (["a@1", "b@2", "--rename", "x"], "multiple packages with rename"),
            (["serde@1", "--git", "https://example.com/serde.git"], "Cannot specify a git URL"),
            (["serde", "--branch", "main"], "require `--git`"),
            (["serde@1", "--dev", "--optional"], "cannot be optional"),
            (["serde@1", "--dev", "--build"], "cannot be used together"),
            (["./local", "--registry", "alt"], "together with registry"),
        ],
    )
    def test_rejected(self, manifest_file: Path, args: list[str], message: str) -> None:
        """Conflicting flags fail without touching the manifest."""
        before = manifest_file.read_text()
        result = runner.invoke(app, ["add", *args, "--manifest-path", str(manifest_file)])

        assert result.exit_code == 1
        assert message in result.output
        assert manifest_file.read_text() == before


class TestCheckConflicts:
    """Tests for check_conflicts."""

    def test_empty_target(self) -> None:
        """An empty target is rejected."""
        with pytest.raises(DependencySpecError, match="Target specification"):
            check_conflicts(["serde@1"], AddOptions(target=" "))

    def test_git_with_registry(self) -> None:
        """Git sources cannot name a registry."""
        with pytest.raises(DependencySpecError, match="--registry"):
            check_conflicts(["serde"], AddOptions(git="https://x.invalid/s.git", registry="alt"))

    def test_several_git_references(self) -> None:
        """Only one git reference may be given."""
        options = AddOptions(git="https://x.invalid/s.git", branch="main", tag="v1")
        with pytest.raises(DependencySpecError, match="Only one of"):
            check_conflicts(["serde"], options)

    def test_valid_combination(self) -> None:
        """Compatible flags pass."""
        check_conflicts(["serde@1"], AddOptions(dev=True, target="cfg(unix)", features=["a"]))
