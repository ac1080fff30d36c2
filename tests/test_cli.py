"""Tests for the py2wgsl command-line interface."""

import sys
import textwrap

import pytest
from loguru import logger
from typer.testing import CliRunner
from watchdog.events import FileModifiedEvent

from py2wgsl.build.options import BuildOptions
from py2wgsl.main import SourceChangeHandler, app

runner = CliRunner()

SHADER_MODULE = """
from py2wgsl import gpu, std
from py2wgsl.data import f32

c = 1.0

add = gpu.fn([f32, f32], f32).does(lambda a, b: a + b - c)


@gpu.fn([f32], f32).does
def wave(x):
    return std.sin(x * c)
"""


@pytest.fixture(autouse=True)
def restore_logger():
    """Put back the default sink replaced by the --verbose callback."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def shader_file(tmp_path):
    """Create a temporary shader module for testing."""
    path = tmp_path / "cli_shaders.py"
    path.write_text(SHADER_MODULE)
    return path


def test_help():
    """Test that the CLI help command works."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Compile Python shader closures into WGSL" in result.stdout


class TestBuild:
    """The build command."""

    def test_build_file(self, shader_file, tmp_path):
        """A single file is rewritten into the output directory."""
        # Arrange
        out_dir = tmp_path / "out"

        # Act
        result = runner.invoke(app, ["build", str(shader_file), "-o", str(out_dir)])

        # Assert
        assert result.exit_code == 0
        built = (out_dir / "cli_shaders.py").read_text()
        assert "_py2wgsl_gpu._assign_ast(" in built
        assert "_py2wgsl_gpu._assign_ast_to(" in built

    def test_build_directory(self, tmp_path):
        """Directories are walked recursively, keeping their layout."""
        # Arrange
        src = tmp_path / "src"
        (src / "effects").mkdir(parents=True)
        (src / "effects" / "glow.py").write_text(SHADER_MODULE)
        (src / "app.py").write_text("print('hello')\n")
        out_dir = tmp_path / "out"

        # Act
        result = runner.invoke(app, ["build", str(src), "-o", str(out_dir)])

        # Assert
        assert result.exit_code == 0
        assert "_assign_ast" in (out_dir / "effects" / "glow.py").read_text()
        assert (out_dir / "app.py").read_text() == "print('hello')\n"

    def test_build_failure(self, tmp_path):
        """An uncompilable closure fails the build."""
        # Arrange
        path = tmp_path / "bad.py"
        path.write_text(
            "from py2wgsl import gpu\nf = gpu.fn([], None).does(lambda x: x ** 2)\n"
        )

        # Act
        result = runner.invoke(app, ["build", str(path), "-o", str(tmp_path / "out")])

        # Assert
        assert result.exit_code == 1

    def test_missing_source(self, tmp_path):
        """A missing source path is reported."""
        # Act
        result = runner.invoke(
            app, ["build", str(tmp_path / "nope.py"), "-o", str(tmp_path)]
        )

        # Assert
        assert result.exit_code == 1


class TestShow:
    """The show command."""

    def test_show(self, shader_file):
        """The rewritten module is printed."""
        # Act
        result = runner.invoke(app, ["show", str(shader_file)])

        # Assert
        assert result.exit_code == 0
        assert "import py2wgsl.gpu as _py2wgsl_gpu" in result.stdout

    def test_show_with_include(self, shader_file):
        """Modules outside the include patterns are printed unchanged."""
        # Act
        result = runner.invoke(
            app, ["show", str(shader_file), "--include", "generated/"]
        )

        # Assert
        assert result.exit_code == 0
        assert "_py2wgsl_gpu" not in result.stdout


class TestExport:
    """The export command."""

    def test_export_to_stdout(self, shader_file):
        """All shader functions are printed, named after their attributes."""
        # Act
        result = runner.invoke(app, ["export", str(shader_file)])

        # Assert
        assert result.exit_code == 0
        assert "fn add(a: f32, b: f32) -> f32 {\n  return a + b - 1.0;\n}" in (
            result.stdout
        )
        assert "fn wave(x: f32) -> f32 {\n  return sin(x * 1.0);\n}" in result.stdout

    def test_export_single_function_to_file(self, shader_file, tmp_path):
        """--name selects one function, --output writes a file."""
        # Arrange
        output = tmp_path / "wave.wgsl"

        # Act
        result = runner.invoke(
            app,
            ["export", str(shader_file), "--name", "wave", "-o", str(output)],
        )

        # Assert
        assert result.exit_code == 0
        content = output.read_text()
        assert content.startswith("fn wave(x: f32)")
        assert "fn add" not in content

    def test_export_commented(self, shader_file):
        """The commented format adds a generation header."""
        # Act
        result = runner.invoke(app, ["export", str(shader_file), "-f", "commented"])

        # Assert
        assert result.exit_code == 0
        assert "// Generated by py2wgsl v0.1.0" in result.stdout
        assert "// Source file: cli_shaders.py" in result.stdout

    @pytest.mark.parametrize(
        "args",
        [["--name", "missing"], ["--format", "wrapped"]],
    )
    def test_export_errors(self, shader_file, args):
        """Unknown functions and formats exit with an error."""
        # Act
        result = runner.invoke(app, ["export", str(shader_file), *args])

        # Assert
        assert result.exit_code == 1

    def test_export_missing_file(self, tmp_path):
        """A missing module cannot be loaded."""
        # Act
        result = runner.invoke(app, ["export", str(tmp_path / "nope.py")])

        # Assert
        assert result.exit_code == 1


class TestWatch:
    """Rebuilding on file changes."""

    def test_rebuilds_modified_file(self, shader_file, tmp_path):
        """A modification event rebuilds the changed module."""
        # Arrange
        out_dir = tmp_path / "out"
        handler = SourceChangeHandler(tmp_path, out_dir, BuildOptions())

        # Act
        handler.on_modified(FileModifiedEvent(str(shader_file)))

        # Assert
        assert "_assign_ast" in (out_dir / "cli_shaders.py").read_text()

    def test_ignores_other_files(self, shader_file, tmp_path):
        """Non-Python files are ignored."""
        # Arrange
        notes = tmp_path / "notes.txt"
        notes.write_text("todo")
        out_dir = tmp_path / "out"
        handler = SourceChangeHandler(tmp_path, out_dir, BuildOptions())

        # Act
        handler.on_modified(FileModifiedEvent(str(notes)))

        # Assert
        assert not out_dir.exists()

    def test_keeps_watching_after_errors(self, tmp_path):
        """A broken module is logged and skipped."""
        # Arrange
        path = tmp_path / "bad.py"
        path.write_text(
            textwrap.dedent(
                """\
                from py2wgsl import gpu
                f = gpu.fn([], None).does(lambda x: x ** 2)
                """
            )
        )
        handler = SourceChangeHandler(path, tmp_path / "out", BuildOptions())

        # Act
        handler.on_modified(FileModifiedEvent(str(path)))

        # Assert
        assert not (tmp_path / "out" / "bad.py").exists()
