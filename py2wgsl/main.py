"""Command line interface for py2wgsl.

Rewrites shader call sites of Python modules ahead of time, watches sources
for changes and exports the WGSL of the shader functions a module defines.
"""

import os
import sys
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, TypeVar, cast

import arrow
import typer
import watchdog.events
import watchdog.observers
from loguru import logger
from watchdog.events import FileSystemEventHandler

from py2wgsl.build import BuildOptions, load_module, transform_source
from py2wgsl.gpu import GpuFn
from py2wgsl.transpiler import TranspilerError

F = TypeVar("F", bound=Callable[..., Any])


def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="py2wgsl",
    help=(
        "Compile Python shader closures into WGSL. "
        "Commands: build, show, watch, export."
    ),
    add_completion=False,
)


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _build_options(include: list[str] | None) -> BuildOptions:
    if not include:
        return BuildOptions()
    if include == ["all"]:
        return BuildOptions(include="all")
    return BuildOptions(include=list(include))


def _iter_sources(source: Path) -> Iterator[tuple[Path, Path]]:
    """Yield each Python file under ``source`` with its path relative to it."""
    if source.is_file():
        yield source, Path(source.name)
        return
    for path in sorted(source.rglob("*.py")):
        yield path, path.relative_to(source)


def _build_file(path: Path, target: Path, options: BuildOptions) -> None:
    """Rewrite one module and write the result.

    Raises:
        typer.Exit: If a shader closure in the module cannot be compiled
    """
    try:
        code = transform_source(path.read_text(), str(path), options)
    except TranspilerError as e:
        logger.error(f"Failed to build {path}: {e}")
        raise typer.Exit(1) from e
    except SyntaxError as e:
        logger.error(f"Invalid Python in {path}: {e}")
        raise typer.Exit(1) from e
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(code)
    logger.debug(f"Wrote {target}")


SOURCES_ARG = typer.Argument(..., help="Python files or directories to build")
INCLUDE_OPTION = typer.Option(
    None,
    "--include",
    "-i",
    help=(
        "Regex of module paths to rewrite, or 'all' "
        "(default: modules importing py2wgsl)"
    ),
)


@typed_command(app.command("build"))
def build(
    sources: list[Path] = SOURCES_ARG,
    out_dir: Path = typer.Option(..., "--out-dir", "-o", help="Output directory"),
    include: list[str] | None = INCLUDE_OPTION,
) -> None:
    """Rewrite shader call sites ahead of time.

    Every marker call site gets its closure compiled and attached, so nothing
    is parsed at runtime.

    Example: py2wgsl build src/shaders -o build/shaders
    """
    options = _build_options(include)
    count = 0
    for source in sources:
        if not source.exists():
            logger.error(f"No such file or directory: {source}")
            raise typer.Exit(1)
        for path, relative in _iter_sources(source):
            _build_file(path, out_dir / relative, options)
            count += 1
    logger.info(f"Built {count} module(s) into {out_dir}")


@typed_command(app.command("show"))
def show(
    source_file: Path = typer.Argument(..., help="Python file to rewrite"),
    include: list[str] | None = INCLUDE_OPTION,
) -> None:
    """Print a module with its shader call sites rewritten."""
    try:
        code = transform_source(
            source_file.read_text(), str(source_file), _build_options(include)
        )
    except (OSError, SyntaxError, TranspilerError) as e:
        logger.error(f"Failed to rewrite {source_file}: {e}")
        raise typer.Exit(1) from e
    typer.echo(code, nl=False)


class SourceChangeHandler(FileSystemEventHandler):  # type: ignore
    """Event handler rebuilding modules when they change."""

    def __init__(self, source: Path, out_dir: Path, options: BuildOptions):
        self.source = source.resolve()
        self.out_dir = out_dir
        self.options = options

    def _target(self, path: Path) -> Path:
        if self.source.is_file():
            return self.out_dir / self.source.name
        return self.out_dir / path.relative_to(self.source)

    def on_modified(self, event: watchdog.events.FileSystemEvent) -> None:
        path = Path(os.fsdecode(event.src_path)).resolve()
        if event.is_directory or path.suffix != ".py":
            return
        if self.source.is_file() and path != self.source:
            return
        logger.info(f"Detected changes in {path}")
        try:
            _build_file(path, self._target(path), self.options)
        except typer.Exit:
            # Keep watching; the error was logged
            return

    on_created = on_modified


@typed_command(app.command("watch"))
def watch(
    source: Path = typer.Argument(..., help="Python file or directory to watch"),
    out_dir: Path = typer.Option(..., "--out-dir", "-o", help="Output directory"),
    include: list[str] | None = INCLUDE_OPTION,
) -> None:
    """Build sources, then rebuild them whenever they change.

    Example: py2wgsl watch src/shaders -o build/shaders
    """
    build([source], out_dir, include)

    handler = SourceChangeHandler(source, out_dir, _build_options(include))
    observer = watchdog.observers.Observer()
    directory = source.resolve() if source.is_dir() else source.resolve().parent
    observer.schedule(handler, path=str(directory), recursive=source.is_dir())
    observer.start()
    logger.info(f"Watching {source} (press Ctrl+C to stop)")

    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, stopping...")
    finally:
        observer.stop()
        observer.join()


def _collect_functions(module: Any, name: str | None) -> list[GpuFn]:
    """Find the shader functions a module defines, in definition order.

    Each function is labeled by the module attribute holding it unless it was
    named explicitly.
    """
    functions: list[GpuFn] = []
    for attr, value in vars(module).items():
        if isinstance(value, GpuFn) and (name is None or attr == name):
            functions.append(value.set_label(attr))
    if name is not None and not functions:
        raise ValueError(f"No shader function named '{name}'")
    return functions


def _add_header_comments(code: str, source_file: Path) -> str:
    timestamp = arrow.utcnow().format("YYYY-MM-DD HH:mm:ss UTC")
    header = f"// Generated by py2wgsl v{__import__('py2wgsl').__version__}\n"
    header += f"// Generation time: {timestamp}\n"
    header += f"// Source file: {source_file.name}\n\n"
    return header + code


@typed_command(app.command("export"))
def export_code(
    source_file: Path = typer.Argument(
        ..., help="Python file containing shader functions"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Output file (default: stdout)"
    ),
    name: str | None = typer.Option(
        None, "--name", "-n", help="Export only this shader function"
    ),
    format: str = typer.Option(
        "plain", "--format", "-f", help="Code format (plain, commented)"
    ),
    include: list[str] | None = INCLUDE_OPTION,
) -> None:
    """Export the WGSL of the shader functions a module defines.

    Example: py2wgsl export src/shaders/noise.py -o noise.wgsl
    """
    if format not in ("plain", "commented"):
        logger.error(f"Unknown format: {format}")
        raise typer.Exit(1)

    try:
        module = load_module(str(source_file), _build_options(include))
        functions = _collect_functions(module, name)
        code = "\n\n".join(function.resolve() for function in functions) + "\n"
    except (ImportError, OSError) as e:
        logger.error(f"Failed to load shader module: {e}")
        raise typer.Exit(1) from e
    except ValueError as e:
        logger.error(f"Invalid shader function: {e}")
        raise typer.Exit(1) from e
    except TranspilerError as e:
        logger.error(f"Transpilation error: {e}")
        raise typer.Exit(1) from e

    logger.info(f"Exporting {[function.label for function in functions]}")
    if format == "commented":
        code = _add_header_comments(code, source_file)

    if output is None:
        typer.echo(code, nl=False)
        return
    output.write_text(code)
    logger.info(f"Shader code exported to {output}")


if __name__ == "__main__":
    app()
