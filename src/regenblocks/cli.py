"""CLI entry point for regenblocks."""

from pathlib import Path
from typing import Optional, Union

import click
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from regenblocks import __version__
from regenblocks.editor.blocks import TextBlock
from regenblocks.editor.editor import CodeEditor
from regenblocks.editor.exceptions import RegenBlocksError
from regenblocks.editor.nested import NestedBlock
from regenblocks.models.config import EditorConfig
from regenblocks.services import ConversionLog, FileCleaner, create_dir_path, write_if_changed
from regenblocks.utils.logging import LOG_LEVELS, configure_logging, get_logger


logger = get_logger(__name__)
console = Console()
err_console = Console(stderr=True)

config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Editor configuration file (YAML)",
)


def parse_macro_options(options: tuple[str, ...]) -> dict[str, Union[str, list[str]]]:
    """
    Parse repeated NAME=VALUE options into user macro values.

    A name given once maps to a string; a name given several times maps to
    the list of its values, in order.

    Raises:
        ValueError: If an option has no '=' or an empty name
    """
    values: dict[str, list[str]] = {}
    for option in options:
        name, sep, value = option.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Invalid macro definition '{option}'. Expected: NAME=VALUE")
        values.setdefault(name, []).append(value)
    return {name: v[0] if len(v) == 1 else v for name, v in values.items()}


def load_editor_config(config_path: Optional[Path]) -> EditorConfig:
    """
    Load editor configuration, or the defaults when no path is given.

    Raises:
        click.ClickException: If the file is missing or fails validation
    """
    if config_path is None:
        return EditorConfig()

    try:
        config = EditorConfig.load(config_path)
        logger.info("config_loaded", path=str(config_path))
        return config
    except FileNotFoundError as e:
        logger.error("config_not_found", path=str(config_path))
        raise click.ClickException(str(e))
    except Exception as e:
        logger.error("config_validation_error", error=str(e))
        raise click.ClickException(f"Configuration validation failed:\n{e}")


def create_editor(
    config: EditorConfig,
    macros: Optional[dict[str, Union[str, list[str]]]] = None,
) -> CodeEditor:
    """Create a configured editor with the given user macros registered.

    Raises:
        click.ClickException: If a macro name is invalid
    """
    editor = CodeEditor.from_config(config)
    try:
        for name, value in (macros or {}).items():
            editor.add_user_macro(name, value)
    except ValueError as e:
        raise click.ClickException(str(e))
    return editor


def open_editor(
    path: Path,
    config: EditorConfig,
    macros: Optional[dict[str, Union[str, list[str]]]] = None,
) -> CodeEditor:
    """Create a configured editor and load path into it.

    Macros are registered before loading so references in the file expand.
    """
    editor = create_editor(config, macros)
    try:
        editor.load(path)
    except (RegenBlocksError, ValueError) as e:
        logger.error("editor_load_failed", path=str(path), error=str(e))
        raise click.ClickException(f"{path}: {e}")
    return editor


def find_unmerged_blocks(target: NestedBlock, source: NestedBlock, pattern: str, path: str = "") -> list[str]:
    """List '/'-separated paths of named source blocks a merge had no place for.

    Mirrors merge: a target block matching pattern takes the whole source
    block, otherwise named children are paired by name.
    """
    missing = []
    for block in source.named_blocks:
        block_path = f"{path}{block.name}"
        counterpart = target.children.get(block.name)
        if counterpart is None:
            missing.append(block_path)
        elif not counterpart.match_name(pattern):
            missing.extend(find_unmerged_blocks(counterpart, block, pattern, f"{block_path}/"))
    return missing


def output_path(template: Path, templates_dir: Path, output_dir: Path, suffix: str) -> Path:
    """Map a template to its output: same relative path, suffix removed."""
    relative = template.relative_to(templates_dir)
    return output_dir / relative.parent / relative.name[: -len(suffix)]


def build_outline(block: NestedBlock, tree: Tree) -> Tree:
    """Add the children of block to a rich Tree, recursively."""
    for child in block.children:
        if isinstance(child, TextBlock):
            count = len(child.code)
            tree.add(Text(f"{count} line{'s' if count != 1 else ''}", style="dim"))
        else:
            label = Text(child.name or "(anonymous)", style="bold")
            build_outline(child, tree.add(label))
    return tree


@click.group()
@click.version_option(version=__version__, prog_name="regenblocks")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level (default: $REGENBLOCKS_LOG_LEVEL or INFO)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="JSON log file (default: ~/.cache/regenblocks/logs/regenblocks.log)",
)
def cli(log_level: Optional[str], log_file: Optional[Path]):
    """regenblocks: regenerate marked regions of source files, keeping hand edits."""
    configure_logging(log_level, log_file)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--macro", "-m", "macros", multiple=True, help="User macro as NAME=VALUE (repeat for a list)")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write here instead of stdout")
@config_option
def render(file: Path, macros: tuple[str, ...], output: Optional[Path], config_path: Optional[Path]):
    """
    Expand macros in FILE and print (or write) the result.

    Examples:
        regenblocks render Patient.cs.tmpl -m Namespace=Acme.Model
        regenblocks render Patient.cs.tmpl -m Using=System -m Using=System.IO -o Patient.cs
    """
    logger.info("render_command_started", file=str(file), macros=len(macros))
    config = load_editor_config(config_path)
    try:
        macro_values = parse_macro_options(macros)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--macro")

    editor = open_editor(file, config, macro_values)

    if output is None:
        click.echo(str(editor), nl=False)
        return

    if write_if_changed(output, str(editor)):
        click.echo(f"Wrote {output}")
    else:
        click.echo(f"{output} is up to date")


@cli.command()
@click.argument("generated", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("target", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--pattern", "-p", required=True, help="Regular expression selecting generated block names")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write here instead of TARGET")
@config_option
def merge(generated: Path, target: Path, pattern: str, output: Optional[Path], config_path: Optional[Path]):
    """
    Merge the blocks of GENERATED whose names match PATTERN into TARGET.

    Blocks of TARGET that don't match (hand-written code) are kept as they are.
    Generated blocks with no same-named block in TARGET are reported as
    warnings.

    Examples:
        regenblocks merge build/Patient.cs src/Patient.cs -p "Generated.*"
    """
    logger.info("merge_command_started", generated=str(generated), target=str(target), pattern=pattern)
    config = load_editor_config(config_path)
    source = open_editor(generated, config)
    destination = open_editor(target, config)

    try:
        destination.merge(pattern, source)
    except RegenBlocksError as e:
        logger.error("merge_failed", target=str(target), error=str(e))
        raise click.ClickException(str(e))

    log = ConversionLog()
    log.console_logging(console=err_console)
    for block_path in find_unmerged_blocks(destination.blocks, source.blocks, pattern):
        log.warn("merge", target.name, f"Block '{block_path}' has no counterpart in {target}; not merged")

    path = destination.save(output)
    logger.info("merge_command_completed", path=str(path))
    click.echo(f"Merged {generated} into {path}")


@cli.command()
@click.argument("templates_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@click.option("--suffix", default=".tmpl", show_default=True, help="Template suffix, removed from output names")
@click.option("--macro", "-m", "macros", multiple=True, help="User macro as NAME=VALUE (repeat for a list)")
@click.option("--clean/--no-clean", default=True, show_default=True, help="Delete outputs no template produced")
@config_option
def build(
    templates_dir: Path,
    output_dir: Path,
    suffix: str,
    macros: tuple[str, ...],
    clean: bool,
    config_path: Optional[Path],
):
    """
    Render every template under TEMPLATES_DIR into OUTPUT_DIR.

    Output paths mirror the template tree with the suffix removed. A
    template that fails to render keeps its previous output; the others
    are still written.

    Examples:
        regenblocks build templates/ src/generated -m Namespace=Acme.Model
    """
    if not suffix:
        raise click.BadParameter("Suffix can not be empty", param_hint="--suffix")
    logger.info("build_command_started", templates=str(templates_dir), output=str(output_dir))
    config = load_editor_config(config_path)
    try:
        macro_values = parse_macro_options(macros)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--macro")

    create_dir_path(output_dir)
    log = ConversionLog(skip_duplicates=False)
    log.console_logging(console=err_console)
    cleaner = FileCleaner(output_dir if clean else None)

    templates = sorted(p for p in templates_dir.rglob(f"*{suffix}") if p.is_file())
    for template in templates:
        destination = output_path(template, templates_dir, output_dir, suffix)
        cleaner.mark(destination)
        editor = create_editor(config, macro_values)
        try:
            editor.load(template)
        except (RegenBlocksError, ValueError) as e:
            log.error("build", str(template.relative_to(templates_dir)), str(e))
            continue

        create_dir_path(destination.parent)
        if write_if_changed(destination, str(editor)):
            click.echo(f"Wrote {destination}")

    for path in cleaner.delete_unmarked_files():
        click.echo(f"Deleted {path}")

    logger.info("build_command_completed", templates=len(templates), errors=len(log.errors))
    if log.has_errors:
        raise click.ClickException(f"{len(log.errors)} of {len(templates)} template(s) failed")
    click.echo(f"Built {len(templates)} template(s) into {output_dir}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@config_option
def outline(file: Path, config_path: Optional[Path]):
    """Show the block structure of FILE."""
    config = load_editor_config(config_path)
    editor = open_editor(file, config)
    console.print(build_outline(editor.blocks, Tree(Text(file.name, style="bold green"))))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--keep", "-k", multiple=True, help="Name of a block to keep (repeatable)")
@click.option("--block", "block_path", default="", help="'/'-separated path of the block to purge (default: top level)")
@config_option
def purge(file: Path, keep: tuple[str, ...], block_path: str, config_path: Optional[Path]):
    """
    Remove named blocks of FILE that are not listed with --keep.

    Text outside named blocks is never removed.

    Examples:
        regenblocks purge Patient.cs -k GeneratedFields -k GeneratedMethods
        regenblocks purge Patient.cs --block Class -k Fields
    """
    config = load_editor_config(config_path)
    editor = open_editor(file, config)

    block = editor.blocks
    try:
        for name in filter(None, block_path.split("/")):
            block = block.find_required(name)
    except RegenBlocksError as e:
        raise click.ClickException(str(e))

    removed = block.purge_unused_children(keep)
    editor.save()
    logger.info("purge_command_completed", file=str(file), removed=[b.name for b in removed])

    if removed:
        click.echo(f"Removed {len(removed)} block(s): {', '.join(b.name for b in removed)}")
    else:
        click.echo("Nothing to remove")
