"""hubfs command line interface.

Provides `hubfs read` and `hubfs write` for files on a GitHub repository
branch. Repository coordinates and the token come from the config file,
HUBFS_* environment variables, or the group options.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Union

import click
from rich.console import Console

from .cli_utils import content_payload, format_json_error, format_json_success
from .exceptions import HubfsError
from .filesystem import Hubfs
from .utils.config_manager import HubfsConfigManager

console = Console()


def _build_filesystem(settings: dict) -> Hubfs:
    """Load configuration, apply command line overrides and build the handle.

    Raises:
        click.ClickException: If the config file is malformed or incomplete
    """
    manager = HubfsConfigManager(settings.get("config_dir"))
    try:
        config = manager.load_or_default()
    except ValueError as e:
        raise click.ClickException(str(e))

    for name in ("owner", "repo", "token", "branch"):
        value = settings.get(name)
        if value:
            setattr(config, "default_branch" if name == "branch" else name, value)

    logging.basicConfig(level=config.log_level.upper())

    try:
        return Hubfs(config)
    except HubfsError as e:
        raise click.ClickException(e.message)


def _handle_error(e: Exception, json_output: bool) -> None:
    """Report a failed command in the requested format and exit non-zero."""
    if json_output:
        click.echo(format_json_error(e))
    else:
        message = e.message if isinstance(e, HubfsError) else str(e)
        console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


async def _read(
    fs: Hubfs, path: str, encoding: Optional[str], ref: Optional[str]
) -> Union[bytes, str]:
    async with fs:
        return await fs.read_file(path, encoding=encoding, ref=ref)


async def _write(fs: Hubfs, path: str, data: Union[bytes, str], **options) -> None:
    async with fs:
        await fs.write_file(path, data, **options)


@click.group("hubfs")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False),
    help="Directory holding config.json (default: $HUBFS_CONFIG_DIR or ~/.hubfs)",
)
@click.option("--owner", help="Repository owner")
@click.option("--repo", help="Repository name")
@click.option("--token", help="GitHub API token (prefer HUBFS_GITHUB_TOKEN)")
@click.option("--default-branch", "branch", help="Branch used when none is given")
@click.pass_context
def cli(
    ctx: click.Context,
    config_dir: Optional[str],
    owner: Optional[str],
    repo: Optional[str],
    token: Optional[str],
    branch: Optional[str],
):
    """Read and write files on a GitHub repository branch."""
    ctx.obj = {
        "config_dir": config_dir,
        "owner": owner,
        "repo": repo,
        "token": token,
        "branch": branch,
    }


@cli.command("read")
@click.argument("path")
@click.option("--ref", "-r", help="Branch, tag or commit sha to read from")
@click.option("--encoding", "-e", help="Decode content with this encoding")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Write content to a local file instead of stdout",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_obj
def read_command(
    settings: dict,
    path: str,
    ref: Optional[str],
    encoding: Optional[str],
    output: Optional[str],
    json_output: bool,
):
    """Read a file from the repository.

    PATH is taken from the repository root, with or without a leading slash.

    Examples:

        hubfs read README.md -e utf8

        hubfs read assets/logo.png -o logo.png
    """
    fs = _build_filesystem(settings)
    try:
        content = asyncio.run(_read(fs, path, encoding, ref))
    except HubfsError as e:
        _handle_error(e, json_output)
        return

    if json_output:
        click.echo(format_json_success(content_payload(path, content, encoding), {"ref": ref}))
    elif output:
        if isinstance(content, bytes):
            Path(output).write_bytes(content)
        else:
            Path(output).write_text(content)
        console.print(f"[green]Saved:[/green] {path} -> {output}")
    elif isinstance(content, bytes):
        click.get_binary_stream("stdout").write(content)
    else:
        click.echo(content, nl=False)


@cli.command("write")
@click.argument("path")
@click.option("--content", "-c", help="File content (inline)")
@click.option(
    "--from-file",
    "-f",
    type=click.Path(exists=True, dir_okay=False),
    help="Read content from local file",
)
@click.option("--branch", "-b", help="Branch to write to")
@click.option("--message", "-m", help="Commit message")
@click.option("--encoding", "-e", default="utf8", show_default=True, help="Encoding of --content")
@click.option("--exclusive", is_flag=True, help="Fail if the file already exists")
@click.option("--queued", is_flag=True, help="Always use the batched commit pipeline")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_obj
def write_command(
    settings: dict,
    path: str,
    content: Optional[str],
    from_file: Optional[str],
    branch: Optional[str],
    message: Optional[str],
    encoding: str,
    exclusive: bool,
    queued: bool,
    json_output: bool,
):
    """Write a file to the repository, replacing it if it exists.

    You must provide either --content or --from-file.

    Examples:

        hubfs write notes/today.md -c "# Today"

        hubfs write data/dump.bin -f ./dump.bin -m "Nightly dump"
    """
    if (content is None) == (from_file is None):
        msg = "Provide exactly one of --content or --from-file"
        if json_output:
            click.echo(format_json_error(msg, "ValidationError"))
        else:
            console.print(f"[red]Error: {msg}[/red]")
        sys.exit(1)

    data: Union[bytes, str]
    if from_file is not None:
        data = Path(from_file).read_bytes()
    else:
        data = content or ""

    fs = _build_filesystem(settings)
    try:
        asyncio.run(
            _write(
                fs,
                path,
                data,
                encoding=encoding,
                flag="wx" if exclusive else "w",
                message=message,
                branch=branch,
                queued=queued,
            )
        )
    except HubfsError as e:
        _handle_error(e, json_output)
        return

    if json_output:
        click.echo(format_json_success({"path": path, "branch": branch}))
    else:
        console.print(f"[green]Written:[/green] {path}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
