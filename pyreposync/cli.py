"""CLI interface for pyreposync."""

import datetime
import logging
import time
from pathlib import Path
from typing import Any, Optional

import click

from .api import ObjectStoreClient
from .config import config
from .exceptions import (
    ConfigError,
    NotFoundError,
    RemoteError,
    RepoSyncError,
    SyncFailedError,
)
from .models import FolderNode, RepositoryConfig, RepositoryRecord, SyncResult
from .output import OutputFormatter
from .sync import (
    ChangeEvent,
    ChangeKind,
    HierarchyBuilder,
    SyncEngine,
    SyncOperations,
    SyncSession,
    remote_key_for,
)
from .sync.operations import PARTIAL_SUFFIX

logger = logging.getLogger(__name__)


def _create_client(ctx: Any, out: OutputFormatter) -> ObjectStoreClient:
    """Create an API client or exit with a helpful message."""
    try:
        return ObjectStoreClient(api_key=ctx.obj.get("api_key"))
    except ConfigError as e:
        out.error(str(e))
        out.info("Run 'pyreposync init' to configure your API key.")
        ctx.exit(1)
        raise  # Unreachable, ctx.exit raises


def _resolve_repository(
    ctx: Any, out: OutputFormatter, container: Optional[str]
) -> tuple[str, RepositoryConfig]:
    """Resolve a repository id (or the active one) to its local settings."""
    repo_id = container or config.get_active_repository()
    if not repo_id:
        out.error("No repository given and no active repository set.")
        out.info("Clone a repository or run 'pyreposync use <id>' first.")
        ctx.exit(1)
    repository = config.get_repository(repo_id)
    if repository is None or not repository.folder_path:
        out.error(f"Repository {repo_id} has no local folder configured.")
        ctx.exit(1)
    return repo_id, repository


def _finish_sync(ctx: Any, out: OutputFormatter, result: SyncResult) -> None:
    """Report one aggregate result and set the exit code."""
    if out.json_output:
        out.output_json(result.to_dict())
    if result.cancelled:
        ctx.exit(130)
    if result.failed:
        out.error(str(SyncFailedError(result.failed)))
        ctx.exit(1)


@click.group()
@click.option(
    "--api-key", "-k", envvar="REPOSYNC_API_KEY", help="Object store API key"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyreposync")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyRepoSync - Keep local folders in sync with a remote object store."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyreposync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--api-key",
    "-k",
    prompt="Enter your API key",
    hide_input=True,
    help="Object store API key",
)
@click.pass_context
def init(ctx: Any, api_key: str) -> None:
    """Initialize configuration.

    Validates the API key against the metadata store and stores it in
    ~/.config/pyreposync/config.json for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    out.info("Validating API key...")
    try:
        client = ObjectStoreClient(api_key=api_key)
        client.list_repositories()
        out.success("✓ API key is valid")
    except RemoteError as e:
        out.error(f"API key validation failed: {e}")
        if not click.confirm("Save API key anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_api_key(api_key)
    except ConfigError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
    out.success("✓ Configuration saved successfully")
    out.info(f"Config file: {config.get_config_path()}")


@main.command()
@click.argument("path", type=click.Path(), required=False, default=".")
@click.option("--remote", "-r", "container", help="Show the tree of a container")
@click.pass_context
def tree(ctx: Any, path: str, container: Optional[str]) -> None:
    """Show the hierarchy of a local folder or a remote container.

    Examples:
        pyreposync tree ./my_repo
        pyreposync tree --remote repo-123
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        if container:
            client = _create_client(ctx, out)
            node = HierarchyBuilder(client).remote(container)
        else:
            node = HierarchyBuilder().local(path)
    except RepoSyncError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
        return

    out.print_tree(node)


@main.command()
@click.argument("container", type=str)
@click.argument("destination", type=click.Path(), required=False)
@click.option(
    "--workers",
    type=int,
    default=1,
    help="Number of parallel downloads (default: 1)",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be fetched without fetching"
)
@click.pass_context
def clone(
    ctx: Any,
    container: str,
    destination: Optional[str],
    workers: int,
    dry_run: bool,
) -> None:
    """Clone a remote repository into a local folder.

    Files that already exist locally are left untouched. The repository is
    registered in the configuration and becomes the active one.

    Examples:
        pyreposync clone repo-123
        pyreposync clone repo-123 ./checkout --workers 4
    """
    out: OutputFormatter = ctx.obj["out"]
    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)

    client = _create_client(ctx, out)
    try:
        try:
            record = client.get_repository(container)
        except NotFoundError:
            # No metadata record; the container id names the repository
            logger.debug(f"No repository record for {container}")
            record = RepositoryRecord(id=container, friendly_name=container)
        local_path = Path(destination or record.friendly_name or container).resolve()

        engine = SyncEngine(client, out)
        result = engine.clone_repository(
            container, local_path, max_workers=workers, dry_run=dry_run
        )

        if not dry_run:
            config.save_repository(
                container,
                RepositoryConfig(
                    friendly_name=record.friendly_name,
                    organization=record.organization,
                    folder_path=str(local_path),
                ),
            )
            config.set_active_repository(container)
    except KeyboardInterrupt:
        out.warning("\nClone cancelled by user")
        ctx.exit(130)
        return
    except RepoSyncError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
        return
    finally:
        client.close()

    _finish_sync(ctx, out, result)


@main.command()
@click.argument("container", type=str, required=False)
@click.option(
    "--workers",
    type=int,
    default=1,
    help="Number of parallel downloads (default: 1)",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would be fetched without fetching"
)
@click.pass_context
def pull(ctx: Any, container: Optional[str], workers: int, dry_run: bool) -> None:
    """Pull remote changes into the local folder of a repository.

    Only files whose content differs from the remote are fetched. Local
    files without a remote counterpart are never removed.

    CONTAINER defaults to the active repository.
    """
    out: OutputFormatter = ctx.obj["out"]
    if workers < 1:
        out.error("Workers must be at least 1")
        ctx.exit(1)

    repo_id, repository = _resolve_repository(ctx, out, container)
    client = _create_client(ctx, out)
    try:
        engine = SyncEngine(client, out)
        result = engine.pull_repository(
            repo_id, repository.folder_path, max_workers=workers, dry_run=dry_run
        )
    except KeyboardInterrupt:
        out.warning("\nPull cancelled by user")
        ctx.exit(130)
        return
    except RepoSyncError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
        return
    finally:
        client.close()

    _finish_sync(ctx, out, result)


@main.command()
@click.argument("container", type=str, required=False)
@click.pass_context
def status(ctx: Any, container: Optional[str]) -> None:
    """List local files that differ from the remote repository."""
    out: OutputFormatter = ctx.obj["out"]

    repo_id, repository = _resolve_repository(ctx, out, container)
    client = _create_client(ctx, out)
    try:
        modified = SyncEngine(client, OutputFormatter(quiet=True)).status(
            repo_id, repository.folder_path
        )
    except RepoSyncError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
        return
    finally:
        client.close()

    if out.json_output:
        out.output_json({"repository": repo_id, "modified": modified})
        return

    out.info(f"Repository: {repository.friendly_name or repo_id}")
    out.info(f"Local path: {repository.folder_path}")
    if not modified:
        out.success("Everything is in sync.")
        return
    out.info(f"{len(modified)} file(s) differ from the remote:")
    for path in modified:
        out.info(f"  {path}")


@main.command()
@click.argument("path", type=click.Path(), required=False)
@click.option(
    "--upload",
    is_flag=True,
    help="Upload added and changed files to the active repository",
)
@click.pass_context
def watch(ctx: Any, path: Optional[str], upload: bool) -> None:
    """Watch a local folder and print change events.

    PATH defaults to the folder of the active repository.
    """
    out: OutputFormatter = ctx.obj["out"]

    repo_id: Optional[str] = None
    if path is None or upload:
        repo_id, repository = _resolve_repository(ctx, out, None)
        path = path or repository.folder_path
    watch_path = str(Path(path).resolve())

    operations: Optional[SyncOperations] = None
    client: Optional[ObjectStoreClient] = None
    if upload:
        client = _create_client(ctx, out)
        operations = SyncOperations(client, repo_id or "")

    def on_change(event: ChangeEvent) -> None:
        if out.json_output:
            out.output_json({"event": event.kind.value, "path": event.path})
        else:
            now = datetime.datetime.now().strftime("%H:%M:%S")
            out.print(f"[{now}] {event.kind.value}: {event.path}")

        if operations is None or event.kind not in (ChangeKind.ADD, ChangeKind.CHANGE):
            return
        if Path(event.path).name.endswith(PARTIAL_SUFFIX):
            return
        key = remote_key_for(watch_path, event.path)
        try:
            operations.upload_file(event.path, key)
            out.success(f"  ↑ Uploaded {key}")
        except RepoSyncError as e:
            out.error(f"  Upload of {key} failed: {e}")

    session = SyncSession()
    try:
        hierarchy = session.watch(watch_path, on_change)
        files, folders = (
            hierarchy.count() if isinstance(hierarchy, FolderNode) else (1, 0)
        )
        out.info(f"Watching {watch_path} ({files} file(s), {folders} folder(s))")
        out.info("Press Ctrl+C to stop.")
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        out.info("\nStopped watching")
    except RepoSyncError as e:
        out.error(f"Error: {e}")
        ctx.exit(1)
    finally:
        session.close()
        if client is not None:
            client.close()


@main.command()
@click.pass_context
def repos(ctx: Any) -> None:
    """List configured repositories."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        repositories = config.get_repositories()
        active = config.get_active_repository()
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(
            {
                "active": active,
                "repositories": {
                    repo_id: repo.to_dict() for repo_id, repo in repositories.items()
                },
            }
        )
        return

    if not repositories:
        out.info("No repositories configured. Use 'pyreposync clone' to add one.")
        return

    for repo_id, repo in repositories.items():
        marker = "*" if repo_id == active else " "
        name = repo.friendly_name or repo_id
        org = f" ({repo.organization})" if repo.organization else ""
        out.print(f"{marker} {repo_id}: {name}{org} -> {repo.folder_path}")


@main.command()
@click.argument("container", type=str)
@click.pass_context
def use(ctx: Any, container: str) -> None:
    """Set the active repository."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        config.set_active_repository(container)
    except ConfigError as e:
        out.error(str(e))
        ctx.exit(1)
        return
    out.success(f"✓ Active repository: {container}")


if __name__ == "__main__":
    main()
