"""CLI interface for syncing Salesforce CPQ custom scripts."""

import logging
import signal
from contextlib import contextmanager
from typing import Any, Optional

import click

from .cli_progress import BatchProgressDisplay
from .config import (
    ORG_LOGIN_URLS,
    ORG_TYPE_CUSTOM,
    ORG_TYPE_DEV,
    ORG_TYPE_PROD,
    ORG_TYPE_SANDBOX,
    ConfigStore,
    OrgInfo,
    login_url_for,
)
from .exceptions import PersistenceError, QcpError, SalesforceAPIError
from .init_project import check_credentials, initialize_project
from .output import OutputFormatter
from .overwrite import OverwriteAction, OverwriteResolver
from .session import QcpSession
from .sync import (
    BackupEngine,
    BatchResult,
    CancellationToken,
    CompareResult,
    DiffEngine,
)
from .workspace import Workspace

logger = logging.getLogger(__name__)

ORG_TYPES = [ORG_TYPE_SANDBOX, ORG_TYPE_DEV, ORG_TYPE_PROD, ORG_TYPE_CUSTOM]

OVERWRITE_CHOICES = {
    OverwriteAction.BACKUP: "Back up the current content, then overwrite it",
    OverwriteAction.OVERWRITE: "Overwrite this file",
    OverwriteAction.SKIP: "Keep the current content (default)",
    OverwriteAction.BACKUP_ALL: "Back up and overwrite this and all following files",
    OverwriteAction.OVERWRITE_ALL: "Overwrite this and all following files",
    OverwriteAction.SKIP_ALL: "Keep this and all following files",
    OverwriteAction.CANCEL: "Stop here; files already saved are kept",
}

on_conflict_option = click.option(
    "--on-conflict",
    type=click.Choice(["ask", "backup", "overwrite", "skip"]),
    default="ask",
    help="What to do when local and remote content differ (default: ask)",
)


def prompt_overwrite(item: str) -> OverwriteAction:
    """Ask which overwrite action to take for ``item``."""
    click.echo(f"\nContent differs: {item}", err=True)
    for action, description in OVERWRITE_CHOICES.items():
        click.echo(f"  {action.value:<14} {description}", err=True)
    choice = click.prompt(
        "Action",
        type=click.Choice([a.value for a in OVERWRITE_CHOICES]),
        default=OverwriteAction.SKIP.value,
        err=True,
    )
    return OverwriteAction(choice)


def make_resolver(on_conflict: str) -> OverwriteResolver:
    return OverwriteResolver(policy=on_conflict, prompt=prompt_overwrite)


@contextmanager
def cancel_on_interrupt(token: CancellationToken, out: OutputFormatter):
    """Turn the first Ctrl-C into a cooperative cancel of the running batch."""

    def handler(signum: int, frame: Any) -> None:
        if token.cancelled:
            raise KeyboardInterrupt
        out.warning("\nCancelling - remaining files will not be processed")
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def open_session(ctx: Any) -> QcpSession:
    """Load the project of the current workspace or exit."""
    out: OutputFormatter = ctx.obj["out"]
    session = QcpSession(ctx.obj["workspace"])
    try:
        session.open()
    except PersistenceError as e:
        out.error(str(e))
        ctx.exit(1)
    ctx.call_on_close(session.close)
    return session


def report_batch(
    ctx: Any, result: BatchResult, title: str, extra: Optional[dict] = None
) -> None:
    """Print a batch summary and exit with status 1 if any item failed.

    ``extra`` rows are only shown in the text summary.
    """
    out: OutputFormatter = ctx.obj["out"]

    if out.json_output:
        out.output_json(result.to_dict())
    else:
        for item in result.failed:
            out.error(f"{item.item}: {item.error}")
        counts = result.counts()
        summary = [
            ("Succeeded", str(counts["succeeded"])),
            ("Failed", str(counts["failed"])),
            ("Skipped", str(counts["skipped"])),
            ("Not attempted", str(counts["not_attempted"])),
        ]
        for label, value in (extra or {}).items():
            summary.append((label, str(value)))
        out.print_summary(title, summary)
        if result.cancelled:
            out.warning("Remaining files cancelled")

    if result.failed:
        ctx.exit(1)


@click.group()
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False),
    default=".",
    envvar="QCP_WORKSPACE",
    help="Project directory (default: current directory)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyqcp")
@click.pass_context
def main(ctx: Any, workspace: str, quiet: bool, json: bool, verbose: bool) -> None:
    """PyQCP - Sync Salesforce CPQ custom scripts with local files."""
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyqcp").setLevel(logging.DEBUG)
    else:
        # The project log records INFO messages; keep them off the console
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        logging.basicConfig(level=logging.WARNING, handlers=[console_handler])


@main.command()
@click.option("--org-type", type=click.Choice(ORG_TYPES), help="Type of org")
@click.option("--login-url", help="Login url for a custom org type")
@click.option("--username", help="Salesforce username")
@click.option("--password", help="Salesforce password")
@click.option("--api-token", help="Security token (if your IP is not allowlisted)")
@click.option("--pull", is_flag=True, help="Pull all scripts after initializing")
@click.option("--force", is_flag=True, help="Re-initialize a configured org")
@click.pass_context
def init(
    ctx: Any,
    org_type: Optional[str],
    login_url: Optional[str],
    username: Optional[str],
    password: Optional[str],
    api_token: Optional[str],
    pull: bool,
    force: bool,
) -> None:
    """Initialize a project in the workspace directory.

    Stores the org settings in .qcp/qcp-config.json, creates the src
    directory and adds .qcp to .gitignore.
    """
    out: OutputFormatter = ctx.obj["out"]
    store = ConfigStore(Workspace(ctx.obj["workspace"]))
    current = OrgInfo()
    if store.exists():
        try:
            current = store.load().org_info
        except PersistenceError as e:
            out.warning(str(e))

    if current.is_configured and not force and not any(
        [org_type, username, password]
    ):
        if not click.confirm(
            f"Org already configured for {current.username}. Re-initialize?",
            default=False,
        ):
            out.info("Using the org that is currently configured.")
            return

    org_type = org_type or click.prompt(
        "Org type",
        type=click.Choice(ORG_TYPES),
        default=current.org_type or ORG_TYPE_PROD,
    )
    if org_type == ORG_TYPE_CUSTOM and not login_url:
        login_url = click.prompt(
            "Custom URL",
            default=current.login_url
            if current.login_url not in ORG_LOGIN_URLS.values()
            else "https://domain.my.salesforce.com",
        )
    username = username or click.prompt(
        "Salesforce username", default=current.username or None
    )
    password = password or click.prompt("Salesforce password", hide_input=True)
    if api_token is None:
        api_token = click.prompt(
            "API token (required if your IP address is not allowlisted)",
            default=current.api_token,
            show_default=False,
        )

    org_info = OrgInfo(
        login_url=login_url_for(org_type, login_url),
        username=username,
        password=password,
        api_token=api_token or "",
        org_type=org_type,
    )

    try:
        changed = initialize_project(store, org_info)
    except PersistenceError as e:
        out.error(f"Error initializing project: {e}")
        ctx.exit(1)
    out.success(f"Created/Updated files: {', '.join(changed)}.")

    try:
        check_credentials(org_info)
        out.success("Your credentials are valid.")
    except SalesforceAPIError as e:
        out.error(f"Your credentials are invalid: {e}")
        out.info("Run 'qcp init --force' to enter them again.")
        ctx.exit(1)

    if pull:
        ctx.invoke(pull_all, on_conflict="ask")


@main.command("test-credentials")
@click.pass_context
def test_credentials(ctx: Any) -> None:
    """Check that the configured credentials are valid."""
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    try:
        check_credentials(session.config.org_info)
    except SalesforceAPIError as e:
        out.error(f"Your credentials are invalid: {e}")
        ctx.exit(1)
    out.success("Your credentials are valid.")


@main.command("list")
@click.pass_context
def list_records(ctx: Any) -> None:
    """List the custom scripts on Salesforce."""
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    try:
        records = session.pull_engine().list_remote()
    except QcpError as e:
        out.error(str(e))
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            [
                {
                    "id": r.id,
                    "name": r.name,
                    "last_modified_by": str(r.last_modified_by or ""),
                    "last_modified_date": r.last_modified_date,
                    "linked_file": _linked_file(session, r.id),
                }
                for r in records
            ]
        )
        return

    out.output_table(
        ["Name", "Id", "Modified", "Local file"],
        [
            [r.name, r.id, r.modified_summary, _linked_file(session, r.id)]
            for r in records
        ],
        title=f"{len(records)} custom script(s)",
    )


def _linked_file(session: QcpSession, record_id: str) -> Optional[str]:
    entry = session.config.find_by_record_id(record_id)
    return entry.file_path if entry else None


@main.command("pull")
@on_conflict_option
@click.pass_context
def pull_all(ctx: Any, on_conflict: str) -> None:
    """Pull every custom script into the src directory."""
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    engine = session.pull_engine()
    token = CancellationToken()
    show_progress = not (out.quiet or out.json_output) and on_conflict != "ask"

    out.info("Downloading all QCP files from Salesforce.")
    try:
        with cancel_on_interrupt(token, out), BatchProgressDisplay(
            "Pulling", enabled=show_progress
        ) as display:
            result = engine.pull_all(
                resolver=make_resolver(on_conflict),
                cancel_token=token,
                progress_callback=display.callback,
            )
    except QcpError as e:
        out.error(str(e))
        ctx.exit(1)
    report_batch(ctx, result, "Pull Complete")


@main.command("pull-file")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@on_conflict_option
@click.pass_context
def pull_file(ctx: Any, file: str, on_conflict: str) -> None:
    """Pull the record linked to a local FILE."""
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    rel_path = session.workspace.relative(file)
    entry = session.config.find_by_path(rel_path)
    if entry is None or not entry.is_linked:
        out.error(f"{rel_path} is not linked to a Salesforce record.")
        out.info("Use 'qcp pull-remote' to pick a record instead.")
        ctx.exit(1)

    out.info(f"Downloading {entry.file_name} from Salesforce.")
    try:
        record = session.pull_engine().pull_one(entry, make_resolver(on_conflict))
    except QcpError as e:
        out.error(str(e))
        ctx.exit(1)
    _report_single(out, record, f"Pulled {rel_path}.", f"Kept local {rel_path}.")


@main.command("pull-remote")
@click.option("--id", "record_id", help="ID of the record to pull")
@click.option("--name", help="Name of the record to pull")
@on_conflict_option
@click.pass_context
def pull_remote(
    ctx: Any,
    record_id: Optional[str],
    name: Optional[str],
    on_conflict: str,
) -> None:
    """Pull one record chosen from the list of scripts on Salesforce."""
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    engine = session.pull_engine()
    resolver = make_resolver(on_conflict)

    try:
        if name and not record_id:
            record = engine.pull_by_name(name, resolver)
        else:
            if not record_id:
                record_id = _pick_record(out, engine.list_remote())
                if record_id is None:
                    return
            record = engine.pull_one(record_id, resolver)
    except QcpError as e:
        out.error(str(e))
        ctx.exit(1)
    label = record.name if record else (name or record_id)
    _report_single(out, record, f"Pulled {label}.", f"Kept local file for {label}.")


def _pick_record(out: OutputFormatter, records: list) -> Optional[str]:
    if not records:
        out.warning("There are no custom scripts on Salesforce.")
        return None
    out.output_table(
        ["#", "Name", "Id", "Modified"],
        [[i, r.name, r.id, r.modified_summary] for i, r in enumerate(records, 1)],
    )
    index = click.prompt(
        "Record to pull", type=click.IntRange(1, len(records)), err=True
    )
    return records[index - 1].id


def _report_single(out: OutputFormatter, record, done: str, skipped: str) -> None:
    if out.json_output:
        out.output_json(
            {"record_id": record.id if record else None, "skipped": record is None}
        )
    elif record is None:
        out.warning(skipped)
    else:
        out.success(done)


@main.command("push")
@click.argument("files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@on_conflict_option
@click.pass_context
def push(ctx: Any, files: tuple[str, ...], on_conflict: str) -> None:
    """Push one or more local FILES to Salesforce."""
    _run_push(ctx, list(files), on_conflict)


@main.command("push-all")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@on_conflict_option
@click.pass_context
def push_all(ctx: Any, yes: bool, on_conflict: str) -> None:
    """Push every file in the src directory to Salesforce."""
    if not yes and not click.confirm("Push all files to Salesforce?", default=True):
        return
    _run_push(ctx, None, on_conflict)


def _run_push(ctx: Any, files: Optional[list[str]], on_conflict: str) -> None:
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    engine = session.push_engine()
    token = CancellationToken()
    show_progress = not (out.quiet or out.json_output) and on_conflict != "ask"

    out.info("Pushing files to Salesforce.")
    try:
        with cancel_on_interrupt(token, out), BatchProgressDisplay(
            "Pushing", enabled=show_progress
        ) as display:
            result = engine.push_all(
                files,
                resolver=make_resolver(on_conflict),
                cancel_token=token,
                progress_callback=display.callback,
            )
    except QcpError as e:
        out.error(str(e))
        ctx.exit(1)
    report_batch(ctx, result, "Push Complete")


@main.command()
@click.argument("source", type=click.Choice(["local", "remote"]))
@click.pass_context
def backup(ctx: Any, source: str) -> None:
    """Back up files to a new directory under .qcp/backups.

    SOURCE is 'local' (copy the src directory) or 'remote' (fetch every
    record from Salesforce).
    """
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    token = CancellationToken()

    origin = "src directory" if source == "local" else "Salesforce"
    out.info(f"Backing up files from {origin}.")
    try:
        with cancel_on_interrupt(token, out):
            if source == "local":
                result = BackupEngine(session.workspace).backup_local(token)
            else:
                result = session.backup_engine().backup_from_remote(token)
    except QcpError as e:
        out.error(f"Error backing up files: {e}")
        ctx.exit(1)

    directory = session.workspace.relative(result.directory)
    report_batch(ctx, result, "Backup Complete", {"Directory": directory})


@main.group()
def diff() -> None:
    """Compare local files and remote records."""


def _show_comparison(ctx: Any, result: CompareResult) -> None:
    out: OutputFormatter = ctx.obj["out"]
    if out.json_output:
        out.output_json(result.to_dict())
        return
    if result.identical:
        out.success(f"{result.left_label} and {result.right_label} are identical.")
        return
    out.print_diff(result.diff)
    if result.metadata_changes:
        out.output_table(
            ["Field", result.left_label, result.right_label],
            [[k, v[0], v[1]] for k, v in result.metadata_changes.items()],
            title="Metadata",
        )


@diff.command("linked")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def diff_linked(ctx: Any, file: str) -> None:
    """Compare a local FILE with the record it is linked to."""
    _run_diff(ctx, lambda engine: engine.compare_with_linked(file))


@diff.command("remote")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("record_id")
@click.pass_context
def diff_remote(ctx: Any, file: str, record_id: str) -> None:
    """Compare a local FILE with any record RECORD_ID."""
    _run_diff(ctx, lambda engine: engine.compare_with_remote(file, record_id))


@diff.command("local")
@click.argument("left", type=click.Path(exists=True, dir_okay=False))
@click.argument("right", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def diff_local(ctx: Any, left: str, right: str) -> None:
    """Compare two local files."""
    out: OutputFormatter = ctx.obj["out"]
    engine = DiffEngine(None, Workspace(ctx.obj["workspace"]))
    try:
        result = engine.compare_local_files(left, right)
    except (QcpError, OSError) as e:
        out.error(f"Error comparing files: {e}")
        ctx.exit(1)
    _show_comparison(ctx, result)


@diff.command("records")
@click.argument("left_id")
@click.argument("right_id")
@click.option("--metadata", is_flag=True, help="Also compare metadata fields")
@click.pass_context
def diff_records(ctx: Any, left_id: str, right_id: str, metadata: bool) -> None:
    """Compare two records on Salesforce."""
    _run_diff(
        ctx,
        lambda engine: engine.compare_remote_records(
            left_id, right_id, include_metadata=metadata
        ),
    )


def _run_diff(ctx: Any, compare) -> None:
    out: OutputFormatter = ctx.obj["out"]
    session = open_session(ctx)
    try:
        result = compare(session.diff_engine())
    except (QcpError, OSError) as e:
        out.error(f"Error comparing files: {e}")
        ctx.exit(1)
    _show_comparison(ctx, result)


if __name__ == "__main__":
    main()
