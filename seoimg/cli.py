"""CLI entry-point: single and bulk image generation, credits and notifications."""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from seoimg.batch_file import load_batch_file
from seoimg.credits import get_credit_ledger
from seoimg.errors import SeoImgError
from seoimg.export import decode_image, write_images
from seoimg.queue.bulk import BulkQueue
from seoimg.schemas.models import ItemStatus, TemplateType
from seoimg.session import StudioSession

app = typer.Typer(help="SEO image engine: credit-metered blog and infographic images")
credits_app = typer.Typer(help="Credit balances and admin adjustments")
notifications_app = typer.Typer(help="Notification log")
app.add_typer(credits_app, name="credits")
app.add_typer(notifications_app, name="notifications")

ACCOUNT_OPTION = typer.Option("local", "--account", envvar="SEOIMG_ACCOUNT", help="Account id")
TYPE_OPTION = typer.Option(TemplateType.BLOG, "--type", help="Template: blog | infographic")

_STATUS_STYLE = {
    ItemStatus.PENDING: "dim",
    ItemStatus.IN_PROGRESS: "yellow",
    ItemStatus.COMPLETED: "green",
    ItemStatus.FAILED: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _items_table(queue: BulkQueue) -> Table:
    table = Table(title=f"{queue.template_type.value} items")
    table.add_column("#", justify="right")
    table.add_column("id")
    table.add_column("status")
    table.add_column("detail")
    for n, item in enumerate(queue.items, 1):
        label = item.fields.get("title") or item.fields.get("content") or ""
        detail = item.error_message or label[:60]
        style = _STATUS_STYLE[item.status]
        table.add_row(str(n), item.id, f"[{style}]{item.status.value}[/{style}]", detail)
    return table


async def _drive(session: StudioSession, queue: BulkQueue, start: bool) -> None:
    if start:
        run_id = await session.start_run(queue.template_type)
    else:
        run_id = await queue.resume_run()
    run = queue.run
    columns = (TextColumn("[bold]{task.description}"), BarColumn(), MofNCompleteColumn(), TimeElapsedColumn())
    with Progress(*columns) as progress:
        task = progress.add_task(f"Run {run_id}", total=run.total_count, completed=run.processed_count)
        while queue.is_running:
            progress.update(task, total=run.total_count, completed=run.processed_count)
            await asyncio.sleep(0.5)
        progress.update(task, total=run.total_count, completed=run.processed_count)
    await queue.join(include_cleanup=True)


@app.command()
def generate(
    template: TemplateType = TYPE_OPTION,
    title: str = typer.Option("", help="Blog post title (blog)"),
    intro: str = typer.Option("", help="Blog post body/introduction (blog)"),
    content: str = typer.Option("", help="Infographic content (infographic)"),
    style: str = typer.Option("", help="Optional style hint"),
    colour: str = typer.Option("", help="Optional colour hint"),
    out: str = typer.Option("image.png", "--out", help="Output PNG path"),
    account: str = ACCOUNT_OPTION,
):
    """Generate one image right away (costs one item's credits)."""
    console = Console()
    session = StudioSession(account)
    fields = {"title": title, "intro": intro, "content": content, "style": style, "colour": colour}
    try:
        image = asyncio.run(session.generate_single(template, fields))
    except SeoImgError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(decode_image(image))
    console.print(f"Wrote {out_path}")
    console.print(f"Credits remaining: {session.balance}")
    console.print("[green]Done.[/green]")


@app.command()
def bulk(
    items_file: str = typer.Argument(..., help="JSON, YAML or CSV file with one field set per item"),
    template: TemplateType = TYPE_OPTION,
    out_dir: str = typer.Option(None, "--out-dir", help="Write each completed image here"),
    zip_path: str = typer.Option(None, "--zip", help="Bundle completed images into this ZIP"),
    account: str = ACCOUNT_OPTION,
):
    """Queue every item in ITEMS_FILE and process them one at a time."""
    console = Console()
    session = StudioSession(account)
    queue = session.queue(template)
    if session.bulk_active:
        console.print("[red]Error: an interrupted run exists. Use `resume` or `cancel` first.[/red]")
        raise typer.Exit(1)
    try:
        rows = load_batch_file(items_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    queue.clear_items()
    for row in rows:
        queue.update_item_fields(queue.add_item(), row)
    valid = len(queue.valid_items())
    console.print(
        f"Queued {len(rows)} items ({valid} complete), cost {queue.batch_cost()} credits, "
        f"balance {session.balance}"
    )
    try:
        asyncio.run(_drive(session, queue, start=True))
    except SeoImgError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _report(console, session, queue, out_dir, zip_path)


@app.command()
def resume(
    template: TemplateType = TYPE_OPTION,
    out_dir: str = typer.Option(None, "--out-dir", help="Write each completed image here"),
    zip_path: str = typer.Option(None, "--zip", help="Bundle completed images into this ZIP"),
    account: str = ACCOUNT_OPTION,
):
    """Continue a bulk run interrupted by a crash or Ctrl+C."""
    console = Console()
    session = StudioSession(account)
    queue = session.queue(template)
    try:
        asyncio.run(_drive(session, queue, start=False))
    except SeoImgError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    _report(console, session, queue, out_dir, zip_path)


def _report(console: Console, session: StudioSession, queue: BulkQueue, out_dir: str | None, zip_path: str | None) -> None:
    console.print(_items_table(queue))
    if out_dir:
        for path in write_images(queue.items, Path(out_dir)):
            console.print(f"Wrote {path}")
    if zip_path:
        written = session.export_zip(queue.template_type, Path(zip_path))
        if written:
            console.print(f"Wrote {written}")
        else:
            console.print("[yellow]No completed images to zip.[/yellow]")
    console.print(f"Credits remaining: {session.balance}")
    console.print("[green]Done.[/green]")


@app.command()
def status(template: TemplateType = TYPE_OPTION, account: str = ACCOUNT_OPTION):
    """Show the persisted queue and run progress."""
    console = Console()
    queue = StudioSession(account).queue(template)
    run = queue.run
    if run is None:
        console.print("No active run.")
    else:
        state = "active" if run.is_active else ("cancelled" if run.cancelled else "finished")
        console.print(f"Run {run.run_id}: {run.processed_count}/{run.total_count} processed ({state})")
        eta = queue.get_estimated_time_remaining()
        if eta is not None:
            console.print(f"Estimated time remaining: {eta}s")
    if queue.items:
        console.print(_items_table(queue))


@app.command()
def cancel(template: TemplateType = TYPE_OPTION, account: str = ACCOUNT_OPTION):
    """Cancel an interrupted run left behind in storage."""
    console = Console()
    queue = StudioSession(account).queue(template)
    if not typer.confirm("Cancel the remaining items? Credits already spent are not refunded."):
        raise typer.Exit(0)
    if queue.cancel_run():
        console.print("[yellow]Run cancelled.[/yellow]")
    else:
        console.print("No active run.")


# ---------------------------------------------------------------------------
# credits
# ---------------------------------------------------------------------------

@credits_app.command("balance")
def credits_balance(account: str = ACCOUNT_OPTION):
    Console().print(f"{account}: {get_credit_ledger().get_balance(account)} credits")


@credits_app.command("add")
def credits_add(
    amount: int = typer.Argument(..., min=1),
    description: str = typer.Option("Credits added", help="Transaction description"),
    account: str = ACCOUNT_OPTION,
):
    balance = get_credit_ledger().add_credits(account, amount, description)
    Console().print(f"{account}: {balance} credits")


@credits_app.command("set")
def credits_set(
    new_balance: int = typer.Argument(..., min=0),
    reason: str = typer.Option("Admin credit adjustment", help="Transaction description"),
    account: str = ACCOUNT_OPTION,
):
    """Overwrite an account balance (admin)."""
    balance = get_credit_ledger().set_balance(account, new_balance, reason)
    Console().print(f"{account}: {balance} credits")


@credits_app.command("list")
def credits_list():
    """All accounts and balances (admin)."""
    table = Table(title="Accounts")
    table.add_column("account")
    table.add_column("credits", justify="right")
    table.add_column("created")
    for acct in get_credit_ledger().list_accounts():
        table.add_row(acct.account_id, str(acct.balance), acct.created_at.strftime("%Y-%m-%d %H:%M"))
    Console().print(table)


@credits_app.command("history")
def credits_history(account: str = ACCOUNT_OPTION, limit: int = typer.Option(20, help="Rows to show")):
    table = Table(title=f"Transactions for {account}")
    table.add_column("when")
    table.add_column("amount", justify="right")
    table.add_column("kind")
    table.add_column("description")
    for txn in get_credit_ledger().transactions(account)[:limit]:
        colour = "green" if txn.amount >= 0 else "red"
        table.add_row(
            txn.created_at.strftime("%Y-%m-%d %H:%M"),
            f"[{colour}]{txn.amount:+d}[/{colour}]",
            txn.kind,
            txn.description,
        )
    Console().print(table)


# ---------------------------------------------------------------------------
# notifications
# ---------------------------------------------------------------------------

@notifications_app.command("list")
def notifications_list(
    unread: bool = typer.Option(False, "--unread", help="Only unread"),
    account: str = ACCOUNT_OPTION,
):
    log = StudioSession(account).notifications
    table = Table(title=f"Notifications ({log.unread_count} unread)")
    table.add_column("id")
    table.add_column("kind")
    table.add_column("title")
    table.add_column("message")
    for n in log.list(unread_only=unread):
        title = n.title if n.read else f"[bold]{n.title}[/bold]"
        table.add_row(n.id, n.kind.value, title, n.message)
    Console().print(table)


@notifications_app.command("read")
def notifications_read(
    notification_id: str = typer.Argument(None, help="Mark one notification read (default: all)"),
    account: str = ACCOUNT_OPTION,
):
    log = StudioSession(account).notifications
    if notification_id:
        if not log.mark_read(notification_id):
            Console().print(f"[red]Error: notification not found: {notification_id}[/red]")
            raise typer.Exit(1)
    else:
        log.mark_all_read()


@notifications_app.command("clear")
def notifications_clear(
    notification_id: str = typer.Argument(None, help="Remove one notification (default: all)"),
    account: str = ACCOUNT_OPTION,
):
    log = StudioSession(account).notifications
    if notification_id:
        if not log.remove(notification_id):
            Console().print(f"[red]Error: notification not found: {notification_id}[/red]")
            raise typer.Exit(1)
    else:
        log.clear_all()


if __name__ == "__main__":
    app()
