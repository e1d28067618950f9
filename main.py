import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table
from tqdm import tqdm

from reimburse_assistant.config import Settings
from reimburse_assistant.core.context import AppContext
from reimburse_assistant.core.exceptions import ReimbursementError
from reimburse_assistant.core.models import ProcessingFile, ProcessingStatus, ReimbursementStatus, UserProfile
from reimburse_assistant.core.status import progress_label
from reimburse_assistant.core.workflow import ApprovalWorkflow
from reimburse_assistant.logging_config import setup_logging
from reimburse_assistant.services.intake import IntakeSession
from reimburse_assistant.services.ocr import OcrClient
from reimburse_assistant.services.record_store import create_record_store
from reports.export import export_records, export_records_xlsx, export_filename

console = Console()
logger = logging.getLogger("reimburse_assistant.cli")


def login(ctx: AppContext, args) -> int:
    """Save the submitter profile, prompting for anything not passed on the command line."""
    current = ctx.profile
    fields = {
        "name": args.name or Prompt.ask("姓名", default=current.name if current else None),
        "student_id": args.student_id or Prompt.ask("学号/工号", default=current.student_id if current else None),
        "supervisor": args.supervisor or Prompt.ask("导师姓名", default=current.supervisor if current else ""),
        "phone": args.phone or Prompt.ask("联系电话", default=current.phone if current else ""),
    }
    try:
        profile = UserProfile(**fields)
    except ValidationError:
        console.print("[red]请补全必要信息 (name and student id are required)[/red]")
        return 1
    ctx.login(profile)
    console.print(f"[green]Saved profile for {profile.name} ({profile.student_id})[/green]")
    return 0


def whoami(ctx: AppContext, args) -> int:
    profile = ctx.require_profile()
    console.print(f"{profile.name} · {profile.student_id} · 导师 {profile.supervisor} · {profile.phone}")
    if ctx.is_super_admin:
        console.print("[bold]super admin[/bold] (use --admin to manage all records)")
    return 0


def render_records(ctx: AppContext, workflow: ApprovalWorkflow) -> None:
    records = workflow.cache.visible_to(ctx.owner_scope)
    title = "全部用户报销单" if ctx.admin_mode else "我的报销流水"
    table = Table(title=f"{title} ({len(records)} 条)")
    table.add_column("ID", style="dim")
    table.add_column("发票号")
    table.add_column("分类")
    table.add_column("金额", justify="right")
    if ctx.admin_mode:
        table.add_column("提交人")
    table.add_column("支付")
    table.add_column("进度")
    for record in records:
        row = [record.id, record.invoice_number, record.category, f"¥{record.amount:.2f}"]
        if ctx.admin_mode:
            row.append(f"{record.name} · {record.student_id}")
        row.append("已付" if record.is_paid else "待付")
        row.append(progress_label(record.status, record.rejection_reason))
        table.add_row(*row)
    console.print(table)


async def run_survey(workflow: ApprovalWorkflow) -> None:
    """Ask each pending compliance question until the session ends."""
    while workflow.survey.is_active:
        question = workflow.current_question
        answer = Confirm.ask(f"[bold]合规性确认[/bold] {question.question}")
        try:
            await workflow.answer_current(answer)
        except ReimbursementError as e:
            console.print(f"[red]保存失败: {e.message}[/red]")
            if not Confirm.ask("Retry?", default=True):
                return


def render_intake(items: List[ProcessingFile]) -> None:
    table = Table(title="发票识别区")
    table.add_column("File")
    table.add_column("发票号")
    table.add_column("金额", justify="right")
    table.add_column("分类")
    table.add_column("Check")
    for item in items:
        if item.status == ProcessingStatus.ERROR or item.extracted_data is None:
            table.add_row(item.file_path.name, "", "", "", f"[red]识别失败: {item.error}[/red]")
            continue
        data = item.extracted_data
        if not item.is_buyer_valid:
            check = "[red]发票抬头错误[/red]"
        elif item.is_duplicate:
            check = "[yellow]发票号码已存在[/yellow]"
        else:
            check = "[green]OK[/green]"
        table.add_row(item.file_path.name, data.invoice_number, f"¥{data.amount:.2f}", data.category, check)
    console.print(table)


async def upload(ctx: AppContext, settings: Settings, args) -> int:
    profile = ctx.require_profile()
    workflow = ApprovalWorkflow(await create_record_store(settings), settings)
    await workflow.refresh(ctx.owner_scope)
    intake = IntakeSession(OcrClient(settings), workflow)

    items = intake.add(Path(path) for path in args.files)
    with tqdm(total=len(items), desc="AI 识别中") as pbar:
        results = await intake.process_all(items, on_done=lambda _: pbar.update(1))
    render_intake(results)

    failures = 0
    for item in results:
        if item.status != ProcessingStatus.COMPLETED:
            failures += 1
            continue
        if not args.yes and not Confirm.ask(f"提交报销单 {item.extracted_data.invoice_number}?", default=True):
            continue
        try:
            record = await intake.submit(item.id, profile, args.paid)
        except ReimbursementError as e:
            console.print(f"[red]{e.message}[/red]")
            failures += 1
            continue
        console.print(f"[green]Submitted record {record.id}[/green]")
        await run_survey(workflow)
    return 1 if failures else 0


async def list_records(ctx: AppContext, settings: Settings, args) -> int:
    workflow = ApprovalWorkflow(await create_record_store(settings), settings)
    await workflow.refresh(ctx.owner_scope)
    render_records(ctx, workflow)
    return 0


async def toggle_paid(ctx: AppContext, settings: Settings, args) -> int:
    ctx.require_profile()
    workflow = ApprovalWorkflow(await create_record_store(settings), settings)
    await workflow.refresh(ctx.owner_scope)
    record = await workflow.toggle_paid_status(args.record_id, privileged=ctx.is_privileged)
    console.print(f"Record {record.id} is now {'已付' if record.is_paid else '待付'}")
    await run_survey(workflow)
    return 0


async def advance(ctx: AppContext, settings: Settings, args) -> int:
    if not ctx.is_privileged:
        console.print("[red]Only the super admin in admin mode (--admin) can change review status[/red]")
        return 1
    workflow = ApprovalWorkflow(await create_record_store(settings), settings)
    await workflow.refresh(ctx.owner_scope)
    reason = args.reason
    if args.status == ReimbursementStatus.REJECTED.value and not reason:
        reason = Prompt.ask("退单原因")
    record = await workflow.advance_status(args.record_id, args.status, reason)
    console.print(f"Record {record.id}: {progress_label(record.status, record.rejection_reason)}")
    return 0


async def export(ctx: AppContext, settings: Settings, args) -> int:
    ctx.require_profile()
    workflow = ApprovalWorkflow(await create_record_store(settings), settings)
    records = await workflow.refresh(ctx.owner_scope)
    output_dir = Path(args.output) if args.output else settings.export_directory
    if args.xlsx:
        xlsx_name = Path(export_filename(int(time.time() * 1000))).with_suffix(".xlsx")
        path = export_records_xlsx(records, output_dir / xlsx_name, ctx.owner_scope)
    else:
        path = export_records(records, output_dir, ctx.owner_scope)
    if path is None:
        console.print("Nothing to export")
    else:
        console.print(f"[green]Exported to {path}[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Invoice reimbursement assistant: recognize, validate, submit and track invoices')
    parser.add_argument('--verbose', action='store_true', help='Show info logs on the console')
    subparsers = parser.add_subparsers(dest='command', required=True)

    login_parser = subparsers.add_parser('login', help='Save your submitter profile')
    login_parser.add_argument('--name')
    login_parser.add_argument('--student-id')
    login_parser.add_argument('--supervisor')
    login_parser.add_argument('--phone')

    subparsers.add_parser('whoami', help='Show the saved profile')

    upload_parser = subparsers.add_parser('upload', help='Recognize and submit invoice files')
    upload_parser.add_argument('files', nargs='+', help='Invoice images or PDFs')
    upload_parser.add_argument('--paid', action='store_true', help='Invoices were already paid (已付发票)')
    upload_parser.add_argument('--yes', action='store_true', help='Submit every valid invoice without asking')

    list_parser = subparsers.add_parser('list', help='List reimbursement records')
    list_parser.add_argument('--admin', action='store_true', help='Show all users (super admin only)')

    toggle_parser = subparsers.add_parser('toggle-paid', help='Flip the paid status of a record')
    toggle_parser.add_argument('record_id')
    toggle_parser.add_argument('--admin', action='store_true', help='Act as admin (super admin only)')

    advance_parser = subparsers.add_parser('advance', help='Move a record to another review status (admin)')
    advance_parser.add_argument('record_id')
    advance_parser.add_argument('status', choices=[status.value for status in ReimbursementStatus])
    advance_parser.add_argument('--reason', help='Rejection reason (required for rejected)')
    advance_parser.add_argument('--admin', action='store_true', default=True, help=argparse.SUPPRESS)

    export_parser = subparsers.add_parser('export', help='Export records to CSV')
    export_parser.add_argument('--admin', action='store_true', help='Export all users (super admin only)')
    export_parser.add_argument('--xlsx', action='store_true', help='Write an Excel workbook instead of CSV')
    export_parser.add_argument('--output', help='Output directory (default: EXPORT_DIRECTORY)')
    return parser


COMMANDS = {
    'upload': upload,
    'list': list_records,
    'toggle-paid': toggle_paid,
    'advance': advance,
    'export': export,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    settings = Settings()
    setup_logging(settings.logs_directory, verbose=args.verbose)

    ctx = AppContext(settings)
    ctx.load()
    try:
        if args.command == 'login':
            return login(ctx, args)
        if args.command == 'whoami':
            return whoami(ctx, args)
        ctx.require_profile()
        if getattr(args, 'admin', False):
            ctx.enable_admin_mode()
        return asyncio.run(COMMANDS[args.command](ctx, settings, args))
    except ReimbursementError as e:
        logger.error(f"{args.command} failed: {e.message}")
        console.print(f"[red]{e.message}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
