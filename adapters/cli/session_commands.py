"""
임시 메일 세션 CLI 명령어

AccountSessionManager를 CLI 명령으로 노출하는 어댑터입니다.
각 명령은 저장된 세션 스냅샷에서 세션을 재개한 뒤 작업을 수행합니다.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core.domain.entities import Message, SessionView
from core.domain.errors import MailEngineError
from core.usecases.account_session import AccountSessionManager
from adapters.factory import initialize_adapter_factory
from config.adapters import get_config

# CLI 앱 생성
app = typer.Typer(name="session", help="임시 메일 세션 명령어")
console = Console()


@asynccontextmanager
async def _session_manager() -> AsyncGenerator[AccountSessionManager, None]:
    """세션 관리자를 생성하고 종료 시 리소스를 정리합니다."""
    factory = initialize_adapter_factory(get_config())
    manager = factory.create_session_manager()
    try:
        yield manager
    finally:
        await factory.close()


def _print_session(view: SessionView) -> None:
    if not view.address:
        console.print("[yellow]활성 세션이 없습니다.[/yellow]")
        if view.last_error:
            console.print(f"[red]마지막 오류: {view.last_error}[/red]")
        return

    console.print("[bold]현재 세션[/bold]")
    console.print(f"주소: [green]{view.address}[/green]")
    console.print(f"계정 ID: {view.account_id}")
    console.print(f"생성 방식: {view.origin.value if view.origin else '-'}")
    console.print(f"상태: {view.state.value}")
    console.print(f"사용량: {view.used} / {view.quota} bytes")
    console.print(f"메시지: {len(view.messages)}개 (읽지 않음 {view.unseen_count}개)")


def _print_messages(messages: List[Message]) -> None:
    if not messages:
        console.print("[yellow]받은 메시지가 없습니다.[/yellow]")
        return

    table = Table(title="받은편지함")
    table.add_column("ID", style="cyan")
    table.add_column("보낸 사람", style="green")
    table.add_column("제목", style="blue")
    table.add_column("읽음", style="yellow")
    table.add_column("수신일", style="dim")

    for message in messages:
        table.add_row(
            message.id,
            message.sender.address if message.sender else "-",
            message.subject or "(제목 없음)",
            "✓" if message.seen else "",
            message.created_at.strftime("%Y-%m-%d %H:%M") if message.created_at else "-",
        )

    console.print(table)


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except MailEngineError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)


@app.command("show")
def show_session():
    """현재 세션을 재개하고 정보를 표시합니다."""

    async def _show():
        async with _session_manager() as manager:
            view = await manager.initialize()
            _print_session(view)

    _run(_show())


@app.command("new")
def new_session():
    """새 임시 주소를 생성합니다."""

    async def _new():
        async with _session_manager() as manager:
            view = await manager.generate_new_email()
            console.print(f"[green]✓ 새 임시 주소가 생성되었습니다![/green]")
            _print_session(view)

    _run(_new())


@app.command("custom")
def custom_session(
    username: str = typer.Argument(..., help="주소의 사용자 이름 부분"),
    domain: str = typer.Argument(..., help="도메인 (session domains로 조회)"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="비밀번호 (8자 이상)"),
):
    """사용자 지정 주소로 계정을 생성합니다."""

    async def _custom():
        async with _session_manager() as manager:
            view = await manager.create_custom_email(username, domain, password)
            console.print(f"[green]✓ 사용자 지정 주소가 생성되었습니다![/green]")
            _print_session(view)

    _run(_custom())


@app.command("login")
def login_session(
    address: str = typer.Argument(..., help="메일 주소"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="비밀번호"),
):
    """기존 계정으로 로그인합니다."""

    async def _login():
        async with _session_manager() as manager:
            view = await manager.login_with_credentials(address, password)
            console.print(f"[green]✓ 로그인되었습니다![/green]")
            _print_session(view)

    _run(_login())


@app.command("inbox")
def show_inbox():
    """받은편지함을 조회합니다."""

    async def _inbox():
        async with _session_manager() as manager:
            await manager.initialize()
            view = await manager.refresh_inbox()
            console.print(f"주소: [green]{view.address}[/green]")
            _print_messages(view.messages)

    _run(_inbox())


@app.command("read")
def read_message(
    message_id: str = typer.Argument(..., help="메시지 ID"),
    keep_unseen: bool = typer.Option(False, "--keep-unseen", help="읽음으로 표시하지 않음"),
):
    """메시지 본문을 표시하고 읽음으로 표시합니다."""

    async def _read():
        async with _session_manager() as manager:
            await manager.initialize()
            message: Optional[Message] = await manager.get_message(message_id)
            if message is None:
                console.print("[yellow]메시지를 찾을 수 없습니다.[/yellow]")
                return

            sender = message.sender.address if message.sender else "-"
            body = message.text or message.intro
            console.print(Panel(body, title=message.subject or "(제목 없음)", subtitle=sender))

            if message.attachments:
                console.print(f"첨부 파일: {', '.join(a.filename for a in message.attachments)}")

            if not keep_unseen:
                await manager.mark_seen(message_id)

    _run(_read())


@app.command("remove")
def remove_message(
    message_id: str = typer.Argument(..., help="메시지 ID"),
):
    """메시지를 삭제합니다."""

    async def _remove():
        async with _session_manager() as manager:
            await manager.initialize()
            await manager.delete_message(message_id)
            console.print(f"[green]✓ 메시지가 삭제되었습니다: {message_id}[/green]")

    _run(_remove())


@app.command("delete")
def delete_session(
    force: bool = typer.Option(False, "--force", "-f", help="확인 없이 강제 삭제"),
):
    """현재 계정을 삭제하고 새 임시 주소를 생성합니다."""

    async def _delete():
        async with _session_manager() as manager:
            view = await manager.initialize()
            if not force and not typer.confirm(f"{view.address} 계정을 삭제하시겠습니까?"):
                console.print("[yellow]삭제가 취소되었습니다.[/yellow]")
                return

            view = await manager.delete_account()
            console.print(f"[green]✓ 계정이 삭제되었습니다.[/green]")
            _print_session(view)

    _run(_delete())


@app.command("domains")
def list_domains():
    """사용 가능한 도메인 목록을 조회합니다."""

    async def _domains():
        async with _session_manager() as manager:
            domains = await manager.list_domains()
            if not domains:
                console.print("[yellow]사용 가능한 도메인이 없습니다.[/yellow]")
                return

            table = Table(title="사용 가능한 도메인")
            table.add_column("도메인", style="green")
            table.add_column("ID", style="dim")
            for domain in domains:
                table.add_row(domain.domain, domain.id)
            console.print(table)

    _run(_domains())


@app.command("watch")
def watch_inbox():
    """새 메시지를 기다리며 도착할 때마다 표시합니다. Ctrl+C로 종료합니다."""

    async def _watch():
        async with _session_manager() as manager:
            view = await manager.initialize()
            known = {message.id for message in view.messages}
            console.print(f"[blue]{view.address} 받은편지함 감시 중... (Ctrl+C로 종료)[/blue]")

            def on_change(current: SessionView) -> None:
                for message in reversed(current.messages):
                    if message.id in known:
                        continue
                    known.add(message.id)
                    sender = message.sender.address if message.sender else "-"
                    console.print(f"[green]새 메시지[/green] {sender}: {message.subject or '(제목 없음)'} [dim]({message.id})[/dim]")
                if current.last_error:
                    console.print(f"[red]{current.last_error}[/red]")

            unsubscribe = manager.subscribe(on_change)
            try:
                await asyncio.Event().wait()
            finally:
                unsubscribe()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        console.print("[yellow]감시를 종료합니다.[/yellow]")
