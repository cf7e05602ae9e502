"""
임시 메일함 세션 엔진

메인 진입점 파일입니다.
"""

import asyncio
import typer
from rich.console import Console
from sqlalchemy.exc import SQLAlchemyError

from adapters.cli.session_commands import app as session_app
from adapters.factory import AdapterFactory
from config.adapters import get_config

# 메인 CLI 앱
app = typer.Typer(
    name="tempmail",
    help="임시 메일함 세션 엔진",
    no_args_is_help=True,
)

# 서브 명령어 추가
app.add_typer(session_app, name="session")

console = Console()


@app.command("init-db")
def init_database(
    drop_existing: bool = typer.Option(False, "--drop", help="기존 테이블을 삭제하고 재생성"),
):
    """세션 저장용 데이터베이스를 초기화합니다."""

    async def _init_db():
        config = get_config()
        console.print(f"[blue]환경: {config.get_environment()}[/blue]")
        console.print(f"[blue]데이터베이스: {config.get_database_url()}[/blue]")

        # 데이터베이스 어댑터 초기화
        db_adapter = AdapterFactory(config).create_database()
        await db_adapter.initialize()

        try:
            if drop_existing:
                console.print("[yellow]기존 테이블을 삭제하는 중...[/yellow]")
                await db_adapter.drop_tables()

            console.print("[blue]데이터베이스 테이블을 생성하는 중...[/blue]")
            await db_adapter.create_tables()
        finally:
            await db_adapter.close()

        console.print("[green]✓ 데이터베이스가 성공적으로 초기화되었습니다![/green]")

    try:
        asyncio.run(_init_db())
    except SQLAlchemyError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)


@app.command("version")
def show_version():
    """버전 정보를 표시합니다."""
    console.print("[bold]임시 메일함 세션 엔진[/bold]")
    console.print("버전: 1.0.0")


@app.command("config")
def show_config():
    """현재 설정을 표시합니다."""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)

    retry = config.get_push_retry_config()

    console.print("[bold]현재 설정[/bold]")
    console.print(f"환경: {config.get_environment()}")
    console.print(f"디버그 모드: {config.is_debug()}")
    console.print(f"데이터베이스 URL: {config.get_database_url()}")
    console.print(f"메일 API: {config.get_mail_api_base_url()}")
    console.print(f"푸시 허브: {config.get_mercure_hub_url()}")
    console.print(f"푸시 사용: {config.is_push_enabled()}")
    console.print(f"푸시 재연결: {retry['base_delay']}초 ~ {retry['max_delay']}초, 최대 {retry['max_attempts'] or '무제한'}회")
    console.print(f"폴링 간격(초): {config.get_poll_interval_seconds()}")
    console.print(f"계정 정보 갱신 간격(초): {config.get_account_refresh_interval_seconds()}")
    console.print(f"비밀번호 저장: {config.should_persist_password()}")
    console.print(f"세션 네임스페이스: {config.get_session_namespace()}")
    console.print(f"웹 서버: {config.get_web_host()}:{config.get_web_port()}")
    console.print(f"로그 레벨: {config.get_log_level()}")


if __name__ == "__main__":
    app()
