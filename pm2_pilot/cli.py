"""Command-line interface for PM2 Pilot."""

import asyncio
import logging
import sys
from typing import Optional

import click

from .config import load_config
from .llm_client import create_llm_client
from .logging_utils import setup_logging
from .pm2_client import PM2Client, ProcessManagerError
from .pm2_manager import PM2Manager
from .router import ActionType
from .router.action_detector import build_action
from .services.error_analysis import ErrorAnalysisService
from .services.executor import CommandExecutor
from .interactive import PilotShell, UIManager


@click.group(invoke_without_command=True)
@click.option('--log-level', default=None, help='Logging level (DEBUG, INFO, WARNING, ERROR)')
@click.option('--config', '--config-file', help='Path to configuration file (YAML, TOML, or JSON)')
@click.pass_context
def cli(ctx, log_level: Optional[str], config: Optional[str]):
    """PM2 Pilot - talk to your PM2 processes in plain language."""
    ctx.ensure_object(dict)

    try:
        app_config = load_config(config_file=config)
    except (ValueError, ImportError, FileNotFoundError) as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)
    ctx.obj['config'] = app_config

    # CLI flag overrides config
    setup_logging(log_level or app_config.log_level)
    logger = logging.getLogger(__name__)

    ctx.obj['pm2_client'] = PM2Client(app_config.pm2)

    try:
        ctx.obj['llm_client'] = create_llm_client(app_config.llm)
    except (ValueError, ImportError) as e:
        logger.info(f"Running without AI provider: {e}")
        ctx.obj['llm_client'] = None

    ctx.obj['ui'] = UIManager(use_colors=app_config.ui.use_colors)

    if ctx.invoked_subcommand is None:
        ctx.invoke(interactive)


def _shell(ctx) -> PilotShell:
    return PilotShell(ctx.obj['config'], ctx.obj['pm2_client'], ctx.obj['llm_client'], ctx.obj['ui'])


@cli.command()
@click.pass_context
def interactive(ctx):
    """Start the interactive assistant."""
    shell = _shell(ctx)
    try:
        shell.run()
    except ProcessManagerError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('text', nargs=-1, required=True)
@click.option('--yes', '-y', is_flag=True, help='Confirm suggested actions without prompting')
@click.pass_context
def ask(ctx, text, yes: bool):
    """Ask a question or give an instruction in plain language."""
    shell = _shell(ctx)

    async def run_once():
        await shell.handle_input(' '.join(text))
        pending = shell.conversation.get_pending_actions()
        if len(pending) == 1 and (yes or click.confirm(f"Run {pending[0].label}?", default=False)):
            await shell.handle_input('y')

    try:
        asyncio.run(run_once())
    except ProcessManagerError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('name', required=False)
@click.pass_context
def status(ctx, name: Optional[str]):
    """Show all processes, or one process by name."""
    client = ctx.obj['pm2_client']
    ui = ctx.obj['ui']

    async def run():
        if name is None:
            return ui.format_process_table(await client.list()), True
        result = await CommandExecutor(client).execute_action(build_action(ActionType.STATUS, name))
        return result.message, result.success

    try:
        output, ok = asyncio.run(run())
    except ProcessManagerError as e:
        click.echo(f"❌ Error getting status: {e}", err=True)
        sys.exit(1)

    click.echo(output)
    if not ok:
        sys.exit(1)


def _lifecycle(ctx, action_type: ActionType, name: str, yes: bool) -> None:
    client = ctx.obj['pm2_client']
    executor = CommandExecutor(client, PM2Manager(client))
    action = build_action(action_type, name)

    result = asyncio.run(executor.execute_action(action, user_confirmed=yes))
    if result.requires_confirmation:
        if not click.confirm(result.confirmation_prompt, default=False):
            click.echo("Cancelled")
            return
        result = asyncio.run(executor.execute_action(action, user_confirmed=True))

    if result.success:
        click.echo(result.message)
    else:
        click.echo(f"❌ {result.message}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('name')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation')
@click.pass_context
def restart(ctx, name: str, yes: bool):
    """Restart a process, or 'all'."""
    _lifecycle(ctx, ActionType.RESTART, name, yes)


@cli.command()
@click.argument('name')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation')
@click.pass_context
def stop(ctx, name: str, yes: bool):
    """Stop a process, or 'all'."""
    _lifecycle(ctx, ActionType.STOP, name, yes)


@cli.command()
@click.argument('name')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation')
@click.pass_context
def start(ctx, name: str, yes: bool):
    """Start a process, or 'all' stopped processes."""
    _lifecycle(ctx, ActionType.START, name, yes)


@cli.command()
@click.argument('name', required=False)
@click.option('--lines', '-n', default=None, type=int, help='Number of log lines to scan')
@click.pass_context
def errors(ctx, name: Optional[str], lines: Optional[int]):
    """Analyze recent error logs and suggest fixes."""
    app_config = ctx.obj['config']
    client = ctx.obj['pm2_client']
    ui = ctx.obj['ui']
    service = ErrorAnalysisService(ctx.obj['llm_client'])

    async def run():
        logs = await client.get_error_logs(name, lines=lines or app_config.pm2.log_lines)
        return await service.analyze_log_errors(logs, name)

    try:
        result = asyncio.run(run())
    except ProcessManagerError as e:
        click.echo(f"❌ Error reading logs: {e}", err=True)
        sys.exit(1)

    click.echo(ui.format_error_analysis(result))


@cli.command()
@click.argument('name')
@click.option('--lines', '-n', default=None, type=int, help='Number of log lines')
@click.option('--follow', '-f', is_flag=True, help='Stream new log lines until interrupted')
@click.pass_context
def logs(ctx, name: str, lines: Optional[int], follow: bool):
    """Show recent log lines for a process."""
    app_config = ctx.obj['config']
    client = ctx.obj['pm2_client']
    ui = ctx.obj['ui']

    async def stream():
        async for line in client.follow_logs(name):
            click.echo(line)

    try:
        entries = asyncio.run(client.logs(lines=lines or app_config.pm2.log_lines, process_name=name))
        click.echo(ui.format_log_entries(entries))
        if follow:
            asyncio.run(stream())
    except ProcessManagerError as e:
        click.echo(f"❌ Error reading logs: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo()


if __name__ == '__main__':
    cli()
