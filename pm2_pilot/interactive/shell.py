"""Interactive read-eval loop tying the router, executor and services together."""

import asyncio
import logging
from typing import List, Optional

from ..config import AppConfig
from ..llm_client import LLMClient
from ..pm2_client import ProcessManagerClient, ProcessManagerError
from ..pm2_manager import PM2Manager
from ..router import ALL_TARGET, AIInputRouter, Action, ActionType, InputAnalysis, Intent, SafetyLevel
from ..router.action_detector import build_action
from ..services.context_builder import ContextBuilder
from ..services.conversation import ConversationManager, PendingAction
from ..services.error_analysis import ErrorAnalysisService
from ..services.executor import CommandExecutor, ExecutionResult
from ..services.health import HealthService
from ..services.log_search import LogSearchService
from .command_parser import COMMANDS, CommandParser, SlashCommand
from .readline_handler import ReadlineHandler
from .ui_manager import UIManager


CANCEL_WORDS = ('cancel', 'n', 'no', 'abort')
CONFIRM_WORDS = ('y', 'yes')
EXIT_WORDS = ('exit', 'quit', 'q')

LIFECYCLE_COMMANDS = {
    'restart': ActionType.RESTART,
    'stop': ActionType.STOP,
    'start': ActionType.START,
}


class PilotShell:
    """One interactive session.

    ``handle_input`` processes a single line and returns False when the
    session should end; ``run`` wraps it in a readline loop.
    """

    def __init__(self, config: AppConfig, client: ProcessManagerClient,
                 llm_client: Optional[LLMClient] = None,
                 ui: Optional[UIManager] = None):
        self.config = config
        self.client = client
        self.llm_client = llm_client
        self.ui = ui or UIManager(use_colors=config.ui.use_colors)
        self.parser = CommandParser()
        self.router = AIInputRouter(llm_client)
        self.manager = PM2Manager(client)
        self.executor = CommandExecutor(client, self.manager)
        self.conversation = ConversationManager(llm_client, max_history=config.assistant.max_history)
        self.error_service = ErrorAnalysisService(llm_client)
        self.context_builder = ContextBuilder(client)
        self.health_service = HealthService(client)
        self.log_search = LogSearchService(client)
        self.logger = logging.getLogger(__name__)

    # Main loop

    def run(self) -> None:
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(self._connect())
            loop.run_until_complete(self._welcome())
            with ReadlineHandler(self.config.assistant.history_file) as readline_handler:
                readline_handler.set_completions(loop.run_until_complete(self.completion_words()))
                while True:
                    try:
                        line = readline_handler.input_with_prompt(self.ui.format_prompt())
                    except EOFError:
                        break
                    except KeyboardInterrupt:
                        self.ui.echo()
                        continue

                    readline_handler.add_history(line)
                    if not loop.run_until_complete(self.handle_input(line)):
                        break
        finally:
            loop.run_until_complete(self.client.disconnect())
            loop.close()
        self.ui.print_goodbye()

    async def _connect(self) -> None:
        try:
            await self.client.connect()
        except ProcessManagerError as e:
            self.logger.warning(f"PM2 is not reachable: {e}")
            self.ui.print_warning(f"{e}. Process commands will fail until PM2 is running.")

    async def _welcome(self) -> None:
        counts = await self.manager.get_process_status()
        ai_info = self.llm_client.get_config_info().splitlines()[0] if self.llm_client else None
        self.ui.print_welcome(counts["process_count"], counts["online_count"], ai_info)

    async def completion_words(self) -> List[str]:
        words = [f"/{name}" for name in COMMANDS]
        words.extend(f"/{alias}" for alias in self.parser.command_aliases)
        try:
            words.extend(await self.client.get_process_names())
        except ProcessManagerError as e:
            self.logger.debug(f"No process names to complete: {e}")
        return words

    async def handle_input(self, line: str) -> bool:
        text = line.strip()
        if not text:
            return True

        if text.lower() in EXIT_WORDS:
            return False

        if self.conversation.has_pending_actions():
            if await self._handle_pending_reply(text):
                return True
            # Anything else replaces the pending set
            self.conversation.clear_pending_actions()

        if text.startswith('/'):
            return await self.handle_slash(self.parser.parse(text))

        await self.handle_natural_language(text)
        return True

    # Pending confirmations

    async def _handle_pending_reply(self, text: str) -> bool:
        lower = text.lower()
        if lower in CANCEL_WORDS:
            self.conversation.clear_pending_actions()
            self.ui.print_info("Cancelled")
            return True

        selected: Optional[PendingAction] = None
        if self.conversation.is_numbered_selection(text):
            selected = self.conversation.get_action_by_number(int(text))
        elif lower in CONFIRM_WORDS:
            pending = self.conversation.get_pending_actions()
            if len(pending) > 1:
                self.ui.print_info(f"Several actions are pending. Reply with a number (1-{len(pending)}) "
                                   "to pick one, or 'cancel'.")
                return True
            selected = pending[0]

        if selected is None:
            return False

        self.conversation.clear_pending_actions()
        if selected.action is None:
            await self.handle_slash(self.parser.parse(selected.command))
            return True

        result = await self.executor.execute_action(selected.action, user_confirmed=True)
        self.conversation.add_turn(text, selected.analysis, result)
        self._print_result(result)
        return True

    def _offer(self, actions: List[Action], analysis: InputAnalysis) -> None:
        pending = self.conversation.pending_from_actions(actions, analysis)
        self.conversation.set_pending_actions(pending)
        self.ui.echo(self.ui.format_pending_actions(pending))

    # Natural language

    async def handle_natural_language(self, text: str) -> None:
        expanded = self.conversation.expand_pronouns(text)
        if expanded != text:
            self.logger.debug(f"Resolved pronouns: {text!r} -> {expanded!r}")

        analysis = await self.router.analyze(expanded)
        if self.config.ui.show_confidence:
            self.ui.print_info(self.ui.format_analysis(analysis))

        actions = list(analysis.suggested_actions)

        if analysis.intent == Intent.COMMAND and not actions:
            # Bare words such as "help" or "list" map onto slash commands
            await self.handle_slash(self.parser.parse('/' + expanded))
            self.conversation.add_turn(text, analysis)
            return

        if analysis.intent in (Intent.COMMAND, Intent.DIRECT_ACTION) and actions:
            if len(actions) > 1:
                actions = await self._narrow_targets(expanded, actions)
            if actions[0].safety != SafetyLevel.SAFE and self.conversation.has_similar_recent_command(analysis):
                self.ui.print_info("You ran a similar command a moment ago")

            if len(actions) == 1:
                result = await self._run_action(actions[0], analysis)
                self.conversation.add_turn(text, analysis, result)
            else:
                self._offer(actions, analysis)
                self.conversation.add_turn(text, analysis)
            return

        answer = await self.answer_question(expanded, analysis)
        result = ExecutionResult(success=True, message=answer)
        self.conversation.add_turn(text, analysis, result)
        self.ui.echo(answer)

        if analysis.intent == Intent.HYBRID and actions:
            self._offer(actions, analysis)

    async def _narrow_targets(self, text: str, actions: List[Action]) -> List[Action]:
        """Drop candidate actions whose target the name extractor does not recognise.

        The full list is kept when nothing would be left, so an ambiguous
        request still ends up as a menu.
        """
        names = set(await self.conversation.extract_process_names(text))
        narrowed = [action for action in actions if action.target in names]
        return narrowed or actions

    def _requires_confirmation(self, action: Action) -> bool:
        level = self.config.assistant.confirmation_level
        if level == 'none':
            return False
        if level == 'all' or not self.config.assistant.auto_execute:
            return action.safety != SafetyLevel.SAFE
        return self.executor.needs_confirmation(action)

    async def _run_action(self, action: Action, analysis: InputAnalysis) -> Optional[ExecutionResult]:
        if self._requires_confirmation(action):
            self.conversation.set_pending_actions(self.conversation.pending_from_actions([action], analysis))
            self.ui.print_warning(self.executor.confirmation_prompt(action))
            return None

        result = await self.executor.execute_action(action, skip_confirmation=True)
        self._print_result(result)
        return result

    async def answer_question(self, text: str, analysis: InputAnalysis) -> str:
        target = next((a.target for a in analysis.suggested_actions if a.target and a.target != 'all'), None)
        try:
            process_context = await self.context_builder.build_process_context(target)
        except ProcessManagerError as e:
            self.logger.debug(f"Falling back to all-process context: {e}")
            try:
                process_context = await self.context_builder.build_process_context()
            except ProcessManagerError as e:
                process_context = f"PM2 is not reachable: {e}"

        if self.llm_client is None:
            return (f"{process_context}\n\n"
                    "Configure an AI provider (OPENAI_API_KEY, ANTHROPIC_API_KEY or GEMINI_API_KEY) "
                    "for answers to free-form questions.")

        context = process_context
        conversation_summary = self.conversation.generate_context_prompt()
        if conversation_summary:
            context = f"{process_context}\n\n{conversation_summary}"

        try:
            return await self.llm_client.query_with_history(
                text, self.conversation.get_messages_for_ai(), context
            )
        except Exception as e:
            self.logger.warning(f"AI query failed: {e}")
            return f"{process_context}\n\n(AI unavailable: {e})"

    # Slash commands

    async def handle_slash(self, command: SlashCommand) -> bool:
        if not command.is_known:
            message = f"Unknown command: /{command.command}"
            if command.suggestions:
                message += f". Did you mean {', '.join(command.suggestions)}?"
            self.ui.print_error(message)
            return True

        name = command.command
        try:
            if name == 'exit':
                return False
            elif name == 'help':
                self.ui.echo(self.parser.help_text())
            elif name == 'status':
                await self._slash_status(command)
            elif name in LIFECYCLE_COMMANDS:
                await self._slash_lifecycle(command)
            elif name == 'metrics':
                self._print_result(await self.executor.execute_action(
                    build_action(ActionType.METRICS, command.target)))
            elif name == 'logs':
                await self._slash_logs(command)
            elif name == 'reload':
                await self._slash_reload(command)
            elif name == 'errors':
                await self.show_error_analysis(command.target)
            elif name == 'health':
                report = await self.health_service.check(command.target)
                self.ui.echo(self.ui.format_health_report(report))
            elif name == 'grep':
                await self._slash_grep(command)
            elif name == 'history':
                self._slash_history()
            elif name == 'stats':
                stats = self.conversation.get_statistics()
                self.ui.print_info(
                    f"Commands: {stats['total_commands']}, "
                    f"success rate: {stats['success_rate']:.0%}, "
                    f"last 5 minutes: {stats['recent_activity']}"
                )
            elif name == 'ai':
                self.ui.echo(self.llm_client.get_config_info() if self.llm_client
                             else "No AI provider configured")
            elif name == 'clear':
                self.conversation.clear_history()
                self.conversation.clear_pending_actions()
                self.ui.print_success("Conversation cleared")
        except ProcessManagerError as e:
            self.ui.print_error(str(e))
        return True

    async def _slash_status(self, command: SlashCommand) -> None:
        if command.target:
            self._print_result(await self.executor.execute_action(build_action(ActionType.STATUS, command.target)))
            return
        processes = await self.client.list()
        self.ui.echo(self.ui.format_process_table(processes))

    async def _slash_lifecycle(self, command: SlashCommand) -> None:
        if not command.target:
            self.ui.print_error(f"Usage: /{command.command} <name|all>")
            return
        action = build_action(LIFECYCLE_COMMANDS[command.command], command.target)
        analysis = await self.router.analyze(command.original_input or f"/{command.command}")
        result = await self._run_action(action, analysis)
        self.conversation.add_turn(command.original_input or action.to_command(), analysis, result)

    async def _slash_logs(self, command: SlashCommand) -> None:
        if not command.target:
            self.ui.print_error("Please specify a process name for logs. Use: /logs <process-name>")
            return
        lines = self.config.pm2.log_lines
        if len(command.args) > 1 and command.args[1].isdecimal():
            lines = int(command.args[1])
        entries = await self.client.logs(lines=lines, process_name=command.target)
        self.ui.echo(self.ui.format_log_entries(entries))

    async def _slash_reload(self, command: SlashCommand) -> None:
        if not command.target or command.target == ALL_TARGET:
            self.ui.print_error("Usage: /reload <name>. Use /restart all to cycle every process.")
            return
        result = await self.manager.reload_process(command.target)
        if result.success:
            self.ui.echo(result.message)
        else:
            self.ui.print_error(result.message)

    async def _slash_grep(self, command: SlashCommand) -> None:
        if not command.args:
            self.ui.print_error('Usage: /grep <pattern> [process-name], e.g. /grep "ERROR|WARN" api')
            return
        pattern = command.args[0].strip('"\'')
        process_name = command.args[1] if len(command.args) > 1 else None
        result = await self.log_search.search(pattern, process_name)
        self.ui.echo(self.ui.format_search_results(result))

    def _slash_history(self) -> None:
        history = self.conversation.history
        if not history:
            self.ui.print_info("No conversation yet")
            return
        for turn in history:
            outcome = ""
            if turn.result:
                outcome = " ✓" if turn.result.success else " ✗"
            self.ui.echo(f"{turn.sequence:>3}. [{turn.analysis.intent.value}] {turn.input}{outcome}")

    async def show_error_analysis(self, process_name: Optional[str] = None) -> None:
        logs = await self.client.get_error_logs(process_name, lines=self.config.pm2.log_lines)
        result = await self.error_service.analyze_log_errors(logs, process_name)
        self.ui.echo(self.ui.format_error_analysis(result))

    def _print_result(self, result: Optional[ExecutionResult]) -> None:
        if result is None:
            return
        if result.requires_confirmation:
            self.ui.print_warning(result.confirmation_prompt or result.message)
        elif result.success:
            self.ui.echo(result.message)
        else:
            self.ui.print_error(result.message)
