from __future__ import annotations

import asyncio
import logging
import sys
import time

from ...core import colors
from ...core.context import ContextBuilder
from ...core.errors import ArgumentParseFailure, HistoryInvariantError, TransportFailure
from ...core.llm_client import CompletionClient
from ...core.messages import ToolInvocation, ToolResult
from ...core.orchestrator import TurnOrchestrator, TurnState
from ...core.session import SessionManager
from ...tools import build_registry


MAX_RETRIES = 2
EXIT_WORDS = {"exit", "quit"}


def add_agent(subparsers):
    parser = subparsers.add_parser("agent", help="Interactive conversation with the agent")
    parser.add_argument("-s", "--session", default="cli:default", help="Session key (default cli:default)")
    parser.add_argument("-c", "--clear", action="store_true", help="Clear the session history first")
    parser.add_argument("--no-stream", dest="stream", action="store_false", help="Disable streamed output")
    parser.set_defaults(stream=None, func=run_agent)


def run_agent(args, settings):
    try:
        asyncio.run(agent_loop(args, settings))
    except KeyboardInterrupt:
        print("\nBye.")


async def agent_loop(args, settings):
    logger = logging.getLogger(__name__)
    manager = SessionManager(settings.session_dir)
    session = manager.get_or_create(args.session)
    if args.clear:
        session.clear()
        manager.save(session)
        print(colors.dim("Session history cleared"))

    settings.workspace.mkdir(parents=True, exist_ok=True)
    client = CompletionClient(settings)
    stream = settings.stream if args.stream is None else args.stream
    orchestrator = TurnOrchestrator(
        client,
        build_registry(settings),
        ContextBuilder(settings.workspace, settings.system_prompt),
        session,
        model=settings.model,
        max_iterations=settings.max_iterations,
        stream=stream,
        on_delta=_write_delta,
        on_tool_call=_report_tool_call,
        on_tool_error=_report_parse_failure,
        on_tool_result=_report_tool_result,
    )

    print(f"Interactive mode (session: {args.session}). Type 'exit' or 'quit' (or Ctrl-D) to leave.")
    try:
        while True:
            try:
                user_input = input(colors.prompt("you> ")).strip()
            except EOFError:
                print("\nBye.")
                break
            if not user_input:
                continue
            if user_input.lower() in EXIT_WORDS:
                print("Bye.")
                break

            start = time.perf_counter()
            sys.stdout.write(colors.agent_prompt("agent> "))
            sys.stdout.flush()
            try:
                outcome = await _run_with_retry(orchestrator, user_input)
            except HistoryInvariantError as exc:
                logger.error("Session history is inconsistent: %s", exc)
                print(colors.error(f"\nSession history is inconsistent: {exc}"))
                break
            if outcome is None:
                continue
            if outcome.state is TurnState.LIMIT_REACHED:
                sys.stdout.write(colors.warning(outcome.reply.content))
            elif not stream and outcome.reply is not None and outcome.reply.content:
                sys.stdout.write(outcome.reply.content)
            elapsed = time.perf_counter() - start
            print(colors.dim(f"\n(completed in {elapsed:.2f}s, {outcome.iterations} step(s))"))
    finally:
        await client.aclose()


async def _run_with_retry(orchestrator: TurnOrchestrator, user_input: str):
    """Run one turn; on transport failure offer a bounded number of retries."""
    attempt = 0
    while True:
        try:
            if attempt == 0:
                return await orchestrator.run_turn(user_input)
            return await orchestrator.retry_turn()
        except TransportFailure as exc:
            logging.getLogger(__name__).error("Turn failed: %s", exc)
            print(colors.error(f"\nError talking to model: {exc}"))
            if attempt >= MAX_RETRIES or not _confirm(f"Retry? ({attempt + 1}/{MAX_RETRIES}) [y/N] "):
                return None
            attempt += 1


def _confirm(question: str) -> bool:
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _write_delta(text: str):
    sys.stdout.write(text)
    sys.stdout.flush()


def _report_tool_call(invocation: ToolInvocation):
    sys.stderr.write(colors.dim(f"\n-> {invocation.name} {invocation.arguments}\n", stream=sys.stderr))


def _report_parse_failure(failure: ArgumentParseFailure):
    sys.stderr.write(colors.warning(f"\n{failure}\n", stream=sys.stderr))


def _report_tool_result(result: ToolResult):
    status = colors.success("ok", stream=sys.stderr) if result.ok else colors.error("failed", stream=sys.stderr)
    sys.stderr.write(f"{colors.tool(result.name, stream=sys.stderr)} {status}\n")
    if not result.ok:
        sys.stderr.write(colors.dim(f"  {result.result.get('error')}\n", stream=sys.stderr))
