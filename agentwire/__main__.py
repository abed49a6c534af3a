# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the system with `python -m agentwire`.
"""

import json
import logging
import asyncio
import argparse

from pathlib import Path
from dotenv import load_dotenv

from .src.config import settings
from .src.runtime import Runtime
from .src.storage import SessionStore

DEFAULT_DB = "agentwire.db"

logging.captureWarnings(True)
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentwire")
    parser.add_argument(
        "--db",
        type=str,
        default=settings.SESSION_DB or DEFAULT_DB,
        help="Path of the sqlite session database",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Send one message to an agent")
    run_parser.add_argument("objects_dir", type=str, help="Directory of agent definitions")
    run_parser.add_argument("agent", type=str, help="Name of the agent to message")
    run_parser.add_argument("message", type=str, help="The message to send")
    run_parser.add_argument(
        "--provider", type=str, default=None, help="LLM provider (overrides settings)"
    )
    run_parser.add_argument(
        "--model", type=str, default=None, help="LLM model (overrides settings)"
    )

    sessions_parser = subparsers.add_parser("sessions", help="List recorded sessions")
    sessions_parser.add_argument("--limit", type=int, default=20)

    export_parser = subparsers.add_parser("export", help="Export a thread tree")
    export_parser.add_argument("session_id", type=str)
    export_parser.add_argument(
        "--format", choices=["markdown", "json"], default="markdown"
    )

    usage_parser = subparsers.add_parser("usage", help="Token usage and cost of a thread tree")
    usage_parser.add_argument("session_id", type=str)

    log_parser = subparsers.add_parser("log", help="Show the most recent message bus entries")
    log_parser.add_argument("-n", type=int, default=20)

    return parser


async def answer_human_requests(queue: asyncio.Queue, runtime: Runtime):
    """Prompt on stdin for every human request an agent raises."""
    while True:
        request = await queue.get()
        prompt = f"\n[{request.capability}] {request.question}\n"
        if request.options:
            prompt += f"Options: {', '.join(request.options)}\n"
        answer = await asyncio.to_thread(input, prompt + "> ")
        runtime.human_queue.respond(request.id, answer)


async def run_agent(args):
    overrides = {}
    if args.provider:
        overrides["LLM_PROVIDER"] = args.provider
    if args.model:
        overrides["LLM_MODEL"] = args.model
    run_settings = settings.model_copy(update={"SESSION_DB": args.db, **overrides})

    runtime = Runtime(settings=run_settings, objects_dir=Path(args.objects_dir))
    loop = asyncio.get_running_loop()
    requests: asyncio.Queue = asyncio.Queue()

    def on_human_event(event, request):
        if event == "added":
            loop.call_soon_threadsafe(requests.put_nowait, request)

    runtime.human_queue.subscribe(on_human_event)
    responder = asyncio.create_task(answer_human_requests(requests, runtime))
    try:
        reply = await runtime.asend(args.agent, args.message)
        print(reply)
        agent = runtime.agent(args.agent)
        if agent.session_id:
            print(f"\n(session {agent.session_id})")
    finally:
        responder.cancel()
        runtime.close()


def list_sessions(store: SessionStore, limit: int):
    for session in store.list_all_sessions(limit=limit):
        parent = f" <- {session.parent_session_id}" if session.parent_session_id else ""
        print(
            f"{session.id}  {session.updated_at:%Y-%m-%d %H:%M}  "
            f"{session.agent_name:<16} {session.thread_type.value:<12} "
            f"{session.message_count:>4} msgs{parent}"
        )


def export_session(store: SessionStore, session_id: str, fmt: str):
    exported = store.export(session_id, fmt)
    if exported is None:
        print(f"Session not found: {session_id}")
        return
    print(exported if fmt == "markdown" else json.dumps(exported, indent=2, default=str))


def show_usage(store: SessionStore, session_id: str):
    print(json.dumps(store.thread_tree_usage(session_id).to_dict(), indent=2))


def show_log(store: SessionStore, n: int):
    for event in store.recent_events(n):
        print(f"{event['timestamp'][11:19]}  {event['from']} → {event['to']}: {event['summary']}")


async def main():
    load_dotenv()
    parser = setup_parser()
    args = parser.parse_args()

    if args.command == "run":
        await run_agent(args)
        return

    store = SessionStore(args.db)
    try:
        if args.command == "sessions":
            list_sessions(store, args.limit)
        elif args.command == "export":
            export_session(store, args.session_id, args.format)
        elif args.command == "usage":
            show_usage(store, args.session_id)
        elif args.command == "log":
            show_log(store, args.n)
    finally:
        store.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
