"""devpilot command-line entry point.

Usage examples:
    devpilot chat "How do I debounce an input handler?" --session cli-session
    devpilot chat "Summarize the open bugs" --repo owner/repo
    devpilot fix "TypeError: app.listen is not a function" --action fix_and_apply
    devpilot fix "vercel.json: Unexpected token" --action auto_fix --commit-to owner/repo
    devpilot code "debounce helper" --language typescript
    devpilot code "for (var i in arr) total += arr[i]" --preset optimize
    devpilot webapp "pomodoro timer" --description "with a history list"
    devpilot memory --key cli-session
    devpilot clear --key cli-session
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from devpilot.config import settings
from devpilot.llm.prompt import CODE_PRESETS

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devpilot", description="AI coding assistant backend")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Send a chat message")
    chat.add_argument("message")
    chat.add_argument("--session", default="default", help="Session id (default: %(default)s)")
    chat.add_argument("--repo", default=None, help="Repository full name, e.g. owner/repo")

    fix = sub.add_parser("fix", help="Analyze an error and optionally apply the fix")
    fix.add_argument("error")
    fix.add_argument("--description", default=None)
    fix.add_argument("--action", default="analyze", choices=["analyze", "auto_fix", "fix_and_apply"])
    fix.add_argument("--file", dest="file_path", default=None, help="File the error refers to")
    fix.add_argument("--session", default="default")
    fix.add_argument("--commit-to", default=None, help="Commit files to owner/repo instead of disk")
    fix.add_argument("--branch", default=None)

    code = sub.add_parser("code", help="Generate code from a description")
    code.add_argument("prompt")
    code.add_argument("--language", default="javascript")
    code.add_argument("--preset", default=None, choices=sorted(CODE_PRESETS))
    code.add_argument("--repo", default=None, help="Repository full name, e.g. owner/repo")
    code.add_argument("--session", default="default")

    webapp = sub.add_parser("webapp", help="Generate a single-page web app")
    webapp.add_argument("idea")
    webapp.add_argument("--description", default="")
    webapp.add_argument("--session", default="default")

    memory = sub.add_parser("memory", help="Show memory statistics")
    memory.add_argument("--key", default=None, help="Conversation key to include")

    clear = sub.add_parser("clear", help="Clear one conversation, or all of them")
    clear.add_argument("--key", default=None)

    return parser


async def _run(args: argparse.Namespace) -> int:
    from devpilot.apply import GitHubTarget
    from devpilot.assistant import Assistant
    from devpilot.errors import ProviderError
    from devpilot.integrations.github_content import RepoContentClient

    assistant = Assistant.from_settings()

    if args.command == "chat":
        reply = await assistant.chat(args.message, session_id=args.session, repository=args.repo)
        print(reply.response)
        print(f"\n[{reply.source}] {reply.message_count} message(s) in memory")
        return 0

    if args.command == "fix":
        target = None
        if args.commit_to:
            target = GitHubTarget(RepoContentClient(), args.commit_to, branch=args.branch)
        try:
            report = await assistant.fix(
                args.error,
                description=args.description,
                action=args.action,
                file_path=args.file_path,
                session_id=args.session,
                target=target,
            )
        except ProviderError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        print(report.solution)
        if args.action != "analyze":
            print(f"\napplied: {report.applied}")
            for path in report.files_changed:
                print(f"  wrote {path}")
            for path, reason in report.failed:
                print(f"  FAILED {path}: {reason}")
        return 0

    if args.command == "code":
        try:
            code = await assistant.generate_code(
                args.prompt,
                language=args.language,
                preset=args.preset,
                repository=args.repo,
                session_id=args.session,
            )
        except ProviderError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        print(code)
        return 0

    if args.command == "webapp":
        try:
            report = await assistant.create_webapp(args.idea, args.description, session_id=args.session)
        except ProviderError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1
        print(report.solution)
        print(f"\ncreated: {report.created} ({', '.join(report.files_created) or 'no files'})")
        return 0

    if args.command == "memory":
        print(json.dumps(await assistant.memory_stats(args.key), indent=2))
        return 0

    removed = await assistant.clear(args.key)
    print(f"Cleared {removed} conversation(s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        return asyncio.run(_run(args))
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
