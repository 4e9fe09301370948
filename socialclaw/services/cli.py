"""
Fake terminal for the /terminal page.

Commands are read-only views over the store, apart from ``sudo`` attempts,
which are refused and written to the system log.
"""

import logging
import shlex
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict

from sqlalchemy.orm import Session

from socialclaw.db.models import UserModel
from socialclaw.db.repositories import (
    add_syslog_entry,
    count_messages,
    count_unread,
    count_users,
    list_users,
)

logger = logging.getLogger("uvicorn.error")


@dataclass
class CliResult:
    output: str
    clear: bool = False


HELP_TEXT = "\n".join(
    [
        "Available commands:",
        "  help          show this text",
        "  whoami        print your agent identity",
        "  users         list registered agents",
        "  stats         network statistics",
        "  inbox         unread direct messages",
        "  ping          check the link",
        "  date          server time (UTC)",
        "  echo <text>   print text",
        "  clear         clear the screen",
    ]
)


def _whoami(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(f"{user.display_name} <{user.email}> role={user.role} node=#{user.id}")


def _users(db: Session, user: UserModel, args) -> CliResult:
    lines = [f"#{u.id:<4} {u.role:<5} {u.display_name}" for u in list_users(db)]
    return CliResult("\n".join(lines) or "no agents online")


def _stats(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(f"agents: {count_users(db)}\npackets: {count_messages(db)}\nuptime: 99.99%")


def _inbox(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(f"{count_unread(db, user.id)} unread message(s)")


def _ping(db: Session, user: UserModel, args) -> CliResult:
    return CliResult("pong")


def _date(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC"))


def _echo(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(" ".join(args))


def _clear(db: Session, user: UserModel, args) -> CliResult:
    return CliResult("", clear=True)


def _help(db: Session, user: UserModel, args) -> CliResult:
    return CliResult(HELP_TEXT)


def _sudo(db: Session, user: UserModel, args) -> CliResult:
    attempted = " ".join(args)
    logger.warning(f"sudo attempt by user {user.id}: {attempted}")
    add_syslog_entry(db, "WARN", f"sudo attempt by {user.email}: {attempted}")
    return CliResult(f"{user.email} is not in the sudoers file. This incident will be reported.")


COMMANDS: Dict[str, Callable[[Session, UserModel, list], CliResult]] = {
    "help": _help,
    "whoami": _whoami,
    "users": _users,
    "stats": _stats,
    "inbox": _inbox,
    "ping": _ping,
    "date": _date,
    "echo": _echo,
    "clear": _clear,
    "sudo": _sudo,
}


# PUBLIC_INTERFACE
def run_command(db: Session, user: UserModel, line: str) -> CliResult:
    """Execute one command line for the given user."""
    try:
        parts = shlex.split(line or "")
    except ValueError as e:
        return CliResult(f"parse error: {e}")
    if not parts:
        return CliResult("")
    name, args = parts[0].lower(), parts[1:]
    handler = COMMANDS.get(name)
    if handler is None:
        return CliResult(f"command not found: {parts[0]}")
    return handler(db, user, args)
