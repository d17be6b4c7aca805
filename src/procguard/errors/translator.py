"""Turn execution failures into short, actionable messages for the CLI."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple, Type


@dataclass
class UserFriendlyError:
    """What went wrong, in terms a CLI user can act on."""
    original_error: BaseException
    title: str
    explanation: str
    actions: List[str] = field(default_factory=list)
    show_technical: bool = False


@dataclass(frozen=True)
class _Rule:
    title: str
    explanation: str
    actions: Tuple[str, ...]
    # A rule applies when the root cause is one of these types...
    types: Tuple[Type[BaseException], ...] = ()
    # ...or when the rendered error chain matches this pattern
    pattern: Optional[Pattern[str]] = None


def _root_cause(error: BaseException) -> BaseException:
    cause = getattr(error, "cause", None) or error.__cause__
    return cause if cause is not None else error


class ErrorTranslator:
    """Map spawn/read/wait failures to user-facing explanations."""

    RULES: Tuple[_Rule, ...] = (
        _Rule(
            title="Program not found",
            explanation="The executable could not be located. Nothing was started.",
            actions=(
                "Check the program name for typos",
                "Pass an absolute path or make sure the program is on PATH",
            ),
            types=(FileNotFoundError,),
            pattern=re.compile(r"No such file or directory", re.IGNORECASE),
        ),
        _Rule(
            title="Permission denied",
            explanation="The program exists but could not be executed by the current user.",
            actions=(
                "Check the file is executable: chmod +x <program>",
                "Check the directory permissions along the path",
            ),
            types=(PermissionError,),
            pattern=re.compile(r"Permission denied", re.IGNORECASE),
        ),
        _Rule(
            title="Output line too long",
            explanation="The program wrote a single line longer than the configured read limit.",
            actions=(
                "Raise stream_limit in procguard.yaml",
                "Or set PROCGUARD_STREAM_LIMIT in the environment",
            ),
            # asyncio.StreamReader.readline() overrun messages
            pattern=re.compile(r"Separator is not found|chunk exceed|chunk is longer than limit", re.IGNORECASE),
        ),
        _Rule(
            title="Pipe closed by the program",
            explanation="The program closed one of its standard streams while it was still in use.",
            actions=(
                "Check whether the program exits early",
                "Run it manually to see its own diagnostics",
            ),
            types=(BrokenPipeError, ConnectionResetError),
            pattern=re.compile(r"Broken pipe", re.IGNORECASE),
        ),
    )

    def translate(self, error: BaseException) -> UserFriendlyError:
        cause = _root_cause(error)
        chain = f"{type(error).__name__}: {error}"
        if cause is not error:
            chain += f" | {type(cause).__name__}: {cause}"

        for rule in self.RULES:
            if isinstance(cause, rule.types) or (rule.pattern is not None and rule.pattern.search(chain)):
                return UserFriendlyError(
                    original_error=error,
                    title=rule.title,
                    explanation=rule.explanation,
                    actions=list(rule.actions),
                )

        return UserFriendlyError(
            original_error=error,
            title="Execution failed",
            explanation=str(error),
            actions=["Re-run with --log-level DEBUG for details"],
            show_technical=True,
        )

    def format_for_cli(self, friendly_error: UserFriendlyError) -> str:
        """Render as rich markup."""
        lines = [f"[bold red]{friendly_error.title}[/]", "", friendly_error.explanation, "", "[bold]How to fix:[/]"]
        lines.extend(f"  {i}. {action}" for i, action in enumerate(friendly_error.actions, 1))
        if friendly_error.show_technical:
            lines.extend(["", "[dim]Technical details:[/]", f"[dim]{friendly_error.original_error}[/]"])
        return "\n".join(lines)
