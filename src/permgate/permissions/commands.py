"""Shell command splitting for command-tool rules.

A prefix rule such as ``Bash(npm test:*)`` vouches for one command, not for
whatever is chained after it. The evaluator therefore checks deny rules
against every subcommand and only lets a content rule allow a command line
when each of its subcommands is covered.
"""

from __future__ import annotations

# Control operators that end a subcommand outside quotes
_SEPARATORS = frozenset(";&|\n\r()`")

# Syntax whose effect a content rule cannot vouch for: substitutions and
# redirections
UNSAFE_TOKENS = ("`", "$(", "${", "<(", ">(", ">", "<", "\n", "\r")


def split_command(command: str) -> tuple[str, ...] | None:
    """Split a command line into its subcommands.

    Splits on ``&&``, ``||``, ``;``, ``|``, ``&``, newlines, subshell
    parentheses and backticks. Quoted text is kept intact, except that
    command substitutions inside double quotes still start a subcommand.
    ``>&``/``<&`` redirections are not treated as separators.

    Returns None when the quoting is unbalanced.
    """
    parts: list[str] = []
    current: list[str] = []
    quote: str | None = None
    substitutions = 0

    def flush() -> None:
        text = "".join(current).strip()
        if text:
            parts.append(text)
        current.clear()

    i = 0
    n = len(command)
    while i < n:
        c = command[i]
        if quote == "'":
            current.append(c)
            if c == "'":
                quote = None
        elif quote == '"':
            if c == "\\" and i + 1 < n:
                current.append(command[i:i + 2])
                i += 1
            elif c == "`":
                flush()
            elif c == "(" and current and current[-1] == "$":
                substitutions += 1
                flush()
            elif c == ")" and substitutions:
                substitutions -= 1
                flush()
            else:
                current.append(c)
                if c == '"':
                    quote = None
        elif c == "\\" and i + 1 < n:
            current.append(command[i:i + 2])
            i += 1
        elif c in ("'", '"'):
            quote = c
            current.append(c)
        elif c in _SEPARATORS:
            if c == "&" and current and current[-1] in ("<", ">"):
                current.append(c)
            else:
                flush()
        else:
            current.append(c)
        i += 1

    if quote is not None:
        return None
    flush()
    return tuple(parts)


def has_unsafe_syntax(command: str) -> bool:
    """True if the command substitutes or redirects."""
    text = command.strip()
    return any(token in text for token in UNSAFE_TOKENS)
