"""Glob pattern matching with negation support.

Every authorization check in the package funnels through :func:`glob_match`.
Patterns follow the usual shell-style glob syntax, extended with:

- a leading ``!`` that negates the match of the remainder,
- ``{a,b,c}`` alternation (so ``!{kube-system,argocd}`` reads "anything but
  exactly kube-system or argocd"),
- separator-aware wildcards: when ``separators`` is given, ``*`` and ``?``
  stop at a separator while ``**`` spans any number of segments.

Malformed patterns (for example an unterminated ``[``) never raise; they
simply never match.

Example
-------
>>> glob_match("https://github.com/argoproj/*", "https://github.com/argoproj/cd", separators="/")
True
>>> glob_match("!{kube-system,argocd}", "argocd")
False
>>> glob_match("team-*", "team-a")
True
"""
from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable

logger = logging.getLogger(__name__)

_NEGATION_PREFIX = "!"

# "scheme://authority/rest" and scp-style "user@host:path".
_SCHEME_URL_RE = re.compile(r"^(?P<scheme>[a-zA-Z][a-zA-Z0-9+.\-]*://)(?P<authority>[^/]*)(?P<rest>.*)$")
_SCP_URL_RE = re.compile(r"^(?P<user>[\w.\-]+@)(?P<host>[^:/]+)(?P<rest>:.*)$")


class _GlobSyntaxError(ValueError):
    """Internal marker for patterns that cannot be translated."""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def is_deny_pattern(pattern: str) -> bool:
    """Return True if *pattern* is a negated (``!``-prefixed) pattern."""
    return pattern.startswith(_NEGATION_PREFIX)


def glob_match(
    pattern: str,
    candidate: str,
    allow_negation: bool = True,
    separators: str = "",
) -> bool:
    """Match *candidate* against a glob *pattern*.

    Parameters
    ----------
    pattern:
        Glob pattern, optionally prefixed with ``!`` when ``allow_negation``
        is set.
    candidate:
        The string under test.
    allow_negation:
        When ``True`` (default) a leading ``!`` inverts the result.  When
        ``False`` the ``!`` is matched literally.
    separators:
        Characters that single ``*`` and ``?`` wildcards do not cross.

    Returns
    -------
    bool
        Whether the candidate satisfies the pattern.  A malformed pattern
        always yields ``False``, negated or not.
    """
    negate = allow_negation and is_deny_pattern(pattern)
    body = pattern[1:] if negate else pattern

    if not negate and body == "*":
        return True

    compiled = _compile(body, separators)
    if compiled is None:
        logger.debug("Ignoring malformed glob pattern %r", pattern)
        return False

    matched = compiled.fullmatch(candidate) is not None
    return not matched if negate else matched


def match_any(
    patterns: Iterable[str],
    candidate: str,
    allow_negation: bool = True,
    separators: str = "",
) -> bool:
    """Return True if *candidate* matches at least one of *patterns*."""
    return any(
        glob_match(pattern, candidate, allow_negation, separators)
        for pattern in patterns
    )


def is_valid_pattern(pattern: str) -> bool:
    """Return True if *pattern* (minus any leading ``!``) is well formed."""
    body = pattern[1:] if is_deny_pattern(pattern) else pattern
    return _compile(body, "") is not None


def normalize_git_url(url: str) -> str:
    """Normalise a repository URL (or URL pattern) for comparison.

    Hostnames are case-insensitive, so the scheme and authority are
    lowercased while the path keeps its case.  A trailing ``.git`` suffix
    and surrounding whitespace are removed.

    Example
    -------
    >>> normalize_git_url("ssh://git@GITHUB.com:argoproj/test.git")
    'ssh://git@github.com:argoproj/test'
    >>> normalize_git_url("git@GitLab.com:group/repo")
    'git@gitlab.com:group/repo'
    """
    repo = url.strip()

    scheme_match = _SCHEME_URL_RE.match(repo)
    if scheme_match is not None:
        repo = (
            scheme_match.group("scheme").lower()
            + scheme_match.group("authority").lower()
            + scheme_match.group("rest")
        )
    else:
        scp_match = _SCP_URL_RE.match(repo)
        if scp_match is not None:
            repo = (
                scp_match.group("user")
                + scp_match.group("host").lower()
                + scp_match.group("rest")
            )

    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return repo


# ---------------------------------------------------------------------------
# Translation to regular expressions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=2048)
def _compile(pattern: str, separators: str) -> re.Pattern[str] | None:
    """Compile a glob body to a regex, or return None if malformed."""
    try:
        expression, index = _translate(pattern, 0, separators, depth=0)
    except _GlobSyntaxError:
        return None
    if index != len(pattern):
        return None
    try:
        return re.compile(expression, re.DOTALL)
    except re.error:
        return None


def _translate(
    pattern: str,
    index: int,
    separators: str,
    depth: int,
) -> tuple[str, int]:
    """Translate *pattern* from *index* until the end or a brace delimiter."""
    any_char = f"[^{re.escape(separators)}]" if separators else "."
    parts: list[str] = []
    length = len(pattern)

    while index < length:
        char = pattern[index]

        if char == "*":
            if index + 1 < length and pattern[index + 1] == "*":
                parts.append(".*")
                while index < length and pattern[index] == "*":
                    index += 1
            else:
                parts.append(any_char + "*")
                index += 1

        elif char == "?":
            parts.append(any_char)
            index += 1

        elif char == "[":
            end = pattern.find("]", index + 2)
            if end == -1:
                raise _GlobSyntaxError(pattern)
            content = pattern[index + 1 : end]
            if content.startswith("!"):
                content = "^" + content[1:]
            if "[" in content or content == "^":
                raise _GlobSyntaxError(pattern)
            parts.append("[" + content.replace("\\", "\\\\") + "]")
            index = end + 1

        elif char == "{":
            alternatives: list[str] = []
            index += 1
            while True:
                alternative, index = _translate(pattern, index, separators, depth + 1)
                alternatives.append(alternative)
                if index >= length:
                    raise _GlobSyntaxError(pattern)
                if pattern[index] == ",":
                    index += 1
                    continue
                index += 1  # closing brace
                break
            parts.append("(?:" + "|".join(alternatives) + ")")

        elif depth > 0 and char in ",}":
            return "".join(parts), index

        elif char == "\\":
            if index + 1 >= length:
                raise _GlobSyntaxError(pattern)
            parts.append(re.escape(pattern[index + 1]))
            index += 2

        else:
            parts.append(re.escape(char))
            index += 1

    return "".join(parts), index
