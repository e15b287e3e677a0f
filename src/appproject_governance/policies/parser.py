"""RBAC policy statement grammar and role/group name validation.

A project role policy is a six-field, comma-separated line::

    p, proj:<project>:<role>, <resource>, <action>, <project>/[<namespace>/]<object>, <allow|deny>

The subject must name the role it is attached to, and the object's first
segment must be the project itself, so a role can never grant access to
another project's applications.

Example
-------
>>> statement = PolicyStatement.from_string(
...     "my-proj", "my-role", "p, proj:my-proj:my-role, applications, get, my-proj/*, allow"
... )
>>> statement.action
'get'
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from appproject_governance.errors import PolicyValidationError

logger = logging.getLogger(__name__)

_POLICY_FIELD_COUNT = 6
_POLICY_FORMAT = "'p, sub, res, act, obj, eft'"

VALID_RESOURCES: tuple[str, ...] = (
    "applications",
    "applicationsets",
    "repositories",
    "clusters",
    "exec",
    "logs",
)
VALID_ACTIONS: frozenset[str] = frozenset(
    {"get", "create", "update", "delete", "sync", "override", "action", "*"}
)
# Actions that accept a "/"-separated sub-resource pattern, e.g. update/*/Pod/*.
HIERARCHICAL_ACTIONS: frozenset[str] = frozenset({"update", "delete", "action"})
VALID_EFFECTS: frozenset[str] = frozenset({"allow", "deny"})

_ROLE_NAME_RE = re.compile(r"[a-zA-Z0-9]([-_a-zA-Z0-9]*[a-zA-Z0-9])?")
_GROUP_INVALID_CHARS_RE = re.compile(r'["\n\r\t]')
_SUB_ACTION_RE = re.compile(r"[^\s,]+")
_OBJECT_NAME = r"[*\w.\-]+"
_OBJECT_NAMESPACE = r"[*\w\-]+"


# ---------------------------------------------------------------------------
# PolicyStatement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyStatement:
    """One parsed policy line.

    Attributes
    ----------
    subject:
        ``proj:<project>:<role>``.
    resource:
        One of :data:`VALID_RESOURCES`.
    action:
        Verb, possibly hierarchical (``update/apps/Deployment/*``).
    object:
        ``<project>/<name>`` or ``<project>/<namespace>/<name>``.
    effect:
        ``allow`` or ``deny``.
    """

    subject: str
    resource: str
    action: str
    object: str
    effect: str

    @classmethod
    def from_string(cls, project: str, role: str, statement: str) -> PolicyStatement:
        """Validate *statement* for (*project*, *role*) and parse it."""
        validate_policy(project, role, statement)
        return parse_policy(statement)

    @property
    def project(self) -> str:
        """The project segment of the object."""
        return self.object.split("/", 1)[0]

    def is_deny(self) -> bool:
        return self.effect == "deny"

    def __str__(self) -> str:
        return ", ".join(
            ("p", self.subject, self.resource, self.action, self.object, self.effect)
        )


def _split_fields(statement: str) -> list[str]:
    return [part.strip(" ") for part in statement.split(",")]


def parse_policy(statement: str) -> PolicyStatement:
    """Split a policy line into a :class:`PolicyStatement`.

    Only the overall shape is checked here; use :func:`validate_policy` (or
    :meth:`PolicyStatement.from_string`) for the full grammar.

    Raises
    ------
    PolicyValidationError
        If the line does not have six fields starting with ``p``.
    """
    fields = _split_fields(statement)
    if len(fields) != _POLICY_FIELD_COUNT or fields[0] != "p":
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': must be of the form: {_POLICY_FORMAT}"
        )
    _, subject, resource, action, obj, effect = fields
    return PolicyStatement(
        subject=subject, resource=resource, action=action, object=obj, effect=effect
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_policy(project: str, role: str, statement: str) -> None:
    """Check *statement* against the policy grammar for one project role.

    Raises
    ------
    PolicyValidationError
        Describing the first field that is wrong.
    """
    parsed = parse_policy(statement)

    expected_subject = f"proj:{project}:{role}"
    if parsed.subject != expected_subject:
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': policy subject must be: "
            f"'{expected_subject}', not '{parsed.subject}'",
            project_name=project,
        )

    if parsed.resource not in VALID_RESOURCES:
        allowed = ", ".join(f"'{r}'" for r in VALID_RESOURCES)
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': resource must be: {allowed}, "
            f"not '{parsed.resource}'",
            project_name=project,
        )

    if not is_valid_action(parsed.action):
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': invalid action '{parsed.action}'",
            project_name=project,
        )

    if not _object_pattern(project).fullmatch(parsed.object):
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': object must be of form "
            f"'{project}/*', '{project}[/<NAMESPACE>]/<APPNAME>' or "
            f"'{project}/<APPNAME>', not '{parsed.object}'",
            project_name=project,
        )

    if parsed.effect not in VALID_EFFECTS:
        raise PolicyValidationError(
            f"invalid policy rule '{statement}': effect must be: 'allow' or 'deny'",
            project_name=project,
        )


def is_valid_action(action: str) -> bool:
    """Return True for a plain verb or a sub-resource action like ``update/*``."""
    if action in VALID_ACTIONS:
        return True
    verb, separator, rest = action.partition("/")
    return (
        bool(separator)
        and verb in HIERARCHICAL_ACTIONS
        and bool(_SUB_ACTION_RE.fullmatch(rest))
    )


def _object_pattern(project: str) -> re.Pattern[str]:
    quoted = re.escape(project)
    return re.compile(
        rf"{quoted}/(?:{_OBJECT_NAMESPACE}/)?{_OBJECT_NAME}", re.ASCII
    )


def validate_role_name(name: str) -> None:
    """Check a role name.

    Names are alphanumerics, ``-`` and ``_``, starting and ending with an
    alphanumeric.

    Raises
    ------
    PolicyValidationError
        If the name is empty or malformed.
    """
    if not name.strip():
        raise PolicyValidationError("role name must not be empty")
    if not _ROLE_NAME_RE.fullmatch(name):
        raise PolicyValidationError(
            f"invalid role name '{name}': must consist of alphanumerics, '-' or '_', "
            "and must start and end with an alphanumeric"
        )


def validate_group_name(name: str) -> None:
    """Check an SSO group name.

    A group may contain commas only when the whole name is enclosed in
    double quotes; quotes may appear only as that enclosing pair.

    Raises
    ------
    PolicyValidationError
        If the name is empty, padded with whitespace, contains control
        characters or stray quotes, or has unquoted commas.
    """
    if not name.strip():
        raise PolicyValidationError(f"group '{name}' is empty")
    if name != name.strip():
        raise PolicyValidationError(
            f"group '{name}' must not have leading or trailing whitespace"
        )

    inner = name
    if len(name) > 1 and name.startswith('"') and name.endswith('"'):
        inner = name[1:-1]
    elif "," in name:
        raise PolicyValidationError(f"group '{name}' must be quoted")

    if not inner:
        raise PolicyValidationError(f"group '{name}' is empty")
    if _GROUP_INVALID_CHARS_RE.search(inner):
        raise PolicyValidationError(f"group '{name}' contains invalid characters")
