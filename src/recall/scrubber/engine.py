"""Scrubbing engine: ordered pattern rules plus a literal-secret pass."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from recall.scrubber.rules import DEFAULT_RULES, Rule

# Shorter values produce too many false positives.
MIN_SECRET_LENGTH = 4

# Text the scrubber itself emits. The literal pass steps over these so a
# secret value can never be found (and replaced again) inside a placeholder.
_PLACEHOLDER = r"<(?:ENV:[^<>\s]+|[A-Z][A-Z0-9_]*)>|\$HOME|%USERPROFILE%"


def _compile_secrets(env_secrets: Mapping[str, str]) -> tuple[re.Pattern[str], dict[str, str]] | None:
    """Build one alternation over all usable secret values.

    Longer values come first so a secret that contains another one is
    replaced whole.
    """
    by_value: dict[str, str] = {}
    for name, value in env_secrets.items():
        if len(value) < MIN_SECRET_LENGTH:
            continue
        by_value.setdefault(value, name)
    if not by_value:
        return None
    values = sorted(by_value, key=len, reverse=True)
    alternation = "|".join(re.escape(v) for v in values)
    return re.compile(f"({alternation})|{_PLACEHOLDER}"), by_value


class Scrubber:
    """Redacts sensitive substrings from single lines of text.

    The rule table and secret set are fixed at construction, so one
    instance can be shared freely between tasks and threads.

    Example::

        scrubber = Scrubber(env_secrets={"DATABASE_URL": os.environ["DATABASE_URL"]})
        clean = scrubber.scrub(line)
    """

    def __init__(
        self,
        rules: Iterable[Rule] = DEFAULT_RULES,
        env_secrets: Mapping[str, str] | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._secret_names = tuple(sorted(env_secrets or {}))
        self._secrets = _compile_secrets(env_secrets or {})

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def secret_names(self) -> tuple[str, ...]:
        """Names of the configured secrets (values are never exposed)."""
        return self._secret_names

    def scrub(self, text: str) -> str:
        """Apply every pattern rule in order, then the literal-secret pass."""
        for rule in self._rules:
            text = rule.apply(text)
        if self._secrets is not None:
            text = _replace_secrets(text, *self._secrets)
        return text


def _replace_secrets(text: str, pattern: re.Pattern[str], by_value: dict[str, str]) -> str:
    def _sub(match: re.Match[str]) -> str:
        value = match.group(1)
        if value is None:
            return match.group(0)
        return f"<ENV:{by_value[value]}>"

    return pattern.sub(_sub, text)


_default = Scrubber()


def scrub(text: str) -> str:
    """Apply the default pattern rules to *text*."""
    return _default.scrub(text)


def scrub_env_secrets(text: str, env_secrets: Mapping[str, str]) -> str:
    """Replace literal occurrences of secret values with ``<ENV:NAME>``.

    Values shorter than :data:`MIN_SECRET_LENGTH` are left alone.
    """
    compiled = _compile_secrets(env_secrets)
    if compiled is None:
        return text
    return _replace_secrets(text, *compiled)
