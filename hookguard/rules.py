"""
Declarative rule matching.

A rule set is an ordered list of patterns, each with a human-readable
explanation. Matching is first-match in declaration order: rule-set
authors order rules from most to least specific.

Two kinds of pattern are supported:
- regex: a regular expression searched across the whole input
- path: a shell-style glob matched against the basename of a path
"""

import enum
import fnmatch
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml

from .logger import logger


class PatternKind(str, enum.Enum):
    REGEX = "regex"
    PATH = "path"


@dataclass(frozen=True)
class Rule:
    """
    One pattern plus the explanation shown when it matches.

    Attributes:
        pattern: Regular expression or basename glob
        explanation: Text surfaced to the user when the rule fires
        kind: How the pattern is evaluated
        name: Short identifier (defaults to the pattern)
        ignore_case: Case-insensitive matching
    """
    pattern: str
    explanation: str
    kind: PatternKind = PatternKind.REGEX
    name: Optional[str] = None
    ignore_case: bool = False
    _regex: Optional["re.Pattern[str]"] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", PatternKind(self.kind))
        if self.name is None:
            object.__setattr__(self, "name", self.pattern)
        flags = re.IGNORECASE if self.ignore_case else 0
        if self.kind is PatternKind.REGEX:
            regex = re.compile(self.pattern, flags)
        else:
            regex = re.compile(fnmatch.translate(self.pattern), flags)
        object.__setattr__(self, "_regex", regex)

    def test(self, text: str) -> bool:
        if not text:
            return False
        if self.kind is PatternKind.REGEX:
            return self._regex.search(text) is not None
        basename = os.path.basename(text.rstrip("/\\"))
        return bool(basename) and self._regex.match(basename) is not None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "pattern": self.pattern,
            "kind": self.kind.value,
            "explanation": self.explanation,
            "ignore_case": self.ignore_case,
        }


@dataclass(frozen=True)
class MatchResult:
    """Result of matching one input against a rule set."""
    matched: bool
    rule: Optional[Rule] = None
    rule_set: Optional[str] = None

    def __bool__(self) -> bool:
        return self.matched


@dataclass(frozen=True)
class RuleSet:
    """A named, ordered, immutable collection of rules."""
    name: str
    rules: Tuple[Rule, ...] = ()
    description: str = ""

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def match(self, text: str) -> MatchResult:
        return matches(self, text)

    def extend(self, rules: Iterable[Rule]) -> "RuleSet":
        """Return a new rule set with rules appended after the existing ones."""
        return RuleSet(self.name, self.rules + tuple(rules), self.description)


def matches(rule_set: RuleSet, text: str) -> MatchResult:
    """
    Match text against a rule set.

    Args:
        rule_set: Rules to evaluate, in declaration order
        text: Command line, file path or file content

    Returns:
        MatchResult for the first matching rule; matched=False if none
        match or text is empty
    """
    if not text:
        return MatchResult(matched=False, rule_set=rule_set.name)
    for rule in rule_set.rules:
        if rule.test(text):
            return MatchResult(matched=True, rule=rule, rule_set=rule_set.name)
    return MatchResult(matched=False, rule_set=rule_set.name)


def _rule_from_dict(data: Mapping[str, object]) -> Rule:
    if "pattern" not in data or "explanation" not in data:
        raise ValueError(f"Rule needs 'pattern' and 'explanation': {dict(data)}")
    return Rule(
        pattern=str(data["pattern"]),
        explanation=str(data["explanation"]),
        kind=PatternKind(data.get("kind", "regex")),
        name=data.get("name"),
        ignore_case=bool(data.get("ignore_case", False)),
    )


def load_rule_sets(path: Union[str, Path]) -> Dict[str, Tuple[Rule, ...]]:
    """
    Load extra rules from a YAML file.

    Expected layout::

        rule_sets:
          dangerous-commands:
            - pattern: "helm\\s+uninstall"
              explanation: "Uninstalling a Helm release could cause irreversible damage."

    Args:
        path: Path to the YAML file

    Returns:
        Mapping of rule-set name to the rules declared for it

    Raises:
        ValueError: If the file is not laid out as above
        re.error: If a pattern is not a valid regular expression
    """
    data = yaml.safe_load(Path(path).read_text()) or {}
    sections = data.get("rule_sets") if isinstance(data, dict) else None
    if not isinstance(sections, dict):
        raise ValueError(f"{path}: expected a top-level 'rule_sets' mapping")

    loaded = {}
    for name, entries in sections.items():
        if not isinstance(entries, list):
            raise ValueError(f"{path}: rule set '{name}' must be a list")
        loaded[str(name)] = tuple(_rule_from_dict(entry) for entry in entries)
        logger.debug(f"[rules] Loaded {len(entries)} rule(s) for {name} from {path}")
    return loaded


def merge_rule_sets(
    base: Mapping[str, RuleSet],
    extra: Mapping[str, Iterable[Rule]],
) -> Dict[str, RuleSet]:
    """Append extra rules to the named sets, creating new sets as needed."""
    merged = dict(base)
    for name, rules in extra.items():
        if name in merged:
            merged[name] = merged[name].extend(rules)
        else:
            merged[name] = RuleSet(name, tuple(rules))
    return merged
