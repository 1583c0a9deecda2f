# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Patch rules applied to generated bindings.

Two kinds exist:

  RewriteRule — a regular expression matched against single lines. Matching
                lines are replaced by the substitution, which may expand into
                several lines. Everything else is left alone.
  DeleteRule  — drops one binding file and every line, in any other file,
                that mentions it through one of its reference substrings.

Rules are immutable and built from config once per run.
"""

import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import Union

from bindrel.config.schema import DeleteRuleConfig, PatchConfig, RewriteRuleConfig
from bindrel.release.errors import PatchRuleError


@dataclass(frozen=True)
class RewriteRule:
    """Line-level regex substitution, optionally limited to files matching a glob."""

    name: str
    pattern: re.Pattern[str]
    replacement: str
    files: str = "*"

    def applies_to(self, relative_path: str) -> bool:
        return fnmatch(relative_path, self.files)

    def rewrite(self, line: str) -> list[str]:
        """Substitute one line (without its terminator) into one or more lines."""
        return self.pattern.sub(self.replacement, line).split("\n")


@dataclass(frozen=True)
class DeleteRule:
    """Removes `filename` and every line containing one of `references`."""

    name: str
    filename: str
    references: tuple[str, ...] = field(default_factory=tuple)

    @property
    def effective_references(self) -> tuple[str, ...]:
        if self.references:
            return self.references
        return (f'include("{self.filename}")',)

    def references_line(self, line: str) -> bool:
        return any(ref in line for ref in self.effective_references)


PatchRule = Union[RewriteRule, DeleteRule]


def rewrite_rule_from_config(config: RewriteRuleConfig) -> RewriteRule:
    return RewriteRule(
        name=config.name,
        pattern=re.compile(config.pattern),
        replacement=config.replacement,
        files=config.files,
    )


def delete_rule_from_config(config: DeleteRuleConfig) -> DeleteRule:
    return DeleteRule(
        name=config.name,
        filename=config.filename,
        references=tuple(config.references),
    )


def build_rules(config: PatchConfig) -> list[PatchRule]:
    """
    Turn the patch config into the ordered rule list.

    Delete rules come first so rewrites never spend effort on files that are
    about to disappear.
    """
    rules: list[PatchRule] = [delete_rule_from_config(rule) for rule in config.delete_rules]
    rules.extend(rewrite_rule_from_config(rule) for rule in config.rewrite_rules)

    names = [rule.name for rule in rules]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise PatchRuleError(
            f"Patch rule names must be unique, duplicated: {', '.join(duplicates)}",
            rule=duplicates[0],
        )

    return rules
