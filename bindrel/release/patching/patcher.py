# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Patcher — applies the ordered rule list to a set of binding files.

`apply_rules` works purely in memory and is what the pipeline, the verifier
and the tests all go through. `patch_directory` wraps it with the disk I/O
for a target source directory.

Guarantees:
  - each rule runs exactly once over the whole set, in order
  - line order and untouched lines are preserved, line terminators included
  - running the rules over already-patched output changes nothing; a rewrite
    whose output still matches its own pattern is rejected
  - a rule matching nothing is fine (upstream may not generate what it
    targets), unless strict mode is on

Rewrites that leave a file syntactically broken (say, unbalanced `end`s) are
not caught here.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Sequence

from bindrel.logging.logger import get_logger
from bindrel.release.errors import PatchError, PatchMismatchError, PatchRuleError
from bindrel.release.locator.locator import BindingFile
from bindrel.release.patching.rules import DeleteRule, PatchRule, RewriteRule
from bindrel.utils.filesystem import atomic_write, safe_delete, safe_read

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class PatchResult:
    """Outcome of one pass of the rule list over a file set."""

    files: tuple[BindingFile, ...]
    changed_files: tuple[str, ...]
    deleted_files: tuple[str, ...]
    applications: dict[str, int] = field(default_factory=dict)
    unmatched_rules: tuple[str, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.changed_files and not self.deleted_files


def _split_lines(content: str) -> list[str]:
    """Split after each newline only; form feeds and other Unicode breaks stay inside the line."""
    return [line for line in re.split(r"(?<=\n)", content) if line]


def _split_terminator(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _apply_rewrite(rule: RewriteRule, binding: BindingFile) -> tuple[BindingFile, int]:
    """Run one rewrite rule over one file. Returns the new file and the number of lines rewritten."""
    output: list[str] = []
    matches = 0

    for line in _split_lines(binding.content):
        body, terminator = _split_terminator(line)
        if not rule.pattern.search(body):
            output.append(line)
            continue

        produced = rule.rewrite(body)
        for new_line in produced:
            if rule.pattern.search(new_line):
                raise PatchRuleError(
                    f"Rewrite rule '{rule.name}' is not idempotent: its output "
                    f"'{new_line}' matches its own pattern",
                    rule=rule.name,
                    path=binding.relative_path,
                )
        inner_terminator = terminator or "\n"
        output.extend(new_line + inner_terminator for new_line in produced[:-1])
        output.append(produced[-1] + terminator)
        matches += 1

    if matches == 0:
        return binding, 0
    return replace(binding, content="".join(output)), matches


def _strip_references(rule: DeleteRule, binding: BindingFile) -> tuple[BindingFile, int]:
    """Drop every line of `binding` that references the file the rule deletes."""
    kept: list[str] = []
    removed = 0
    for line in _split_lines(binding.content):
        if rule.references_line(line):
            removed += 1
            continue
        kept.append(line)

    if removed == 0:
        return binding, 0
    return replace(binding, content="".join(kept)), removed


def apply_rules(
    files: Iterable[BindingFile],
    rules: Sequence[PatchRule],
    strict: bool = False,
) -> PatchResult:
    """
    Apply every rule once, in order, to an in-memory file set.

    Args:
        files: The binding files to patch.
        rules: Ordered rules, as built by `build_rules`.
        strict: Raise PatchMismatchError for a rule that matches nothing.

    Returns:
        PatchResult with the patched set and per-rule match counts. Files keep
        their original order; deleted ones are dropped.

    Raises:
        PatchMismatchError: strict mode and a rule matched nothing.
        PatchRuleError: a rewrite rule is not idempotent.
    """
    original = {binding.relative_path: binding for binding in files}
    current = dict(original)
    deleted: list[str] = []
    applications: dict[str, int] = {}
    unmatched: list[str] = []

    for rule in rules:
        matches = 0
        if isinstance(rule, DeleteRule):
            if rule.filename in current:
                del current[rule.filename]
                deleted.append(rule.filename)
                matches += 1
            for path, binding in list(current.items()):
                patched, removed = _strip_references(rule, binding)
                current[path] = patched
                matches += removed
        else:
            for path, binding in list(current.items()):
                if not rule.applies_to(path):
                    continue
                patched, rewritten = _apply_rewrite(rule, binding)
                current[path] = patched
                matches += rewritten

        applications[rule.name] = matches
        if matches == 0:
            if strict:
                raise PatchMismatchError(
                    f"Patch rule '{rule.name}' matched nothing", rule=rule.name
                )
            unmatched.append(rule.name)
            _logger.info("Rule matched nothing", extra={"rule": rule.name})
        else:
            _logger.debug("Rule applied", extra={"rule": rule.name, "matches": matches})

    changed = tuple(
        path for path, binding in current.items() if binding.content != original[path].content
    )

    return PatchResult(
        files=tuple(current.values()),
        changed_files=changed,
        deleted_files=tuple(deleted),
        applications=applications,
        unmatched_rules=tuple(unmatched),
    )


def load_source_files(source_dir: Path, file_extension: str) -> list[BindingFile]:
    """
    Read every binding file directly under `source_dir`, sorted by name.

    Raises:
        PatchError: A binding file is not valid UTF-8.
    """
    files: list[BindingFile] = []
    for path in sorted(source_dir.iterdir()):
        if not path.is_file() or not path.name.endswith(file_extension):
            continue
        try:
            content = safe_read(path)
        except UnicodeDecodeError as err:
            raise PatchError(f"Binding file is not valid UTF-8: {path}", path=str(path)) from err
        files.append(BindingFile(relative_path=path.name, content=content))
    return files


def patch_directory(
    source_dir: Path,
    rules: Sequence[PatchRule],
    file_extension: str,
    strict: bool = False,
) -> PatchResult:
    """
    Patch the binding files in a target source directory in place.

    Changed files are rewritten atomically and deleted files are removed.
    Nothing is written when every rule is a no-op, so re-running is safe.

    Raises:
        PatchError: The directory is missing or a write/delete failed.
        PatchMismatchError: strict mode and a rule matched nothing.
        PatchRuleError: a rewrite rule is not idempotent.
    """
    if not source_dir.is_dir():
        raise PatchError(f"Source directory not found: {source_dir}", path=str(source_dir))

    result = apply_rules(load_source_files(source_dir, file_extension), rules, strict=strict)

    by_path = {binding.relative_path: binding for binding in result.files}
    for relative_path in result.changed_files:
        target = source_dir / relative_path
        try:
            atomic_write(target, by_path[relative_path].content)
        except OSError as err:
            raise PatchError(f"Cannot write patched file {target}: {err}", path=str(target)) from err

    for relative_path in result.deleted_files:
        target = source_dir / relative_path
        try:
            safe_delete(target)
        except OSError as err:
            raise PatchError(f"Cannot delete {target}: {err}", path=str(target)) from err

    _logger.info(
        "Patched bindings",
        extra={
            "source_dir": str(source_dir),
            "changed": len(result.changed_files),
            "deleted": len(result.deleted_files),
            "unmatched_rules": list(result.unmatched_rules),
        },
    )
    return result
