# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Errors raised by the release pipeline.

Every error can carry the file and the patch rule it concerns, so the CLI can
report exactly where a run stopped. Nothing is rolled back: whoever reads the
error is expected to inspect the target checkout and finish or revert by hand.
"""

from typing import Optional


class ReleaseError(Exception):
    """Base for every release pipeline failure."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.rule = rule


class NotFoundError(ReleaseError):
    """An expected input directory or file is missing."""


class TransplantError(ReleaseError):
    """Writing into the target repository failed (permissions, disk full, ...)."""


class PatchError(ReleaseError):
    """Base for patch rule failures."""


class PatchMismatchError(PatchError):
    """Strict mode: a rule matched nothing across the whole file set."""


class PatchRuleError(PatchError):
    """A rule is unusable, e.g. its rewrite output matches its own pattern."""


class ManifestError(ReleaseError):
    """The manifest could not be parsed, or an edit would leave it unparseable."""


class PublishError(ReleaseError):
    """Staging changes in version control failed."""


class RegistryError(PublishError):
    """The registry rejected the update request or could not be reached."""


class StageFailedError(ReleaseError):
    """
    A pipeline stage failed; wraps the underlying error.

    `stage` is the name of the stage that was running, `cause` the original
    exception. `path` and `rule` are copied from the cause when it has them.
    """

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(
            f"{stage} failed: {cause}",
            path=getattr(cause, "path", None),
            rule=getattr(cause, "rule", None),
        )
        self.stage = stage
        self.cause = cause
