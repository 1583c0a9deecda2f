# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for bindrel.

Every pipeline stage gets its own frozen pydantic model, and the defaults
describe the mlpack Julia release: bindings come out of
`src/mlpack/bindings/julia/mlpack/` in the build tree, go into `src/` of the
`mlpack.jl` checkout, the hardcoded shared-library paths are swapped for
`mlpack_jll` symbols and the test binding is dropped.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_MODEL_CONFIG = ConfigDict(frozen=True, extra="forbid", validate_default=True)

DEFAULT_LIBRARY_PATTERN = (
    r'^const (\w+)Library = joinpath\(@__DIR__, "(lib\w+)\.(?:so|dylib|dll)"\)\s*$'
)
DEFAULT_LIBRARY_REPLACEMENT = "import mlpack_jll\nconst \\1Library = mlpack_jll.\\2"


class GlobalConfig(BaseModel):
    """Cross-cutting settings: identity and observability."""

    model_config = _MODEL_CONFIG

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="bindrel", description="Human-readable identifier used in logs"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class LocatorConfig(BaseModel):
    """Where the generated bindings live inside the upstream build tree."""

    model_config = _MODEL_CONFIG

    language: str = Field(default="julia", description="Binding language directory name")
    package: str = Field(default="mlpack", description="Binding package directory name")
    bindings_path: str = Field(
        default="src/mlpack/bindings/{language}/{package}",
        description="Path template relative to the build root; {language} and {package} are filled in",
    )
    file_extension: str = Field(
        default=".jl",
        description="Only files with this extension count as binding files",
    )
    manifest_name: str = Field(
        default="Project.toml",
        description="File name of the manifest template next to the binding src/ directory",
    )

    @field_validator("file_extension")
    @classmethod
    def _extension_has_dot(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError(f"file_extension must start with '.', got '{value}'")
        return value

    def resolve_bindings_path(self) -> str:
        """Fill the language and package into the bindings path template."""
        return self.bindings_path.format(language=self.language, package=self.package)


class TransplantConfig(BaseModel):
    """Where bindings land inside the target repository."""

    model_config = _MODEL_CONFIG

    source_subdir: str = Field(
        default="src",
        description="Directory under the target root that receives the binding files",
    )


class RewriteRuleConfig(BaseModel):
    """A line-level regular expression substitution."""

    model_config = _MODEL_CONFIG

    name: str = Field(description="Identifier reported in logs and errors")
    pattern: str = Field(description="Python regular expression matched against each line")
    replacement: str = Field(
        description="re.sub template; may contain newlines to expand one line into several"
    )
    files: str = Field(default="*", description="Glob restricting which file names the rule touches")

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as err:
            raise ValueError(f"pattern does not compile: {err}") from err
        return value


class DeleteRuleConfig(BaseModel):
    """Removes a binding file and every line that references it."""

    model_config = _MODEL_CONFIG

    name: str = Field(description="Identifier reported in logs and errors")
    filename: str = Field(description="Binding file to remove, relative to the source directory")
    references: list[str] = Field(
        default_factory=list,
        description='Substrings marking referencing lines; empty means include("<filename>")',
    )


def _default_rewrite_rules() -> list[RewriteRuleConfig]:
    return [
        RewriteRuleConfig(
            name="local-library-path",
            pattern=DEFAULT_LIBRARY_PATTERN,
            replacement=DEFAULT_LIBRARY_REPLACEMENT,
        )
    ]


def _default_delete_rules() -> list[DeleteRuleConfig]:
    return [
        DeleteRuleConfig(
            name="test-binding",
            filename="test_julia_binding.jl",
            references=[
                'include("test_julia_binding.jl")',
                "test_julia_binding = _Internal.test_julia_binding",
            ],
        )
    ]


class PatchConfig(BaseModel):
    """The rule set applied to transplanted bindings. Delete rules run before rewrite rules."""

    model_config = _MODEL_CONFIG

    strict: bool = Field(
        default=False,
        description="Fail when a rule matches nothing instead of logging and moving on",
    )
    rewrite_rules: list[RewriteRuleConfig] = Field(default_factory=_default_rewrite_rules)
    delete_rules: list[DeleteRuleConfig] = Field(default_factory=_default_delete_rules)


class ManifestEntryConfig(BaseModel):
    """One (section, key, value) triple to enforce in the target manifest."""

    model_config = _MODEL_CONFIG

    section: str = Field(description="Table name, e.g. 'deps' or 'compat'; empty string for the root table")
    key: str
    value: str


class ManifestConfig(BaseModel):
    """Dependency and compatibility entries to enforce in the target manifest."""

    model_config = _MODEL_CONFIG

    entries: list[ManifestEntryConfig] = Field(default_factory=list)
    version: Optional[str] = Field(
        default=None,
        description="When set, the root-level version key is set to this value",
    )


class PublishConfig(BaseModel):
    """Version control staging and the registry update request."""

    model_config = _MODEL_CONFIG

    stage: bool = Field(default=True, description="Run `git add` over the changed paths")
    package_name: str = Field(default="mlpack", description="Name submitted to the registry")
    registry_url: Optional[str] = Field(
        default=None,
        description="HTTP endpoint accepting registry update requests",
    )
    token_env: Optional[str] = Field(
        default=None,
        description="Environment variable holding a bearer token for the registry",
    )
    timeout_seconds: float = Field(default=30.0, gt=0.0)


class ReleaseToolConfig(BaseModel):
    """
    Top-level config container.

    Only `global:` is required in YAML; every other section falls back to the
    mlpack Julia defaults.
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", validate_default=True, populate_by_name=True
    )

    global_config: GlobalConfig = Field(alias="global")
    locator: LocatorConfig = Field(default_factory=LocatorConfig)
    transplant: TransplantConfig = Field(default_factory=TransplantConfig)
    patch: PatchConfig = Field(default_factory=PatchConfig)
    manifest: ManifestConfig = Field(default_factory=ManifestConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)


def default_config() -> ReleaseToolConfig:
    """The configuration used when no config file is given."""
    return ReleaseToolConfig.model_validate({"global": {"config_version": "1.0.0"}})
