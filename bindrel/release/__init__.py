# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release subsystem for bindrel.

Locates generated bindings in a build tree, transplants them into the
downstream package repository, patches them, updates the package manifest,
stages the result in git and optionally asks the registry to pick up the
new version. `pipeline.run_release` strings the stages together.
"""
