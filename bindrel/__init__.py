# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""bindrel — packages generated language bindings into a downstream repository."""

__version__ = "0.1.0"
