# SPDX-License-Identifier: MIT
"""The configure phase: toolchain resolution and generator invocation."""
