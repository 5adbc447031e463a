# SPDX-License-Identifier: MIT
"""The build phase: run make or MSBuild over the generated files."""
