# SPDX-License-Identifier: MIT
"""Small helpers shared across gypsum."""
