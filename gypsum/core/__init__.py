# SPDX-License-Identifier: MIT
"""Core types shared by the configure and build phases."""
