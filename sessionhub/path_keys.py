"""Mapping between working directories and transcript project directory names.

The agent tooling stores each project's transcripts under a directory named after
the canonical working directory, with every path separator and every underscore
replaced by a dash (``/Users/foo/my_project`` -> ``-Users-foo-my-project``).

The inverse can only be approximate: after encoding, a dash that was a separator,
an underscore or a literal dash are indistinguishable. ``path_key_to_cwd`` turns
every dash back into a separator, so any cwd recovered from a directory name alone
may differ from the real one.
"""
from __future__ import annotations

import os

_SEPARATORS = {"/", os.sep} | ({os.altsep} if os.altsep else set())


def _canonicalize(cwd: str) -> str:
    # Unresolvable paths are used literally. realpath("") would be the process cwd.
    if not cwd:
        return cwd
    try:
        return os.path.realpath(cwd, strict=True)
    except (OSError, ValueError):
        return cwd


def cwd_to_path_key(cwd: str) -> str:
    resolved = _canonicalize(cwd)
    return "".join("-" if ch in _SEPARATORS or ch == "_" else ch for ch in resolved)


def path_key_to_cwd(path_key: str) -> str:
    """Approximate inverse of :func:`cwd_to_path_key` (lossy, see module docstring)."""
    return path_key.replace("-", "/")
