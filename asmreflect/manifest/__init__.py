# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Assembly manifests.

This package turns raw manifest data into the immutable manifest model:
- `typeref`: type references (structured JSON or compact lark-parsed strings),
- `model`: frozen dataclasses for assemblies, types and members,
- `decode`: shape validation, raw data -> `AssemblyManifest`,
- `resolver`: module identifier -> raw data (directories, memory).

Nothing here looks across assemblies; linking is the loader's job.
"""

from __future__ import annotations

__all__ = [
	"decode",
	"model",
	"resolver",
	"typeref",
]
