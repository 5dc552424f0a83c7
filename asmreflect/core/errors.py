# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Structured errors for assembly loading and type queries.

Every error carries a stable `reason_code` plus whatever context is known at the
raise site (assembly name, type FQN, offending reference, cycle path). The CLI
renders them either as a single human line or as a JSON object.

Load-time errors (everything except `NotFoundError`) abort the enclosing
`load_all` call. `NotFoundError` is the only error a query raises.
"""

from __future__ import annotations

from typing import Any, Sequence


class ReflectError(Exception):
	"""Base class for all asmreflect errors."""

	reason_code = "reflect-error"

	def __init__(
		self,
		message: str,
		*,
		assembly: str | None = None,
		fqn: str | None = None,
		reference: str | None = None,
		path: Sequence[str] | None = None,
	) -> None:
		super().__init__(message)
		self.message = message
		self.assembly = assembly
		self.fqn = fqn
		self.reference = reference
		self.path = list(path) if path is not None else None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"assembly": self.assembly,
			"fqn": self.fqn,
			"reference": self.reference,
			"path": list(self.path) if self.path is not None else None,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.assembly:
			parts.append(f"assembly={self.assembly}")
		if self.fqn:
			parts.append(f"fqn={self.fqn}")
		if self.reference:
			parts.append(f"reference={self.reference}")
		if self.path:
			parts.append(f"path={' -> '.join(self.path)}")
		return " ".join(parts)


class ManifestResolutionError(ReflectError):
	"""A module identifier could not be located or its manifest could not be read."""

	reason_code = "manifest-resolution"


class MalformedManifestError(ReflectError, ValueError):
	"""A manifest violates the expected shape."""

	reason_code = "malformed-manifest"


class InheritanceCycleError(MalformedManifestError):
	"""A class chain or interface extension set loops back on itself."""

	reason_code = "inheritance-cycle"


class DuplicateFqnError(ReflectError):
	"""Two types claim the same fully-qualified name."""

	reason_code = "duplicate-fqn"


class UnresolvedReferenceError(ReflectError):
	"""A base/implements/parameter/return/property reference never resolves."""

	reason_code = "unresolved-reference"


class DependencyCycleError(ReflectError):
	"""Assemblies depend on each other cyclically."""

	reason_code = "dependency-cycle"


class NotFoundError(ReflectError, LookupError):
	"""Query-time lookup miss for a type FQN or an assembly name."""

	reason_code = "not-found"


__all__ = [
	"ReflectError",
	"ManifestResolutionError",
	"MalformedManifestError",
	"InheritanceCycleError",
	"DuplicateFqnError",
	"UnresolvedReferenceError",
	"DependencyCycleError",
	"NotFoundError",
]
