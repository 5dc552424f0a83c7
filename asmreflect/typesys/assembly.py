# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""Loaded assembly: a manifest plus the type nodes it declares."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple

from asmreflect.core.errors import NotFoundError
from asmreflect.manifest.model import AssemblyManifest

if TYPE_CHECKING:
	from asmreflect.typesys.registry import TypeRegistry
	from asmreflect.typesys.types import ClassType, EnumType, InterfaceType, Type


class Assembly:
	def __init__(self, registry: "TypeRegistry", manifest: AssemblyManifest) -> None:
		self.registry = registry
		self.manifest = manifest
		self._types: Tuple["Type", ...] = ()

	def _attach_types(self, types: Tuple["Type", ...]) -> None:
		# Called once by the loader before the assembly is committed.
		self._types = types

	@property
	def name(self) -> str:
		return self.manifest.name

	@property
	def version(self) -> str:
		return self.manifest.version

	@property
	def description(self) -> Optional[str]:
		return self.manifest.description

	@property
	def is_root(self) -> bool:
		return self.registry.is_root(self.name)

	@property
	def dependency_names(self) -> Tuple[str, ...]:
		return self.manifest.dependency_names

	@property
	def dependencies(self) -> List["Assembly"]:
		return [self.registry.find_assembly(n) for n in self.manifest.dependency_names]

	@property
	def types(self) -> Tuple["Type", ...]:
		return self._types

	@property
	def classes(self) -> List["ClassType"]:
		return [t for t in self._types if t.is_class_type()]  # type: ignore[misc]

	@property
	def interfaces(self) -> List["InterfaceType"]:
		return [t for t in self._types if t.is_interface_type()]  # type: ignore[misc]

	@property
	def enums(self) -> List["EnumType"]:
		return [t for t in self._types if t.is_enum_type()]  # type: ignore[misc]

	def find_type(self, fqn: str) -> "Type":
		for t in self._types:
			if t.fqn == fqn:
				return t
		raise NotFoundError(f"type '{fqn}' is not declared by assembly '{self.name}'", assembly=self.name, fqn=fqn)

	def __repr__(self) -> str:
		return f"<Assembly {self.name}@{self.version}>"


__all__ = ["Assembly"]
