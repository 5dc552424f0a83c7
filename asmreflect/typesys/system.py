# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
TypeSystem: the consumer-facing owner of one registry and its loader.

A `TypeSystem` is constructed empty, filled by `load` / `load_all` and then
queried. It is not a process-wide singleton; every instance has its own
registry, and discarding the instance discards every assembly it loaded.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Type as PyType, TypeVar

from asmreflect.config import LoaderOptions
from asmreflect.core.errors import NotFoundError
from asmreflect.manifest.resolver import ManifestResolver
from asmreflect.typesys.assembly import Assembly
from asmreflect.typesys.loader import AssemblyLoader
from asmreflect.typesys.registry import TypeRegistry
from asmreflect.typesys.types import ClassType, EnumType, InterfaceType, Type

_N = TypeVar("_N", bound=Type)


class TypeSystem:
	def __init__(self, resolver: ManifestResolver, *, options: Optional[LoaderOptions] = None) -> None:
		self.options = options or LoaderOptions()
		self.registry = TypeRegistry()
		self.loader = AssemblyLoader(self.registry, resolver, options=self.options)

	# Loading ------------------------------------------------------------

	async def load(self, identifier: str) -> Assembly:
		"""Load one root (and its dependencies); return its assembly."""
		return await self.loader.load(identifier)

	async def load_all(self, identifiers: Sequence[str]) -> "TypeSystem":
		await self.loader.load_roots(list(identifiers))
		return self

	# Assemblies ---------------------------------------------------------

	@property
	def assemblies(self) -> List[Assembly]:
		return self.registry.assemblies

	@property
	def roots(self) -> List[Assembly]:
		return self.registry.roots

	def includes_assembly(self, name: str) -> bool:
		return self.registry.has_assembly(name)

	def find_assembly(self, name: str) -> Assembly:
		return self.registry.find_assembly(name)

	# Types --------------------------------------------------------------

	@property
	def classes(self) -> List[ClassType]:
		return self.registry.classes

	@property
	def interfaces(self) -> List[InterfaceType]:
		return self.registry.interfaces

	@property
	def enums(self) -> List[EnumType]:
		return self.registry.enums

	def all_types(self) -> List[Type]:
		return self.registry.all_types()

	def find_fqn(self, fqn: str) -> Type:
		return self.registry.find_by_fqn(fqn)

	find_by_fqn = find_fqn

	def try_find_fqn(self, fqn: str) -> Optional[Type]:
		return self.registry.try_find_fqn(fqn)

	def _find_kind(self, fqn: str, cls: PyType[_N], what: str) -> _N:
		t = self.registry.find_by_fqn(fqn)
		if not isinstance(t, cls):
			raise NotFoundError(f"type '{fqn}' is a {t.kind.value}, not {what}", fqn=fqn)
		return t

	def find_class(self, fqn: str) -> ClassType:
		return self._find_kind(fqn, ClassType, "a class")

	def find_interface(self, fqn: str) -> InterfaceType:
		return self._find_kind(fqn, InterfaceType, "an interface")

	def find_enum(self, fqn: str) -> EnumType:
		return self._find_kind(fqn, EnumType, "an enum")

	def __repr__(self) -> str:
		return f"<TypeSystem assemblies={len(self.registry.assemblies)} types={len(self.registry.all_types())}>"


__all__ = ["TypeSystem"]
