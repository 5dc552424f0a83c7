# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
In-memory manifest model for one assembly.

Pure data: frozen dataclasses produced by `decode.decode_manifest`. References
to other types (base class, implemented/extended interfaces, parameter, return
and property types) are kept as unresolved FQN strings / `TypeRef` values; the
loader links them once the assembly's dependencies are loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple, Union

from asmreflect.manifest.typeref import TypeRef, referenced_fqns


class TypeKind(Enum):
	"""Kinds of declared types."""

	CLASS = "class"
	INTERFACE = "interface"
	ENUM = "enum"


@dataclass(frozen=True)
class Docs:
	summary: Optional[str] = None
	remarks: Optional[str] = None
	deprecated: Optional[str] = None
	stability: Optional[str] = None


@dataclass(frozen=True)
class Dependency:
	name: str
	version: Optional[str] = None  # declared range, informational only


@dataclass(frozen=True)
class ParameterDef:
	name: str
	type: TypeRef
	optional: bool = False
	variadic: bool = False


@dataclass(frozen=True)
class MethodDef:
	name: str
	parameters: Tuple[ParameterDef, ...] = ()
	returns: Optional[TypeRef] = None  # None means void
	returns_optional: bool = False
	static: bool = False
	abstract: bool = False
	is_async: bool = False
	protected: bool = False
	docs: Docs = field(default_factory=Docs)

	@property
	def variadic(self) -> bool:
		return bool(self.parameters) and self.parameters[-1].variadic


@dataclass(frozen=True)
class InitializerDef:
	parameters: Tuple[ParameterDef, ...] = ()
	protected: bool = False
	docs: Docs = field(default_factory=Docs)


@dataclass(frozen=True)
class PropertyDef:
	name: str
	type: TypeRef
	optional: bool = False
	immutable: bool = False
	static: bool = False
	abstract: bool = False
	protected: bool = False
	docs: Docs = field(default_factory=Docs)


@dataclass(frozen=True)
class EnumMemberDef:
	name: str
	docs: Docs = field(default_factory=Docs)


@dataclass(frozen=True)
class _TypeDefBase:
	fqn: str
	assembly: str
	name: str
	namespace: Optional[str]
	docs: Docs


@dataclass(frozen=True)
class ClassDef(_TypeDefBase):
	base: Optional[str] = None
	interfaces: Tuple[str, ...] = ()
	methods: Tuple[MethodDef, ...] = ()
	properties: Tuple[PropertyDef, ...] = ()
	abstract: bool = False
	initializer: Optional[InitializerDef] = None

	kind = TypeKind.CLASS


@dataclass(frozen=True)
class InterfaceDef(_TypeDefBase):
	interfaces: Tuple[str, ...] = ()
	methods: Tuple[MethodDef, ...] = ()
	properties: Tuple[PropertyDef, ...] = ()

	kind = TypeKind.INTERFACE


@dataclass(frozen=True)
class EnumDef(_TypeDefBase):
	members: Tuple[EnumMemberDef, ...] = ()

	kind = TypeKind.ENUM


TypeDef = Union[ClassDef, InterfaceDef, EnumDef]


@dataclass(frozen=True)
class TypeReferenceSite:
	"""One outgoing FQN reference of a type, with a human label for errors."""

	fqn: str
	site: str  # e.g. "base", "interfaces", "method add parameter x", "property value"


def reference_sites(td: TypeDef) -> Iterator[TypeReferenceSite]:
	"""Yield every FQN reference declared by `td`, in declaration order."""
	if isinstance(td, EnumDef):
		return
	if isinstance(td, ClassDef):
		if td.base is not None:
			yield TypeReferenceSite(fqn=td.base, site="base")
		if td.initializer is not None:
			for p in td.initializer.parameters:
				for fqn in referenced_fqns(p.type):
					yield TypeReferenceSite(fqn=fqn, site=f"initializer parameter {p.name}")
	for iface in td.interfaces:
		yield TypeReferenceSite(fqn=iface, site="interfaces")
	for m in td.methods:
		for p in m.parameters:
			for fqn in referenced_fqns(p.type):
				yield TypeReferenceSite(fqn=fqn, site=f"method {m.name} parameter {p.name}")
		if m.returns is not None:
			for fqn in referenced_fqns(m.returns):
				yield TypeReferenceSite(fqn=fqn, site=f"method {m.name} returns")
	for prop in td.properties:
		for fqn in referenced_fqns(prop.type):
			yield TypeReferenceSite(fqn=fqn, site=f"property {prop.name}")


@dataclass(frozen=True)
class AssemblyManifest:
	"""Parsed manifest of one assembly."""

	name: str
	version: str
	dependencies: Tuple[Dependency, ...] = ()
	types: Tuple[TypeDef, ...] = ()
	description: Optional[str] = None
	homepage: Optional[str] = None
	license: Optional[str] = None
	schema: Optional[str] = None

	@property
	def dependency_names(self) -> Tuple[str, ...]:
		return tuple(d.name for d in self.dependencies)


__all__ = [
	"TypeKind",
	"Docs",
	"Dependency",
	"ParameterDef",
	"MethodDef",
	"InitializerDef",
	"PropertyDef",
	"EnumMemberDef",
	"ClassDef",
	"InterfaceDef",
	"EnumDef",
	"TypeDef",
	"TypeReferenceSite",
	"reference_sites",
	"AssemblyManifest",
]
