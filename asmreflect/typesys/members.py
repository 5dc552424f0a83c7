# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolved member views: methods, properties, parameters, initializers and type
references, each bound to the type node that declares it.

These wrap the immutable manifest definitions; they add only the links a
consumer needs (declaring type, resolved referenced types).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from asmreflect.manifest.model import Docs, InitializerDef, MethodDef, ParameterDef, PropertyDef
from asmreflect.manifest.typeref import CollectionKind, CollectionRef, NamedRef, PrimitiveRef, TypeRef, UnionRef

if TYPE_CHECKING:
	from asmreflect.typesys.types import ClassType, Type


@dataclass(frozen=True)
class TypeReference:
	"""A type reference whose named targets resolve through the registry."""

	owner: "Type"
	ref: Optional[TypeRef]  # None means void
	optional: bool = False

	@property
	def void(self) -> bool:
		return self.ref is None

	@property
	def primitive(self) -> Optional[str]:
		return self.ref.primitive if isinstance(self.ref, PrimitiveRef) else None

	@property
	def fqn(self) -> Optional[str]:
		return self.ref.fqn if isinstance(self.ref, NamedRef) else None

	@property
	def type(self) -> Optional["Type"]:
		"""The referenced type node for a named reference, else None."""
		if isinstance(self.ref, NamedRef):
			return self.owner.registry.find_by_fqn(self.ref.fqn)
		return None

	@property
	def array_of_type(self) -> Optional["TypeReference"]:
		if isinstance(self.ref, CollectionRef) and self.ref.kind is CollectionKind.ARRAY:
			return TypeReference(owner=self.owner, ref=self.ref.element)
		return None

	@property
	def map_of_type(self) -> Optional["TypeReference"]:
		if isinstance(self.ref, CollectionRef) and self.ref.kind is CollectionKind.MAP:
			return TypeReference(owner=self.owner, ref=self.ref.element)
		return None

	@property
	def union_of_types(self) -> Optional[List["TypeReference"]]:
		if isinstance(self.ref, UnionRef):
			return [TypeReference(owner=self.owner, ref=t) for t in self.ref.types]
		return None

	def __str__(self) -> str:
		if self.ref is None:
			return "void"
		return f"{self.ref}?" if self.optional else str(self.ref)


@dataclass(frozen=True)
class Parameter:
	definition: ParameterDef
	parent_type: "Type"

	@property
	def name(self) -> str:
		return self.definition.name

	@property
	def type(self) -> TypeReference:
		return TypeReference(owner=self.parent_type, ref=self.definition.type, optional=self.definition.optional)

	@property
	def optional(self) -> bool:
		return self.definition.optional

	@property
	def variadic(self) -> bool:
		return self.definition.variadic


@dataclass(frozen=True)
class Method:
	"""A method paired with the type that declares it."""

	definition: MethodDef
	parent_type: "Type"

	@property
	def name(self) -> str:
		return self.definition.name

	@property
	def parameters(self) -> List[Parameter]:
		return [Parameter(definition=p, parent_type=self.parent_type) for p in self.definition.parameters]

	@property
	def returns(self) -> TypeReference:
		return TypeReference(owner=self.parent_type, ref=self.definition.returns, optional=self.definition.returns_optional)

	@property
	def static(self) -> bool:
		return self.definition.static

	@property
	def abstract(self) -> bool:
		return self.definition.abstract

	@property
	def is_async(self) -> bool:
		return self.definition.is_async

	@property
	def protected(self) -> bool:
		return self.definition.protected

	@property
	def variadic(self) -> bool:
		return self.definition.variadic

	@property
	def docs(self) -> Docs:
		return self.definition.docs

	def signature(self) -> str:
		"""Render `name(a: T, b?: U, ...rest: V): R` for listings."""
		parts: List[str] = []
		for p in self.definition.parameters:
			prefix = "..." if p.variadic else ""
			mark = "?" if p.optional else ""
			parts.append(f"{prefix}{p.name}{mark}: {p.type}")
		return f"{self.name}({', '.join(parts)}): {self.returns}"


@dataclass(frozen=True)
class Property:
	definition: PropertyDef
	parent_type: "Type"

	@property
	def name(self) -> str:
		return self.definition.name

	@property
	def type(self) -> TypeReference:
		return TypeReference(owner=self.parent_type, ref=self.definition.type, optional=self.definition.optional)

	@property
	def optional(self) -> bool:
		return self.definition.optional

	@property
	def immutable(self) -> bool:
		return self.definition.immutable

	@property
	def static(self) -> bool:
		return self.definition.static

	@property
	def abstract(self) -> bool:
		return self.definition.abstract

	@property
	def protected(self) -> bool:
		return self.definition.protected

	@property
	def docs(self) -> Docs:
		return self.definition.docs


@dataclass(frozen=True)
class Initializer:
	definition: InitializerDef
	parent_type: "ClassType"

	@property
	def parameters(self) -> List[Parameter]:
		return [Parameter(definition=p, parent_type=self.parent_type) for p in self.definition.parameters]

	@property
	def variadic(self) -> bool:
		params = self.definition.parameters
		return bool(params) and params[-1].variadic


__all__ = ["TypeReference", "Parameter", "Method", "Property", "Initializer"]
