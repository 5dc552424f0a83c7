# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type graph nodes and the structural queries over them.

Nodes are tagged by kind (class, interface, enum) and reference other nodes
only through FQN handles resolved by the registry. All traversals use explicit
visited sets; the loader guarantees that class chains and interface extension
are acyclic and that every handle resolves, so every query here is total.

Derived answers are memoised in the registry:
- per-node closures (ancestors, interface closure, data-type test) depend only
  on the node's dependency closure and never change once committed,
- implementor lists depend on the whole loaded set and are dropped on every
  commit.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple, TypeVar

from asmreflect.manifest.model import ClassDef, Docs, EnumDef, InterfaceDef, TypeDef, TypeKind
from asmreflect.typesys.members import Initializer, Method, Property

if TYPE_CHECKING:
	from asmreflect.typesys.assembly import Assembly
	from asmreflect.typesys.registry import TypeRegistry

_T = TypeVar("_T")


class Type:
	"""Base of all type graph nodes."""

	kind: TypeKind

	def __init__(self, registry: "TypeRegistry", assembly: "Assembly", definition: TypeDef) -> None:
		self.registry = registry
		self.assembly = assembly
		self.definition = definition

	@property
	def fqn(self) -> str:
		return self.definition.fqn

	@property
	def name(self) -> str:
		return self.definition.name

	@property
	def namespace(self) -> Optional[str]:
		return self.definition.namespace

	@property
	def docs(self) -> Docs:
		return self.definition.docs

	def is_class_type(self) -> bool:
		return self.kind is TypeKind.CLASS

	def is_interface_type(self) -> bool:
		return self.kind is TypeKind.INTERFACE

	def is_enum_type(self) -> bool:
		return self.kind is TypeKind.ENUM

	def is_data_type(self) -> bool:
		return False

	def extends(self, other: "Type") -> bool:
		"""True if this type is `other` or inherits from it. Never raises."""
		return other.fqn == self.fqn

	def get_interfaces(self, inherited: bool = False) -> List["InterfaceType"]:
		return []

	@property
	def all_implementations(self) -> List["Type"]:
		"""Classes that implement this interface (ascending FQN), then the interface itself."""
		return []

	def _memo(self, what: str, compute: Callable[[], _T]) -> _T:
		return self.registry.memo((what, self.fqn), compute)

	def _lookup(self, fqn: str) -> "Type":
		return self.registry.find_by_fqn(fqn)

	def __repr__(self) -> str:
		return f"<{type(self).__name__} {self.fqn}>"


def _collapse_members(owners: Iterable[Type], members_of: Callable[[Type], Tuple], wrap: Callable) -> list:
	# Most-derived owner first; a name already reported is not reported again.
	out = []
	seen: set[str] = set()
	for owner in owners:
		for m in members_of(owner):
			if m.name in seen:
				continue
			seen.add(m.name)
			out.append(wrap(m, owner))
	return out


def _interface_closure(registry: "TypeRegistry", start: Iterable[str]) -> Tuple[str, ...]:
	"""Breadth-first closure over interface extension, in discovery order."""
	order: List[str] = []
	seen: set[str] = set()
	queue = deque(start)
	while queue:
		fqn = queue.popleft()
		if fqn in seen:
			continue
		seen.add(fqn)
		order.append(fqn)
		iface = registry.find_by_fqn(fqn)
		queue.extend(iface.definition.interfaces)  # type: ignore[union-attr]
	return tuple(order)


class ClassType(Type):
	kind = TypeKind.CLASS
	definition: ClassDef

	@property
	def abstract(self) -> bool:
		return self.definition.abstract

	@property
	def base(self) -> Optional["ClassType"]:
		if self.definition.base is None:
			return None
		return self._lookup(self.definition.base)  # type: ignore[return-value]

	@property
	def initializer(self) -> Optional[Initializer]:
		if self.definition.initializer is None:
			return None
		return Initializer(definition=self.definition.initializer, parent_type=self)

	def get_ancestors(self) -> List["ClassType"]:
		"""Base-class chain, nearest base first, root class last."""

		def compute() -> Tuple[str, ...]:
			chain: List[str] = []
			cur = self.definition.base
			while cur is not None:
				chain.append(cur)
				cur = self._lookup(cur).definition.base  # type: ignore[union-attr]
			return tuple(chain)

		return [self._lookup(f) for f in self._memo("ancestors", compute)]  # type: ignore[misc]

	def _interface_closure_fqns(self) -> Tuple[str, ...]:
		def compute() -> Tuple[str, ...]:
			declared: List[str] = []
			for cls in [self, *self.get_ancestors()]:
				declared.extend(cls.definition.interfaces)
			return _interface_closure(self.registry, declared)

		return self._memo("class-interfaces", compute)

	def get_interfaces(self, inherited: bool = False) -> List["InterfaceType"]:
		"""Declared interfaces, or with `inherited` the full closure through bases and ancestors."""
		fqns = self._interface_closure_fqns() if inherited else self.definition.interfaces
		return [self._lookup(f) for f in fqns]  # type: ignore[misc]

	def extends(self, other: Type) -> bool:
		if other.fqn == self.fqn:
			return True
		if isinstance(other, ClassType):
			return any(a.fqn == other.fqn for a in self.get_ancestors())
		if isinstance(other, InterfaceType):
			return other.fqn in self._interface_closure_fqns()
		return False

	@property
	def own_methods(self) -> List[Method]:
		return [Method(definition=m, parent_type=self) for m in self.definition.methods]

	@property
	def own_properties(self) -> List[Property]:
		return [Property(definition=p, parent_type=self) for p in self.definition.properties]

	def get_methods(self, inherited: bool = False) -> List[Method]:
		"""
		Methods of this class.

		Without `inherited`, only methods declared here. With it, walk the base
		chain from this class to the root: each method name appears once,
		attributed to the most-derived class declaring it. Order is this class's
		methods in declaration order, then each ancestor's newly introduced ones.
		"""
		if not inherited:
			return self.own_methods
		return _collapse_members(
			[self, *self.get_ancestors()],
			lambda t: t.definition.methods,
			lambda m, t: Method(definition=m, parent_type=t),
		)

	def get_properties(self, inherited: bool = False) -> List[Property]:
		"""Properties of this class; same override rule as `get_methods`."""
		if not inherited:
			return self.own_properties
		return _collapse_members(
			[self, *self.get_ancestors()],
			lambda t: t.definition.properties,
			lambda p, t: Property(definition=p, parent_type=t),
		)


class InterfaceType(Type):
	kind = TypeKind.INTERFACE
	definition: InterfaceDef

	def _base_closure_fqns(self) -> Tuple[str, ...]:
		"""This interface followed by its transitive bases, breadth-first."""
		return self._memo("interface-closure", lambda: _interface_closure(self.registry, [self.fqn]))

	def get_interfaces(self, inherited: bool = False) -> List["InterfaceType"]:
		fqns = self._base_closure_fqns()[1:] if inherited else self.definition.interfaces
		return [self._lookup(f) for f in fqns]  # type: ignore[misc]

	def extends(self, other: Type) -> bool:
		if isinstance(other, InterfaceType):
			return other.fqn in self._base_closure_fqns()
		return False

	def is_data_type(self) -> bool:
		"""True when this interface and all of its bases declare no methods."""

		def compute() -> bool:
			for fqn in self._base_closure_fqns():
				if self._lookup(fqn).definition.methods:  # type: ignore[union-attr]
					return False
			return True

		return self._memo("datatype", compute)

	@property
	def all_implementations(self) -> List[Type]:
		def compute() -> Tuple[str, ...]:
			impls = sorted(c.fqn for c in self.registry.classes if c.extends(self))
			return (*impls, self.fqn)

		fqns = self.registry.memo(("implementations", self.fqn), compute, per_generation=True)
		return [self._lookup(f) for f in fqns]

	@property
	def own_methods(self) -> List[Method]:
		return [Method(definition=m, parent_type=self) for m in self.definition.methods]

	@property
	def own_properties(self) -> List[Property]:
		return [Property(definition=p, parent_type=self) for p in self.definition.properties]

	def _closure_types(self) -> List["InterfaceType"]:
		return [self._lookup(f) for f in self._base_closure_fqns()]  # type: ignore[misc]

	def get_methods(self, inherited: bool = False) -> List[Method]:
		"""Declared methods, or with `inherited` the collapsed set over the base closure."""
		if not inherited:
			return self.own_methods
		return _collapse_members(
			self._closure_types(),
			lambda t: t.definition.methods,
			lambda m, t: Method(definition=m, parent_type=t),
		)

	def get_properties(self, inherited: bool = False) -> List[Property]:
		if not inherited:
			return self.own_properties
		return _collapse_members(
			self._closure_types(),
			lambda t: t.definition.properties,
			lambda p, t: Property(definition=p, parent_type=t),
		)


class EnumType(Type):
	kind = TypeKind.ENUM
	definition: EnumDef

	@property
	def members(self) -> List[str]:
		return [m.name for m in self.definition.members]


_NODE_CLASSES = {
	TypeKind.CLASS: ClassType,
	TypeKind.INTERFACE: InterfaceType,
	TypeKind.ENUM: EnumType,
}


def make_type_node(registry: "TypeRegistry", assembly: "Assembly", definition: TypeDef) -> Type:
	return _NODE_CLASSES[definition.kind](registry, assembly, definition)


__all__ = ["Type", "ClassType", "InterfaceType", "EnumType", "make_type_node"]
