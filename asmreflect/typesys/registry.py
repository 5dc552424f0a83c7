# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type registry: the arena that owns every committed assembly and type node.

Type nodes refer to each other by FQN handle and look the target up here, so
the registry is the only place holding node objects. It only grows through
`commit`, which the loader calls once per successful `load_all`; queries never
observe a half-loaded assembly set.

`generation` increases on every commit. Memoised answers that depend on the
whole loaded set (e.g. implementor lists) live in a per-generation table that
each commit clears; answers that depend only on a node's own dependency
closure are kept forever.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Hashable, Iterable, List, Optional, Sequence

from asmreflect.core.errors import NotFoundError

if TYPE_CHECKING:
	from asmreflect.typesys.assembly import Assembly
	from asmreflect.typesys.types import ClassType, EnumType, InterfaceType, Type


class TypeRegistry:
	def __init__(self) -> None:
		self._assemblies: Dict[str, "Assembly"] = {}
		self._types: Dict[str, "Type"] = {}
		self._root_names: set[str] = set()
		self._memo: Dict[Hashable, Any] = {}
		self._generation_memo: Dict[Hashable, Any] = {}
		self.generation = 0

	# Assemblies ---------------------------------------------------------

	@property
	def assemblies(self) -> List["Assembly"]:
		"""All committed assemblies, in commit (dependency-first) order."""
		return list(self._assemblies.values())

	@property
	def roots(self) -> List["Assembly"]:
		"""Assemblies loaded as explicit roots, in commit order."""
		return [a for a in self._assemblies.values() if a.name in self._root_names]

	def has_assembly(self, name: str) -> bool:
		return name in self._assemblies

	def is_root(self, name: str) -> bool:
		return name in self._root_names

	def try_find_assembly(self, name: str) -> Optional["Assembly"]:
		if not isinstance(name, str):
			return None
		return self._assemblies.get(name)

	def find_assembly(self, name: str) -> "Assembly":
		asm = self.try_find_assembly(name)
		if asm is None:
			raise NotFoundError(f"assembly '{name}' is not loaded", assembly=name)
		return asm

	# Types --------------------------------------------------------------

	def try_find_fqn(self, fqn: str) -> Optional["Type"]:
		if not isinstance(fqn, str):
			return None
		return self._types.get(fqn)

	def find_by_fqn(self, fqn: str) -> "Type":
		t = self.try_find_fqn(fqn)
		if t is None:
			raise NotFoundError(f"type '{fqn}' is not loaded", fqn=fqn)
		return t

	def all_types(self) -> List["Type"]:
		"""Every committed type, assembly by assembly in declaration order."""
		return list(self._types.values())

	@property
	def classes(self) -> List["ClassType"]:
		return [t for t in self._types.values() if t.is_class_type()]  # type: ignore[misc]

	@property
	def interfaces(self) -> List["InterfaceType"]:
		return [t for t in self._types.values() if t.is_interface_type()]  # type: ignore[misc]

	@property
	def enums(self) -> List["EnumType"]:
		return [t for t in self._types.values() if t.is_enum_type()]  # type: ignore[misc]

	# Loader-facing mutation ----------------------------------------------

	def commit(self, assemblies: Sequence["Assembly"], roots: Iterable[str]) -> None:
		"""
		Publish a fully linked batch of assemblies and mark roots.

		Callers must have checked FQN uniqueness against this registry without
		yielding to the event loop since; commit itself performs no checks.
		"""
		for asm in assemblies:
			self._assemblies[asm.name] = asm
			for t in asm.types:
				self._types[t.fqn] = t
		for name in roots:
			self.promote_root(name)
		self._generation_memo.clear()
		self.generation += 1

	def promote_root(self, name: str) -> None:
		"""Mark a committed assembly as a root (idempotent)."""
		if name not in self._assemblies:
			raise NotFoundError(f"assembly '{name}' is not loaded", assembly=name)
		self._root_names.add(name)

	# Memo ---------------------------------------------------------------

	def memo(self, key: Hashable, compute, *, per_generation: bool = False):
		"""
		Return the cached value for `key`, computing it on first use.

		Values must be pure functions of the key, or with `per_generation` of
		the key and the committed set; those are dropped on the next commit.
		"""
		table = self._generation_memo if per_generation else self._memo
		try:
			return table[key]
		except KeyError:
			val = compute()
			table[key] = val
			return val


__all__ = ["TypeRegistry"]
