# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Assembly loader: root identifiers -> committed assemblies in a `TypeRegistry`.

A `load_all` call runs in three phases:

1) Fetch (async). Manifests for the roots and, wave by wave, for every declared
   dependency not already committed. Each resolution is one await. A per-name
   in-flight task makes concurrent requests for the same identifier (within one
   call or across concurrent calls on the same loader) share one resolution.
   A fetched manifest stays shared until the call that fetched it finishes,
   by which time its assembly is either committed or the call has failed.
2) Order (sync). Find dependency cycles over the fetched set and derive a
   dependency-first order. Cycles are found on data, so they fail fast instead
   of leaving loads waiting on each other.
3) Link and commit (sync, no awaits). Register types in a staging area, check
   FQN uniqueness, resolve every reference against the owning assembly plus its
   dependency closure, check reference kinds and inheritance cycles, then
   publish the whole batch to the registry at once.

Any failure raises out of `load_all` before phase 3 commits, so the registry
never holds a partial load.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from asmreflect.config import LoaderOptions
from asmreflect.core.errors import (
	DependencyCycleError,
	DuplicateFqnError,
	InheritanceCycleError,
	MalformedManifestError,
	ManifestResolutionError,
	ReflectError,
	UnresolvedReferenceError,
)
from asmreflect.manifest.decode import decode_manifest
from asmreflect.manifest.model import AssemblyManifest, ClassDef, InterfaceDef, TypeDef, TypeKind, reference_sites
from asmreflect.manifest.resolver import ManifestResolver
from asmreflect.typesys.assembly import Assembly
from asmreflect.typesys.registry import TypeRegistry
from asmreflect.typesys.types import make_type_node

if TYPE_CHECKING:
	from asmreflect.typesys.system import TypeSystem

logger = logging.getLogger(__name__)


class AssemblyLoader:
	def __init__(self, registry: TypeRegistry, resolver: ManifestResolver, *, options: Optional[LoaderOptions] = None) -> None:
		self.registry = registry
		self.resolver = resolver
		self.options = options or LoaderOptions()
		self._inflight: Dict[str, "asyncio.Task[AssemblyManifest]"] = {}

	# Phase 1: fetch ------------------------------------------------------

	async def _resolve_and_decode(self, identifier: str) -> AssemblyManifest:
		logger.debug("resolving manifest for %s", identifier)
		try:
			if self.options.resolve_timeout is not None:
				raw = await asyncio.wait_for(self.resolver.resolve(identifier), self.options.resolve_timeout)
			else:
				raw = await self.resolver.resolve(identifier)
		except ReflectError:
			raise
		except asyncio.TimeoutError as err:
			raise ManifestResolutionError(
				f"timed out after {self.options.resolve_timeout}s resolving '{identifier}'", assembly=identifier
			) from err
		except OSError as err:
			raise ManifestResolutionError(f"cannot read manifest for '{identifier}': {err}", assembly=identifier) from err
		return decode_manifest(raw)

	def _forget(self, identifier: str, task: "asyncio.Task[AssemblyManifest]") -> None:
		# Failed resolutions are dropped at once so a later load retries them.
		# Successful ones stay until the load that fetched them commits or fails.
		if task.cancelled() or task.exception() is not None:
			if self._inflight.get(identifier) is task:
				del self._inflight[identifier]

	def _prune(self, identifiers: Iterable[str]) -> None:
		for ident in identifiers:
			task = self._inflight.get(ident)
			if task is not None and task.done():
				del self._inflight[ident]

	async def fetch(self, identifier: str, touched: Optional[set[str]] = None) -> AssemblyManifest:
		"""Resolve and decode one manifest, sharing any in-flight resolution of it."""
		if touched is not None:
			touched.add(identifier)
		task = self._inflight.get(identifier)
		if task is None:
			task = asyncio.ensure_future(self._resolve_and_decode(identifier))
			self._inflight[identifier] = task
			task.add_done_callback(lambda t, ident=identifier: self._forget(ident, t))
		# Shielded: one cancelled waiter must not cancel a resolution others share.
		return await asyncio.shield(task)

	async def _fetch_wave(self, identifiers: Sequence[str], touched: set[str]) -> List[AssemblyManifest]:
		tasks = [asyncio.ensure_future(self.fetch(i, touched)) for i in identifiers]
		try:
			return list(await asyncio.gather(*tasks))
		except BaseException:
			for t in tasks:
				t.cancel()
			raise

	async def _fetch_closure(
		self, identifiers: Sequence[str], touched: set[str]
	) -> tuple[Dict[str, AssemblyManifest], List[str]]:
		"""
		Fetch roots plus every uncommitted dependency.

		Returns (new manifests by assembly name in discovery order, root
		assembly names in request order).
		"""
		found: Dict[str, AssemblyManifest] = {}

		to_fetch: List[str] = []
		for ident in identifiers:
			if self.registry.has_assembly(ident):
				logger.debug("root %s already loaded", ident)
			elif ident not in to_fetch:
				to_fetch.append(ident)
		root_by_ident: Dict[str, str] = {}
		manifests = await self._fetch_wave(to_fetch, touched)
		for ident, m in zip(to_fetch, manifests):
			root_by_ident[ident] = m.name
			if m.name not in found and not self.registry.has_assembly(m.name):
				found[m.name] = m
		root_names = [root_by_ident.get(ident, ident) for ident in identifiers]

		requested: set[str] = set(found)
		wave = self._next_wave(found.values(), requested)
		while wave:
			manifests = await self._fetch_wave(wave, touched)
			for name, m in zip(wave, manifests):
				if m.name != name:
					raise MalformedManifestError(
						f"dependency '{name}' resolved to a manifest declaring assembly '{m.name}'", assembly=name
					)
				if not self.registry.has_assembly(name):
					found[name] = m
			wave = self._next_wave(manifests, requested)
		return found, root_names

	def _next_wave(self, manifests: Iterable[AssemblyManifest], requested: set[str]) -> List[str]:
		wave: List[str] = []
		for m in manifests:
			for dep in m.dependency_names:
				if dep in requested or self.registry.has_assembly(dep):
					continue
				requested.add(dep)
				wave.append(dep)
		return wave

	# Phase 2: order ------------------------------------------------------

	@staticmethod
	def _find_cycle(manifests: Dict[str, AssemblyManifest]) -> Optional[List[str]]:
		vis: set[str] = set()
		stack: List[str] = []
		onstack: set[str] = set()

		def dfs(n: str) -> Optional[List[str]]:
			vis.add(n)
			stack.append(n)
			onstack.add(n)
			for m in manifests[n].dependency_names:
				if m not in manifests:
					continue
				if m not in vis:
					c = dfs(m)
					if c is not None:
						return c
				elif m in onstack:
					i = stack.index(m)
					return stack[i:] + [m]
			stack.pop()
			onstack.remove(n)
			return None

		for n in manifests:
			if n not in vis:
				c = dfs(n)
				if c is not None:
					return c
		return None

	@staticmethod
	def _dependency_order(manifests: Dict[str, AssemblyManifest]) -> List[str]:
		order: List[str] = []
		done: set[str] = set()

		def visit(n: str) -> None:
			if n in done:
				return
			done.add(n)
			for dep in manifests[n].dependency_names:
				if dep in manifests:
					visit(dep)
			order.append(n)

		for n in manifests:
			visit(n)
		return order

	# Phase 3: link -------------------------------------------------------

	def _dependency_closure(self, name: str, manifests: Dict[str, AssemblyManifest]) -> set[str]:
		out: set[str] = set()
		todo = [name]
		while todo:
			n = todo.pop()
			if n in out:
				continue
			out.add(n)
			m = manifests.get(n)
			if m is not None:
				todo.extend(m.dependency_names)
			else:
				todo.extend(self.registry.find_assembly(n).dependency_names)
		return out

	def _link(self, manifests: Dict[str, AssemblyManifest], order: Sequence[str]) -> None:
		"""Validate the staged batch against itself and the registry. Raises on the first problem."""
		staged: Dict[str, TypeDef] = {}
		for name in order:
			for td in manifests[name].types:
				prev = staged.get(td.fqn)
				committed = self.registry.try_find_fqn(td.fqn)
				if prev is not None or committed is not None:
					other = prev.assembly if prev is not None else committed.assembly.name  # type: ignore[union-attr]
					raise DuplicateFqnError(
						f"type '{td.fqn}' is declared by both '{other}' and '{name}'", assembly=name, fqn=td.fqn
					)
				staged[td.fqn] = td

		def lookup(fqn: str) -> Optional[TypeDef]:
			td = staged.get(fqn)
			if td is not None:
				return td
			node = self.registry.try_find_fqn(fqn)
			return node.definition if node is not None else None

		for name in order:
			visible = self._dependency_closure(name, manifests)
			for td in manifests[name].types:
				for site in reference_sites(td):
					target = lookup(site.fqn)
					if target is None or target.assembly not in visible:
						raise UnresolvedReferenceError(
							f"type '{td.fqn}' references unknown type '{site.fqn}' ({site.site})",
							assembly=name,
							fqn=td.fqn,
							reference=site.fqn,
						)
					if site.site == "base" and target.kind is not TypeKind.CLASS:
						raise MalformedManifestError(
							f"base of class '{td.fqn}' is a {target.kind.value}, not a class",
							assembly=name,
							fqn=td.fqn,
						)
					if site.site == "interfaces" and target.kind is not TypeKind.INTERFACE:
						raise MalformedManifestError(
							f"'{td.fqn}' lists {target.kind.value} '{site.fqn}' as an interface",
							assembly=name,
							fqn=td.fqn,
						)

		for name in order:
			for td in manifests[name].types:
				if isinstance(td, ClassDef):
					self._check_class_chain(td, lookup)
				elif isinstance(td, InterfaceDef):
					self._check_interface_bases(td, lookup)

	@staticmethod
	def _check_class_chain(td: ClassDef, lookup) -> None:
		chain = [td.fqn]
		cur: Optional[str] = td.base
		while cur is not None:
			if cur in chain:
				raise InheritanceCycleError(
					f"class '{td.fqn}' inherits from itself", assembly=td.assembly, fqn=td.fqn, path=chain + [cur]
				)
			chain.append(cur)
			cur = lookup(cur).base

	@staticmethod
	def _check_interface_bases(td: InterfaceDef, lookup) -> None:
		stack: List[str] = []
		onstack: set[str] = set()
		done: set[str] = set()

		def dfs(fqn: str) -> None:
			stack.append(fqn)
			onstack.add(fqn)
			for base in lookup(fqn).interfaces:
				if base in onstack:
					i = stack.index(base)
					raise InheritanceCycleError(
						f"interface '{base}' extends itself",
						assembly=td.assembly,
						fqn=base,
						path=stack[i:] + [base],
					)
				if base not in done:
					dfs(base)
			stack.pop()
			onstack.remove(fqn)
			done.add(fqn)

		dfs(td.fqn)

	def _build(self, manifests: Dict[str, AssemblyManifest], order: Sequence[str]) -> List[Assembly]:
		out: List[Assembly] = []
		for name in order:
			asm = Assembly(self.registry, manifests[name])
			asm._attach_types(tuple(make_type_node(self.registry, asm, td) for td in manifests[name].types))
			out.append(asm)
		return out

	# Entry points --------------------------------------------------------

	async def load_roots(self, identifiers: Sequence[str]) -> List[Assembly]:
		"""
		Load `identifiers` as roots; return their assemblies in request order.

		All-or-nothing: on any error nothing from this call is committed.
		"""
		touched: set[str] = set()
		try:
			found, root_names = await self._fetch_closure(identifiers, touched)

			# No awaits past this point: commit sees exactly the registry state
			# the checks below were made against.
			for name in [n for n in found if self.registry.has_assembly(n)]:
				# Committed meanwhile by a concurrent load of the same loader.
				del found[name]
			cycle = self._find_cycle(found)
			if cycle is not None:
				raise DependencyCycleError(
					f"dependency cycle detected: {' -> '.join(cycle)}", assembly=cycle[0], path=cycle
				)
			order = self._dependency_order(found)
			self._link(found, order)
			assemblies = self._build(found, order)
			self.registry.commit(assemblies, root_names)
		finally:
			self._prune(touched)
		if assemblies:
			logger.info("loaded %d assemblies: %s", len(assemblies), ", ".join(a.name for a in assemblies))
		return [self.registry.find_assembly(n) for n in root_names]

	async def load(self, identifier: str) -> Assembly:
		(asm,) = await self.load_roots([identifier])
		return asm


def load_type_system(
	identifiers: Sequence[str],
	*,
	resolver: Optional[ManifestResolver] = None,
	options: Optional[LoaderOptions] = None,
	system: Optional["TypeSystem"] = None,
) -> "TypeSystem":
	"""
	Synchronous convenience: load `identifiers` into a (new) `TypeSystem`.

	Uses a `DirectoryManifestResolver` built from `options` unless a resolver
	is given.
	"""
	from asmreflect.typesys.system import TypeSystem

	opts = options or LoaderOptions()
	if system is None:
		system = TypeSystem(resolver if resolver is not None else opts.make_resolver(), options=opts)
	asyncio.run(system.load_all(identifiers))
	return system


__all__ = ["AssemblyLoader", "load_type_system"]
