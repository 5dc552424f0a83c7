# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

import pytest

from asmreflect.config import LoaderOptions
from asmreflect.core.errors import (
	DependencyCycleError,
	DuplicateFqnError,
	InheritanceCycleError,
	MalformedManifestError,
	ManifestResolutionError,
	UnresolvedReferenceError,
)
from asmreflect.manifest.resolver import DirectoryManifestResolver, MemoryManifestResolver
from asmreflect.typesys.loader import load_type_system
from asmreflect.typesys.system import TypeSystem


def _iface(fqn: str, *bases: str, **extra: Any) -> dict[str, Any]:
	return {"fqn": fqn, "kind": "interface", "interfaces": list(bases), **extra}


def _class(fqn: str, base: str | None = None, *ifaces: str, **extra: Any) -> dict[str, Any]:
	return {"fqn": fqn, "kind": "class", "base": base, "interfaces": list(ifaces), **extra}


@pytest.fixture
def diamond(make_manifest) -> dict[str, Any]:
	"""Two roots sharing `core` through `left` and `right`."""
	return {
		"core": make_manifest("core", _class("core.Base"), _iface("core.IThing")),
		"left": make_manifest("left", _class("left.L", "core.Base", "core.IThing"), deps=["core"]),
		"right": make_manifest("right", _class("right.R", "core.Base"), deps=["core"]),
		"app": make_manifest("app", _class("app.App", "left.L"), deps=["left", "right"]),
	}


def test_shared_dependency_loads_once(memory_system, diamond) -> None:
	ts = memory_system(diamond)
	asyncio.run(ts.load_all(["left", "right"]))
	assert [a.name for a in ts.assemblies] == ["core", "left", "right"]
	assert [a.name for a in ts.roots] == ["left", "right"]
	assert ts.loader.resolver.requests.count("core") == 1
	assert len([t for t in ts.all_types() if t.fqn == "core.Base"]) == 1


def test_loaded_assembly_is_not_fetched_again(memory_system, diamond) -> None:
	ts = memory_system(diamond)

	async def scenario() -> None:
		first = await ts.load("left")
		again = await ts.load("left")
		assert first is again
		await ts.load("app")

	asyncio.run(scenario())
	requests = ts.loader.resolver.requests
	assert requests.count("left") == 1
	assert requests.count("core") == 1
	assert sorted(requests) == ["app", "core", "left", "right"]


def test_dependency_promoted_to_root(memory_system, diamond) -> None:
	ts = memory_system(diamond)

	async def scenario() -> None:
		await ts.load("app")
		assert [a.name for a in ts.roots] == ["app"]
		assert not ts.find_assembly("core").is_root
		await ts.load_all(["core", "app"])
		await ts.load("core")

	asyncio.run(scenario())
	assert [a.name for a in ts.roots] == ["core", "app"]
	assert ts.find_assembly("core").is_root
	assert ts.loader.resolver.requests.count("core") == 1


def test_roots_follow_request_order(memory_system, diamond) -> None:
	ts = memory_system(diamond)

	async def scenario() -> list:
		await ts.load("core")
		return await ts.loader.load_roots(["right", "core", "left"])

	loaded = asyncio.run(scenario())
	assert [a.name for a in loaded] == ["right", "core", "left"]


def test_concurrent_loads_share_inflight_resolution(memory_system, diamond) -> None:
	ts = memory_system(diamond)

	async def scenario() -> None:
		await asyncio.gather(ts.load("left"), ts.load("right"), ts.load("app"), ts.load("left"))

	asyncio.run(scenario())
	requests = ts.loader.resolver.requests
	assert requests.count("core") == 1
	assert requests.count("left") == 1
	assert [a.name for a in ts.assemblies].count("core") == 1
	assert {a.name for a in ts.roots} == {"left", "right", "app"}
	assert ts.loader._inflight == {}


def test_dependency_cycle_fails_without_commit(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"a": make_manifest("a", deps=["b"]),
			"b": make_manifest("b", deps=["c"]),
			"c": make_manifest("c", deps=["a"]),
			"d": make_manifest("d"),
		}
	)
	with pytest.raises(DependencyCycleError) as exc:
		asyncio.run(ts.load_all(["d", "a"]))
	assert exc.value.path == ["a", "b", "c", "a"]
	assert "a -> b -> c -> a" in exc.value.message
	for name in "abcd":
		assert not ts.includes_assembly(name)
	assert ts.assemblies == []


def test_self_dependency_is_a_cycle(memory_system, make_manifest) -> None:
	ts = memory_system({"a": make_manifest("a", deps=["a"])})
	with pytest.raises(DependencyCycleError) as exc:
		asyncio.run(ts.load("a"))
	assert exc.value.path == ["a", "a"]


def test_commit_order_is_dependencies_first(memory_system, make_manifest) -> None:
	ts = memory_system({"a": make_manifest("a"), "b": make_manifest("b", deps=["a"])})
	asyncio.run(ts.load_all(["b", "a"]))
	assert [a.name for a in ts.assemblies] == ["a", "b"]
	assert {a.name for a in ts.roots} == {"a", "b"}


def test_identifier_resolving_to_loaded_assembly_returns_it(memory_system, make_manifest) -> None:
	ts = memory_system(
		{"v1": make_manifest("lib", _class("lib.T")), "v2": make_manifest("lib", _class("lib.T"), version="2.0.0")}
	)

	async def scenario() -> None:
		await ts.load("v1")
		asm = await ts.load("v2")
		assert asm.version == "1.0.0"

	asyncio.run(scenario())
	assert len(ts.assemblies) == 1


def test_two_identifiers_for_one_assembly_converge(memory_system, make_manifest) -> None:
	ts = memory_system({"x": make_manifest("lib", _class("lib.T")), "y": make_manifest("lib", _class("lib.T"))})
	loaded = asyncio.run(ts.loader.load_roots(["x", "y"]))
	assert loaded[0] is loaded[1]
	assert [a.name for a in ts.roots] == ["lib"]


def test_duplicate_fqn_against_committed_type(memory_system, make_manifest) -> None:
	# `lib.types.X` is a valid FQN for both assembly `lib.types` and assembly `lib`.
	ts = memory_system(
		{
			"lib.types": make_manifest("lib.types", _class("lib.types.X")),
			"lib": make_manifest("lib", _class("lib.Y"), _class("lib.types.X")),
		}
	)
	asyncio.run(ts.load("lib.types"))
	with pytest.raises(DuplicateFqnError) as exc:
		asyncio.run(ts.load("lib"))
	assert exc.value.fqn == "lib.types.X"
	assert exc.value.assembly == "lib"
	assert "'lib.types' and 'lib'" in exc.value.message
	assert not ts.includes_assembly("lib")
	assert ts.try_find_fqn("lib.Y") is None


def test_duplicate_fqn_within_one_batch(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"lib.types": make_manifest("lib.types", _class("lib.types.X")),
			"lib": make_manifest("lib", _class("lib.types.X")),
		}
	)
	with pytest.raises(DuplicateFqnError) as exc:
		asyncio.run(ts.load_all(["lib.types", "lib"]))
	assert exc.value.fqn == "lib.types.X"
	assert ts.assemblies == []


def test_unresolved_reference(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"a": make_manifest(
				"a",
				_class("a.C", methods=[{"name": "m", "parameters": [{"name": "x", "type": "a.Missing[]"}]}]),
			)
		}
	)
	with pytest.raises(UnresolvedReferenceError) as exc:
		asyncio.run(ts.load("a"))
	assert exc.value.fqn == "a.C"
	assert exc.value.reference == "a.Missing"
	assert "method m parameter x" in exc.value.message
	assert not ts.includes_assembly("a")


def test_reference_outside_dependency_closure(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"a": make_manifest("a", _class("a.A")),
			"b": make_manifest("b", _class("b.B", "a.A")),
		}
	)
	with pytest.raises(UnresolvedReferenceError) as exc:
		asyncio.run(ts.load_all(["a", "b"]))
	assert exc.value.reference == "a.A"
	assert ts.assemblies == []


def test_reference_kind_mismatch(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"a": make_manifest("a", _iface("a.I"), _class("a.C", "a.I")),
			"b": make_manifest("b", _class("b.E"), _class("b.C", None, "b.E")),
		}
	)
	with pytest.raises(MalformedManifestError) as exc:
		asyncio.run(ts.load("a"))
	assert "not a class" in exc.value.message
	with pytest.raises(MalformedManifestError) as exc:
		asyncio.run(ts.load("b"))
	assert "as an interface" in exc.value.message


def test_inheritance_cycles(memory_system, make_manifest) -> None:
	ts = memory_system(
		{
			"classes": make_manifest("classes", _class("classes.A", "classes.B"), _class("classes.B", "classes.A")),
			"selfish": make_manifest("selfish", _class("selfish.A", "selfish.A")),
			"ifaces": make_manifest("ifaces", _iface("ifaces.I", "ifaces.J"), _iface("ifaces.J", "ifaces.I")),
		}
	)
	with pytest.raises(InheritanceCycleError) as exc:
		asyncio.run(ts.load("classes"))
	assert exc.value.path == ["classes.A", "classes.B", "classes.A"]
	with pytest.raises(InheritanceCycleError) as exc:
		asyncio.run(ts.load("selfish"))
	assert exc.value.path == ["selfish.A", "selfish.A"]
	with pytest.raises(InheritanceCycleError) as exc:
		asyncio.run(ts.load("ifaces"))
	assert exc.value.path == ["ifaces.I", "ifaces.J", "ifaces.I"]
	assert ts.assemblies == []


def test_missing_manifest_aborts_whole_load(memory_system, diamond) -> None:
	del diamond["right"]
	ts = memory_system(diamond)
	with pytest.raises(ManifestResolutionError) as exc:
		asyncio.run(ts.load_all(["left", "app"]))
	assert exc.value.assembly == "right"
	assert ts.assemblies == []

	# A later load of an unaffected root still works.
	asyncio.run(ts.load("left"))
	assert [a.name for a in ts.assemblies] == ["core", "left"]


def test_dependency_manifest_must_declare_requested_name(memory_system, make_manifest) -> None:
	ts = memory_system({"a": make_manifest("a", deps=["b"]), "b": make_manifest("not-b")})
	with pytest.raises(MalformedManifestError) as exc:
		asyncio.run(ts.load("a"))
	assert "not-b" in exc.value.message


class _SlowResolver(MemoryManifestResolver):
	def __init__(self, manifests, slow: set[str]) -> None:
		super().__init__(manifests)
		self.slow = slow

	async def resolve(self, identifier: str) -> Any:
		if identifier in self.slow:
			await asyncio.sleep(10)
		return await super().resolve(identifier)


def test_resolve_timeout(make_manifest) -> None:
	resolver = _SlowResolver({"a": make_manifest("a", deps=["b"]), "b": make_manifest("b")}, slow={"b"})
	ts = TypeSystem(resolver, options=LoaderOptions(resolve_timeout=0.01))
	with pytest.raises(ManifestResolutionError) as exc:
		asyncio.run(ts.load("a"))
	assert "timed out" in exc.value.message
	assert exc.value.assembly == "b"
	assert ts.assemblies == []


class _GatedResolver(MemoryManifestResolver):
	"""Holds resolution of `gated` until `release` is set."""

	def __init__(self, manifests, gated: str) -> None:
		super().__init__(manifests)
		self.gated = gated
		self.started = asyncio.Event()
		self.release = asyncio.Event()

	async def resolve(self, identifier: str) -> Any:
		if identifier == self.gated:
			self.started.set()
			await self.release.wait()
		return await super().resolve(identifier)


def test_cancelled_load_leaves_shared_resolution_running(make_manifest) -> None:
	manifests = {
		"core": make_manifest("core", _class("core.Base")),
		"l": make_manifest("l", _class("l.L", "core.Base"), deps=["core"]),
		"r": make_manifest("r", _class("r.R", "core.Base"), deps=["core"]),
	}

	async def scenario() -> TypeSystem:
		resolver = _GatedResolver(manifests, "core")
		ts = TypeSystem(resolver)
		left = asyncio.ensure_future(ts.load("l"))
		right = asyncio.ensure_future(ts.load("r"))
		await resolver.started.wait()
		for _ in range(10):
			await asyncio.sleep(0)
		left.cancel()
		with pytest.raises(asyncio.CancelledError):
			await left
		resolver.release.set()
		asm = await right
		assert asm.name == "r"
		return ts

	ts = asyncio.run(scenario())
	assert [a.name for a in ts.assemblies] == ["core", "r"]
	assert [a.name for a in ts.roots] == ["r"]
	assert not ts.includes_assembly("l")
	assert ts.loader.resolver.requests.count("core") == 1
	assert ts.loader._inflight == {}


def test_load_from_directory_layout(tmp_path: Path, manifests_dir: Path) -> None:
	ts = load_type_system(["calc-lib"], options=LoaderOptions(search_roots=(manifests_dir,)))
	assert [a.name for a in ts.assemblies] == ["base-types", "calc-lib"]

	# Identifiers may also name a manifest file or a directory holding one.
	ts = load_type_system(
		[str(manifests_dir / "calc-lib-ext.json"), str(manifests_dir / "calc-lib")],
		options=LoaderOptions(search_roots=(manifests_dir,)),
	)
	assert [a.name for a in ts.roots] == ["calc-lib-ext", "calc-lib"]

	with pytest.raises(ManifestResolutionError) as exc:
		load_type_system(["nowhere"], resolver=DirectoryManifestResolver([tmp_path]))
	assert str(tmp_path / "nowhere.json") in exc.value.message


def test_directory_lookup_runs_off_the_event_loop(monkeypatch, manifests_dir: Path) -> None:
	resolver = DirectoryManifestResolver([manifests_dir])
	located_on: list[int] = []
	locate = resolver.locate

	def recording_locate(identifier: str) -> Path:
		located_on.append(threading.get_ident())
		return locate(identifier)

	monkeypatch.setattr(resolver, "locate", recording_locate)

	async def scenario() -> tuple[bytes, int]:
		return await resolver.resolve("base-types"), threading.get_ident()

	data, loop_thread = asyncio.run(scenario())
	assert b'"base-types"' in data
	assert len(located_on) == 1
	assert located_on[0] != loop_thread
