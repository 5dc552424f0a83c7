# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

import pytest

from asmreflect.config import LoaderOptions
from asmreflect.manifest.resolver import DirectoryManifestResolver, MemoryManifestResolver
from asmreflect.typesys.system import TypeSystem

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def manifests_dir() -> Path:
	"""On-disk registry holding base-types, calc-lib and calc-lib-ext."""
	return FIXTURES / "manifests"


@pytest.fixture
def calc_system(manifests_dir: Path) -> TypeSystem:
	ts = TypeSystem(DirectoryManifestResolver([manifests_dir]), options=LoaderOptions(search_roots=(manifests_dir,)))
	asyncio.run(ts.load_all(["calc-lib", "calc-lib-ext"]))
	return ts


@pytest.fixture
def make_manifest() -> Callable[..., dict[str, Any]]:
	"""
	Build a manifest object in list form.

	`types` entries are dicts carrying at least `fqn` and `kind`.
	"""

	def build(name: str, *types: dict[str, Any], deps: list[str] | None = None, version: str = "1.0.0") -> dict[str, Any]:
		return {"name": name, "version": version, "dependencies": list(deps or []), "types": list(types)}

	return build


@pytest.fixture
def memory_system() -> Callable[[dict[str, Any]], TypeSystem]:
	def build(manifests: dict[str, Any], *, timeout: float | None = None) -> TypeSystem:
		return TypeSystem(MemoryManifestResolver(manifests), options=LoaderOptions(resolve_timeout=timeout))

	return build
