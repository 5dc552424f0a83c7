# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Manifest resolvers: module identifier -> raw manifest data.

The loader depends only on the `ManifestResolver` protocol. Two implementations
ship here:
- `DirectoryManifestResolver` searches a list of roots on disk,
- `MemoryManifestResolver` serves manifests held in memory (tests, embedded
  caches).

Resolvers raise `ManifestResolutionError` when an identifier cannot be located
or read. They never retry; retry policy belongs to whoever wraps them.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from asmreflect.core.errors import ManifestResolutionError

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_FILE = "assembly.json"


class ManifestResolver(Protocol):
	async def resolve(self, identifier: str) -> Any:
		"""Return raw manifest data (bytes, text or a parsed JSON object)."""
		...


class DirectoryManifestResolver:
	"""
	Locate manifests under a list of search roots.

	Lookup rules, first hit wins:
	- an identifier naming an existing file is read directly,
	- an identifier naming an existing directory reads `<dir>/<manifest_file>`,
	- otherwise, for each root in order: `<root>/<name>/<manifest_file>`, then
	  `<root>/<name>.json`. Scoped names (`@scope/name`) map to nested dirs.
	"""

	def __init__(self, roots: Sequence[Path], *, manifest_file: str = DEFAULT_MANIFEST_FILE) -> None:
		self.roots = [Path(r) for r in roots]
		self.manifest_file = manifest_file

	def candidates(self, identifier: str) -> list[Path]:
		out: list[Path] = []
		direct = Path(identifier)
		if direct.is_file():
			out.append(direct)
		elif direct.is_dir():
			out.append(direct / self.manifest_file)
		for root in self.roots:
			out.append(root / identifier / self.manifest_file)
			out.append(root / f"{identifier}.json")
		return out

	def locate(self, identifier: str) -> Path:
		cands = self.candidates(identifier)
		for p in cands:
			if p.is_file():
				return p
		searched = ", ".join(str(p) for p in cands) or "<no search roots>"
		raise ManifestResolutionError(f"no manifest found for '{identifier}' (searched: {searched})", assembly=identifier)

	async def resolve(self, identifier: str) -> bytes:
		path = await asyncio.to_thread(self.locate, identifier)
		logger.debug("reading manifest for %s from %s", identifier, path)
		try:
			return await asyncio.to_thread(path.read_bytes)
		except OSError as err:
			raise ManifestResolutionError(f"cannot read manifest '{path}': {err}", assembly=identifier) from err


class MemoryManifestResolver:
	"""Serve manifests from a mapping of identifier -> manifest object/text/bytes."""

	def __init__(self, manifests: Mapping[str, Any]) -> None:
		self.manifests = dict(manifests)
		self.requests: list[str] = []

	async def resolve(self, identifier: str) -> Any:
		self.requests.append(identifier)
		# One suspension point per resolution.
		await asyncio.sleep(0)
		try:
			return self.manifests[identifier]
		except KeyError as err:
			raise ManifestResolutionError(f"no manifest registered for '{identifier}'", assembly=identifier) from err


__all__ = [
	"DEFAULT_MANIFEST_FILE",
	"ManifestResolver",
	"DirectoryManifestResolver",
	"MemoryManifestResolver",
]
