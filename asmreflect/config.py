# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Loader configuration.

Options come from CLI flags and, optionally, a sources file. The CLI reads
`asmreflect-sources.json` from the working directory when no file is given:

{
  "format": "asmreflect-sources",
  "version": 0,
  "roots": ["vendor/manifests", "/opt/shared/manifests"],
  "manifest_file": "assembly.json",   // optional
  "resolve_timeout": 10.0             // optional, seconds
}

Relative roots are resolved against the directory containing the sources file.
Unknown top-level fields are rejected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional, Sequence

from asmreflect.manifest.resolver import DEFAULT_MANIFEST_FILE, DirectoryManifestResolver

SOURCES_FORMAT = "asmreflect-sources"
SOURCES_VERSION = 0
DEFAULT_SOURCES_PATH = Path("asmreflect-sources.json")


@dataclass(frozen=True)
class LoaderOptions:
	search_roots: tuple[Path, ...] = ()
	manifest_file: str = DEFAULT_MANIFEST_FILE
	resolve_timeout: Optional[float] = None  # seconds per manifest; None = no limit

	def with_roots(self, roots: Sequence[Path]) -> "LoaderOptions":
		"""Return a copy with `roots` searched before the configured ones."""
		merged: list[Path] = []
		for r in [*roots, *self.search_roots]:
			if r not in merged:
				merged.append(r)
		return replace(self, search_roots=tuple(merged))

	def make_resolver(self) -> DirectoryManifestResolver:
		return DirectoryManifestResolver(list(self.search_roots), manifest_file=self.manifest_file)


def _load_sources_json(path: Path) -> dict[str, Any]:
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except json.JSONDecodeError as err:
		raise ValueError(f"sources file '{path}' is not valid JSON: {err.msg}") from err
	if not isinstance(data, dict):
		raise ValueError("sources file must be a JSON object")
	if data.get("format") != SOURCES_FORMAT or data.get("version") != SOURCES_VERSION:
		raise ValueError("unsupported sources file format/version")
	allowed = {"format", "version", "roots", "manifest_file", "resolve_timeout"}
	unknown = sorted(set(data.keys()) - allowed)
	if unknown:
		raise ValueError(f"sources file has unknown fields: {', '.join(unknown)}")
	return data


def load_loader_options(path: Path) -> LoaderOptions:
	"""Read `LoaderOptions` from a sources file (see module docstring)."""
	data = _load_sources_json(path)
	roots_raw = data.get("roots", [])
	if not isinstance(roots_raw, list) or not all(isinstance(r, str) and r for r in roots_raw):
		raise ValueError("sources file 'roots' must be a list of non-empty strings")
	base = path.parent
	roots = tuple(Path(r) if Path(r).is_absolute() else base / r for r in roots_raw)
	manifest_file = data.get("manifest_file", DEFAULT_MANIFEST_FILE)
	if not isinstance(manifest_file, str) or not manifest_file:
		raise ValueError("sources file 'manifest_file' must be a non-empty string")
	timeout = data.get("resolve_timeout")
	if timeout is not None:
		if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
			raise ValueError("sources file 'resolve_timeout' must be a positive number")
		timeout = float(timeout)
	return LoaderOptions(search_roots=roots, manifest_file=manifest_file, resolve_timeout=timeout)


__all__ = ["LoaderOptions", "load_loader_options", "DEFAULT_SOURCES_PATH", "SOURCES_FORMAT", "SOURCES_VERSION"]
