# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Manifest decoder: raw manifest data -> `AssemblyManifest`.

Shape-only validation. Cross-type checks (does a referenced FQN exist, is a
base really a class) belong to the loader, which sees the whole dependency
closure. Unknown fields are ignored at every level so newer manifests still
load.

Accepted top-level shape:
{
  "schema": "...",                              // optional
  "name": "calc-lib",
  "version": "1.0.0",
  "dependencies": {"base-types": "^1.0.0"},     // or ["base-types"]
  "types": {"calc-lib.Calculator": {...}, ...}  // or [{...,"fqn": ...}, ...]
}
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from asmreflect.core.errors import MalformedManifestError
from asmreflect.manifest.model import (
	AssemblyManifest,
	ClassDef,
	Dependency,
	Docs,
	EnumDef,
	EnumMemberDef,
	InitializerDef,
	InterfaceDef,
	MethodDef,
	ParameterDef,
	PropertyDef,
	TypeDef,
	TypeKind,
)
from asmreflect.manifest.typeref import decode_type_ref


class _Ctx:
	"""Carries the assembly name (once known) so every error can name it."""

	def __init__(self) -> None:
		self.assembly: Optional[str] = None

	def err(self, msg: str, *, fqn: str | None = None) -> MalformedManifestError:
		return MalformedManifestError(msg, assembly=self.assembly, fqn=fqn)


def _load_raw(raw: Any, ctx: _Ctx) -> dict[str, Any]:
	if isinstance(raw, (bytes, bytearray)):
		try:
			raw = raw.decode("utf-8")
		except UnicodeDecodeError as err:
			raise ctx.err("manifest is not valid UTF-8") from err
	if isinstance(raw, str):
		try:
			raw = json.loads(raw)
		except json.JSONDecodeError as err:
			raise ctx.err(f"manifest is not valid JSON: {err.msg} (line {err.lineno})") from err
	if not isinstance(raw, dict):
		raise ctx.err("manifest must be a JSON object")
	return raw


def _opt_str(obj: Mapping[str, Any], key: str, ctx: _Ctx, *, fqn: str | None = None) -> Optional[str]:
	val = obj.get(key)
	if val is not None and not isinstance(val, str):
		raise ctx.err(f"'{key}' must be a string", fqn=fqn)
	return val


def _flag(obj: Mapping[str, Any], key: str, ctx: _Ctx, *, fqn: str | None = None) -> bool:
	val = obj.get(key, False)
	if val is None:
		return False
	if not isinstance(val, bool):
		raise ctx.err(f"'{key}' must be a boolean", fqn=fqn)
	return val


def _docs(obj: Mapping[str, Any], ctx: _Ctx, *, fqn: str | None = None) -> Docs:
	docs = obj.get("docs")
	if docs is None:
		return Docs()
	if not isinstance(docs, dict):
		raise ctx.err("'docs' must be an object", fqn=fqn)
	return Docs(
		summary=_opt_str(docs, "summary", ctx, fqn=fqn),
		remarks=_opt_str(docs, "remarks", ctx, fqn=fqn),
		deprecated=_opt_str(docs, "deprecated", ctx, fqn=fqn),
		stability=_opt_str(docs, "stability", ctx, fqn=fqn),
	)


def _type_ref(obj: Any, ctx: _Ctx, *, fqn: str, where: str):
	try:
		return decode_type_ref(obj)
	except MalformedManifestError as err:
		raise ctx.err(f"{where}: {err.message}", fqn=fqn) from err


def _legacy_optional(type_obj: Any) -> bool:
	# Older manifests mark optionality inside the type reference itself.
	return isinstance(type_obj, dict) and type_obj.get("optional") is True


def _parameters(raw: Any, ctx: _Ctx, *, fqn: str, owner: str) -> tuple[ParameterDef, ...]:
	if raw is None:
		return ()
	if not isinstance(raw, list):
		raise ctx.err(f"{owner}: 'parameters' must be a list", fqn=fqn)
	params: list[ParameterDef] = []
	for p in raw:
		if not isinstance(p, dict):
			raise ctx.err(f"{owner}: parameter entry must be an object", fqn=fqn)
		name = p.get("name")
		if not isinstance(name, str) or not name:
			raise ctx.err(f"{owner}: parameter missing name", fqn=fqn)
		if "type" not in p:
			raise ctx.err(f"{owner}: parameter '{name}' missing type", fqn=fqn)
		params.append(
			ParameterDef(
				name=name,
				type=_type_ref(p.get("type"), ctx, fqn=fqn, where=f"{owner} parameter '{name}'"),
				optional=_flag(p, "optional", ctx, fqn=fqn) or _legacy_optional(p.get("type")),
				variadic=_flag(p, "variadic", ctx, fqn=fqn),
			)
		)

	names = [p.name for p in params]
	if len(set(names)) != len(names):
		raise ctx.err(f"{owner}: duplicate parameter names", fqn=fqn)
	# Optional and variadic parameters form a suffix; variadic is last.
	seen_optional = False
	for i, p in enumerate(params):
		if p.variadic and i != len(params) - 1:
			raise ctx.err(f"{owner}: variadic parameter '{p.name}' must be last", fqn=fqn)
		if p.optional or p.variadic:
			seen_optional = True
		elif seen_optional:
			raise ctx.err(f"{owner}: required parameter '{p.name}' follows an optional one", fqn=fqn)
	return tuple(params)


def _method(raw: Any, ctx: _Ctx, *, fqn: str) -> MethodDef:
	if not isinstance(raw, dict):
		raise ctx.err("method entry must be an object", fqn=fqn)
	name = raw.get("name")
	if not isinstance(name, str) or not name:
		raise ctx.err("method missing name", fqn=fqn)
	owner = f"method '{name}'"
	returns = None
	returns_optional = False
	ret_obj = raw.get("returns")
	if ret_obj is not None and ret_obj != "void":
		# Newer manifests wrap the type: {"type": <ref>, "optional": bool}.
		if isinstance(ret_obj, dict) and "type" in ret_obj:
			returns = _type_ref(ret_obj.get("type"), ctx, fqn=fqn, where=f"{owner} returns")
			returns_optional = _flag(ret_obj, "optional", ctx, fqn=fqn) or _legacy_optional(ret_obj.get("type"))
		else:
			returns = _type_ref(ret_obj, ctx, fqn=fqn, where=f"{owner} returns")
			returns_optional = _legacy_optional(ret_obj)
	return MethodDef(
		name=name,
		parameters=_parameters(raw.get("parameters"), ctx, fqn=fqn, owner=owner),
		returns=returns,
		returns_optional=returns_optional,
		static=_flag(raw, "static", ctx, fqn=fqn),
		abstract=_flag(raw, "abstract", ctx, fqn=fqn),
		is_async=_flag(raw, "async", ctx, fqn=fqn),
		protected=_flag(raw, "protected", ctx, fqn=fqn),
		docs=_docs(raw, ctx, fqn=fqn),
	)


def _property(raw: Any, ctx: _Ctx, *, fqn: str) -> PropertyDef:
	if not isinstance(raw, dict):
		raise ctx.err("property entry must be an object", fqn=fqn)
	name = raw.get("name")
	if not isinstance(name, str) or not name:
		raise ctx.err("property missing name", fqn=fqn)
	if "type" not in raw:
		raise ctx.err(f"property '{name}' missing type", fqn=fqn)
	return PropertyDef(
		name=name,
		type=_type_ref(raw.get("type"), ctx, fqn=fqn, where=f"property '{name}'"),
		optional=_flag(raw, "optional", ctx, fqn=fqn) or _legacy_optional(raw.get("type")),
		immutable=_flag(raw, "immutable", ctx, fqn=fqn),
		static=_flag(raw, "static", ctx, fqn=fqn),
		abstract=_flag(raw, "abstract", ctx, fqn=fqn),
		protected=_flag(raw, "protected", ctx, fqn=fqn),
		docs=_docs(raw, ctx, fqn=fqn),
	)


def _list_of(raw: Mapping[str, Any], key: str, ctx: _Ctx, *, fqn: str) -> list[Any]:
	val = raw.get(key)
	if val is None:
		return []
	if not isinstance(val, list):
		raise ctx.err(f"'{key}' must be a list", fqn=fqn)
	return val


def _fqn_list(raw: Mapping[str, Any], key: str, ctx: _Ctx, *, fqn: str) -> tuple[str, ...]:
	out: list[str] = []
	for item in _list_of(raw, key, ctx, fqn=fqn):
		# Accept both bare FQN strings and {"fqn": ...} references.
		if isinstance(item, dict):
			item = item.get("fqn")
		if not isinstance(item, str) or not item:
			raise ctx.err(f"'{key}' entries must be type FQNs", fqn=fqn)
		if item in out:
			raise ctx.err(f"'{key}' lists '{item}' more than once", fqn=fqn)
		out.append(item)
	return tuple(out)


def _unique_names(items: tuple, what: str, ctx: _Ctx, *, fqn: str) -> None:
	seen: set[str] = set()
	for it in items:
		if it.name in seen:
			raise ctx.err(f"duplicate {what} '{it.name}'", fqn=fqn)
		seen.add(it.name)


def _split_fqn(fqn: str, assembly: str, raw: Mapping[str, Any], ctx: _Ctx) -> tuple[str, Optional[str]]:
	if not fqn.startswith(assembly + "."):
		raise ctx.err(f"type fqn must start with '{assembly}.'", fqn=fqn)
	local = fqn[len(assembly) + 1 :]
	name = raw.get("name")
	if name is None:
		name = local.rsplit(".", 1)[-1]
	elif not isinstance(name, str) or not name:
		raise ctx.err("'name' must be a non-empty string", fqn=fqn)
	namespace = _opt_str(raw, "namespace", ctx, fqn=fqn)
	if namespace is None and "." in local:
		namespace = local.rsplit(".", 1)[0]
	return name, namespace


def _type_def(fqn: str, raw: Any, ctx: _Ctx, assembly: str) -> TypeDef:
	if not isinstance(raw, dict):
		raise ctx.err("type entry must be an object", fqn=fqn)
	kind_s = raw.get("kind")
	try:
		kind = TypeKind(kind_s)
	except ValueError as err:
		raise ctx.err(f"unknown type kind '{kind_s}'", fqn=fqn) from err
	name, namespace = _split_fqn(fqn, assembly, raw, ctx)
	common = {"fqn": fqn, "assembly": assembly, "name": name, "namespace": namespace, "docs": _docs(raw, ctx, fqn=fqn)}

	if kind is TypeKind.ENUM:
		members: list[EnumMemberDef] = []
		for m in _list_of(raw, "members", ctx, fqn=fqn):
			if isinstance(m, str):
				m = {"name": m}
			if not isinstance(m, dict) or not isinstance(m.get("name"), str) or not m.get("name"):
				raise ctx.err("enum member must be a name or an object with a name", fqn=fqn)
			members.append(EnumMemberDef(name=m["name"], docs=_docs(m, ctx, fqn=fqn)))
		enum_members = tuple(members)
		_unique_names(enum_members, "enum member", ctx, fqn=fqn)
		return EnumDef(**common, members=enum_members)

	methods = tuple(_method(m, ctx, fqn=fqn) for m in _list_of(raw, "methods", ctx, fqn=fqn))
	properties = tuple(_property(p, ctx, fqn=fqn) for p in _list_of(raw, "properties", ctx, fqn=fqn))
	_unique_names(methods, "method", ctx, fqn=fqn)
	_unique_names(properties, "property", ctx, fqn=fqn)
	interfaces = _fqn_list(raw, "interfaces", ctx, fqn=fqn)

	if kind is TypeKind.INTERFACE:
		return InterfaceDef(**common, interfaces=interfaces, methods=methods, properties=properties)

	base = raw.get("base")
	if isinstance(base, dict):
		# A reference object must name its target; only an absent base means none.
		base = base.get("fqn", "")
	if base is not None and (not isinstance(base, str) or not base):
		raise ctx.err("'base' must be a type FQN", fqn=fqn)
	initializer = None
	init_raw = raw.get("initializer")
	if init_raw is not None:
		if not isinstance(init_raw, dict):
			raise ctx.err("'initializer' must be an object", fqn=fqn)
		initializer = InitializerDef(
			parameters=_parameters(init_raw.get("parameters"), ctx, fqn=fqn, owner="initializer"),
			protected=_flag(init_raw, "protected", ctx, fqn=fqn),
			docs=_docs(init_raw, ctx, fqn=fqn),
		)
	return ClassDef(
		**common,
		base=base,
		interfaces=interfaces,
		methods=methods,
		properties=properties,
		abstract=_flag(raw, "abstract", ctx, fqn=fqn),
		initializer=initializer,
	)


def _dependencies(raw: Any, ctx: _Ctx) -> tuple[Dependency, ...]:
	if raw is None:
		return ()
	if isinstance(raw, dict):
		deps = []
		for name, ver in raw.items():
			if not isinstance(name, str) or not name:
				raise ctx.err("dependency names must be non-empty strings")
			if isinstance(ver, dict):
				ver = ver.get("version")
			if ver is not None and not isinstance(ver, str):
				raise ctx.err(f"dependency '{name}' version must be a string")
			deps.append(Dependency(name=name, version=ver))
		return tuple(deps)
	if isinstance(raw, list):
		if not all(isinstance(d, str) and d for d in raw):
			raise ctx.err("dependency list must contain non-empty strings")
		if len(set(raw)) != len(raw):
			raise ctx.err("dependency list contains duplicates")
		return tuple(Dependency(name=d) for d in raw)
	raise ctx.err("'dependencies' must be an object or a list")


def decode_manifest(raw: Any) -> AssemblyManifest:
	"""
	Decode raw manifest data (bytes, JSON text or an already-parsed object).

	Raises `MalformedManifestError` with a human-readable reason on any shape
	violation.
	"""
	ctx = _Ctx()
	obj = _load_raw(raw, ctx)
	name = obj.get("name")
	if not isinstance(name, str) or not name:
		raise ctx.err("manifest missing assembly name")
	ctx.assembly = name
	version = obj.get("version")
	if not isinstance(version, str) or not version:
		raise ctx.err("manifest missing assembly version")
	dependencies = _dependencies(obj.get("dependencies"), ctx)

	types_raw = obj.get("types")
	entries: list[tuple[str, Any]] = []
	if types_raw is None:
		pass
	elif isinstance(types_raw, dict):
		for key, entry in types_raw.items():
			inner = entry.get("fqn") if isinstance(entry, dict) else None
			if inner is not None and inner != key:
				raise ctx.err(f"type key '{key}' does not match its fqn '{inner}'", fqn=key)
			entries.append((key, entry))
	elif isinstance(types_raw, list):
		for entry in types_raw:
			fqn = entry.get("fqn") if isinstance(entry, dict) else None
			if not isinstance(fqn, str) or not fqn:
				raise ctx.err("type entry missing fqn")
			entries.append((fqn, entry))
	else:
		raise ctx.err("'types' must be an object or a list")

	types: list[TypeDef] = []
	for fqn, entry in entries:
		types.append(_type_def(fqn, entry, ctx, name))

	return AssemblyManifest(
		name=name,
		version=version,
		dependencies=dependencies,
		types=tuple(types),
		description=_opt_str(obj, "description", ctx),
		homepage=_opt_str(obj, "homepage", ctx),
		license=_opt_str(obj, "license", ctx),
		schema=_opt_str(obj, "schema", ctx),
	)


__all__ = ["decode_manifest"]
