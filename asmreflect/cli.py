# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from asmreflect.config import DEFAULT_SOURCES_PATH, LoaderOptions, load_loader_options
from asmreflect.core.errors import ReflectError
from asmreflect.typesys.loader import load_type_system
from asmreflect.typesys.system import TypeSystem
from asmreflect.typesys.types import ClassType, EnumType, InterfaceType, Type

_KINDS = ("class", "interface", "enum")


def _add_load_args(p: argparse.ArgumentParser) -> None:
	p.add_argument("modules", nargs="+", help="Root module identifiers (assembly names or manifest paths)")
	p.add_argument(
		"--root",
		dest="roots",
		action="append",
		type=Path,
		default=[],
		help="Directory searched for manifests (repeatable; searched before --sources roots)",
	)
	p.add_argument("--sources", type=Path, default=None, help="Sources file (default: ./asmreflect-sources.json when present)")
	p.add_argument("--timeout", type=float, default=None, help="Per-manifest resolution timeout in seconds")
	p.add_argument("--json", action="store_true", help="Emit machine-readable JSON")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="asmreflect", description="Inspect the type graph of assembly manifests")
	p.add_argument("-v", "--verbose", action="count", default=0, help="Log loader activity to stderr (-vv for debug)")
	sub = p.add_subparsers(dest="cmd", required=True)

	asms = sub.add_parser("assemblies", help="List loaded assemblies, marking roots")
	_add_load_args(asms)

	types = sub.add_parser("types", help="List loaded types")
	_add_load_args(types)
	types.add_argument("--kind", choices=_KINDS, default=None, help="Only list types of this kind")
	types.add_argument("--assembly", default=None, help="Only list types declared by this assembly")

	describe = sub.add_parser("describe", help="Describe one type: bases, interfaces and members")
	_add_load_args(describe)
	describe.add_argument("--fqn", required=True, help="Fully-qualified type name")
	describe.add_argument("--inherited", action="store_true", help="Include inherited members")

	impls = sub.add_parser("implementations", help="List classes implementing an interface")
	_add_load_args(impls)
	impls.add_argument("--fqn", required=True, help="Fully-qualified interface name")
	return p


def _loader_options(args: argparse.Namespace) -> LoaderOptions:
	sources = args.sources
	if sources is None and DEFAULT_SOURCES_PATH.is_file():
		sources = DEFAULT_SOURCES_PATH
	opts = load_loader_options(sources) if sources is not None else LoaderOptions()
	opts = opts.with_roots(args.roots)
	if args.timeout is not None:
		if args.timeout <= 0:
			raise ValueError("--timeout must be positive")
		opts = replace(opts, resolve_timeout=args.timeout)
	return opts


def _type_summary(t: Type) -> dict[str, Any]:
	return {"fqn": t.fqn, "kind": t.kind.value, "assembly": t.assembly.name}


def _describe(t: Type, inherited: bool) -> dict[str, Any]:
	obj = _type_summary(t)
	obj["summary"] = t.docs.summary
	if isinstance(t, ClassType):
		obj["abstract"] = t.abstract
		obj["base"] = t.base.fqn if t.base is not None else None
		obj["ancestors"] = [a.fqn for a in t.get_ancestors()]
		init = t.initializer
		if init is not None:
			obj["initializer"] = [p.name for p in init.parameters]
	if isinstance(t, InterfaceType):
		obj["data_type"] = t.is_data_type()
	if isinstance(t, (ClassType, InterfaceType)):
		obj["interfaces"] = [i.fqn for i in t.get_interfaces(inherited)]
		obj["methods"] = [
			{"name": m.name, "signature": m.signature(), "declared_by": m.parent_type.fqn, "static": m.static}
			for m in t.get_methods(inherited)
		]
		obj["properties"] = [
			{"name": pr.name, "type": str(pr.type), "declared_by": pr.parent_type.fqn, "immutable": pr.immutable}
			for pr in t.get_properties(inherited)
		]
	if isinstance(t, EnumType):
		obj["members"] = t.members
	return obj


def _print_describe(obj: dict[str, Any]) -> None:
	head = f"{obj['kind']} {obj['fqn']}"
	if obj.get("base"):
		head += f" extends {obj['base']}"
	print(head)
	print(f"  assembly: {obj['assembly']}")
	if obj.get("summary"):
		print(f"  summary: {obj['summary']}")
	if obj.get("data_type"):
		print("  data type")
	if obj.get("interfaces"):
		print(f"  interfaces: {', '.join(obj['interfaces'])}")
	for m in obj.get("methods", []):
		static = "static " if m["static"] else ""
		print(f"  method {static}{m['signature']}  [{m['declared_by']}]")
	for pr in obj.get("properties", []):
		ro = "readonly " if pr["immutable"] else ""
		print(f"  property {ro}{pr['name']}: {pr['type']}  [{pr['declared_by']}]")
	for name in obj.get("members", []):
		print(f"  member {name}")


def _run(args: argparse.Namespace, ts: TypeSystem) -> int:
	if args.cmd == "assemblies":
		rows = [
			{"name": a.name, "version": a.version, "root": a.is_root, "dependencies": list(a.dependency_names)}
			for a in ts.assemblies
		]
		if args.json:
			print(json.dumps({"assemblies": rows}, sort_keys=True, separators=(",", ":")))
			return 0
		for r in rows:
			mark = "*" if r["root"] else " "
			print(f"{mark} {r['name']}@{r['version']}")
		return 0

	if args.cmd == "types":
		found = ts.find_assembly(args.assembly).types if args.assembly is not None else ts.all_types()
		rows = [_type_summary(t) for t in found if args.kind is None or t.kind.value == args.kind]
		if args.json:
			print(json.dumps({"types": rows}, sort_keys=True, separators=(",", ":")))
			return 0
		for r in rows:
			print(f"{r['kind']:<9} {r['fqn']}")
		return 0

	if args.cmd == "describe":
		obj = _describe(ts.find_fqn(args.fqn), bool(args.inherited))
		if args.json:
			print(json.dumps(obj, sort_keys=True, separators=(",", ":")))
		else:
			_print_describe(obj)
		return 0

	if args.cmd == "implementations":
		fqns = [t.fqn for t in ts.find_interface(args.fqn).all_implementations]
		if args.json:
			print(json.dumps({"fqn": args.fqn, "implementations": fqns}, sort_keys=True, separators=(",", ":")))
			return 0
		for fqn in fqns:
			print(fqn)
		return 0

	raise AssertionError("unreachable")


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)

	if args.verbose:
		logging.basicConfig(
			level=logging.DEBUG if args.verbose > 1 else logging.INFO,
			format="%(levelname)s %(name)s: %(message)s",
			stream=sys.stderr,
		)

	try:
		opts = _loader_options(args)
	except (OSError, ValueError) as err:
		p.error(str(err))
		return 2

	try:
		ts = load_type_system(args.modules, options=opts)
		return _run(args, ts)
	except ReflectError as err:
		if args.json:
			print(json.dumps({"ok": False, "error": err.to_dict()}, sort_keys=True, separators=(",", ":")))
		else:
			print(err.format_human(), file=sys.stderr)
		return 1


__all__ = ["main"]
