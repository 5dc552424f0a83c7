# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type references as they appear in assembly manifests.

A reference is one of four shapes: a primitive, a named type (FQN), a
collection (array/map of an element type) or a union. Manifests may spell it as
a structured JSON object or as a compact string; both decode to the same frozen
dataclasses here. References stay unresolved (plain FQN strings) until the
loader links them against the registry.

Structured form:
  {"primitive": "string"}
  {"fqn": "calc-lib.Engine"}
  {"collection": {"kind": "array", "elementtype": <ref>}}
  {"union": {"types": [<ref>, <ref>, ...]}}

Compact form (see `typeref.lark`):
  string, calc-lib.Engine, Array<number>, number[], Map<string, T>, A | B
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Tuple, Union

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from asmreflect.core.errors import MalformedManifestError

PRIMITIVES = frozenset({"string", "number", "boolean", "date", "json", "any"})


class CollectionKind(Enum):
	ARRAY = "array"
	MAP = "map"


@dataclass(frozen=True)
class PrimitiveRef:
	primitive: str

	def __str__(self) -> str:
		return self.primitive


@dataclass(frozen=True)
class NamedRef:
	fqn: str

	def __str__(self) -> str:
		return self.fqn


@dataclass(frozen=True)
class CollectionRef:
	kind: CollectionKind
	element: "TypeRef"

	def __str__(self) -> str:
		if self.kind is CollectionKind.MAP:
			return f"Map<string, {self.element}>"
		return f"Array<{self.element}>"


@dataclass(frozen=True)
class UnionRef:
	types: Tuple["TypeRef", ...]

	def __str__(self) -> str:
		return " | ".join(str(t) for t in self.types)


TypeRef = Union[PrimitiveRef, NamedRef, CollectionRef, UnionRef]


def referenced_fqns(ref: TypeRef) -> Iterator[str]:
	"""Yield every FQN mentioned anywhere inside `ref`, in reading order."""
	if isinstance(ref, NamedRef):
		yield ref.fqn
	elif isinstance(ref, CollectionRef):
		yield from referenced_fqns(ref.element)
	elif isinstance(ref, UnionRef):
		for member in ref.types:
			yield from referenced_fqns(member)


_GRAMMAR_PATH = Path(__file__).with_name("typeref.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text(encoding="utf-8")

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	lexer="basic",
	start="start",
	maybe_placeholders=False,
)


def _name(node: Tree) -> str:
	data = node.data
	return data.value if isinstance(data, Token) else str(data)


def _build_union(node: Tree) -> TypeRef:
	members = [_build_postfix(c) for c in node.children if isinstance(c, Tree)]
	if len(members) == 1:
		return members[0]
	return UnionRef(types=tuple(members))


def _build_postfix(node: Tree) -> TypeRef:
	atom, *suffixes = [c for c in node.children if isinstance(c, Tree)]
	ref = _build_atom(atom)
	for _ in suffixes:
		ref = CollectionRef(kind=CollectionKind.ARRAY, element=ref)
	return ref


def _build_atom(node: Tree) -> TypeRef:
	kind = _name(node)
	if kind == "group":
		return _build_union(node.children[0])
	name_tok = node.children[0]
	name = str(name_tok)
	if kind == "named":
		if name in PRIMITIVES:
			return PrimitiveRef(primitive=name)
		if "." not in name:
			raise ValueError(f"'{name}' is neither a primitive nor a fully-qualified type name")
		return NamedRef(fqn=name)
	# generic
	args = [_build_union(c) for c in node.children[1:] if isinstance(c, Tree)]
	if name == "Array":
		if len(args) != 1:
			raise ValueError("Array<...> takes exactly one element type")
		return CollectionRef(kind=CollectionKind.ARRAY, element=args[0])
	if name == "Map":
		if len(args) == 2:
			if args[0] != PrimitiveRef(primitive="string"):
				raise ValueError("Map keys must be 'string'")
			return CollectionRef(kind=CollectionKind.MAP, element=args[1])
		return CollectionRef(kind=CollectionKind.MAP, element=args[0])
	raise ValueError(f"unknown generic type '{name}'")


def parse_type_ref(text: str) -> TypeRef:
	"""
	Parse the compact string form of a type reference.

	Raises `MalformedManifestError` when the text does not parse or names an
	unknown generic.
	"""
	try:
		tree = _PARSER.parse(text)
		return _build_union(tree.children[0])
	except UnexpectedInput as err:
		raise MalformedManifestError(f"invalid type reference '{text}': {err.__class__.__name__} at column {getattr(err, 'column', '?')}") from err
	except ValueError as err:
		raise MalformedManifestError(f"invalid type reference '{text}': {err}") from err


def decode_type_ref(obj: Any) -> TypeRef:
	"""Decode a type reference from either its structured or compact form."""
	if isinstance(obj, str):
		return parse_type_ref(obj)
	if not isinstance(obj, dict):
		raise MalformedManifestError("type reference must be a string or an object")
	if "primitive" in obj:
		prim = obj.get("primitive")
		if not isinstance(prim, str) or prim not in PRIMITIVES:
			raise MalformedManifestError(f"unknown primitive type '{prim}'")
		return PrimitiveRef(primitive=prim)
	if "fqn" in obj:
		fqn = obj.get("fqn")
		if not isinstance(fqn, str) or not fqn:
			raise MalformedManifestError("type reference fqn must be a non-empty string")
		return NamedRef(fqn=fqn)
	if "collection" in obj:
		coll = obj.get("collection")
		if not isinstance(coll, dict):
			raise MalformedManifestError("type reference collection must be an object")
		kind_s = coll.get("kind")
		try:
			kind = CollectionKind(kind_s)
		except ValueError as err:
			raise MalformedManifestError(f"unknown collection kind '{kind_s}'") from err
		if "elementtype" not in coll:
			raise MalformedManifestError("collection type reference missing elementtype")
		return CollectionRef(kind=kind, element=decode_type_ref(coll.get("elementtype")))
	if "union" in obj:
		union = obj.get("union")
		members = union.get("types") if isinstance(union, dict) else None
		if not isinstance(members, list) or len(members) < 2:
			raise MalformedManifestError("union type reference needs at least two member types")
		return UnionRef(types=tuple(decode_type_ref(m) for m in members))
	raise MalformedManifestError("type reference must have one of: primitive, fqn, collection, union")


__all__ = [
	"PRIMITIVES",
	"CollectionKind",
	"PrimitiveRef",
	"NamedRef",
	"CollectionRef",
	"UnionRef",
	"TypeRef",
	"referenced_fqns",
	"parse_type_ref",
	"decode_type_ref",
]
