# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
asmreflect: cross-assembly type reflection over declarative manifests.

Subpackages:
  core: error taxonomy shared by every layer
  manifest: manifest model, type-reference grammar, decoder, resolvers
  typesys: loader, registry, type graph nodes and the TypeSystem facade
"""

from asmreflect.core.errors import (
	DependencyCycleError,
	DuplicateFqnError,
	InheritanceCycleError,
	MalformedManifestError,
	ManifestResolutionError,
	NotFoundError,
	ReflectError,
	UnresolvedReferenceError,
)
from asmreflect.typesys.loader import load_type_system
from asmreflect.typesys.system import TypeSystem

__all__ = [
	"TypeSystem",
	"load_type_system",
	"ReflectError",
	"ManifestResolutionError",
	"MalformedManifestError",
	"InheritanceCycleError",
	"DuplicateFqnError",
	"UnresolvedReferenceError",
	"DependencyCycleError",
	"NotFoundError",
]
