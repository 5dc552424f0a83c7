# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Type system: loader, registry, graph nodes and the `TypeSystem` facade.

Modules:
  registry: FQN arena and memo store
  assembly: loaded assembly wrapper
  types: class/interface/enum nodes and structural queries
  members: method/property/parameter views
  loader: async manifest closure loading with atomic commit
  system: the `TypeSystem` owner object
"""

__all__ = ["registry", "assembly", "types", "members", "loader", "system"]
