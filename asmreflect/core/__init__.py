"""
asmreflect.core: pieces shared by the manifest and typesys layers.

Modules:
  - errors: structured load-time and query-time errors
"""

__all__ = [
	"errors",
]
