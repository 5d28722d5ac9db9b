"""
deflate_matrix: build/test matrix orchestrator for libdeflate.

Drives the library's own build system and test programs across compilers,
CFLAGS variants, CPU-feature-disable sets and diagnostic wrappers, then
checks the freestanding build and gzip interoperability.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "deflate_matrix"
