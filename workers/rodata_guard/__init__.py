"""
rodata_guard — const-promotion patcher and read-only placement verifier
for the Intel Decimal Floating-Point Math Library on RP2350.

Two phases:
  1. Patch: rewrite ``static T name[N]`` tables to ``static const`` so the
     toolchain can place them in flash instead of RAM.
  2. Verify: after the build, confirm annotated tables landed in a
     non-writable section of the resulting archive.
"""

__version__ = "0.1.0"
TOOL_VERSION = "v0"
PACKAGE_NAME = "rodata_guard"
SCHEMA_VERSION = "0.1"
