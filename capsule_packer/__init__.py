"""capsule-packer.

A small build utility that packages a compiled project and its dependency
metadata into self-executing capsule archives (empty, thin and fat).
"""

__all__: list[str] = ["__version__"]

__version__: str = "0.1.0"
