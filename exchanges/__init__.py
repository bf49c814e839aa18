"""Top-level package for exchange adapter code.

This file ensures that the ``exchanges`` directory is treated as a Python
package, allowing imports such as ``exchanges.src.exchanges`` to resolve
correctly when running tests or other tooling.
"""
