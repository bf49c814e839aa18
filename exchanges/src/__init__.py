"""
Package marker for ``exchanges/src``.

Needed so the adapter modules resolve under the dotted path
``exchanges.src.exchanges``, which is how the tests and scripts import them.
"""
__all__ = []
