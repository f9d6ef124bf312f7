"""Reusable patterns shared by the BookSwap vertical.

Each module is a self-contained building block: the catalog matching
rules, the match lifecycle table, the async repository base and the
dataclass domain configuration.
"""
