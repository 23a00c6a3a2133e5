"""
Core Package.

Contains the `Checker`, which owns the state of one analysis run.
"""
