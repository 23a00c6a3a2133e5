"""
Frontend Package.

Turns Go source text into tree-sitter syntax trees.
"""
