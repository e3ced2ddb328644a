"""
CLI command groups, one module per principal kind.
"""
