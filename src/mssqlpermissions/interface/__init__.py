"""
Interface layer: the command line entry point.
"""
