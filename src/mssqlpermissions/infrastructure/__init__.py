"""
Infrastructure layer: logging, configuration and SQL Server access.
"""
