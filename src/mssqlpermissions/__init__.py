"""
mssqlpermissions - manage SQL Server and Azure SQL logins, users, roles and permissions.
"""

__version__ = "0.1.0"
