"""
Read queries and fixed T-SQL scripts.

Every value reaches the server as a ``@name`` variable (see
database.bind_parameters); nothing in here is formatted with user input.
"""

# ============================================================================
# Dialect probe
# ============================================================================

SERVER_VERSION = "SELECT @@VERSION AS [version]"

DEFAULT_LANGUAGE = """
SELECT lang.[name] AS [name]
FROM [sys].[configurations] config
INNER JOIN [sys].[syslanguages] lang ON config.[value] = lang.[langid]
WHERE config.[name] = 'default language'
"""

CONTAINED_AUTHENTICATION = """
SELECT CAST([value_in_use] AS INT) AS [value_in_use]
FROM [sys].[configurations]
WHERE [name] = 'contained database authentication'
"""

# ============================================================================
# Logins
# ============================================================================

_LOGIN_COLUMNS = (
    "SELECT [name], [principal_id], [type], CAST([is_disabled] AS INT) AS [is_disabled], "
    "[default_database_name], [default_language_name]"
)

LOGIN_FROM_SQL_LOGINS = _LOGIN_COLUMNS + " FROM [master].[sys].[sql_logins]"

LOGIN_FROM_SERVER_PRINCIPALS = _LOGIN_COLUMNS + " FROM [master].[sys].[server_principals]"

BY_NAME = " WHERE [name] = @name"
BY_PRINCIPAL_ID = " WHERE [principal_id] = @principal_id"

SERVER_PRINCIPAL_BY_ID = """
SELECT [name], [principal_id], [type]
FROM [master].[sys].[server_principals]
WHERE [principal_id] = @principal_id
"""

SERVER_PRINCIPAL_BY_NAME = """
SELECT [name], [principal_id], [type]
FROM [master].[sys].[server_principals]
WHERE [name] = @name
"""

# Skips the running session so a caller dropping its own login survives.
KILL_SESSIONS = """
DECLARE sessionsToKill CURSOR LOCAL FAST_FORWARD FOR
    SELECT [session_id]
    FROM [sys].[dm_exec_sessions]
    WHERE [login_name] = @name AND [session_id] <> @@SPID;
OPEN sessionsToKill;
DECLARE @sessionId INT;
DECLARE @statement NVARCHAR(200);
FETCH NEXT FROM sessionsToKill INTO @sessionId;
WHILE @@FETCH_STATUS = 0
BEGIN
    SET @statement = N'KILL ' + CAST(@sessionId AS NVARCHAR(20));
    EXEC sp_executesql @statement;
    FETCH NEXT FROM sessionsToKill INTO @sessionId;
END;
CLOSE sessionsToKill;
DEALLOCATE sessionsToKill;
"""

# ============================================================================
# Server roles
# ============================================================================

SERVER_ROLE = """
SELECT [name], [principal_id], [type], [type_desc],
       [owning_principal_id], CAST([is_fixed_role] AS INT) AS [is_fixed_role]
FROM [master].[sys].[server_principals]
WHERE [name] = @name AND [type_desc] = 'SERVER_ROLE'
"""

SERVER_ROLE_MEMBERS = """
SELECT [name], [principal_id], [type], [type_desc],
       CAST([is_disabled] AS INT) AS [is_disabled],
       [default_database_name], [default_language_name]
FROM [master].[sys].[server_principals]
WHERE [principal_id] IN (
    SELECT [member_principal_id]
    FROM [master].[sys].[server_role_members]
    WHERE [role_principal_id] = (
        SELECT [principal_id]
        FROM [master].[sys].[server_principals]
        WHERE [name] = @name AND [type_desc] = 'SERVER_ROLE'))
"""

# Same shape SSMS scripts: public and fixed roles keep their members.
DROP_SERVER_ROLE = """
IF @name <> N'public' AND (SELECT [is_fixed_role] FROM [sys].[server_principals] WHERE [name] = @name) = 0
BEGIN
    DECLARE @memberName SYSNAME;
    DECLARE @dropMember NVARCHAR(4000);
    DECLARE memberCursor CURSOR LOCAL FOR
        SELECT [name]
        FROM [sys].[server_principals]
        WHERE [principal_id] IN (
            SELECT [member_principal_id]
            FROM [sys].[server_role_members]
            WHERE [role_principal_id] IN (
                SELECT [principal_id]
                FROM [sys].[server_principals]
                WHERE [name] = @name AND [type] = 'R'));
    OPEN memberCursor;
    FETCH NEXT FROM memberCursor INTO @memberName;
    WHILE @@FETCH_STATUS = 0
    BEGIN
        SET @dropMember = N'ALTER SERVER ROLE ' + QUOTENAME(@name) + N' DROP MEMBER ' + QUOTENAME(@memberName);
        EXEC (@dropMember);
        FETCH NEXT FROM memberCursor INTO @memberName;
    END;
    CLOSE memberCursor;
    DEALLOCATE memberCursor;
END;
DECLARE @dropRole NVARCHAR(4000) = N'DROP SERVER ROLE ' + QUOTENAME(@name);
EXEC (@dropRole);
"""

SERVER_PERMISSIONS_FOR_PRINCIPAL = """
SELECT [class], [class_desc], [major_id], [minor_id], [grantee_principal_id],
       [grantor_principal_id], [type], [permission_name], [state], [state_desc]
FROM [sys].[server_permissions]
WHERE [grantee_principal_id] = (SELECT [principal_id] FROM [sys].[server_principals] WHERE [name] = @name)
"""

SERVER_PERMISSION_FOR_PRINCIPAL = SERVER_PERMISSIONS_FOR_PRINCIPAL + "  AND [permission_name] = @permission_name\n"

# ============================================================================
# Database users
# ============================================================================

_USER_COLUMNS = """
SELECT [name], [principal_id], [type], [type_desc], [default_schema_name],
       CONVERT(VARCHAR(MAX), [sid], 1) AS [sid], [authentication_type_desc],
       [default_language_name], SUSER_SNAME([sid]) AS [login_name]
FROM [sys].[database_principals]
WHERE [type] NOT IN ('R', 'A')
"""

USER_BY_NAME = _USER_COLUMNS + "  AND [name] = @name\n"
USER_BY_PRINCIPAL_ID = _USER_COLUMNS + "  AND [principal_id] = @principal_id\n"

# ============================================================================
# Database roles
# ============================================================================

_DATABASE_ROLE_COLUMNS = """
SELECT [name], [principal_id], [type], [type_desc], [owning_principal_id],
       CAST([is_fixed_role] AS INT) AS [is_fixed_role]
FROM [sys].[database_principals]
WHERE [type] = 'R'
"""

DATABASE_ROLE_BY_NAME = _DATABASE_ROLE_COLUMNS + "  AND [name] = @name\n"
DATABASE_ROLE_BY_PRINCIPAL_ID = _DATABASE_ROLE_COLUMNS + "  AND [principal_id] = @principal_id\n"

DATABASE_PRINCIPAL_BY_ID = """
SELECT [name], [principal_id], [type]
FROM [sys].[database_principals]
WHERE [principal_id] = @principal_id
"""

DATABASE_ROLE_MEMBERS = """
SELECT [name], [principal_id], [type], [type_desc], [default_schema_name],
       CONVERT(VARCHAR(MAX), [sid], 1) AS [sid], [authentication_type_desc],
       [default_language_name], SUSER_SNAME([sid]) AS [login_name]
FROM [sys].[database_principals]
WHERE [principal_id] IN (
    SELECT [member_principal_id]
    FROM [sys].[database_role_members]
    WHERE [role_principal_id] = (
        SELECT [principal_id] FROM [sys].[database_principals]
        WHERE [name] = @name AND [type] = 'R'))
"""

# ============================================================================
# Database and schema permissions
# ============================================================================

DATABASE_PERMISSIONS_FOR_ROLE = """
SELECT [class], [class_desc], [major_id], [minor_id], [grantee_principal_id],
       [grantor_principal_id], [type], [permission_name], [state], [state_desc]
FROM [sys].[database_permissions]
WHERE [grantee_principal_id] = (SELECT [principal_id] FROM [sys].[database_principals] WHERE [name] = @name)
  AND [class] = 0
"""

DATABASE_PERMISSION_FOR_ROLE = DATABASE_PERMISSIONS_FOR_ROLE + "  AND [permission_name] = @permission_name\n"

SCHEMA_PERMISSIONS_FOR_ROLE = """
SELECT dp.[class], dp.[class_desc], dp.[major_id], dp.[minor_id], dp.[grantee_principal_id],
       dp.[grantor_principal_id], dp.[type], dp.[permission_name], dp.[state], dp.[state_desc]
FROM [sys].[database_permissions] dp
INNER JOIN [sys].[schemas] s ON dp.[major_id] = s.[schema_id]
WHERE dp.[grantee_principal_id] = (SELECT [principal_id] FROM [sys].[database_principals] WHERE [name] = @name)
  AND s.[name] = @schema_name
  AND dp.[class] = 3
"""

SCHEMA_PERMISSION_FOR_ROLE = SCHEMA_PERMISSIONS_FOR_ROLE + "  AND dp.[permission_name] = @permission_name\n"
