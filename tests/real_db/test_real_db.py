"""
End-to-end checks against real SQL Server and Azure SQL Database targets.

Run with LOCAL_TEST=1 and/or AZURE_TEST=1 plus the matching
LOCAL_MSSQL_* / AZURE_MSSQL_* variables.
"""

import pytest
from pydantic import SecretStr

from mssqlpermissions.domain.errors import NotFoundError
from mssqlpermissions.domain.models import Login, Permission, Role, User

pytestmark = pytest.mark.realdb

PASSWORD = SecretStr("Str0ng!Passw0rd#2024")


def test_probe(client):
    dialect = client.dialect
    assert dialect.version
    assert dialect.contained or dialect.is_azure


def test_database_role_permissions_lifecycle(client, unique_name):
    role = Role(name=unique_name)
    client.database_roles.create(role)
    try:
        client.permissions.grant_many_atomic(role, [Permission(name="SELECT"), Permission(name="INSERT")])
        client.permissions.deny(role, Permission(name="DELETE"), schema="dbo")

        names = {p.name for p in client.permissions.list_for_role(role)}
        assert {"SELECT", "INSERT"} <= names
        denied = client.permissions.get_for_role(role, Permission(name="DELETE"), schema="dbo")
        assert denied.state == "D"

        client.permissions.revoke_many(role, [Permission(name="SELECT"), Permission(name="INSERT")])
        with pytest.raises(NotFoundError):
            client.permissions.get_for_role(role, Permission(name="SELECT"))
    finally:
        client.database_roles.delete(role)

    with pytest.raises(NotFoundError):
        client.database_roles.get(role)


def test_contained_user_membership(client, unique_name):
    user = User(name=f"{unique_name}_u", password=PASSWORD, contained=True)
    role = Role(name=f"{unique_name}_r")
    client.users.create(user)
    client.database_roles.create(role)
    try:
        client.database_roles.add_member(role, user)
        members = client.database_roles.get_members(role)
        assert [m.name for m in members] == [user.name]

        fetched = client.users.get(User(name=user.name))
        assert fetched.contained is True
        assert fetched.default_schema == "dbo"
    finally:
        client.database_roles.delete(role)
        client.users.delete(User(name=user.name))


def test_login_lifecycle(master_client, unique_name):
    login = Login(name=unique_name, password=PASSWORD)
    master_client.logins.create(login)
    try:
        fetched = master_client.logins.get(Login(name=unique_name))
        assert fetched.principal_id > 0
        master_client.logins.update(Login(name=unique_name, password=SecretStr("An0ther!Passw0rd#2024")))
    finally:
        master_client.logins.delete(Login(name=unique_name))

    with pytest.raises(NotFoundError):
        master_client.logins.get(Login(name=unique_name))
