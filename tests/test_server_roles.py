"""
Tests for server role operations.
"""

import pytest

from mssqlpermissions.application.server_roles import ServerRoleOperations
from mssqlpermissions.domain.errors import DriverError, NotFoundError, TopologyError
from mssqlpermissions.domain.models import Login, Role

ROLE_ROW = {
    "name": "auditors",
    "principal_id": 300,
    "type": "R",
    "type_desc": "SERVER_ROLE",
    "owning_principal_id": 1,
    "is_fixed_role": 0,
}
LOGIN_ROW = {"name": "app_login", "principal_id": 270, "type": "S", "is_disabled": 0}


class TestServerRoleReads:
    def test_get(self, server, master_ctx):
        server.respond("[type_desc] = 'SERVER_ROLE'", [ROLE_ROW])
        role = ServerRoleOperations(master_ctx).get(Role(name="auditors"))
        assert role.principal_id == 300
        assert role.type_description == "SERVER_ROLE"
        assert role.owning_principal_id == 1
        assert role.is_fixed_role is False

    def test_get_not_found(self, server, master_ctx):
        server.respond("[type_desc] = 'SERVER_ROLE'", [])
        with pytest.raises(NotFoundError, match="server role not found"):
            ServerRoleOperations(master_ctx).get(Role(name="ghost"))

    def test_get_members(self, server, master_ctx):
        server.respond("[server_role_members]", [LOGIN_ROW, {**LOGIN_ROW, "name": "other", "principal_id": 271}])
        members = ServerRoleOperations(master_ctx).get_members(Role(name="auditors"))
        assert [m.name for m in members] == ["app_login", "other"]

    def test_reads_require_master(self, server, app_ctx):
        with pytest.raises(TopologyError, match="cannot get server role from non master database"):
            ServerRoleOperations(app_ctx).get(Role(name="auditors"))


class TestServerRoleWrites:
    def test_create_with_default_owner(self, server, master_ctx):
        server.respond("WHERE [principal_id] = @principal_id", [{"name": "sa", "principal_id": 1, "type": "S"}])
        role = Role(name="auditors")
        ServerRoleOperations(master_ctx).create(role)

        owner_lookup = server.calls_matching("WHERE [principal_id] = @principal_id")[0]
        assert owner_lookup.params == {"principal_id": 1}
        [call] = server.ddl
        assert "N'CREATE SERVER ROLE ' + QUOTENAME(@name) + N' AUTHORIZATION ' + QUOTENAME(@owner_name)" in call.batch
        assert call.params == {"name": "auditors", "owner_name": "sa"}
        assert role.owning_principal_id is None

    def test_create_with_missing_owner(self, server, master_ctx):
        server.respond("WHERE [principal_id] = @principal_id", [])
        with pytest.raises(NotFoundError, match="cannot get login with principal id 42: login not found"):
            ServerRoleOperations(master_ctx).create(Role(name="auditors", owning_principal_id=42))
        assert server.ddl == []

    def test_create_forbidden_on_azure(self, server, azure_master_ctx):
        with pytest.raises(TopologyError, match="cannot create server role on Azure Database"):
            ServerRoleOperations(azure_master_ctx).create(Role(name="auditors"))
        assert server.calls == []

    def test_delete_runs_drop_script(self, server, master_ctx):
        ServerRoleOperations(master_ctx).delete(Role(name="auditors"))
        [call] = server.calls_matching("DROP SERVER ROLE")
        assert call.params == {"name": "auditors"}
        assert "N'public'" in call.batch
        assert "DROP MEMBER" in call.batch

    def test_add_member(self, server, master_ctx):
        server.respond("[sys].[sql_logins]", [LOGIN_ROW])
        server.respond("[type_desc] = 'SERVER_ROLE'", [ROLE_ROW])
        ServerRoleOperations(master_ctx).add_member(Role(name="auditors"), Login(name="app_login"))

        [call] = server.ddl
        assert "N'ALTER SERVER ROLE ' + QUOTENAME(@role_name) + N' ADD MEMBER ' + QUOTENAME(@login_name)" in call.batch
        assert call.params == {"role_name": "auditors", "login_name": "app_login"}

    def test_remove_member_missing_login(self, server, master_ctx):
        server.respond("[sys].[sql_logins]", [])
        with pytest.raises(NotFoundError, match="login not found"):
            ServerRoleOperations(master_ctx).remove_member(Role(name="auditors"), Login(name="ghost"))
        assert server.ddl == []

    def test_add_members_chains_error(self, server, master_ctx):
        server.respond("[sys].[sql_logins] WHERE [name] = @name", [LOGIN_ROW])
        server.respond("[type_desc] = 'SERVER_ROLE'", [ROLE_ROW])
        server.fail("N' ADD MEMBER '")
        with pytest.raises(DriverError) as exc_info:
            ServerRoleOperations(master_ctx).add_members(
                Role(name="auditors"), [Login(name="app_login"), Login(name="other")]
            )
        assert "cannot add member app_login to server role auditors" in str(exc_info.value)
        assert len(server.ddl) == 1

    def test_member_change_forbidden_on_azure(self, server, azure_master_ctx):
        with pytest.raises(TopologyError, match="cannot remove server role member on Azure Database"):
            ServerRoleOperations(azure_master_ctx).remove_member(Role(name="auditors"), Login(name="x"))
