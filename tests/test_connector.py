"""
Tests for URL assembly, ODBC translation and the connect-time probe.
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import pyodbc
import pytest
from pydantic import SecretStr

from mssqlpermissions.domain.connection import (
    DefaultAuth,
    ManagedIdentityAuth,
    ServicePrincipalAuth,
    SqlAuth,
)
from mssqlpermissions.domain.errors import ConnectivityError, DriverError, TopologyError, ValidationError
from mssqlpermissions.infrastructure.sql.connector import Connector, detect_odbc_driver, is_azure_version
from tests.fakes import AZURE_VERSION, ON_PREM_VERSION

DRIVER = "ODBC Driver 18 for SQL Server"


def _query(url):
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


def _script_probe(server, version=ON_PREM_VERSION, language="us_english", contained=1):
    server.respond("@@VERSION", [{"version": version}])
    server.respond("syslanguages", [{"name": language}])
    server.respond("contained database authentication", [{"value_in_use": contained}])


class TestUrl:
    def test_sql_auth(self):
        connector = Connector(
            "db.example.com", "appdb", 1433,
            SqlAuth(username="sa", password=SecretStr("p@ss:w/rd")), driver=DRIVER,
        )
        url = connector.build_url()
        parts = urlsplit(url)
        assert parts.scheme == "sqlserver"
        assert parts.hostname == "db.example.com"
        assert parts.port == 1433
        assert parts.username == "sa"
        assert parts.password == "p%40ss%3Aw%2Frd"
        assert _query(url) == {"database": "appdb", "app name": "mssqlpermissions"}

    def test_service_principal(self):
        connector = Connector(
            "srv.database.windows.net", "appdb",
            auth=ServicePrincipalAuth(client_id="cid", client_secret=SecretStr("sec"), tenant_id="tid"),
            driver=DRIVER,
        )
        url = connector.build_url()
        assert "@" not in urlsplit(url).netloc
        assert _query(url) == {
            "database": "appdb",
            "app name": "mssqlpermissions",
            "fedauth": "ActiveDirectoryServicePrincipal",
            "user id": "cid@tid",
            "password": "sec",
        }

    def test_query_key_order(self):
        connector = Connector(
            "srv", "appdb",
            auth=ServicePrincipalAuth(client_id="cid", client_secret=SecretStr("sec"), tenant_id="tid"),
        )
        query = urlsplit(connector.build_url()).query
        keys = [pair.split("=")[0] for pair in query.split("&")]
        assert keys == ["database", "app%20name", "fedauth", "user%20id", "password"]

    def test_system_managed_identity(self):
        connector = Connector("srv", "appdb", auth=ManagedIdentityAuth(user_id="ignored"))
        assert _query(connector.build_url()) == {
            "database": "appdb",
            "app name": "mssqlpermissions",
            "fedauth": "ActiveDirectoryManagedIdentity",
        }

    def test_user_managed_identity(self):
        connector = Connector(
            "srv", "appdb",
            auth=ManagedIdentityAuth(user_identity=True, user_id="uid", resource_id="/subscriptions/x"),
        )
        query = _query(connector.build_url())
        assert query["fedauth"] == "ActiveDirectoryManagedIdentity"
        assert query["user id"] == "uid"
        assert query["resource id"] == "/subscriptions/x"

    def test_default_auth(self):
        connector = Connector("srv", "appdb")
        assert isinstance(connector.auth, DefaultAuth)
        assert _query(connector.build_url())["fedauth"] == "ActiveDirectoryDefault"
        assert connector.port == 1433
        assert connector.timeout == 30

    def test_masked_url(self):
        connector = Connector(
            "srv", "appdb",
            auth=ServicePrincipalAuth(client_id="cid", client_secret=SecretStr("topsecret")),
        )
        masked = connector.build_url(mask_secrets=True)
        assert "topsecret" not in masked
        assert _query(masked)["password"] == "xxxxx"

    @pytest.mark.parametrize(
        "host, database, message",
        [("", "appdb", "missing host name"), ("srv", "", "missing database name")],
    )
    def test_missing_parts(self, host, database, message):
        with pytest.raises(ValidationError, match=message):
            Connector(host, database).build_url()


class TestConnectionString:
    def test_sql_auth(self):
        connector = Connector(
            "srv", "appdb", 14330, SqlAuth(username="sa", password=SecretStr("a;b}")), driver=DRIVER,
        )
        conn_str = connector.build_connection_string()
        assert conn_str.split(";")[:6] == [
            "Driver={ODBC Driver 18 for SQL Server}",
            "Server=tcp:srv,14330",
            "Database=appdb",
            "APP=mssqlpermissions",
            "Encrypt=yes",
            "TrustServerCertificate=no",
        ]
        assert "UID=sa" in conn_str
        assert conn_str.endswith("PWD={a;b}}}")

    def test_service_principal(self):
        connector = Connector(
            "srv", "appdb",
            auth=ServicePrincipalAuth(client_id="cid", client_secret=SecretStr("sec"), tenant_id="tid"),
            driver=DRIVER,
        )
        conn_str = connector.build_connection_string()
        assert "Authentication=ActiveDirectoryServicePrincipal" in conn_str
        assert "UID=cid@tid" in conn_str
        assert "PWD=sec" in conn_str

    def test_managed_identity_maps_to_msi(self):
        connector = Connector(
            "srv", "appdb", auth=ManagedIdentityAuth(user_identity=True, user_id="uid"), driver=DRIVER,
        )
        conn_str = connector.build_connection_string()
        assert "Authentication=ActiveDirectoryMsi" in conn_str
        assert "UID=uid" in conn_str

    def test_resource_id_only_is_warned(self, caplog):
        connector = Connector(
            "srv", "appdb",
            auth=ManagedIdentityAuth(user_identity=True, resource_id="/subscriptions/x"), driver=DRIVER,
        )
        conn_str = connector.build_connection_string()
        assert "UID=" not in conn_str
        assert "resource id /subscriptions/x is ignored" in caplog.text

    def test_trust_and_encrypt_flags(self):
        connector = Connector("srv", "appdb", driver=DRIVER, encrypt=False, trust_server_certificate=True)
        conn_str = connector.build_connection_string()
        assert "Encrypt=no" in conn_str
        assert "TrustServerCertificate=yes" in conn_str

    def test_driver_detection(self):
        with patch("pyodbc.drivers", return_value=["SQL Server", "ODBC Driver 17 for SQL Server"]):
            assert detect_odbc_driver() == "ODBC Driver 17 for SQL Server"

    def test_no_driver(self):
        with patch("pyodbc.drivers", return_value=["PostgreSQL Unicode"]):
            with pytest.raises(ConnectivityError, match="No SQL Server ODBC driver found"):
                detect_odbc_driver()


class TestConnect:
    def _connector(self, server, database="appdb"):
        return Connector(
            "srv", database,
            auth=SqlAuth(username="sa", password=SecretStr("pw")),
            driver=DRIVER, connect_factory=server.connect,
        )

    def test_on_prem_contained(self, server):
        _script_probe(server, contained=1)
        connector = self._connector(server)
        database = connector.connect()

        assert database is not None
        assert connector.connected
        assert connector.dialect.is_azure is False
        assert connector.dialect.contained is True
        assert connector.default_language == "us_english"
        assert server.pings == 1
        assert "PWD=pw" in server.connections[0].connection_string

    def test_azure_is_accepted_without_contained_flag(self, server):
        _script_probe(server, version=AZURE_VERSION, contained=0)
        connector = self._connector(server)
        connector.connect()
        assert connector.is_azure
        assert connector.dialect.contained is False

    def test_non_contained_on_prem_is_rejected(self, server):
        _script_probe(server, contained=0)
        connector = self._connector(server)
        with pytest.raises(TopologyError, match="not a contained database"):
            connector.connect()
        assert not connector.connected

    def test_ping_failure(self, server):
        server.fail("SELECT 1", pyodbc.OperationalError("08001", "no route"))
        with pytest.raises(ConnectivityError, match="error connecting to the database"):
            self._connector(server).connect()

    def test_probe_failure(self, server):
        _script_probe(server)
        server.fail("syslanguages")
        with pytest.raises(DriverError, match="error retrieving the server default language"):
            self._connector(server).connect()

    def test_dialect_before_connect(self):
        with pytest.raises(ConnectivityError, match="not connected"):
            _ = Connector("srv", "appdb").dialect

    def test_is_master(self):
        assert Connector("srv", "Master").is_master
        assert not Connector("srv", "appdb").is_master


def test_is_azure_version():
    assert is_azure_version(AZURE_VERSION)
    assert not is_azure_version(ON_PREM_VERSION)
    assert not is_azure_version("")


def test_service_principal_query_values():
    connector = Connector(
        "srv", "appdb",
        auth=ServicePrincipalAuth(client_id="abcd", tenant_id="tnt", client_secret=SecretStr("s!")),
    )
    query = _query(connector.build_url())
    assert query["fedauth"] == "ActiveDirectoryServicePrincipal"
    assert query["user id"] == "abcd@tnt"
    assert query["password"] == "s!"
