"""
Catalog of the SQL / PL/SQL scripts run against the database.

Each script declares its parameters and how they are embedded:
- identifier: unquoted SQL identifier, validated against a strict pattern
- literal: inside single quotes, quotes doubled
- quoted: inside double quotes (passwords), double quotes rejected

Rendering refuses missing, unexpected or unsafe values.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from provisioner.core.exceptions import ScriptRenderError

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_$#]{0,127}$")

LOAD_CREDENTIAL_NAME = "DRAGON_CREDENTIAL_NAME"
BACKUP_CREDENTIAL_NAME = "BACKUP_CREDENTIAL_NAME"


class ParameterKind(str, Enum):
    IDENTIFIER = "identifier"
    LITERAL = "literal"
    QUOTED = "quoted"


@dataclass(frozen=True)
class SqlScript:
    name: str
    template: str
    parameters: Dict[str, ParameterKind]


CREATE_SCHEMA = SqlScript(
    name="create_schema",
    template=(
        'create user {user_name} identified by "{password}" '
        "DEFAULT TABLESPACE DATA TEMPORARY TABLESPACE TEMP;\n"
        "alter user {user_name} quota unlimited on data;\n"
        "grant dwrole, create session, soda_app, alter session to {user_name};\n"
        "grant execute on CTX_DDL to {user_name};\n"
        "grant select on v$mystat to {user_name};\n"
        "BEGIN\n"
        "    ords_admin.enable_schema(p_enabled => TRUE, p_schema => '{schema}', "
        "p_url_mapping_type => 'BASE_PATH', p_url_mapping_pattern => '{url_pattern}', "
        "p_auto_rest_auth => TRUE);\n"
        "END;\n"
        "/"
    ),
    parameters={
        "user_name": ParameterKind.IDENTIFIER,
        "password": ParameterKind.QUOTED,
        "schema": ParameterKind.LITERAL,
        "url_pattern": ParameterKind.LITERAL,
    },
)

CREATE_LOAD_CREDENTIAL = SqlScript(
    name="create_load_credential",
    template=(
        "BEGIN\n"
        "    DBMS_CLOUD.CREATE_CREDENTIAL(credential_name => '{credential}', "
        "username => '{username}', password => '{auth_token}');\n"
        "    COMMIT;\n"
        "END;\n"
        "/"
    ),
    parameters={
        "credential": ParameterKind.LITERAL,
        "username": ParameterKind.LITERAL,
        "auth_token": ParameterKind.LITERAL,
    },
)

CONFIGURE_BACKUP = SqlScript(
    name="configure_backup",
    template=(
        "ALTER DATABASE PROPERTY SET default_bucket='{default_bucket_url}';\n"
        "BEGIN\n"
        "    DBMS_CLOUD.CREATE_CREDENTIAL(credential_name => '{credential}', "
        "username => '{username}', password => '{auth_token}');\n"
        "    COMMIT;\n"
        "END;\n"
        "/\n"
        "ALTER DATABASE PROPERTY SET default_credential='ADMIN.{credential}'"
    ),
    parameters={
        "default_bucket_url": ParameterKind.LITERAL,
        "credential": ParameterKind.LITERAL,
        "username": ParameterKind.LITERAL,
        "auth_token": ParameterKind.LITERAL,
    },
)

COPY_COLLECTION = SqlScript(
    name="copy_collection",
    template=(
        "BEGIN\n"
        "    DBMS_CLOUD.COPY_COLLECTION(\n"
        "        collection_name => '{collection}',\n"
        "        credential_name => '{credential}',\n"
        "        file_uri_list => '{file_uri}',\n"
        "        format => JSON_OBJECT('recorddelimiter' value '''\\n''', "
        "'ignoreblanklines' value 'true') );\n"
        "END;\n"
        "/"
    ),
    parameters={
        "collection": ParameterKind.LITERAL,
        "credential": ParameterKind.LITERAL,
        "file_uri": ParameterKind.LITERAL,
    },
)

CATALOG: Dict[str, SqlScript] = {
    script.name: script
    for script in (CREATE_SCHEMA, CREATE_LOAD_CREDENTIAL, CONFIGURE_BACKUP, COPY_COLLECTION)
}


def _escape(script: SqlScript, name: str, kind: ParameterKind, value: str) -> str:
    if kind == ParameterKind.IDENTIFIER:
        if not IDENTIFIER_PATTERN.match(value):
            raise ScriptRenderError(script.name, f"{name} is not a valid identifier")
        return value
    if kind == ParameterKind.QUOTED:
        if '"' in value:
            raise ScriptRenderError(script.name, f"{name} must not contain double quotes")
        return value
    return value.replace("'", "''")


def render(script: SqlScript, **params: str) -> str:
    """Render a catalog script with escaped parameter values."""
    missing = set(script.parameters) - set(params)
    if missing:
        raise ScriptRenderError(script.name, f"missing parameters {sorted(missing)}")
    unexpected = set(params) - set(script.parameters)
    if unexpected:
        raise ScriptRenderError(script.name, f"unexpected parameters {sorted(unexpected)}")

    escaped = {
        name: _escape(script, name, kind, str(params[name]))
        for name, kind in script.parameters.items()
    }
    return script.template.format(**escaped)


def object_storage_uri(region: str, namespace: str, bucket: str, path: str) -> str:
    """Native object storage URI of an object or wildcard path."""
    return f"https://objectstorage.{region}.oraclecloud.com/n/{namespace}/b/{bucket}/o/{path}"


def swift_namespace_uri(region: str, namespace: str) -> str:
    """Swift endpoint of a namespace, used as database default bucket."""
    return f"https://swiftobjectstorage.{region}.oraclecloud.com/v1/{namespace}"
