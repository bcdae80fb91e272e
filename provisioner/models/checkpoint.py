"""Local checkpoint describing a provisioned database.

The JSON layout is shared with the bookkeeping document stored in the
database itself, which carries the same keys minus the credentials.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

CREDENTIAL_FIELDS = {"db_name", "db_user_name", "db_user_password"}


class LocalCheckpoint(BaseModel):
    """Connection endpoints and credentials of a provisioned database."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    database_service_url: Optional[str] = Field(None, alias="databaseServiceURL")
    sql_dev_web_admin: Optional[str] = Field(None, alias="sqlDevWebAdmin")
    sql_dev_web: Optional[str] = Field(None, alias="sqlDevWeb")
    apex_url: Optional[str] = Field(None, alias="apexURL")
    oml_url: Optional[str] = Field(None, alias="omlURL")
    sql_api: Optional[str] = Field(None, alias="sqlAPI")
    soda_api: Optional[str] = Field(None, alias="sodaAPI")
    version: Optional[str] = None

    db_name: str = Field(..., alias="dbName")
    db_user_name: str = Field(..., alias="dbUserName")
    db_user_password: str = Field(..., alias="dbUserPassword", repr=False)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def endpoints_document(self) -> Dict[str, Any]:
        """Document stored in the bookkeeping collection, without credentials."""
        return self.model_dump(by_alias=True, exclude=CREDENTIAL_FIELDS)
