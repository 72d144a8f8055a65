"""Request and result models of the dynamic-security commands."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AclType(str, Enum):
    """ACL types accepted by addRoleACL / removeRoleACL."""

    PUBLISH_CLIENT_SEND = "publishClientSend"
    PUBLISH_CLIENT_RECEIVE = "publishClientReceive"
    SUBSCRIBE_LITERAL = "subscribeLiteral"
    SUBSCRIBE_PATTERN = "subscribePattern"
    UNSUBSCRIBE_LITERAL = "unsubscribeLiteral"
    UNSUBSCRIBE_PATTERN = "unsubscribePattern"


class DefaultAclType(str, Enum):
    """ACL types with a broker-wide default."""

    PUBLISH_CLIENT_SEND = "publishClientSend"
    PUBLISH_CLIENT_RECEIVE = "publishClientReceive"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)


class _Result(BaseModel):
    model_config = ConfigDict(extra="allow")


# -- Requests ---------------------------------------------------------


class ListRequest(_Request):
    count: int | None = Field(default=None, ge=-1)
    offset: int | None = Field(default=None, ge=0)
    verbose: bool | None = None


class CreateClientRequest(_Request):
    username: str = Field(..., min_length=1)
    password: str | None = None
    clientid: str | None = None
    textname: str | None = None
    textdescription: str | None = None


class AddRoleACLRequest(_Request):
    rolename: str = Field(..., min_length=1)
    acltype: AclType
    topic: str
    allow: bool
    priority: int | None = None


class RemoveRoleACLRequest(_Request):
    rolename: str = Field(..., min_length=1)
    acltype: AclType
    topic: str


class DefaultACLEntry(_Request):
    acltype: DefaultAclType
    allow: bool


# -- Results ----------------------------------------------------------


class RoleReference(_Result):
    rolename: str
    priority: int | None = None


class GroupReference(_Result):
    groupname: str
    priority: int | None = None


class ClientReference(_Result):
    username: str


class RoleACL(_Result):
    acltype: str
    topic: str
    allow: bool | None = None
    priority: int | None = None


class ClientInfo(_Result):
    """Result of getClient. Unknown fields (``disabled``, ``textname``…) are kept."""

    username: str
    clientid: str | None = None
    roles: list[RoleReference | str] = Field(default_factory=list)
    groups: list[GroupReference | str] = Field(default_factory=list)


class RoleInfo(_Result):
    rolename: str
    acls: list[RoleACL] = Field(default_factory=list)


class GroupInfo(_Result):
    groupname: str
    roles: list[RoleReference | str] = Field(default_factory=list)
    clients: list[ClientReference | str] = Field(default_factory=list)


class ListClientsResponse(_Result):
    totalCount: int  # noqa: N815
    clients: list[str | ClientInfo] = Field(default_factory=list)


class ListRolesResponse(_Result):
    totalCount: int  # noqa: N815
    roles: list[str | RoleInfo] = Field(default_factory=list)


class ListGroupsResponse(_Result):
    totalCount: int  # noqa: N815
    groups: list[str | GroupInfo] = Field(default_factory=list)
