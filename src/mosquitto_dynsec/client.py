"""MosquittoDynsec — typed client for the dynamic-security control API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from .config import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS, ConnectOptions
from .engine import CorrelationEngine
from .exceptions import MalformedResponseError
from .mqtt import MQTTConnectionManager
from .types import (
    AclType,
    AddRoleACLRequest,
    ClientInfo,
    CreateClientRequest,
    DefaultACLEntry,
    DefaultAclType,
    GroupInfo,
    ListClientsResponse,
    ListGroupsResponse,
    ListRequest,
    ListRolesResponse,
    RemoveRoleACLRequest,
    RoleInfo,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from types import TracebackType

    from .ports import ITransport

T = TypeVar("T", bound=BaseModel)


def _validate(command: str, model: type[T], data: Any) -> T:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Unexpected {command} result: {e}") from e


def _unwrap(command: str, result: Any, key: str) -> Any:
    if not isinstance(result, dict) or key not in result:
        raise MalformedResponseError(f"{command} result has no {key!r} field")
    return result[key]


class MosquittoDynsec:
    """Administer clients, roles and groups of a Mosquitto broker.

    Each method sends one command through a CorrelationEngine and narrows the
    result. Commands sharing a name cannot overlap: await one before issuing
    the next (``asyncio.gather`` of two ``get_client`` calls fails with
    CommandAlreadyPendingError).

    Example:
        ```python
        async with MosquittoDynsec() as dynsec:
            await dynsec.connect(password="secret")
            await dynsec.create_client("user1", password="pass")
            client = await dynsec.get_client("user1")
        ```
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        api_version: str = DEFAULT_API_VERSION,
        engine: CorrelationEngine | None = None,
    ) -> None:
        self._engine = engine or CorrelationEngine(
            timeout_seconds=timeout_seconds,
            api_version=api_version,
        )

    @property
    def engine(self) -> CorrelationEngine:
        return self._engine

    @property
    def timeout_seconds(self) -> float:
        return self._engine.timeout_seconds

    @timeout_seconds.setter
    def timeout_seconds(self, value: float) -> None:
        self._engine.timeout_seconds = value

    @property
    def is_connected(self) -> bool:
        return self._engine.is_connected

    # -- connection ---------------------------------------------------------

    async def connect(
        self, options: ConnectOptions | None = None, **overrides: Any
    ) -> None:
        """Connect to the broker over MQTT.

        Args:
            options: Connection settings; default ConnectOptions().
            **overrides: Individual ConnectOptions fields, e.g. ``port=8883``.
        """
        opts = options or ConnectOptions()
        if overrides:
            opts = ConnectOptions.model_validate({**opts.model_dump(), **overrides})
        await self._engine.connect(MQTTConnectionManager(opts))

    async def connect_transport(self, transport: ITransport) -> None:
        """Connect over an already configured transport."""
        await self._engine.connect(transport)

    async def disconnect(self) -> None:
        """Close the connection; commands still pending fail with DisconnectedError."""
        await self._engine.disconnect()

    async def __aenter__(self) -> MosquittoDynsec:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    async def send_command(
        self, name: str, parameters: Mapping[str, Any] | None = None
    ) -> Any:
        """Send any command by name and return its raw ``data``."""
        return await self._engine.issue_command(name, parameters)

    async def _send(
        self, name: str, params: BaseModel | Mapping[str, Any] | None = None
    ) -> Any:
        if isinstance(params, BaseModel):
            params = params.model_dump(mode="json", exclude_none=True)
        return await self._engine.issue_command(name, params)

    # -- default ACL --------------------------------------------------------

    async def get_default_acl_access(
        self, acltype: DefaultAclType | str
    ) -> list[DefaultACLEntry]:
        acltype = DefaultAclType(acltype)
        result = await self._send("getDefaultACLAccess", {"acltype": acltype.value})
        acls = _unwrap("getDefaultACLAccess", result, "acls")
        return [_validate("getDefaultACLAccess", DefaultACLEntry, a) for a in acls]

    async def set_default_acl_access(
        self, acls: Iterable[DefaultACLEntry | Mapping[str, Any]]
    ) -> None:
        entries = [
            a if isinstance(a, DefaultACLEntry) else DefaultACLEntry.model_validate(a)
            for a in acls
        ]
        await self._send(
            "setDefaultACLAccess",
            {"acls": [e.model_dump(mode="json") for e in entries]},
        )

    # -- clients ------------------------------------------------------------

    async def list_clients(
        self,
        count: int | None = None,
        offset: int | None = None,
        verbose: bool | None = None,
    ) -> ListClientsResponse:
        request = ListRequest(count=count, offset=offset, verbose=verbose)
        result = await self._send("listClients", request)
        return _validate("listClients", ListClientsResponse, result)

    async def create_client(
        self,
        username: str,
        password: str | None = None,
        clientid: str | None = None,
        textname: str | None = None,
        textdescription: str | None = None,
    ) -> None:
        request = CreateClientRequest(
            username=username,
            password=password,
            clientid=clientid,
            textname=textname,
            textdescription=textdescription,
        )
        await self._send("createClient", request)

    async def delete_client(self, username: str) -> None:
        await self._send("deleteClient", {"username": username})

    async def set_client_id(self, username: str, clientid: str) -> None:
        await self._send("setClientId", {"username": username, "clientid": clientid})

    async def set_client_password(self, username: str, password: str) -> None:
        await self._send(
            "setClientPassword", {"username": username, "password": password}
        )

    async def get_client(self, username: str) -> ClientInfo:
        result = await self._send("getClient", {"username": username})
        client = _unwrap("getClient", result, "client")
        return _validate("getClient", ClientInfo, client)

    async def add_client_role(
        self, username: str, rolename: str, priority: int | None = None
    ) -> None:
        await self._send(
            "addClientRole",
            {"username": username, "rolename": rolename, "priority": priority},
        )

    async def remove_client_role(self, username: str, rolename: str) -> None:
        await self._send(
            "removeClientRole", {"username": username, "rolename": rolename}
        )

    async def enable_client(self, username: str) -> None:
        await self._send("enableClient", {"username": username})

    async def disable_client(self, username: str) -> None:
        await self._send("disableClient", {"username": username})

    # -- roles --------------------------------------------------------------

    async def create_role(self, rolename: str) -> None:
        await self._send("createRole", {"rolename": rolename})

    async def delete_role(self, rolename: str) -> None:
        await self._send("deleteRole", {"rolename": rolename})

    async def get_role(self, rolename: str) -> RoleInfo:
        result = await self._send("getRole", {"rolename": rolename})
        return _validate("getRole", RoleInfo, _unwrap("getRole", result, "role"))

    async def list_roles(
        self,
        count: int | None = None,
        offset: int | None = None,
        verbose: bool | None = None,
    ) -> ListRolesResponse:
        request = ListRequest(count=count, offset=offset, verbose=verbose)
        result = await self._send("listRoles", request)
        return _validate("listRoles", ListRolesResponse, result)

    async def add_role_acl(
        self,
        rolename: str,
        acltype: AclType | str,
        topic: str,
        allow: bool,
        priority: int | None = None,
    ) -> None:
        request = AddRoleACLRequest(
            rolename=rolename,
            acltype=AclType(acltype),
            topic=topic,
            allow=allow,
            priority=priority,
        )
        await self._send("addRoleACL", request)

    async def remove_role_acl(
        self, rolename: str, acltype: AclType | str, topic: str
    ) -> None:
        request = RemoveRoleACLRequest(
            rolename=rolename, acltype=AclType(acltype), topic=topic
        )
        await self._send("removeRoleACL", request)

    # -- groups -------------------------------------------------------------

    async def create_group(self, groupname: str) -> None:
        await self._send("createGroup", {"groupname": groupname})

    async def delete_group(self, groupname: str) -> None:
        await self._send("deleteGroup", {"groupname": groupname})

    async def list_groups(
        self,
        count: int | None = None,
        offset: int | None = None,
        verbose: bool | None = None,
    ) -> ListGroupsResponse:
        request = ListRequest(count=count, offset=offset, verbose=verbose)
        result = await self._send("listGroups", request)
        return _validate("listGroups", ListGroupsResponse, result)

    async def get_group(self, groupname: str) -> GroupInfo:
        result = await self._send("getGroup", {"groupname": groupname})
        return _validate("getGroup", GroupInfo, _unwrap("getGroup", result, "group"))

    async def get_anonymous_group(self) -> GroupInfo:
        result = await self._send("getAnonymousGroup")
        return _validate(
            "getAnonymousGroup",
            GroupInfo,
            _unwrap("getAnonymousGroup", result, "group"),
        )

    async def set_anonymous_group(self, groupname: str) -> None:
        await self._send("setAnonymousGroup", {"groupname": groupname})

    async def add_group_client(self, groupname: str, username: str) -> None:
        await self._send(
            "addGroupClient", {"groupname": groupname, "username": username}
        )

    async def remove_group_client(self, groupname: str, username: str) -> None:
        await self._send(
            "removeGroupClient", {"groupname": groupname, "username": username}
        )

    async def add_group_role(
        self, groupname: str, rolename: str, priority: int | None = None
    ) -> None:
        await self._send(
            "addGroupRole",
            {"groupname": groupname, "rolename": rolename, "priority": priority},
        )

    async def remove_group_role(self, groupname: str, rolename: str) -> None:
        await self._send(
            "removeGroupRole", {"groupname": groupname, "rolename": rolename}
        )
