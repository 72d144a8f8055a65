"""Tests for the MosquittoDynsec facade over the in-memory transport."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from pydantic import ValidationError

from mosquitto_dynsec.client import MosquittoDynsec
from mosquitto_dynsec.config import ConnectOptions
from mosquitto_dynsec.exceptions import (
    CommandAlreadyPendingError,
    CommandTimeoutError,
    MalformedResponseError,
    NotConnectedError,
    RemoteCommandError,
)
from mosquitto_dynsec.memory import InMemoryTransport
from mosquitto_dynsec.types import AclType, ClientInfo, DefaultACLEntry, GroupInfo


async def _start(coro: Any) -> asyncio.Task[Any]:
    task = asyncio.create_task(coro)
    await asyncio.sleep(0)
    return task


def _ack(command: dict[str, Any]) -> dict[str, Any]:
    return {"command": command["command"]}


# -- end-to-end scenarios -------------------------------------------------------


@pytest.mark.asyncio
async def test_create_client_resolves_with_none(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.create_client("u1"))
    assert transport.published_commands() == [
        {"username": "u1", "command": "createClient"}
    ]
    transport.deliver(
        "$CONTROL/dynamic-security/v1/response",
        '{"responses":[{"command":"createClient"}]}',
    )
    assert await task is None


@pytest.mark.asyncio
async def test_get_client_unwraps_client(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.get_client("u1"))
    client = {"username": "u1", "clientid": "", "roles": [], "groups": []}
    transport.respond({"command": "getClient", "data": {"client": client}})
    result = await task
    assert isinstance(result, ClientInfo)
    assert result.model_dump() == client


@pytest.mark.asyncio
async def test_delete_role_rejects_with_remote_message(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.delete_role("ghost"))
    transport.respond({"command": "deleteRole", "error": "Role not found"})
    with pytest.raises(RemoteCommandError) as exc_info:
        await task
    assert str(exc_info.value) == "Role not found"


@pytest.mark.asyncio
async def test_list_clients_times_out_without_touching_others(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    listing = await _start(dynsec.list_clients())
    dynsec.timeout_seconds = 5
    role = await _start(dynsec.create_role("r1"))
    with pytest.raises(CommandTimeoutError):
        await listing
    assert not role.done()
    transport.respond({"command": "createRole"})
    assert await role is None


# -- facade behaviour -----------------------------------------------------------


@pytest.mark.asyncio
async def test_not_connected() -> None:
    dynsec = MosquittoDynsec()
    with pytest.raises(NotConnectedError):
        await dynsec.list_roles()


@pytest.mark.asyncio
async def test_same_command_cannot_overlap(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    first = await _start(dynsec.get_client("a"))
    with pytest.raises(CommandAlreadyPendingError):
        await dynsec.get_client("b")
    transport.respond({"command": "getClient", "data": {"client": {"username": "a"}}})
    assert (await first).username == "a"


@pytest.mark.asyncio
async def test_get_client_keeps_extra_fields(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.get_client("user1"))
    transport.respond(
        {
            "command": "getClient",
            "data": {
                "client": {
                    "username": "user1",
                    "clientid": "user1_clientid",
                    "disabled": True,
                    "roles": [{"rolename": "admin", "priority": 2}],
                    "groups": [],
                }
            },
        }
    )
    client = await task
    assert client.roles[0].rolename == "admin"  # type: ignore[union-attr]
    assert client.model_extra == {"disabled": True}


@pytest.mark.asyncio
async def test_missing_projection_field_is_malformed(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.get_role("r1"))
    transport.respond({"command": "getRole", "data": {"unexpected": {}}})
    with pytest.raises(MalformedResponseError):
        await task


@pytest.mark.asyncio
async def test_invalid_projection_shape_is_malformed(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.list_groups())
    transport.respond({"command": "listGroups", "data": {"groups": []}})
    with pytest.raises(MalformedResponseError):
        await task


@pytest.mark.asyncio
async def test_list_clients_parameters_and_result(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.list_clients(count=10, offset=5))
    assert transport.published_commands() == [
        {"count": 10, "offset": 5, "command": "listClients"}
    ]
    transport.respond(
        {"command": "listClients", "data": {"totalCount": 2, "clients": ["a", "b"]}}
    )
    result = await task
    assert result.totalCount == 2
    assert result.clients == ["a", "b"]


@pytest.mark.asyncio
async def test_list_request_validated_before_publish(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    with pytest.raises(ValidationError):
        await dynsec.list_roles(offset=-1)
    assert transport.get_published() == []


@pytest.mark.asyncio
async def test_add_role_acl(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(
        dynsec.add_role_acl("role1", AclType.PUBLISH_CLIENT_SEND, "/foobar", True, 3)
    )
    assert transport.published_commands() == [
        {
            "rolename": "role1",
            "acltype": "publishClientSend",
            "topic": "/foobar",
            "allow": True,
            "priority": 3,
            "command": "addRoleACL",
        }
    ]
    transport.respond({"command": "addRoleACL"})
    assert await task is None


@pytest.mark.asyncio
async def test_unknown_acltype_rejected(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    with pytest.raises(ValueError):
        await dynsec.remove_role_acl("role1", "publishEverything", "/foobar")
    assert transport.get_published() == []


@pytest.mark.asyncio
async def test_get_role(dynsec: MosquittoDynsec, transport: InMemoryTransport) -> None:
    task = await _start(dynsec.get_role("role1"))
    transport.respond(
        {"command": "getRole", "data": {"role": {"rolename": "role1", "acls": []}}}
    )
    role = await task
    assert role.rolename == "role1"
    assert role.acls == []


@pytest.mark.asyncio
async def test_get_anonymous_group_sends_no_parameters(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.get_anonymous_group())
    assert transport.published_commands() == [{"command": "getAnonymousGroup"}]
    transport.respond(
        {"command": "getAnonymousGroup", "data": {"group": {"groupname": "anon"}}}
    )
    group = await task
    assert isinstance(group, GroupInfo)
    assert group.groupname == "anon"


@pytest.mark.asyncio
async def test_default_acl_access_round_trip(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.get_default_acl_access("subscribe"))
    assert transport.published_commands() == [
        {"acltype": "subscribe", "command": "getDefaultACLAccess"}
    ]
    transport.respond(
        {
            "command": "getDefaultACLAccess",
            "data": {"acls": [{"acltype": "subscribe", "allow": False}]},
        }
    )
    assert await task == [DefaultACLEntry(acltype="subscribe", allow=False)]

    transport.clear()
    task = await _start(
        dynsec.set_default_acl_access(
            [
                {"acltype": "publishClientSend", "allow": True},
                DefaultACLEntry(acltype="unsubscribe", allow=True),
            ]
        )
    )
    assert transport.published_commands() == [
        {
            "acls": [
                {"acltype": "publishClientSend", "allow": True},
                {"acltype": "unsubscribe", "allow": True},
            ],
            "command": "setDefaultACLAccess",
        }
    ]
    transport.respond({"command": "setDefaultACLAccess"})
    assert await task is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "args", "expected"),
    [
        ("delete_client", ("u1",), {"command": "deleteClient", "username": "u1"}),
        ("set_client_id", ("u1", "cid"), {"command": "setClientId", "username": "u1", "clientid": "cid"}),
        ("set_client_password", ("u1", "pw"), {"command": "setClientPassword", "username": "u1", "password": "pw"}),
        ("add_client_role", ("u1", "r1"), {"command": "addClientRole", "username": "u1", "rolename": "r1"}),
        (
            "add_client_role",
            ("u1", "r1", 4),
            {"command": "addClientRole", "username": "u1", "rolename": "r1", "priority": 4},
        ),
        ("remove_client_role", ("u1", "r1"), {"command": "removeClientRole", "username": "u1", "rolename": "r1"}),
        ("enable_client", ("u1",), {"command": "enableClient", "username": "u1"}),
        ("disable_client", ("u1",), {"command": "disableClient", "username": "u1"}),
        ("create_role", ("r1",), {"command": "createRole", "rolename": "r1"}),
        (
            "remove_role_acl",
            ("r1", "subscribePattern", "a/#"),
            {"command": "removeRoleACL", "rolename": "r1", "acltype": "subscribePattern", "topic": "a/#"},
        ),
        ("create_group", ("g1",), {"command": "createGroup", "groupname": "g1"}),
        ("delete_group", ("g1",), {"command": "deleteGroup", "groupname": "g1"}),
        ("set_anonymous_group", ("g1",), {"command": "setAnonymousGroup", "groupname": "g1"}),
        ("add_group_client", ("g1", "u1"), {"command": "addGroupClient", "groupname": "g1", "username": "u1"}),
        ("remove_group_client", ("g1", "u1"), {"command": "removeGroupClient", "groupname": "g1", "username": "u1"}),
        ("add_group_role", ("g1", "r1"), {"command": "addGroupRole", "groupname": "g1", "rolename": "r1"}),
        ("remove_group_role", ("g1", "r1"), {"command": "removeGroupRole", "groupname": "g1", "rolename": "r1"}),
    ],
)
async def test_void_commands(
    method: str, args: tuple[Any, ...], expected: dict[str, Any]
) -> None:
    transport = InMemoryTransport(responder=_ack)
    dynsec = MosquittoDynsec()
    await dynsec.connect_transport(transport)
    assert await getattr(dynsec, method)(*args) is None
    assert transport.published_commands() == [expected]
    await dynsec.disconnect()


@pytest.mark.asyncio
async def test_send_command_passthrough(
    dynsec: MosquittoDynsec, transport: InMemoryTransport
) -> None:
    task = await _start(dynsec.send_command("modifyClient", {"username": "u1"}))
    transport.respond({"command": "modifyClient", "data": {"ok": True}})
    assert await task == {"ok": True}


@pytest.mark.asyncio
async def test_async_context_manager_disconnects() -> None:
    transport = InMemoryTransport()
    async with MosquittoDynsec() as dynsec:
        await dynsec.connect_transport(transport)
        assert dynsec.is_connected
    assert not dynsec.is_connected
    assert transport.close_count == 1


@pytest.mark.asyncio
async def test_connect_builds_mqtt_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[ConnectOptions] = []

    def fake_manager(options: ConnectOptions) -> InMemoryTransport:
        created.append(options)
        return InMemoryTransport()

    monkeypatch.setattr("mosquitto_dynsec.client.MQTTConnectionManager", fake_manager)
    dynsec = MosquittoDynsec()
    await dynsec.connect(port=10123, password="123")
    (options,) = created
    assert options.hostname == "localhost"
    assert options.port == 10123
    assert options.username == "admin-user"
    assert options.password == "123"
    assert dynsec.is_connected
    await dynsec.disconnect()


@pytest.mark.asyncio
async def test_connect_overrides_are_validated() -> None:
    dynsec = MosquittoDynsec()
    with pytest.raises(ValidationError):
        await dynsec.connect(ConnectOptions(), port=0)
    assert not dynsec.is_connected
