from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hull_client.client import HullClient


async def update(client: "HullClient", new_settings: dict[str, Any]) -> Any:
    """Merge ``new_settings`` into the connector's ``private_settings``.

    The platform notifies connectors of the update, so calling this from a
    settings-update handler can loop.
    """
    ship = await client.get("app")
    private_settings = {**(ship.get("private_settings") or {}), **new_settings}
    return await client.put(ship["id"], {"private_settings": private_settings})
