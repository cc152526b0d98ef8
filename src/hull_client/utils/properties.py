"""Organization property tree flattening."""

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hull_client.client import HullClient

BOOTSTRAP_PATH = "search/user_reports/bootstrap"
GROUP_ID_KEYS = ("ship_id", "app_id", "platform_id", "resource_id")


def get_properties(
    raw: Iterable[dict[str, Any]],
    path: list[str] | None = None,
    id_path: list[str] | None = None,
) -> tuple[dict[str, dict[str, Any]], list[dict[str, Any]]]:
    """Walk a property tree.

    Returns:
        Tuple of (properties by key, rebuilt tree)
    """
    properties: dict[str, dict[str, Any]] = {}
    tree: list[dict[str, Any]] = []

    for props in raw:
        title = props.get("text") or props.get("name")
        key = props.get("id") or props.get("key")
        node = {**props, "id_path": id_path, "path": path, "title": title, "key": key}

        if key:
            properties[key] = node
        elif node.get("children"):
            group_id = next((node[k] for k in GROUP_ID_KEYS if node.get(k)), title)
            children, subtree = get_properties(
                node["children"],
                (path or []) + [title],
                (id_path or []) + [group_id],
            )
            node["children"] = subtree
            properties.update(children)

        tree.append(node)

    return properties, tree


async def get(client: "HullClient") -> dict[str, dict[str, Any]]:
    """Fetch every property of the organization with its metadata."""
    response = await client.get(BOOTSTRAP_PATH)
    properties, _ = get_properties(response.get("tree") or [])
    return properties
