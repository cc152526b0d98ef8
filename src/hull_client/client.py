"""Hull client: REST calls, identity scoping and firehose writes.

A ``HullClient`` acts as the connector. ``as_user``/``as_account`` return a
new ``HullClient`` bound to one identity and tagged with a ``Scope``. The
tag decides which identity operations the client exposes.

Write operations must be called with a running event loop. They return an
awaitable settled once the item has been delivered. Callers may await it or
drop it: failures of dropped writes are logged by the batcher.
"""

from __future__ import annotations

import asyncio
import uuid
import warnings
from collections.abc import Awaitable, Coroutine, Mapping
from enum import Enum
from functools import partial
from types import SimpleNamespace
from typing import Any

import httpx

from hull_client.core.claims import Claim
from hull_client.core.configuration import Configuration
from hull_client.core.errors import MissingClaim, UnsupportedScope
from hull_client.core.models import BatchItem
from hull_client.core.services.firehose import (
    BatcherRegistry,
    FirehoseBatcher,
    build_firehose_handler,
    get_batcher_registry,
)
from hull_client.core.services.jwt import lookup_token
from hull_client.core.services.rest import RestApiService, normalize_method
from hull_client.runtime.logging import ClientLogger, build_log_context
from hull_client.utils import properties as properties_utils
from hull_client.utils import settings as settings_utils
from hull_client.utils import traits as traits_utils

# Keys describing an identity, never inherited by a newly scoped client
SCOPE_KEYS = ("subject_type", "user_claim", "account_claim", "additional_claims", "access_token")
CAPTURE_KEYS = ("logs", "firehose_events")


class Scope(str, Enum):
    NONE = "none"
    USER = "user"
    ACCOUNT = "account"
    USER_ACCOUNT = "user_account"


# Operations available per scope
ENTITY_SCOPES = (Scope.USER, Scope.ACCOUNT, Scope.USER_ACCOUNT)
USER_SCOPES = (Scope.USER, Scope.USER_ACCOUNT)


class ClientUtils:
    """Helpers available as ``client.utils``."""

    def __init__(self, client: HullClient):
        self.traits = traits_utils
        self.properties = SimpleNamespace(get=partial(properties_utils.get, client))
        self.settings = SimpleNamespace(update=partial(settings_utils.update, client))

    def group_traits(self, flat: dict[str, Any]) -> dict[str, Any]:
        warnings.warn(
            "utils.group_traits is deprecated, use utils.traits.group instead",
            DeprecationWarning,
            stacklevel=2,
        )
        return traits_utils.group(flat)


def _unscoped(configuration: Configuration) -> dict[str, Any]:
    base = configuration.get_all()
    base.pop("version", None)
    for key in SCOPE_KEYS:
        base.pop(key, None)
    # Capture lists are shared with scoped clients, not copied
    for key in CAPTURE_KEYS:
        sink = configuration.sink(key)
        if sink is not None:
            base[key] = sink
    return base


def _copy_claim(claim: Claim | None) -> Claim | None:
    return dict(claim) if isinstance(claim, Mapping) else claim


class HullClient:
    """Client acting as a connector, or as a user or account once scoped.

    Args:
        config: Connector configuration, see ``Configuration``
        capture_logs: Collect client logs in ``configuration()["logs"]``
        capture_firehose_events: Collect firehose writes in
            ``configuration()["firehose_events"]`` instead of sending them
        batcher_registry: Registry holding firehose batchers, defaults to
            the process-wide one
        transport: httpx transport used for every request
        scope: Identity scope, set by ``as_user``/``as_account``/``account``
        additional_claims: Token directives of the scoped identity

    A client capturing logs holds a loguru sink until every client sharing
    the list is closed or garbage collected.

    Example:
        >>> async with HullClient({"id": "...", "secret": "...", "organization": "abc.hullapp.io"}) as client:
        ...     await client.as_user({"email": "foo@bar.com"}).traits({"plan": "pro"})
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        *,
        capture_logs: bool = False,
        capture_firehose_events: bool = False,
        batcher_registry: BatcherRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        scope: Scope = Scope.NONE,
        additional_claims: Mapping[str, Any] | None = None,
    ):
        if isinstance(config, Mapping):
            config = dict(config)
            if capture_logs and config.get("logs") is None:
                config["logs"] = []
            if capture_firehose_events and config.get("firehose_events") is None:
                config["firehose_events"] = []

        self.scope = Scope(scope)
        self._configuration = Configuration(config)
        self._additional_claims = dict(additional_claims or {})
        self._base_config = _unscoped(self._configuration)
        self._registry = batcher_registry if batcher_registry is not None else get_batcher_registry()
        self._transport = transport
        self._rest_api = RestApiService(transport=transport)
        self.logger = ClientLogger(
            build_log_context(self._configuration), logs=self._configuration.sink("logs")
        )
        self.utils = ClientUtils(self)
        self._batcher = self._build_batcher()

    def _build_batcher(self) -> FirehoseBatcher | None:
        if self._configuration.sink("firehose_events") is not None:
            return None
        # The firehose request authenticates as the connector, items carry their own token
        connector = Configuration(self._base_config)
        rest_api = self._rest_api
        return self._registry.get_or_create(
            connector,
            lambda: build_firehose_handler(
                connector, rest_api, ClientLogger(build_log_context(connector))
            ),
        )

    def configuration(self) -> dict[str, Any]:
        """Return a copy of the current configuration.

        Capture lists are returned as is, so captured entries can be inspected.
        """
        config = self._configuration.get_all()
        for key in CAPTURE_KEYS:
            sink = self._configuration.sink(key)
            if sink is not None:
                config[key] = sink
        return config

    def api(
        self,
        url: str,
        method: str = "get",
        params: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Coroutine[Any, Any, Any]:
        """Call the REST API.

        The verb is checked immediately, the request runs when awaited.

        Args:
            url: Path relative to the API prefix, or an absolute URL
            method: get, post, put, delete (or del)
            params: Query parameters for GET, JSON body otherwise
            options: ``timeout`` and ``retry`` in seconds, extra ``headers``

        Raises:
            UnsupportedMethod: If ``method`` is not a known verb
        """
        normalize_method(method)
        return self._rest_api.call(
            self._configuration, url, method, params, options, client_logger=self.logger
        )

    def get(self, url: str, params: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None):
        return self.api(url, "get", params, options)

    def post(self, url: str, params: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None):
        return self.api(url, "post", params, options)

    def put(self, url: str, params: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None):
        return self.api(url, "put", params, options)

    def delete(self, url: str, params: Mapping[str, Any] | None = None, options: Mapping[str, Any] | None = None):
        return self.api(url, "delete", params, options)

    def as_user(
        self, claim: Claim, additional_claims: Mapping[str, Any] | None = None
    ) -> HullClient:
        """Scope the client to a user.

        Args:
            claim: User id, or a mapping of ``id``/``email``/``external_id``/``anonymous_id``
            additional_claims: ``create``, ``scopes`` and ``active`` token directives

        Raises:
            MissingClaim: If ``claim`` is empty
            InvalidClaim: If ``claim`` carries no allowed field
        """
        if not claim:
            raise MissingClaim("User Claims was not defined when calling hull.as_user()")
        return self._scoped(Scope.USER, "user", user_claim=claim, additional_claims=additional_claims)

    def as_account(
        self, claim: Claim, additional_claims: Mapping[str, Any] | None = None
    ) -> HullClient:
        """Scope the client to an account.

        Raises:
            MissingClaim: If ``claim`` is empty
            InvalidClaim: If ``claim`` carries no allowed field
        """
        if not claim:
            raise MissingClaim("Account Claims was not defined when calling hull.as_account()")
        return self._scoped(
            Scope.ACCOUNT, "account", account_claim=claim, additional_claims=additional_claims
        )

    def _scoped(
        self,
        scope: Scope,
        subject_type: str,
        user_claim: Claim | None = None,
        account_claim: Claim | None = None,
        additional_claims: Mapping[str, Any] | None = None,
    ) -> HullClient:
        config = {
            **self._base_config,
            "subject_type": subject_type,
            "user_claim": _copy_claim(user_claim),
            "account_claim": _copy_claim(account_claim),
            "additional_claims": dict(additional_claims or {}),
        }
        return HullClient(
            config,
            scope=scope,
            additional_claims=additional_claims,
            batcher_registry=self._registry,
            transport=self._transport,
        )

    def _require(self, scopes: tuple[Scope, ...], operation: str) -> None:
        if self.scope not in scopes:
            raise UnsupportedScope(f"{operation}() is not available on a {self.scope.value} scoped client")

    def token(self, claims: Mapping[str, Any] | None = None) -> str:
        """Signed identity token of the scoped entity.

        Args:
            claims: Extra directives merged over the ones given when scoping

        Raises:
            UnsupportedScope: On a client that is not scoped

        Example:
            >>> client.as_user({"email": "xxx@example.com"}).token({"scopes": ["admin"]})
        """
        self._require(ENTITY_SCOPES, "token")
        config = self._configuration
        return lookup_token(
            {"id": config.get("id"), "secret": config.get("secret")},
            config.get("subject_type"),
            {"user": config.get("user_claim"), "account": config.get("account_claim")},
            {**self._additional_claims, **dict(claims or {})},
        )

    def account(self, claim: Claim | None = None) -> HullClient:
        """Link the scoped user to an account.

        Writes still go to the user, the token also carries the account claim.
        Without ``claim`` the token carries the user claim only.
        """
        self._require((Scope.USER,), "account")
        return self._scoped(
            Scope.USER_ACCOUNT,
            "account",
            user_claim=self._configuration.get("user_claim"),
            account_claim=claim or None,
            additional_claims=self._additional_claims,
        )

    def traits(
        self, traits: Mapping[str, Any], context: Mapping[str, Any] | None = None
    ) -> Awaitable[Any]:
        """Save attributes on the scoped entity.

        Args:
            traits: Flat mapping of attributes
            context: ``source`` prefixes every key with ``"<source>/"``,
                ``sync=True`` writes through the REST API instead of the firehose
        """
        self._require(ENTITY_SCOPES, "traits")
        context = dict(context or {})
        body = dict(traits)
        source = context.get("source")
        if source:
            body = {f"{source}/{key}": value for key, value in body.items()}

        if context.get("sync") is True:
            return self.put("me/traits", body)
        return self._batch("traits", body)

    def track(
        self,
        event: str,
        properties: Mapping[str, Any] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> Awaitable[None]:
        """Store an event on the user.

        Args:
            event: Event name
            properties: One-level mapping describing the event
            context: Event metadata (``source``, ``type``, ``created_at``,
                ``event_id``, ``ip``, ``referer``). ``event_id`` de-duplicates
                events and is generated when missing.
        """
        self._require(USER_SCOPES, "track")
        context = {"event_id": str(uuid.uuid4()), **dict(context or {})}
        if not context["event_id"]:
            context["event_id"] = str(uuid.uuid4())
        body = {
            "ip": None,
            "url": None,
            "referer": None,
            **context,
            "properties": dict(properties or {}),
            "event": event,
        }
        return self._batch("track", body)

    def alias(self, body: Mapping[str, Any]) -> Awaitable[None]:
        """Attach another identifier to the user."""
        self._require(USER_SCOPES, "alias")
        return self._batch("alias", dict(body))

    def unalias(self, body: Mapping[str, Any]) -> Awaitable[None]:
        """Detach an identifier from the user."""
        self._require(USER_SCOPES, "unalias")
        return self._batch("unalias", dict(body))

    def _batch(self, item_type: str, body: dict[str, Any]) -> asyncio.Future[None]:
        item = BatchItem(
            type=item_type,
            body=body,
            request_id=self._configuration.get("request_id"),
            headers={"Hull-Access-Token": self._configuration.get("access_token")},
        )

        events = self._configuration.sink("firehose_events")
        if events is not None:
            events.append({"context": dict(self.logger.context), "data": item.to_wire(exclude={"headers"})})
            future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future

        return self._batcher.push(item.to_wire())

    async def flush(self) -> None:
        """Send queued firehose writes and wait for their delivery."""
        if self._batcher is not None:
            await self._batcher.flush()

    def close(self) -> None:
        """Release the log capture sink held by this client."""
        self.logger.close()

    def __enter__(self) -> HullClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> HullClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        try:
            await self.flush()
        finally:
            self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(scope={self.scope.value}, {self._configuration!r})"
