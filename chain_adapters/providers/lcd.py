"""
LCD Chain Adapter - Light-client REST + Tendermint RPC integration.

Implements ChainReadPort and ChainStatsPort over HTTP with aiohttp.

Node conventions handled here:
- 404 and "not found"-style messages mean "absent" (None)
- "transaction not found on node" means the height was pruned
- Historical heights are subject to the node's pruning strategy
  (keep the last N heights plus every N-th height)
- The consensus set is paginated; three pages are merged
"""

import asyncio
import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, List, Optional

import aiohttp

from chain_adapters.base import ChainReadPort, ChainStatsPort
from chain_adapters.exceptions import (
    PRUNED_MESSAGE_FRAGMENT,
    FetchError,
    InvalidRequestError,
    PrunedDataError,
)
from chain_adapters.models import (
    Block,
    ConsensusValidator,
    RawRewardEvent,
    RewardEventType,
    StakingPool,
    ValidatorDescriptor,
)


logger = logging.getLogger(__name__)


NOT_FOUND_RE = re.compile(
    r"(?:not found|no del|not ex|failed to find|unknown prop|empty bytes|No price reg)",
    re.IGNORECASE,
)


class LcdClient(ChainReadPort, ChainStatsPort):
    """
    Light-client API adapter.

    Usage:
        async with LcdClient("https://lcd.example.org", rpc_uri=...) as lcd:
            block = await lcd.get_block(100)
    """

    DEFAULT_TIMEOUT = 30.0
    CONSENSUS_SET_PAGES = 3

    STATUS_MAPPINGS = {
        "bonded": "BOND_STATUS_BONDED",
        "unbonded": "BOND_STATUS_UNBONDED",
        "unbonding": "BOND_STATUS_UNBONDING",
    }

    def __init__(
        self,
        lcd_uri: str,
        rpc_uri: Optional[str] = None,
        initial_height: int = 1,
        pruning_keep_every: int = 100,
        legacy_network: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._lcd_uri = lcd_uri.rstrip("/")
        self._rpc_uri = rpc_uri.rstrip("/") if rpc_uri else None
        self._initial_height = initial_height
        self._pruning_keep_every = pruning_keep_every
        self._legacy_network = legacy_network
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

        # Head as last seen by get_latest_block(); drives height rounding
        self._latest_height = 0

    @property
    def name(self) -> str:
        """Unique identifier."""
        return "lcd"

    @property
    def latest_height(self) -> int:
        return self._latest_height

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        base_url: Optional[str] = None,
    ) -> Any:
        """
        GET a node endpoint.

        Returns:
            Decoded payload (the "result" member when the node wraps it),
            or None when the node reports the resource as absent

        Raises:
            PrunedDataError: Height no longer available on the node
            InvalidRequestError: HTTP 400
            FetchError: Any other failure
        """
        url = f"{base_url or self._lcd_uri}{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        session = await self._get_session()

        try:
            async with session.get(url, params=query) as response:
                body = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(
                message=f"Connection error: {e}",
                adapter_name=self.name,
                request_url=url,
                original_error=e,
            ) from e

        payload = _decode_json(body)

        if status >= 400:
            return self._handle_error(url, status, _error_message(payload, body), body)

        if isinstance(payload, dict) and payload.get("error"):
            return self._handle_error(url, status, _error_message(payload, body), body)

        if isinstance(payload, dict) and "height" in payload and "result" in payload:
            return payload["result"]

        return payload

    def _handle_error(self, url: str, status: int, message: str, body: str) -> None:
        """Map an error response onto None or an exception."""
        if PRUNED_MESSAGE_FRAGMENT in message:
            raise PrunedDataError(
                message=message,
                adapter_name=self.name,
                status_code=status,
                response_body=body[:500],
                request_url=url,
            )

        if status == 404 or NOT_FOUND_RE.search(message):
            logger.debug(f"[{self.name}] Not found: {url}")
            return None

        if status == 400:
            raise InvalidRequestError(
                message=message or "Invalid request",
                adapter_name=self.name,
                status_code=status,
                response_body=body[:500],
                request_url=url,
            )

        raise FetchError(
            message=f"HTTP {status}: {message}",
            adapter_name=self.name,
            status_code=status,
            response_body=body[:500],
            request_url=url,
        )

    def calculate_height_param(self, height: Optional[int]) -> Optional[int]:
        """
        Height to query given the node's pruning strategy.

        Recent heights (and every height before pruning starts) are
        queried as-is; older heights are rounded up to the next kept
        multiple of pruning_keep_every.
        """
        if not height:
            return None

        keep_every = self._pruning_keep_every
        if self._latest_height and (
            self._latest_height < self._initial_height + keep_every
            or self._latest_height - height < keep_every
        ):
            return height

        return max(self._initial_height, height + (keep_every - height % keep_every))

    # ─────────────────────────────────────────────────────────────
    # Blocks
    # ─────────────────────────────────────────────────────────────

    async def get_latest_block(self) -> Optional[Block]:
        """Fetch the chain head and remember its height."""
        raw = await self._get("/blocks/latest")
        if not raw or not raw.get("block"):
            return None

        block = self._parse_block(raw)
        self._latest_height = block.height
        return block

    async def get_block(self, height: int) -> Optional[Block]:
        """Fetch a block by height."""
        raw = await self._get(f"/blocks/{height}")
        if not raw or not raw.get("block"):
            return None
        return self._parse_block(raw)

    def _parse_block(self, raw: dict) -> Block:
        try:
            return Block.from_lcd(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(
                message=f"Malformed block payload: {e}",
                adapter_name=self.name,
                original_error=e,
            ) from e

    # ─────────────────────────────────────────────────────────────
    # Distribution events
    # ─────────────────────────────────────────────────────────────

    async def get_raw_reward_events(self, height: int) -> List[RawRewardEvent]:
        """
        Fetch rewards/commission events from Tendermint block_results.

        Event attributes are base64 encoded on older Tendermint versions.
        """
        if not self._rpc_uri:
            raise FetchError(
                message="RPC URI not configured, cannot read block results",
                adapter_name=self.name,
            )

        payload = await self._get("/block_results", {"height": height}, base_url=self._rpc_uri)
        if not payload:
            return []

        result = payload.get("result", payload) if isinstance(payload, dict) else {}
        events = (result.get("begin_block_events") or []) + (
            result.get("finalize_block_events") or []
        )

        reward_events = []
        for event in events:
            if event.get("type") not in RewardEventType.ALL:
                continue

            attributes = {}
            for attribute in event.get("attributes") or []:
                key = _decode_attribute(attribute.get("key"))
                attributes[key] = _decode_attribute(attribute.get("value"))

            reward_events.append(RawRewardEvent(
                validator=attributes.get("validator", ""),
                type=event["type"],
                amount=attributes.get("amount") or "",
            ))

        return reward_events

    # ─────────────────────────────────────────────────────────────
    # Validators
    # ─────────────────────────────────────────────────────────────

    async def get_validator_descriptors(
        self,
        height: Optional[int] = None,
    ) -> List[ValidatorDescriptor]:
        """Fetch bonded, unbonded and unbonding validators."""
        query_height = self.calculate_height_param(height)

        responses = await asyncio.gather(*[
            self._get("/staking/validators", {
                "status": status if self._legacy_network else self.STATUS_MAPPINGS[status],
                "height": query_height,
            })
            for status in ("bonded", "unbonded", "unbonding")
        ])

        descriptors = []
        for response in responses:
            for raw in response or []:
                descriptors.append(ValidatorDescriptor.from_lcd(raw))
        return descriptors

    async def get_validator_consensus_set(
        self,
        height: Optional[int] = None,
    ) -> List[ConsensusValidator]:
        """
        Fetch the consensus set, merging pages 1..CONSENSUS_SET_PAGES.

        Only the first page is mandatory; later pages may not exist.
        """
        query_height = self.calculate_height_param(height)
        path = f"/validatorsets/{query_height or 'latest'}"

        async def fetch_page(page: int) -> List[dict]:
            params = {"height": query_height}
            if page > 1:
                params["page"] = page
            try:
                response = await self._get(path, params)
            except FetchError as e:
                if page == 1 or isinstance(e, PrunedDataError):
                    raise
                logger.debug(f"[{self.name}] Consensus set page {page} unavailable: {e}")
                return []
            return (response or {}).get("validators") or []

        pages = await asyncio.gather(*[
            fetch_page(page) for page in range(1, self.CONSENSUS_SET_PAGES + 1)
        ])

        merged: Dict[str, ConsensusValidator] = {}
        for page in pages:
            for raw in page:
                validator = ConsensusValidator.from_lcd(raw)
                merged.setdefault(validator.address, validator)

        return list(merged.values())

    # ─────────────────────────────────────────────────────────────
    # Chain statistics
    # ─────────────────────────────────────────────────────────────

    async def get_total_supply(self, height: Optional[int] = None) -> Dict[str, str]:
        """Total supply per denom."""
        params = {"height": self.calculate_height_param(height)}
        if self._legacy_network:
            coins = await self._get("/supply/total", params) or []
        else:
            coins = (await self._get("/cosmos/bank/v1beta1/supply", params) or {}).get("supply") or []

        return {coin["denom"]: str(coin["amount"]) for coin in coins}

    async def get_staking_pool(self, height: Optional[int] = None) -> Optional[StakingPool]:
        """Bonded / not-bonded totals."""
        raw = await self._get("/staking/pool", {"height": self.calculate_height_param(height)})
        if not raw:
            return None
        return StakingPool.from_lcd(raw)

    async def get_oracle_prices(self, height: Optional[int] = None) -> Dict[str, str]:
        """Oracle exchange rates keyed by denom."""
        coins = await self._get(
            "/oracle/denoms/exchange_rates",
            {"height": self.calculate_height_param(height)},
        ) or []

        return {coin["denom"]: str(coin["amount"]) for coin in coins if coin}

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "LcdClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(lcd={self._lcd_uri}, latest_height={self._latest_height})>"


# ─────────────────────────────────────────────────────────────
# Payload helpers
# ─────────────────────────────────────────────────────────────

def _decode_json(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _error_message(payload: Any, body: str) -> str:
    """Pull a human-readable message out of an error response."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("data") or error.get("message") or error)
        if error:
            return str(error)
        if payload.get("message"):
            return str(payload["message"])
    return body[:500]


def _decode_attribute(value: Optional[str]) -> str:
    """Event attributes are plain text or base64 depending on node version."""
    if not value:
        return ""
    if value in ("amount", "validator"):
        return value
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return value
    return decoded if decoded.isprintable() else value
