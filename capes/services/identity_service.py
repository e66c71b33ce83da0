"""Player identity lookups against the Mojang profile APIs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from capes.config import settings
from capes.errors import UpstreamFetchFailure
from capes.utils.players import PlayerReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlayerIdentity:
    """Canonical player name and 32-char lower-case hex id."""

    name: str
    player_id: str


class MojangIdentityResolver:
    """Resolves player names or ids to a canonical (name, id) pair.

    Names go through the Mojang API, ids through the session server. Both
    answer 204 or 404 for unknown players.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str | None = None,
        session_server_url: str | None = None,
    ) -> None:
        self.client = client
        self.api_url = (api_url or settings.mojang_api_url).rstrip("/")
        self.session_server_url = (
            session_server_url or settings.session_server_url
        ).rstrip("/")

    async def resolve(self, reference: PlayerReference) -> Optional[PlayerIdentity]:
        """Look up a player by name or by id.

        Returns:
            The canonical identity, or None if the player does not exist

        Raises:
            UpstreamFetchFailure: The identity service errored or was unreachable
        """
        if reference.is_id:
            url = f"{self.session_server_url}/session/minecraft/profile/{reference.value}"
        else:
            url = f"{self.api_url}/users/profiles/minecraft/{reference.value}"

        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Identity lookup for {reference.value} failed: {e}")
            raise UpstreamFetchFailure("failed to get player name/uuid") from e

        if response.status_code in (204, 404):
            return None
        if response.status_code >= 400:
            logger.warning(
                f"Identity lookup for {reference.value} returned HTTP {response.status_code}"
            )
            raise UpstreamFetchFailure("failed to get player name/uuid")

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamFetchFailure("failed to get player name/uuid") from e

        name = payload.get("name") if isinstance(payload, dict) else None
        player_id = payload.get("id") if isinstance(payload, dict) else None
        if not name or not player_id:
            return None
        return PlayerIdentity(name=name, player_id=player_id.replace("-", "").lower())
