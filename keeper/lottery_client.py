from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Sequence

import requests

from .config import KeeperSettings
from .types import RandomnessStatus, RoundSnapshot

IDENTITY_HEADER = "X-Identity"


class LotteryApiError(RuntimeError):
    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(f"{status_code}: {reason}")
        self.status_code = status_code
        self.reason = reason


class LotteryClient:
    """Wrapper around the lottery HTTP API, acting as the keeper identity."""

    def __init__(self, settings: KeeperSettings, session: Optional[requests.Session] = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    async def get_current_round(self) -> Optional[RoundSnapshot]:
        return await asyncio.to_thread(self._sync_get_current_round)

    def _sync_get_current_round(self) -> Optional[RoundSnapshot]:
        try:
            payload = self._request("GET", "/rounds/current")
        except LotteryApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return RoundSnapshot.from_payload(payload)

    async def get_randomness_status(self) -> RandomnessStatus:
        payload = await asyncio.to_thread(self._request, "GET", "/randomness")
        return RandomnessStatus(
            source=payload["source"],
            latest_fulfilled_round_id=payload.get("latest_fulfilled_round_id"),
            pending_round_id=payload.get("pending_round_id"),
        )

    async def close_round(self, round_id: int) -> RoundSnapshot:
        payload = await asyncio.to_thread(
            self._request, "POST", f"/rounds/{round_id}/close", {}, self._settings.identity
        )
        return RoundSnapshot.from_payload(payload)

    async def fulfill_randomness(self, round_id: int, random_number: int) -> int:
        payload = await asyncio.to_thread(
            self._request,
            "POST",
            "/randomness/fulfill",
            {"round_id": round_id, "random_number": int(random_number)},
            self._settings.fulfil_identity,
        )
        return int(payload["round_id"])

    async def draw_round(self, round_id: int, auto_injection: bool) -> RoundSnapshot:
        payload = await asyncio.to_thread(
            self._request,
            "POST",
            f"/rounds/{round_id}/draw",
            {"auto_injection": auto_injection},
            self._settings.identity,
        )
        return RoundSnapshot.from_payload(payload)

    async def start_round(
        self,
        end_time: int,
        ticket_price: int,
        discount_divisor: int,
        rewards_breakdown: Sequence[int],
        treasury_fee: int,
    ) -> int:
        body = {
            "end_time": int(end_time),
            "ticket_price": int(ticket_price),
            "discount_divisor": int(discount_divisor),
            "rewards_breakdown": [int(share) for share in rewards_breakdown],
            "treasury_fee": int(treasury_fee),
        }
        payload = await asyncio.to_thread(
            self._request, "POST", "/rounds", body, self._settings.identity
        )
        return int(payload["round_id"])

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        identity: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {IDENTITY_HEADER: identity} if identity else {}
        resp = self._session.request(
            method,
            f"{self._settings.api_url}{path}",
            json=body,
            headers=headers,
            timeout=self._settings.timeout_seconds,
        )
        if resp.status_code >= 400:
            try:
                reason = resp.json().get("error", resp.text)
            except ValueError:
                reason = resp.text
            raise LotteryApiError(resp.status_code, reason)
        return resp.json()

    def close(self) -> None:
        self._session.close()
