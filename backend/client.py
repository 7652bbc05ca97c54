# client.py — Async HTTP client for the Taskboard API
"""
Client used by UI layers and scripts. The bearer token lives on an explicit
:class:`ClientSession` attached to the client, never in process-wide state.

Drag-and-drop style moves go through :class:`BoardState`: the move is applied
locally first, sent to the server, and the last known-good layout is restored
when the call fails.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("taskboard.client")


class ApiError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.details = details


@dataclass(frozen=True)
class ClientSession:
    token: str
    user: Dict[str, Any]

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class BoardState:
    """Local layout of one board: list order plus the ordered cards of each list"""

    board_id: str
    list_order: List[str] = field(default_factory=list)
    cards: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def snapshot(self) -> Dict[str, Any]:
        return {"list_order": list(self.list_order), "cards": copy.deepcopy(self.cards)}

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.list_order = list(snapshot["list_order"])
        self.cards = copy.deepcopy(snapshot["cards"])

    def find_card(self, card_id: str):
        for list_id, cards in self.cards.items():
            for index, card in enumerate(cards):
                if card["id"] == card_id:
                    return list_id, index
        raise KeyError(card_id)

    def move_card(self, card_id: str, dest_list_id: str, index: int) -> bool:
        """Reorder locally; returns False when the card is already there"""
        if dest_list_id not in self.cards:
            raise KeyError(dest_list_id)
        source_list_id, source_index = self.find_card(card_id)
        if source_list_id == dest_list_id and source_index == index:
            return False

        dest = self.cards[dest_list_id]
        upper = len(dest) - 1 if source_list_id == dest_list_id else len(dest)
        if index < 0 or index > upper:
            raise ValueError(f"index {index} out of range 0..{upper}")

        card = self.cards[source_list_id].pop(source_index)
        card["listId"] = dest_list_id
        dest.insert(index, card)
        self._renumber(source_list_id)
        self._renumber(dest_list_id)
        return True

    def move_list(self, list_id: str, index: int) -> bool:
        current = self.list_order.index(list_id)
        if current == index:
            return False
        if index < 0 or index >= len(self.list_order):
            raise ValueError(f"index {index} out of range 0..{len(self.list_order) - 1}")
        self.list_order.insert(index, self.list_order.pop(current))
        return True

    def reorder_payload(self) -> List[Dict[str, Any]]:
        return [
            {"_id": list_id, "boardId": self.board_id, "position": position}
            for position, list_id in enumerate(self.list_order)
        ]

    def _renumber(self, list_id: str) -> None:
        for position, card in enumerate(self.cards[list_id]):
            card["position"] = position


class TaskboardClient:
    """Thin async wrapper around the REST endpoints.

    ``http`` is an ``httpx.AsyncClient`` whose ``base_url`` points at the API;
    the caller owns its lifecycle.
    """

    def __init__(self, http: httpx.AsyncClient, session: Optional[ClientSession] = None):
        self.http = http
        self.session = session

    # --------------------------------------------------------
    # transport
    # --------------------------------------------------------

    async def _request(self, method: str, url: str, auth: bool = True, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if auth:
            if self.session is None:
                raise ApiError(401, "Not logged in")
            headers.update(self.session.headers)

        resp = await self.http.request(method, url, headers=headers, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {"error": resp.text or resp.reason_phrase}
            message = body.get("error", resp.reason_phrase) if isinstance(body, dict) else str(body)
            details = body.get("details") if isinstance(body, dict) else None
            logger.debug("%s %s failed with %d: %s", method, url, resp.status_code, message)
            raise ApiError(resp.status_code, message, details)
        return resp.json()

    def _attach(self, body: Dict[str, Any]) -> ClientSession:
        self.session = ClientSession(token=body["token"], user=body["user"])
        return self.session

    # --------------------------------------------------------
    # auth & users
    # --------------------------------------------------------

    async def register(self, email: str, name: str, password: str) -> ClientSession:
        body = await self._request(
            "POST", "/auth/register", auth=False,
            json={"email": email, "name": name, "password": password},
        )
        return self._attach(body)

    async def login(self, email: str, password: str) -> ClientSession:
        body = await self._request(
            "POST", "/auth/login", auth=False, json={"email": email, "password": password}
        )
        return self._attach(body)

    def logout(self) -> None:
        self.session = None

    async def me(self) -> Dict[str, Any]:
        return await self._request("GET", "/user")

    async def search_users(self, email: str) -> List[Dict[str, Any]]:
        return await self._request("GET", "/users/search", params={"email": email})

    # --------------------------------------------------------
    # boards
    # --------------------------------------------------------

    async def list_boards(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/boards")

    async def create_board(self, title: str, description: Optional[str] = None) -> Dict[str, Any]:
        return await self._request("POST", "/boards", json={"title": title, "description": description})

    async def get_board(self, board_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/boards/{board_id}")

    async def update_board(self, board_id: str, **fields) -> Dict[str, Any]:
        return await self._request("PUT", f"/boards/{board_id}", json=fields)

    async def delete_board(self, board_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/boards/{board_id}")

    async def add_member(
        self, board_id: str, user_id: Optional[str] = None, email: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"userId": user_id} if user_id else {"email": email}
        return await self._request("POST", f"/boards/{board_id}/members", json=payload)

    async def remove_member(self, board_id: str, user_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/boards/{board_id}/members", json={"userId": user_id})

    # --------------------------------------------------------
    # lists
    # --------------------------------------------------------

    async def list_lists(self, board_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", "/lists", params={"boardId": board_id})

    async def create_list(self, board_id: str, title: str) -> Dict[str, Any]:
        return await self._request("POST", "/lists", json={"boardId": board_id, "title": title})

    async def update_list(self, list_id: str, **fields) -> Dict[str, Any]:
        return await self._request("PUT", f"/lists/{list_id}", json=fields)

    async def delete_list(self, list_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/lists/{list_id}")

    async def reorder_lists(self, lists: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._request("PUT", "/lists/reorder", json={"lists": lists})

    # --------------------------------------------------------
    # cards
    # --------------------------------------------------------

    async def list_cards(self, list_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", "/cards", params={"listId": list_id})

    async def create_card(self, list_id: str, title: str, **fields) -> Dict[str, Any]:
        return await self._request("POST", "/cards", json={"listId": list_id, "title": title, **fields})

    async def get_card(self, card_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/cards/{card_id}")

    async def update_card(self, card_id: str, **fields) -> Dict[str, Any]:
        return await self._request("PUT", f"/cards/{card_id}", json=fields)

    async def delete_card(self, card_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/cards/{card_id}")

    async def move_card(
        self, card_id: str, source_list_id: str, destination_list_id: str, destination_index: int
    ) -> Dict[str, Any]:
        return await self._request("PUT", "/cards/move", json={
            "cardId": card_id,
            "sourceListId": source_list_id,
            "destinationListId": destination_list_id,
            "destinationIndex": destination_index,
        })

    # --------------------------------------------------------
    # board state & optimistic moves
    # --------------------------------------------------------

    async def load_board_state(self, board_id: str) -> BoardState:
        state = BoardState(board_id=board_id)
        for lst in await self.list_lists(board_id):
            state.list_order.append(lst["id"])
            state.cards[lst["id"]] = await self.list_cards(lst["id"])
        return state

    async def move_card_optimistic(
        self, state: BoardState, card_id: str, dest_list_id: str, index: int
    ) -> Optional[Dict[str, Any]]:
        """Apply the move to ``state`` right away, then confirm it with the server.

        When the call fails (API error or transport error) ``state`` is put
        back exactly as it was and the error is re-raised. Returns the server's card, or None for a no-op move.
        """
        before = state.snapshot()
        source_list_id, _ = state.find_card(card_id)
        if not state.move_card(card_id, dest_list_id, index):
            return None
        try:
            return await self.move_card(card_id, source_list_id, dest_list_id, index)
        except (ApiError, httpx.HTTPError):
            logger.warning("Move of card %s rejected; restoring local board state", card_id)
            state.restore(before)
            raise

    async def move_list_optimistic(self, state: BoardState, list_id: str, index: int) -> bool:
        before = state.snapshot()
        if not state.move_list(list_id, index):
            return False
        try:
            await self.reorder_lists(state.reorder_payload())
        except (ApiError, httpx.HTTPError):
            logger.warning("Reorder of board %s rejected; restoring local board state", state.board_id)
            state.restore(before)
            raise
        return True
