"""Tests for sales and transaction log API endpoints."""

from httpx import AsyncClient


async def create_item(client: AsyncClient, card_name: str, quantity: int, price: float) -> int:
    response = await client.post(
        "/inventory",
        json={"card_name": card_name, "quantity": quantity, "purchase_price": price},
    )
    return response.json()["id"]


class TestSales:
    async def test_sell_deck(self, client: AsyncClient) -> None:
        """Selling a deck consumes its copies and books the profit."""
        sol_ring = await create_item(client, "Sol Ring", 1, 0.5)
        island = await create_item(client, "Island", 4, 2.0)
        deck = await client.post(
            "/decks",
            json={"name": "Deck", "is_instance": True, "decklist_text": "1 Sol Ring\n3 Island"},
        )
        deck_id = deck.json()["deck"]["id"]
        await client.post(f"/decks/{deck_id}/auto-fill")

        response = await client.post(
            "/sales",
            json={"itemType": "deck", "itemId": deck_id, "sellPrice": 20.0, "purchasePrice": 99},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["sale"]["purchase_price"] == 6.5
        assert body["sale"]["profit"] == 13.5
        assert body["deleted_item_ids"] == [sol_ring]
        assert (await client.get(f"/inventory/{island}")).json()["quantity"] == 1
        assert (await client.get(f"/decks/{deck_id}/details")).status_code == 404

    async def test_sell_card(self, client: AsyncClient) -> None:
        item_id = await create_item(client, "Sol Ring", 3, 1.0)

        response = await client.post(
            "/sales",
            json={"item_type": "card", "item_id": item_id, "sell_price": 2.0, "quantity": 2},
        )

        assert response.json()["sale"]["profit"] == 2.0
        sales = (await client.get("/sales")).json()
        assert [s["item_name"] for s in sales] == ["Sol Ring"]

    async def test_sell_reserved_copies_rejected(self, client: AsyncClient) -> None:
        item_id = await create_item(client, "Sol Ring", 1, 1.0)
        deck = await client.post(
            "/decks", json={"name": "Deck", "is_instance": True, "decklist_text": "1 Sol Ring"}
        )
        await client.post(f"/decks/{deck.json()['deck']['id']}/auto-fill")

        response = await client.post(
            "/sales", json={"itemType": "card", "itemId": item_id, "sellPrice": 2.0}
        )

        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_quantity"


class TestTransactions:
    async def test_log_filtered_by_type(self, client: AsyncClient) -> None:
        item_id = await create_item(client, "Island", 2, 0.1)
        await client.post(f"/inventory/{item_id}/move", json={"folder": "Binder"})

        moves = (await client.get("/transactions", params={"type": "MOVE"})).json()
        every = (await client.get("/transactions")).json()

        assert len(moves) == 1
        assert moves[0]["detail"] == "Uncategorized->Binder"
        assert {e["transaction_type"] for e in every} == {"PURCHASE", "MOVE"}
