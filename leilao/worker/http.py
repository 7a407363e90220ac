"""HTTP worker application."""

from __future__ import annotations

import orjson
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from ..auction.service import AuctionService
from ..storage import StorageFailure
from ..transport.commands import ParseError, parse_place_bid, parse_register_item


def create_worker_app(service: AuctionService) -> FastAPI:
    app = FastAPI(title="Leilão HTTP worker", docs_url=None, redoc_url=None)

    @app.get("/heartbeat")
    async def heartbeat() -> Response:
        return Response(status_code=200)

    @app.post("/cadastrarItem", response_class=PlainTextResponse)
    async def register_item(request: Request) -> PlainTextResponse:
        body = (await request.body()).decode("utf-8")
        try:
            reply = await service.register_item(parse_register_item(body))
        except ParseError as exc:
            return PlainTextResponse(f"Erro: {exc}", status_code=400)
        except StorageFailure as exc:
            return PlainTextResponse(f"Erro: {exc}", status_code=500)
        return PlainTextResponse(reply)

    @app.post("/registrarLance", response_class=PlainTextResponse)
    async def place_bid(request: Request) -> PlainTextResponse:
        body = (await request.body()).decode("utf-8")
        try:
            reply = await service.place_bid(parse_place_bid(body))
        except ParseError as exc:
            return PlainTextResponse(f"Erro: {exc}", status_code=400)
        except StorageFailure as exc:
            return PlainTextResponse(f"Erro: {exc}", status_code=500)
        return PlainTextResponse(reply)

    @app.get("/itens/{item_id}")
    async def get_item(item_id: int) -> Response:
        try:
            item = await service.store.get_item(item_id)
        except StorageFailure as exc:
            return PlainTextResponse(f"Erro: {exc}", status_code=500)
        if item is None:
            return PlainTextResponse(f"Item {item_id} não encontrado.", status_code=404)
        bids = await service.store.list_bids(item_id)
        payload = {
            **item.to_dict(),
            "bids": [
                {
                    "id": bid.id,
                    "bidder": bid.bidder,
                    "value": bid.value,
                    "created_at": bid.created_at,
                }
                for bid in bids
            ],
        }
        return Response(orjson.dumps(payload), media_type="application/json")

    return app
