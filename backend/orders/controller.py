from typing import Optional

from quart import Blueprint, current_app, jsonify, request

from ..auth.identity import CallerIdentity
from ..common.result import ErrorKind, Result
from .service import OrderService

bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _service() -> OrderService:
    return current_app.extensions["order_service"]


async def _caller() -> CallerIdentity:
    return await current_app.extensions["identity_provider"].resolve(request.headers)


def _respond(result: Result, success_status: int = 200, wrap: Optional[str] = None):
    if not result.ok:
        return jsonify(result.error.to_dict()), result.error.kind.http_status
    body = {wrap: result.value} if wrap else result.value
    return jsonify(body), success_status


async def _json_body():
    data = await request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else None


@bp.post("")
async def create_order():
    caller = await _caller()
    data = await _json_body()
    if data is None:
        return _respond(Result.fail(ErrorKind.BAD_REQUEST, "Corpo da requisição deve ser um objeto JSON"))
    # the owner always comes from the resolved identity, never from the body
    result = await _service().create_order(caller, data.get("address"), data.get("items"))
    return _respond(result, 201)


@bp.get("")
async def list_orders():
    caller = await _caller()
    return _respond(await _service().list_orders(caller), wrap="orders")


@bp.get("/all")
async def list_all_orders():
    caller = await _caller()
    status = request.args.get("status")
    return _respond(await _service().list_all_orders(caller, status), wrap="orders")


@bp.get("/<order_id>")
async def get_order(order_id: str):
    caller = await _caller()
    return _respond(await _service().get_order(order_id, caller))


@bp.put("/<order_id>")
async def update_order_status(order_id: str):
    caller = await _caller()
    data = await _json_body()
    if data is None:
        return _respond(Result.fail(ErrorKind.BAD_REQUEST, "Corpo da requisição deve ser um objeto JSON"))
    return _respond(await _service().update_status(caller, order_id, data.get("status")))
