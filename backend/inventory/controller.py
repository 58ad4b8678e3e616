from quart import Blueprint, current_app, jsonify

from ..common.result import ErrorKind, Failure
from .service import fetch_products, get_product

bp = Blueprint("inventory", __name__, url_prefix="/api/products")


@bp.get("")
async def products_list():
    items = await fetch_products(current_app.extensions["database"])
    return jsonify({"products": items})


@bp.get("/<product_id>")
async def product_detail(product_id: str):
    prod = await get_product(current_app.extensions["database"], product_id)
    if not prod:
        return jsonify(Failure(ErrorKind.NOT_FOUND, "Produto não encontrado").to_dict()), 404
    return jsonify(prod)
