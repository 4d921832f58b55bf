from edge_gateway.flows.endpoints import Endpoints
from edge_gateway.flows.common import Relayed, relay, relay_ok
from edge_gateway.flows.cart import (
    add_item_plan,
    delete_cart_plan,
    delete_item_plan,
    get_cart_plan,
    update_item_plan,
)
from edge_gateway.flows.catalogue import catalogue_image_url, catalogue_plan, tags_plan
from edge_gateway.flows.orders import create_order_plan, list_orders_plan
from edge_gateway.flows.user import (
    ACCOUNT_RESOURCES,
    address_plan,
    card_plan,
    create_resource_plan,
    delete_resource_plan,
    get_resource_plan,
    login_plan,
    register_plan,
)

__all__ = [
    "ACCOUNT_RESOURCES",
    "Endpoints",
    "Relayed",
    "add_item_plan",
    "address_plan",
    "card_plan",
    "catalogue_image_url",
    "catalogue_plan",
    "create_order_plan",
    "create_resource_plan",
    "delete_cart_plan",
    "delete_item_plan",
    "delete_resource_plan",
    "get_cart_plan",
    "get_resource_plan",
    "list_orders_plan",
    "login_plan",
    "register_plan",
    "relay",
    "relay_ok",
    "tags_plan",
    "update_item_plan",
]
