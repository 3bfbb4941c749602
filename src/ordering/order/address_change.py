"""Shipping address change on a confirmed, unpaid order — command and handler."""

import json

from protean import handle
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from ordering.address.address import AddressBook
from ordering.domain import ordering
from ordering.errors import NotFound
from ordering.order.order import Order


@ordering.command(part_of="Order")
class ChangeShippingAddress:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict


@ordering.command_handler(part_of=Order)
class ChangeShippingAddressHandler:
    @handle(ChangeShippingAddress)
    def change_shipping_address(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if str(order.placed_by) != str(command.user_id):
            raise NotFound("order", command.order_id)

        address = AddressBook(current_domain).upsert(command.user_id, json.loads(command.shipping_address))
        order.change_shipping_address(address.to_dict())
        repo.add(order)
