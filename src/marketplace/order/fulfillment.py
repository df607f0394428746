"""Fulfilment — commands and handler for supplier and admin actions.

Every command names its actor with ``actor_role``/``actor_id``; the state
machine decides whether that actor may act. ``expected_version`` is optional
and, when given, must match the order's current version.
"""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.order.actor import actor_from
from marketplace.order.concurrency import load_for_update
from marketplace.order.order import Order

logger = structlog.get_logger(__name__)


@marketplace.command(part_of="Order")
class ConfirmOrder:
    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    note = String(max_length=500)
    expected_version = Integer()


@marketplace.command(part_of="Order")
class StartProcessing:
    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    note = String(max_length=500)
    expected_version = Integer()


@marketplace.command(part_of="Order")
class MarkShipped:
    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    tracking_number = String(max_length=100)
    carrier = String(max_length=100)
    note = String(max_length=500)
    expected_version = Integer()


@marketplace.command(part_of="Order")
class UpdateTracking:
    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    tracking_number = String(required=True, max_length=100)
    carrier = String(max_length=100)
    tracking_url = String(max_length=500)
    note = String(max_length=500)
    expected_version = Integer()


@marketplace.command(part_of="Order")
class MarkDelivered:
    order_id = Identifier(required=True)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    note = String(max_length=500)
    expected_version = Integer()


@marketplace.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(ConfirmOrder)
    def confirm_order(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.confirm(actor_from(command.actor_role, command.actor_id), note=command.note)
        current_domain.repository_for(Order).add(order)
        logger.info("Order items confirmed", order_id=str(order.id), status=order.status, actor=command.actor_role)

    @handle(StartProcessing)
    def start_processing(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.start_processing(actor_from(command.actor_role, command.actor_id), note=command.note)
        current_domain.repository_for(Order).add(order)

    @handle(MarkShipped)
    def mark_shipped(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.mark_shipped(
            actor_from(command.actor_role, command.actor_id),
            tracking_number=command.tracking_number,
            carrier=command.carrier,
            note=command.note,
        )
        current_domain.repository_for(Order).add(order)
        logger.info("Order items shipped", order_id=str(order.id), status=order.status, actor=command.actor_role)

    @handle(UpdateTracking)
    def update_tracking(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.update_tracking(
            actor_from(command.actor_role, command.actor_id),
            tracking_number=command.tracking_number,
            carrier=command.carrier,
            tracking_url=command.tracking_url,
            note=command.note,
        )
        current_domain.repository_for(Order).add(order)

    @handle(MarkDelivered)
    def mark_delivered(self, command):
        order = load_for_update(command.order_id, command.expected_version)
        order.mark_delivered(actor_from(command.actor_role, command.actor_id), note=command.note)
        current_domain.repository_for(Order).add(order)
        logger.info("Order delivered", order_id=str(order.id))
