"""
Order Contents
Adds and removes variants on an order, keeping totals, tax and stock in step
"""

import logging
from shoppos.models import db, LineItem
from shoppos.errors import RecordInvalid, LineItemNotFound

logger = logging.getLogger(__name__)


class OrderContents:
    """Line item bookkeeping for one order"""

    def __init__(self, order):
        self.order = order

    def find_line_item(self, variant):
        return self.order.line_items.filter_by(variant_id=variant.id).first()

    def add(self, variant, quantity=1, shipment=None):
        """
        Add a quantity of a variant, merging into an existing line item

        Args:
            variant: Variant to add
            quantity: Units to add (must be positive)
            shipment: Shipment the units leave with; when it has already
                shipped the units are taken out of its stock location

        Returns:
            LineItem: the created or updated line item
        """
        quantity = int(quantity)
        line_item = self.find_line_item(variant)

        if quantity <= 0:
            raise RecordInvalid(line_item or LineItem(), ['Quantity must be greater than 0'])

        if line_item is None:
            line_item = LineItem(order=self.order, variant=variant, quantity=quantity, price=variant.price)
            db.session.add(line_item)
        else:
            line_item.quantity += quantity

        if shipment is not None and shipment.is_shipped:
            shipment.stock_location.unstock(variant, quantity, reference=shipment.number)

        self.order.create_tax_charge()
        logger.debug(f"Added {quantity} x {variant.sku} to order {self.order.number}")
        return line_item

    def remove(self, variant, quantity=1, shipment=None):
        """
        Remove a quantity of a variant; the line item is deleted at zero

        Args:
            variant: Variant to remove
            quantity: Units to remove
            shipment: Shipment the units were assigned to; when it has
                already shipped the units go back into its stock location

        Returns:
            LineItem: the updated (or deleted) line item
        """
        quantity = int(quantity)
        line_item = self.find_line_item(variant)
        if line_item is None:
            raise LineItemNotFound(f"Variant {variant.sku} is not on order {self.order.number}")
        if quantity <= 0:
            raise RecordInvalid(line_item, ['Quantity must be greater than 0'])

        removed = min(quantity, line_item.quantity)
        line_item.quantity -= removed
        if line_item.quantity <= 0:
            db.session.delete(line_item)

        if shipment is not None and shipment.is_shipped:
            shipment.stock_location.restock(variant, removed, reference=shipment.number)

        self.order.create_tax_charge()
        logger.debug(f"Removed {removed} x {variant.sku} from order {self.order.number}")
        return line_item
