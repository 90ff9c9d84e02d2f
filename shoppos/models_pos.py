"""
Point of Sale Order Extensions
Scopes and counter checkout steps mixed into the Order model
"""

import logging

logger = logging.getLogger(__name__)


class PosOrderMixin:
    """
    In-store checkout behaviour for Order.

    Expects the Order columns (is_pos, payment_state, total, email) and its
    line_items, payments and shipments relationships.
    """

    # Scopes

    @classmethod
    def pos(cls):
        return cls.query.filter(cls.is_pos.is_(True))

    @classmethod
    def unpaid(cls):
        # SQL comparison: orders without a payment state are not returned
        return cls.query.filter(cls.payment_state != 'paid')

    @classmethod
    def unpaid_pos_order(cls):
        return cls.pos().filter(cls.payment_state != 'paid')

    @property
    def pos_shipment(self):
        """The shipment built for the counter (the latest one)"""
        from shoppos.models import Shipment
        return self.shipments.order_by(Shipment.id.desc()).first()

    def clean(self):
        """
        Reset a POS order: delete its payments and take every line item
        back out of the order contents.
        """
        from shoppos.models import db

        shipment = self.pos_shipment
        self.payments.delete(synchronize_session='fetch')
        for line_item in self.line_items.all():
            self.contents.remove(line_item.variant, line_item.quantity, shipment)

        db.session.commit()
        logger.info(f"Cleaned POS order {self.number}")
        return self

    def complete_via_pos(self):
        """
        Finish a counter sale in one pass: stamp completion, charge tax,
        capture pending payments, hand over the shipment, email the
        confirmation and save.
        """
        from shoppos.errors import RecordInvalid

        shipment = self.pos_shipment
        if shipment is None:
            raise RecordInvalid(self, ['POS shipment is missing'])

        self.touch('completed_at')
        self.state = 'complete'
        self.create_tax_charge()
        for payment in self.pending_payments():
            payment.capture()
        shipment.finalize_pos()
        self.deliver_order_confirmation_email()
        self.save()

        logger.info(f"Completed POS order {self.number} ({self.payment_state})")
        return self

    def assign_shipment_for_pos(self):
        """Build and save the counter shipment; only POS orders get one"""
        if not self.is_pos:
            return None

        from shoppos.models import Shipment, ShippingMethod, StockLocation

        # Look up before building: the shipment is not in the session yet
        pos_shipping_method = ShippingMethod.available_for_pos().first()
        if pos_shipping_method is None:
            logger.warning(f"No POS shipping method configured for order {self.number}")
        stock_location = StockLocation.active().first()

        shipment = Shipment(order=self, stock_location=stock_location)
        shipment.shipping_methods = [pos_shipping_method] if pos_shipping_method else []
        shipment.save()
        return shipment

    def save_payment_for_pos(self, payment_method_id, card_name=None):
        """Replace any payments with a single one covering the order total"""
        from shoppos.models import db, Payment, PaymentMethod
        from shoppos.errors import RecordInvalid

        payment_method = db.session.get(PaymentMethod, payment_method_id)
        if payment_method is None:
            raise RecordInvalid(Payment(), [f'Payment method {payment_method_id} does not exist'])

        self.payments.delete(synchronize_session='fetch')
        payment = Payment(
            order=self,
            amount=self.total or 0,
            payment_method_id=payment_method.id,
            card_name=card_name
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    def associate_user_for_pos(self, new_user_email):
        """
        Attach the customer with this email, creating an account when none
        exists. The order only takes the email of a valid user; the user is
        returned either way.
        """
        from shoppos.models import db, User

        new_user_email = User.normalize_email(new_user_email)
        user = User.query.filter(db.func.lower(User.email) == new_user_email).first()
        if user is None:
            user = User.create_with_random_password(new_user_email)

        if user.is_valid():
            self.email = user.email
            if user.id is not None:
                self.user = user
            db.session.commit()
        return user
