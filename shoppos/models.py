"""
Database Models
SQLAlchemy ORM models for the shop orders and their point of sale collaborators
"""

import re
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from shoppos.errors import RecordInvalid, PaymentError
from shoppos.models_pos import PosOrderMixin
from shoppos.utils.helpers import (
    generate_order_number, generate_shipment_number, generate_random_password, to_money
)

db = SQLAlchemy()

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CENTS = Decimal('0.01')


class User(UserMixin, db.Model):
    """Customers and staff; staff roles may run the point of sale"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(128))
    role = db.Column(db.String(32), nullable=False, default='customer')
    # Roles: admin, manager, cashier, customer
    is_active = db.Column(db.Boolean, default=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    orders = db.relationship('Order', backref='user', lazy='dynamic', foreign_keys='Order.user_id')

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password"""
        return check_password_hash(self.password_hash, password)

    @staticmethod
    def normalize_email(email):
        return (email or '').strip().lower()

    @property
    def is_pos_operator(self):
        return self.role in current_app.config.get('POS_ROLES', [])

    def validate(self):
        """Return a list of validation errors (empty when valid)"""
        errors = []
        if not self.email or not EMAIL_PATTERN.match(self.email):
            errors.append('Email is invalid')
        else:
            with db.session.no_autoflush:
                taken = User.query.filter(
                    db.func.lower(User.email) == self.email.lower(), User.id != self.id
                ).first()
            if taken is not None:
                errors.append('Email has already been taken')
        if not self.password_hash:
            errors.append("Password can't be blank")
        self.errors = errors
        return errors

    def is_valid(self):
        return not self.validate()

    @classmethod
    def create_with_random_password(cls, email):
        """
        Create a customer account for the given email with a generated password

        The user is only persisted when valid; an invalid user is returned
        unsaved with its ``errors`` filled in.
        """
        length = current_app.config.get('POS_RANDOM_PASSWORD_LENGTH', 16)
        email = cls.normalize_email(email)
        user = cls(email=email, role='customer', is_active=True)
        user.set_password(generate_random_password(length))

        if user.is_valid():
            db.session.add(user)
            db.session.commit()
            logger.info(f"Created customer account {email} with a random password")
        else:
            logger.warning(f"Could not create customer account {email}: {user.errors}")
        return user

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Variant(db.Model):
    """Sellable product variant"""
    __tablename__ = 'variants'

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Variant {self.sku}>'


class LineItem(db.Model):
    """A variant and quantity on an order"""
    __tablename__ = 'line_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey('variants.id'), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    variant = db.relationship('Variant')

    @property
    def amount(self):
        return to_money(self.price) * (self.quantity or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'variant_id': self.variant_id,
            'sku': self.variant.sku if self.variant else None,
            'name': self.variant.name if self.variant else None,
            'quantity': self.quantity,
            'price': float(to_money(self.price)),
            'amount': float(self.amount)
        }

    def __repr__(self):
        return f'<LineItem {self.id}>'


class TaxRate(db.Model):
    """Sales tax applied to the item total; amount is a fraction (0.08 = 8%)"""
    __tablename__ = 'tax_rates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Numeric(8, 5), nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True)

    def compute(self, item_total):
        return (to_money(item_total) * Decimal(str(self.amount))).quantize(CENTS, rounding=ROUND_HALF_UP)

    def __repr__(self):
        return f'<TaxRate {self.name} {self.amount}>'


class Adjustment(db.Model):
    """Charges added on top of the item total (tax)"""
    __tablename__ = 'adjustments'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    tax_rate_id = db.Column(db.Integer, db.ForeignKey('tax_rates.id'))
    source_type = db.Column(db.String(32), nullable=False, default='tax')
    label = db.Column(db.String(128), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tax_rate = db.relationship('TaxRate')

    def to_dict(self):
        return {'label': self.label, 'source_type': self.source_type, 'amount': float(to_money(self.amount))}

    def __repr__(self):
        return f'<Adjustment {self.label} {self.amount}>'


class PaymentMethod(db.Model):
    """Tender types accepted at the counter"""
    __tablename__ = 'payment_methods'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    method_type = db.Column(db.String(32), nullable=False, default='cash')  # cash, card, other
    is_active = db.Column(db.Boolean, default=True)

    def __repr__(self):
        return f'<PaymentMethod {self.name}>'


class Payment(db.Model):
    """Payment recorded against an order"""
    __tablename__ = 'payments'

    PENDING_STATES = ('checkout', 'pending')

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    payment_method_id = db.Column(db.Integer, db.ForeignKey('payment_methods.id'), nullable=False)

    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    card_name = db.Column(db.String(64))  # Visa, MasterCard, ...
    state = db.Column(db.String(32), nullable=False, default='checkout')
    # checkout, pending, completed, failed, void
    captured_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    payment_method = db.relationship('PaymentMethod')

    @property
    def is_pending(self):
        return self.state in self.PENDING_STATES

    def capture(self):
        """Mark the payment as collected"""
        if self.state == 'completed':
            return True
        if not self.is_pending:
            raise PaymentError(f"Cannot capture a {self.state} payment")
        self.state = 'completed'
        self.captured_at = datetime.utcnow()
        logger.info(f"Captured payment {self.id} of {self.amount}")
        return True

    def to_dict(self):
        return {
            'id': self.id,
            'amount': float(to_money(self.amount)),
            'payment_method_id': self.payment_method_id,
            'payment_method': self.payment_method.name if self.payment_method else None,
            'card_name': self.card_name,
            'state': self.state
        }

    def __repr__(self):
        return f'<Payment {self.id} - {self.amount}>'


shipment_shipping_methods = db.Table('shipment_shipping_methods',
    db.Column('shipment_id', db.Integer, db.ForeignKey('shipments.id'), primary_key=True),
    db.Column('shipping_method_id', db.Integer, db.ForeignKey('shipping_methods.id'), primary_key=True)
)


class ShippingMethod(db.Model):
    """How an order leaves the store"""
    __tablename__ = 'shipping_methods'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, index=True)
    code = db.Column(db.String(32))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def available_for_pos(cls):
        """Active methods named after the configured POS shipping method"""
        return cls.query.filter_by(
            name=current_app.config.get('POS_SHIPPING_METHOD', 'POS'),
            is_active=True
        ).order_by(cls.id)

    def __repr__(self):
        return f'<ShippingMethod {self.name}>'


class StockLocation(db.Model):
    """Store or warehouse holding stock"""
    __tablename__ = 'stock_locations'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(32), unique=True, index=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    stock_items = db.relationship('StockItem', backref='stock_location', lazy='dynamic',
                                  cascade='all, delete-orphan')

    @classmethod
    def active(cls):
        return cls.query.filter_by(is_active=True).order_by(cls.id)

    def stock_item_for(self, variant):
        """Get or create the stock item of a variant at this location"""
        item = self.stock_items.filter_by(variant_id=variant.id).first()
        if item is None:
            item = StockItem(stock_location=self, variant=variant, count_on_hand=0)
            db.session.add(item)
        return item

    def count_on_hand(self, variant):
        item = self.stock_items.filter_by(variant_id=variant.id).first()
        return item.count_on_hand if item else 0

    def move(self, variant, quantity, reference=None):
        """Apply a stock change (negative takes stock out) and record the movement"""
        item = self.stock_item_for(variant)
        item.count_on_hand = (item.count_on_hand or 0) + quantity
        db.session.add(StockMovement(stock_item=item, quantity=quantity, reference=reference))
        return item

    def unstock(self, variant, quantity, reference=None):
        return self.move(variant, -quantity, reference)

    def restock(self, variant, quantity, reference=None):
        return self.move(variant, quantity, reference)

    def __repr__(self):
        return f'<StockLocation {self.name}>'


class StockItem(db.Model):
    """On-hand count of a variant at a stock location"""
    __tablename__ = 'stock_items'
    __table_args__ = (db.UniqueConstraint('stock_location_id', 'variant_id'),)

    id = db.Column(db.Integer, primary_key=True)
    stock_location_id = db.Column(db.Integer, db.ForeignKey('stock_locations.id'), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey('variants.id'), nullable=False)
    count_on_hand = db.Column(db.Integer, nullable=False, default=0)

    variant = db.relationship('Variant')
    movements = db.relationship('StockMovement', backref='stock_item', lazy='dynamic',
                                cascade='all, delete-orphan')

    def __repr__(self):
        return f'<StockItem {self.variant_id}@{self.stock_location_id}: {self.count_on_hand}>'


class StockMovement(db.Model):
    """Track stock changes caused by shipments and returns"""
    __tablename__ = 'stock_movements'

    id = db.Column(db.Integer, primary_key=True)
    stock_item_id = db.Column(db.Integer, db.ForeignKey('stock_items.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)  # Positive for in, negative for out
    reference = db.Column(db.String(128))  # Shipment number
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<StockMovement {self.reference} {self.quantity}>'


class Shipment(db.Model):
    """Goods of an order leaving a stock location"""
    __tablename__ = 'shipments'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(32), unique=True, nullable=False, index=True,
                       default=generate_shipment_number)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    stock_location_id = db.Column(db.Integer, db.ForeignKey('stock_locations.id'))

    state = db.Column(db.String(32), nullable=False, default='pending')  # pending, shipped
    shipped_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    stock_location = db.relationship('StockLocation')
    shipping_methods = db.relationship('ShippingMethod', secondary=shipment_shipping_methods)

    @property
    def shipping_method(self):
        return self.shipping_methods[0] if self.shipping_methods else None

    @property
    def is_shipped(self):
        return self.state == 'shipped'

    def validate(self):
        errors = []
        if self.order is None:
            errors.append('Order must be set')
        if self.stock_location is None:
            errors.append('Stock location must be set')
        return errors

    def save(self):
        """Persist the shipment, raising RecordInvalid when it is incomplete"""
        errors = self.validate()
        if errors:
            raise RecordInvalid(self, errors)
        if self.number is None:
            self.number = generate_shipment_number()
        db.session.add(self)
        db.session.commit()
        return True

    def finalize_pos(self):
        """Hand the goods over the counter: ship now and take them out of stock"""
        if self.is_shipped:
            logger.warning(f"Shipment {self.number} already shipped, skipping")
            return False
        for line_item in self.order.line_items:
            self.stock_location.unstock(line_item.variant, line_item.quantity, reference=self.number)
        self.state = 'shipped'
        self.shipped_at = datetime.utcnow()
        return True

    def to_dict(self):
        return {
            'number': self.number,
            'state': self.state,
            'stock_location': self.stock_location.name if self.stock_location else None,
            'shipping_methods': [method.name for method in self.shipping_methods],
            'shipped_at': self.shipped_at.isoformat() if self.shipped_at else None
        }

    def __repr__(self):
        return f'<Shipment {self.number}>'


class Order(PosOrderMixin, db.Model):
    """Shop order; POS orders are rung up at the counter"""
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(32), unique=True, nullable=False, index=True,
                       default=generate_order_number)
    state = db.Column(db.String(32), nullable=False, default='cart')  # cart, complete
    is_pos = db.Column(db.Boolean, default=False, index=True)
    email = db.Column(db.String(120))

    # References
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'))

    # Amounts
    item_total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    adjustment_total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)
    payment_total = db.Column(db.Numeric(10, 2), nullable=False, default=0.00)

    # Payment
    payment_state = db.Column(db.String(32), index=True)
    # balance_due, paid, credit_owed, checkout

    completed_at = db.Column(db.DateTime)
    confirmation_delivered = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    line_items = db.relationship('LineItem', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    shipments = db.relationship('Shipment', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    adjustments = db.relationship('Adjustment', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    created_by = db.relationship('User', foreign_keys=[created_by_id])

    @property
    def contents(self):
        from shoppos.order_contents import OrderContents
        return OrderContents(self)

    def pending_payments(self):
        return self.payments.filter(Payment.state.in_(Payment.PENDING_STATES)).order_by(Payment.id).all()

    def touch(self, *attributes):
        """Stamp the given timestamp columns (and updated_at) with the current time"""
        now = datetime.utcnow()
        for attribute in attributes:
            setattr(self, attribute, now)
        self.updated_at = now

    def update_totals(self):
        """Recalculate stored totals from line items, adjustments and completed payments"""
        self.item_total = sum((item.amount for item in self.line_items), Decimal('0'))
        self.adjustment_total = sum((to_money(adj.amount) for adj in self.adjustments), Decimal('0'))
        self.total = self.item_total + self.adjustment_total
        self.payment_total = sum(
            (to_money(p.amount) for p in self.payments.filter_by(state='completed')),
            Decimal('0')
        )
        return self.total

    def update_payment_state(self):
        payment_total = to_money(self.payment_total)
        total = to_money(self.total)
        if payment_total < total:
            self.payment_state = 'balance_due'
        elif payment_total > total:
            self.payment_state = 'credit_owed'
        else:
            self.payment_state = 'paid'
        return self.payment_state

    def create_tax_charge(self):
        """Replace the tax adjustments with one per active tax rate"""
        self.adjustments.filter_by(source_type='tax').delete(synchronize_session='fetch')
        self.update_totals()

        for rate in TaxRate.query.filter_by(is_active=True).order_by(TaxRate.id):
            adjustment = Adjustment(
                order=self,
                tax_rate=rate,
                source_type='tax',
                label=rate.name,
                amount=rate.compute(self.item_total)
            )
            db.session.add(adjustment)

        return self.update_totals()

    def deliver_order_confirmation_email(self):
        from shoppos.services.email_service import EmailService
        if EmailService(current_app._get_current_object()).send_order_confirmation(self):
            self.confirmation_delivered = True
            return True
        return False

    def save(self):
        """Recalculate totals and persist the order"""
        self.update_totals()
        if self.completed_at is not None:
            self.update_payment_state()
        db.session.add(self)
        db.session.commit()
        return True

    def to_dict(self, include_details=True):
        data = {
            'id': self.id,
            'number': self.number,
            'state': self.state,
            'is_pos': bool(self.is_pos),
            'email': self.email,
            'item_total': float(to_money(self.item_total)),
            'adjustment_total': float(to_money(self.adjustment_total)),
            'total': float(to_money(self.total)),
            'payment_total': float(to_money(self.payment_total)),
            'payment_state': self.payment_state,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }
        if include_details:
            data['line_items'] = [item.to_dict() for item in self.line_items]
            data['adjustments'] = [adj.to_dict() for adj in self.adjustments]
            data['payments'] = [payment.to_dict() for payment in self.payments]
            data['shipments'] = [shipment.to_dict() for shipment in self.shipments]
        return data

    def __repr__(self):
        return f'<Order {self.number}>'


class ErrorLog(db.Model):
    """Unexpected errors captured from requests"""
    __tablename__ = 'error_logs'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    error_type = db.Column(db.String(128))
    error_message = db.Column(db.Text)
    traceback = db.Column(db.Text)

    request_url = db.Column(db.String(512))
    request_method = db.Column(db.String(16))
    request_data = db.Column(db.Text)  # JSON, sensitive keys redacted
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    ip_address = db.Column(db.String(64))
    status_code = db.Column(db.Integer)
    endpoint = db.Column(db.String(128))
    is_resolved = db.Column(db.Boolean, default=False)

    def __repr__(self):
        return f'<ErrorLog {self.error_type}>'
