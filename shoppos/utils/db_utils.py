"""
Database Utilities
Helper functions for database operations
"""

from shoppos.models import db
import logging

logger = logging.getLogger(__name__)


def get_or_create(model, defaults=None, **kwargs):
    """
    Get existing record or create new one

    Args:
        model: SQLAlchemy model class
        defaults: Extra fields used only when creating
        **kwargs: Fields to search/create with

    Returns:
        tuple: (instance, created) where created is bool
    """
    instance = model.query.filter_by(**kwargs).first()
    if instance:
        return instance, False

    instance = model(**kwargs, **(defaults or {}))
    db.session.add(instance)
    db.session.commit()
    logger.info(f"Created {instance!r}")
    return instance, True


def seed_pos_defaults(pos_shipping_method='POS'):
    """
    Create the records a counter sale needs

    Returns:
        dict: the shipping method, stock location and cash payment method
    """
    from shoppos.models import ShippingMethod, StockLocation, PaymentMethod

    shipping_method, _ = get_or_create(ShippingMethod, name=pos_shipping_method,
                                       defaults={'code': 'pos', 'is_active': True})
    stock_location, _ = get_or_create(StockLocation, code='STORE',
                                      defaults={'name': 'Store', 'is_active': True})
    cash, _ = get_or_create(PaymentMethod, name='Cash',
                            defaults={'method_type': 'cash', 'is_active': True})
    card, _ = get_or_create(PaymentMethod, name='Card',
                            defaults={'method_type': 'card', 'is_active': True})
    return {
        'shipping_method': shipping_method,
        'stock_location': stock_location,
        'payment_methods': [cash, card]
    }
