"""
Point of Sale Routes
Counter checkout: ring up items, take payment, attach the customer, complete
"""

from flask import Blueprint, request, jsonify, current_app, abort
from flask_login import current_user
from shoppos.models import db, Order, Variant
from shoppos.errors import PosError, LineItemNotFound
from shoppos.utils.permissions import pos_operator_required

bp = Blueprint('pos', __name__)


def get_pos_order(number):
    order = Order.query.filter_by(number=number, is_pos=True).first()
    if order is None:
        abort(404)
    return order


def ensure_editable(order):
    if order.state == 'complete':
        raise PosError(f"Order {order.number} is already complete")


def find_variant(data):
    """Look up a variant by sku or id from request data"""
    variant = None
    if data.get('sku'):
        variant = Variant.query.filter_by(sku=data['sku'], is_active=True).first()
    elif data.get('variant_id') is not None:
        try:
            variant = db.session.get(Variant, int(data['variant_id']))
        except (TypeError, ValueError):
            variant = None
    if variant is None:
        abort(404)
    return variant


@bp.route('/orders', methods=['POST'])
@pos_operator_required
def new_order():
    """Open a new POS order with its counter shipment"""
    order = Order(is_pos=True, state='cart', created_by_id=current_user.id)
    db.session.add(order)
    db.session.flush()  # Get order ID

    order.assign_shipment_for_pos()

    current_app.logger.info(f"POS order {order.number} opened by {current_user.email}")
    return jsonify({'success': True, 'order': order.to_dict()}), 201


@bp.route('/orders/unpaid')
@pos_operator_required
def unpaid_orders():
    """POS orders still waiting for payment"""
    orders = Order.unpaid_pos_order().order_by(Order.created_at.desc()).all()
    return jsonify({
        'success': True,
        'orders': [order.to_dict(include_details=False) for order in orders]
    })


@bp.route('/orders/<number>')
@pos_operator_required
def order_details(number):
    order = get_pos_order(number)
    return jsonify({'success': True, 'order': order.to_dict()})


@bp.route('/orders/<number>/items', methods=['POST'])
@pos_operator_required
def add_item(number):
    """Add a variant to the order"""
    order = get_pos_order(number)
    ensure_editable(order)

    data = request.get_json(silent=True) or {}
    variant = find_variant(data)
    try:
        quantity = int(data.get('quantity', 1))
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'Quantity must be a number'}), 400

    order.contents.add(variant, quantity, order.pos_shipment)
    db.session.commit()

    return jsonify({'success': True, 'order': order.to_dict()})


@bp.route('/orders/<number>/items/<int:variant_id>', methods=['DELETE'])
@pos_operator_required
def remove_item(number, variant_id):
    """Remove a variant (all of it unless ?quantity= is given)"""
    order = get_pos_order(number)
    ensure_editable(order)

    variant = find_variant({'variant_id': variant_id})
    line_item = order.contents.find_line_item(variant)
    if line_item is None:
        raise LineItemNotFound(f"Variant {variant.sku} is not on order {order.number}")

    quantity = request.args.get('quantity', line_item.quantity)
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'Quantity must be a number'}), 400

    order.contents.remove(variant, quantity, order.pos_shipment)
    db.session.commit()

    return jsonify({'success': True, 'order': order.to_dict()})


@bp.route('/orders/<number>/clean', methods=['POST'])
@pos_operator_required
def clean_order(number):
    """Empty the order and drop its payments"""
    order = get_pos_order(number)
    ensure_editable(order)

    order.clean()
    return jsonify({'success': True, 'order': order.to_dict()})


@bp.route('/orders/<number>/payment', methods=['POST'])
@pos_operator_required
def update_payment(number):
    """Record the tender for the order total"""
    order = get_pos_order(number)
    ensure_editable(order)

    data = request.get_json(silent=True) or {}
    try:
        payment_method_id = int(data['payment_method_id'])
    except (KeyError, TypeError, ValueError):
        return jsonify({'success': False, 'error': 'payment_method_id is required'}), 400

    payment = order.save_payment_for_pos(payment_method_id, data.get('card_name'))
    return jsonify({'success': True, 'payment': payment.to_dict(), 'order': order.to_dict()})


@bp.route('/orders/<number>/associate-user', methods=['POST'])
@pos_operator_required
def associate_user(number):
    """Attach a customer by email, creating the account if needed"""
    order = get_pos_order(number)
    ensure_editable(order)

    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    if not email:
        return jsonify({'success': False, 'error': 'Email is required'}), 400

    user = order.associate_user_for_pos(email)
    if not user.is_valid():
        return jsonify({'success': False, 'error': 'Customer is invalid', 'errors': user.errors}), 422

    return jsonify({'success': True, 'user': user.to_dict(), 'order': order.to_dict()})


@bp.route('/orders/<number>/complete', methods=['POST'])
@pos_operator_required
def complete_order(number):
    """Complete the counter sale"""
    order = get_pos_order(number)
    ensure_editable(order)

    if order.line_items.count() == 0:
        raise PosError(f"Order {order.number} has no items")
    if order.payments.count() == 0:
        raise PosError(f"Order {order.number} has no payment")

    order.complete_via_pos()

    current_app.logger.info(f"POS order {order.number} completed by {current_user.email}")
    return jsonify({'success': True, 'order': order.to_dict()})
