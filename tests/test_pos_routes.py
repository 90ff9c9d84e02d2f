"""
Integration Tests for the POS and Auth Routes
Full counter checkout through the JSON API.
"""

import pytest
from decimal import Decimal
from unittest.mock import patch

from shoppos.models import db, Order, Shipment, User, ErrorLog


def open_order(client):
    response = client.post('/pos/orders')
    assert response.status_code == 201
    return response.get_json()['order']['number']


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestAuthRoutes:
    """Tests for login, logout and access control"""

    def test_login_success(self, client, init_database):
        response = client.post('/auth/login', json={'email': 'cashier@test.com', 'password': 'cashier123'})

        assert response.status_code == 200
        assert response.get_json()['user']['role'] == 'cashier'

    def test_login_email_ignores_case(self, client, init_database):
        response = client.post('/auth/login', json={'email': 'Cashier@Test.com', 'password': 'cashier123'})

        assert response.status_code == 200

    def test_login_wrong_password(self, client, init_database):
        response = client.post('/auth/login', json={'email': 'cashier@test.com', 'password': 'nope'})

        assert response.status_code == 401

    def test_login_inactive_user(self, client, init_database):
        response = client.post('/auth/login', json={'email': 'inactive@test.com', 'password': 'inactive123'})

        assert response.status_code == 403

    def test_logout(self, auth_cashier):
        assert auth_cashier.post('/auth/logout').status_code == 200
        assert auth_cashier.post('/pos/orders').status_code == 401

    def test_pos_requires_login(self, client, init_database):
        response = client.post('/pos/orders')

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Authentication required'

    def test_customer_cannot_use_pos(self, auth_customer):
        response = auth_customer.post('/pos/orders')

        assert response.status_code == 403

    def test_csrf_token(self, client, init_database):
        response = client.get('/auth/csrf-token')

        assert response.status_code == 200
        assert response.get_json()['csrf_token']


# =============================================================================
# COUNTER CHECKOUT
# =============================================================================

@pytest.mark.integration
class TestPosRoutes:
    """Tests for the POS order endpoints"""

    def test_new_order_gets_counter_shipment(self, auth_cashier, init_database):
        response = auth_cashier.post('/pos/orders')

        assert response.status_code == 201
        data = response.get_json()['order']
        assert data['is_pos'] is True
        assert data['state'] == 'cart'
        assert data['shipments'][0]['stock_location'] == 'Main Store'
        assert data['shipments'][0]['shipping_methods'] == ['POS']

        order = Order.query.filter_by(number=data['number']).one()
        assert order.created_by == init_database['cashier']

    def test_new_order_without_stock_location_is_rolled_back(self, auth_cashier, init_database):
        init_database['store'].is_active = False
        db.session.commit()

        response = auth_cashier.post('/pos/orders')

        assert response.status_code == 422
        assert 'Stock location must be set' in response.get_json()['errors']
        assert Order.query.count() == 0
        assert Shipment.query.count() == 0

    def test_order_details_unknown_order(self, auth_cashier):
        response = auth_cashier.get('/pos/orders/R000000000')

        assert response.status_code == 404

    def test_add_item_by_sku(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'MUG-01', 'quantity': 2})

        assert response.status_code == 200
        order = response.get_json()['order']
        assert order['line_items'][0]['quantity'] == 2
        assert order['total'] == pytest.approx(39.98)

    def test_add_unknown_sku(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'NOPE'})

        assert response.status_code == 404

    def test_add_item_bad_quantity(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'MUG-01', 'quantity': 'two'})

        assert response.status_code == 400

    def test_remove_item(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        mug = init_database['mug']
        auth_cashier.post(f'/pos/orders/{number}/items', json={'variant_id': mug.id, 'quantity': 3})

        response = auth_cashier.delete(f'/pos/orders/{number}/items/{mug.id}?quantity=1')
        assert response.get_json()['order']['line_items'][0]['quantity'] == 2

        response = auth_cashier.delete(f'/pos/orders/{number}/items/{mug.id}')
        assert response.get_json()['order']['line_items'] == []

    def test_remove_item_not_on_order(self, auth_cashier, init_database):
        number = open_order(auth_cashier)

        response = auth_cashier.delete(f'/pos/orders/{number}/items/{init_database["mug"].id}')

        assert response.status_code == 404

    def test_payment(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})

        response = auth_cashier.post(f'/pos/orders/{number}/payment', json={
            'payment_method_id': init_database['card'].id,
            'card_name': 'MasterCard'
        })

        assert response.status_code == 200
        payment = response.get_json()['payment']
        assert payment['amount'] == 100.0
        assert payment['card_name'] == 'MasterCard'

    def test_payment_requires_method(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/payment', json={})

        assert response.status_code == 400

    def test_payment_unknown_method(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/payment', json={'payment_method_id': 999})

        assert response.status_code == 422

    def test_associate_new_customer(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/associate-user', json={'email': 'new-user@pos.com'})

        assert response.status_code == 200
        assert response.get_json()['order']['email'] == 'new-user@pos.com'
        assert User.query.filter_by(email='new-user@pos.com').count() == 1

    def test_associate_invalid_customer(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/associate-user', json={'email': 'walk-in'})

        assert response.status_code == 422
        assert response.get_json()['errors'] == ['Email is invalid']

    def test_associate_requires_email(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/associate-user', json={'email': '  '})

        assert response.status_code == 400

    def test_clean(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})
        auth_cashier.post(f'/pos/orders/{number}/payment', json={'payment_method_id': init_database['cash'].id})

        response = auth_cashier.post(f'/pos/orders/{number}/clean')

        order = response.get_json()['order']
        assert order['line_items'] == []
        assert order['payments'] == []

    def test_full_checkout(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})
        auth_cashier.post(f'/pos/orders/{number}/associate-user', json={'email': 'test-user@pos.com'})
        auth_cashier.post(f'/pos/orders/{number}/payment', json={'payment_method_id': init_database['cash'].id})

        assert [o['number'] for o in auth_cashier.get('/pos/orders/unpaid').get_json()['orders']] == []

        response = auth_cashier.post(f'/pos/orders/{number}/complete')

        assert response.status_code == 200
        order = response.get_json()['order']
        assert order['state'] == 'complete'
        assert order['payment_state'] == 'paid'
        assert order['payments'][0]['state'] == 'completed'
        assert order['shipments'][0]['state'] == 'shipped'
        assert init_database['store'].count_on_hand(init_database['shirt']) == 9

        db_order = Order.query.filter_by(number=number).one()
        assert db_order.confirmation_delivered is True
        assert db_order.payment_total == Decimal('100.00')

    def test_complete_requires_payment(self, auth_cashier):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})

        response = auth_cashier.post(f'/pos/orders/{number}/complete')

        assert response.status_code == 422
        assert 'no payment' in response.get_json()['error']

    def test_complete_requires_items(self, auth_cashier):
        number = open_order(auth_cashier)

        response = auth_cashier.post(f'/pos/orders/{number}/complete')

        assert response.status_code == 422

    def test_completed_order_cannot_be_edited(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})
        auth_cashier.post(f'/pos/orders/{number}/payment', json={'payment_method_id': init_database['cash'].id})
        auth_cashier.post(f'/pos/orders/{number}/complete')

        response = auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'MUG-01'})

        assert response.status_code == 422
        assert 'already complete' in response.get_json()['error']

    def test_unpaid_orders_lists_pos_orders_awaiting_payment(self, auth_cashier, db_session):
        waiting = Order(is_pos=True, payment_state='balance_due')
        online = Order(is_pos=False, payment_state='balance_due')
        db_session.add_all([waiting, online])
        db_session.commit()

        response = auth_cashier.get('/pos/orders/unpaid')

        numbers = [o['number'] for o in response.get_json()['orders']]
        assert numbers == [waiting.number]

    def test_unexpected_error_is_logged(self, auth_cashier, init_database):
        number = open_order(auth_cashier)
        auth_cashier.post(f'/pos/orders/{number}/items', json={'sku': 'TSHIRT-M'})
        auth_cashier.post(f'/pos/orders/{number}/payment', json={
            'payment_method_id': init_database['card'].id,
            'card_number': '4111111111111111'
        })

        with patch.object(Order, 'complete_via_pos', side_effect=RuntimeError('printer on fire')):
            response = auth_cashier.post(f'/pos/orders/{number}/complete')

        assert response.status_code == 500
        error_log = ErrorLog.query.one()
        assert error_log.error_type == 'RuntimeError'
        assert error_log.endpoint == 'pos.complete_order'
        assert error_log.user_id == init_database['cashier'].id

    @pytest.mark.parametrize('quantity, status', [('-4', 422), ('0', 422), ('two', 400)])
    def test_remove_item_rejects_bad_quantity(self, auth_cashier, init_database, quantity, status):
        number = open_order(auth_cashier)
        mug = init_database['mug']
        auth_cashier.post(f'/pos/orders/{number}/items', json={'variant_id': mug.id, 'quantity': 1})

        response = auth_cashier.delete(f'/pos/orders/{number}/items/{mug.id}?quantity={quantity}')

        assert response.status_code == status
        order = auth_cashier.get(f'/pos/orders/{number}').get_json()['order']
        assert order['line_items'][0]['quantity'] == 1
        assert order['total'] == pytest.approx(19.99)
