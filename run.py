"""
Application Entry Point
Initializes and runs the Flask application
"""

import os
import logging
from decimal import Decimal
from shoppos import create_app, db

# Determine configuration environment
config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)

# Setup logging
if not os.path.exists(app.config['LOG_FOLDER']):
    os.makedirs(app.config['LOG_FOLDER'])

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL']),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(app.config['LOG_FOLDER'], 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


@app.shell_context_processor
def make_shell_context():
    """Make database and models available in Flask shell"""
    from shoppos import models
    return {
        'db': db,
        'User': models.User,
        'Order': models.Order,
        'Variant': models.Variant,
        'Payment': models.Payment,
        'Shipment': models.Shipment
    }


@app.cli.command('init-db')
def init_db():
    """Initialize the database with tables and POS defaults"""
    from shoppos.models import User
    from shoppos.utils.db_utils import seed_pos_defaults

    logger.info("Initializing database...")
    db.create_all()

    admin = User.query.filter_by(email='admin@shoppos.local').first()
    if not admin:
        admin = User(email='admin@shoppos.local', full_name='Administrator', role='admin', is_active=True)
        admin.set_password('admin123')
        db.session.add(admin)
        db.session.commit()
        logger.info("Default admin user created (email: admin@shoppos.local, password: admin123)")

    seed_pos_defaults(app.config['POS_SHIPPING_METHOD'])
    logger.info("Database initialized successfully!")


@app.cli.command('create-sample-data')
def create_sample_data():
    """Create sample variants and stock for testing"""
    from shoppos.models import Variant, TaxRate
    from shoppos.utils.db_utils import get_or_create, seed_pos_defaults

    logger.info("Creating sample data...")
    store = seed_pos_defaults(app.config['POS_SHIPPING_METHOD'])['stock_location']

    samples = [
        ('TSHIRT-M', 'T-Shirt (M)', Decimal('19.99')),
        ('MUG-01', 'Coffee Mug', Decimal('9.50')),
        ('CAP-01', 'Baseball Cap', Decimal('14.00')),
    ]
    for sku, name, price in samples:
        variant, _ = get_or_create(Variant, sku=sku, defaults={'name': name, 'price': price})
        store.restock(variant, 50, reference='sample-data')
    get_or_create(TaxRate, name='Sales Tax', defaults={'amount': Decimal('0.08')})

    db.session.commit()
    logger.info("Sample data created successfully!")


if __name__ == '__main__':
    is_dev = os.environ.get('FLASK_ENV', 'development') == 'development'

    with app.app_context():
        db.create_all()
        logger.info("Database tables created")

    logger.info(f"Starting {app.config['STORE_NAME']} POS...")
    app.run(
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5001)),
        debug=is_dev
    )
