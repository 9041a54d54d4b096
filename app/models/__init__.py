# Import all models so SQLAlchemy can resolve relationships by name
from app.db.base_class import Base
from app.models.space import Space
from app.models.price_rule import PriceRule
from app.models.area import Area
from app.models.booking import Booking
from app.models.transaction import Transaction
from app.models.wallet import Wallet
from app.models.notification import Notification
from app.models.payment_webhook_event import PaymentWebhookEvent
