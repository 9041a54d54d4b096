from .crud_space import space
from .crud_area import area
from .crud_price_rule import price_rule
from .crud_booking import booking
from .crud_transaction import transaction
from .crud_wallet import wallet
from .crud_notification import notification
from .crud_webhook_event import webhook_event
