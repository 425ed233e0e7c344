from .inventory import Product, ProductDailySales
from .sales import Sale, SaleLine, SaleDebtor
from .notifications import Notification, NotificationType

__all__ = [
    'Product', 'ProductDailySales',
    'Sale', 'SaleLine', 'SaleDebtor',
    'Notification', 'NotificationType',
]
