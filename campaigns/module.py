"""
Campaigns Module Configuration

Module metadata for the Campaigns module: coupons and automatic promotions
applied at checkout and in the POS.
"""
from django.utils.translation import gettext_lazy as _

# Module Identification
MODULE_ID = "campaigns"
MODULE_NAME = _("Campaigns")
MODULE_VERSION = "1.0.0"
MODULE_CATEGORY = "sales"

# Module Dependencies
DEPENDENCIES = ['products', 'orders']

# Default Settings (override with settings.CAMPAIGNS)
SETTINGS = {
    "enable_coupons": True,
    "enable_promotions": True,
    "combine_coupon_with_promotions": True,
    # Dotted paths to the product catalog / order history collaborators
    "PRODUCT_CATALOG": None,
    "ORDER_HISTORY": None,
}
