"""Exceptions raised by the Campaigns module.

Business-rule failures (a coupon that does not apply, a promotion that is
not eligible) are never raised; they come back as structured results.
These exceptions cover broken data and write-path invariants.
"""


class CampaignError(Exception):
    """Base class for campaign errors."""


class MalformedRecordError(CampaignError, ValueError):
    """A stored coupon or promotion record cannot be turned into a rule."""


class DuplicateCouponCodeError(CampaignError):
    """A coupon with the same code already exists."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Coupon code already exists: {code}")


class CouponUsageLimitError(CampaignError):
    """The coupon reached its usage limit before the redemption was recorded."""

    def __init__(self, coupon_id: str):
        self.coupon_id = coupon_id
        super().__init__(f"Coupon usage limit reached: {coupon_id}")
