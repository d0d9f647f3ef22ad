"""
Payments app: credit packs, checkout, provider webhooks and the ledger.

This app handles:
- Pricing plans and coupons
- Orders priced at checkout (Stripe or Barion session)
- Webhook intake and asynchronous confirmation
- Fulfillment: crediting a paid order exactly once, then invoicing
- The credit / audio star ledger used by stories

Related apps:
    - authentication: User model and billing address
    - notifications: Credits-added notices

Usage:
    from payments.services import CheckoutService, fulfill_order

    result = CheckoutService().create_checkout(user, plan_code="pack_1000")
    fulfill_order(order.id)
"""
