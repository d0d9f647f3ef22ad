"""
Authentication application.

Email-identified users and the billing details used for their invoices.

Usage:
    from authentication.models import User, BillingAddress
"""
