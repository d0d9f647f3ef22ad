"""
Authentication models.

- User: Custom user model with email-based authentication
- BillingAddress: Invoice recipient details used after a paid checkout

Related files:
    - managers.py: Custom user manager for email-based creation
    - payments.adapters.billingo_adapter: Reads BillingAddress for invoices
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager
from core.models import BaseModel


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Balances are not stored here; they are derived from the ledger tables
    in payments.ledger.

    Fields:
        email: Primary identifier, unique, used for login
        first_name / last_name: Used for invoices and greetings
        email_verified: Whether the user's email has been verified
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='parent@example.com',
            password='securepassword'
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    first_name = models.CharField(max_length=150, blank=True, default="")
    last_name = models.CharField(max_length=150, blank=True, default="")
    email_verified = models.BooleanField(
        default=False,
        help_text="Whether the user's email has been verified",
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return "first last", or the email when no name is set."""
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name or self.email

    def get_short_name(self):
        return self.first_name or self.email.split("@")[0]


class BillingAddress(BaseModel):
    """
    Billing details for a user's invoices.

    One address per user. Invoices fall back to a placeholder address when
    the user has none, so every field except name is optional at the
    invoicing layer.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="billing_address",
    )
    name = models.CharField(max_length=255)
    street = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=80, blank=True, default="HU")
    tax_number = models.CharField(max_length=40, blank=True, null=True)

    class Meta:
        verbose_name_plural = "billing addresses"

    def __str__(self):
        return f"{self.name} ({self.user_id})"

    @property
    def is_complete(self) -> bool:
        """Whether postal code, city and street are all present."""
        return all(
            value and value.strip()
            for value in (self.postal_code, self.city, self.street)
        )
