import random
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


def generate_order_number(prefix: str = "HS", now: Optional[datetime] = None) -> str:
    """
    Build a human-facing order number: prefix + UTC timestamp (yyyyMMddHHmmss)
    + 4-digit random suffix, e.g. ``HS202610191230451234``.
    """
    now = now or timezone.now()
    stamp = now.astimezone(dt_timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{prefix}{stamp}{random.randint(1000, 9999)}"


TOTAL_COMPONENTS = F("subtotal") + F("delivery_fee") + F("tax_amount")
HALF_CENT = Decimal("0.005")


class OrderQuerySet(models.QuerySet):
    """Query helpers for the Order aggregate."""

    def with_details(self):
        return self.select_related("customer", "accepted_by").prefetch_related(
            "items", "status_history__changed_by"
        )

    def with_status(self, status):
        return self.filter(status=status)

    def created_since(self, from_date):
        return self.filter(created_at__gte=from_date)

    def created_between(self, start, end):
        """Orders with created_at in the half-open range [start, end)."""
        return self.filter(created_at__gte=start, created_at__lt=end)

    def update_if_version(
        self, pk, expected_version: int, guard: Optional[Dict[str, Any]] = None, **changes
    ) -> Tuple[bool, Optional[int]]:
        """
        Compare-and-swap write on a single order row.

        The UPDATE only matches when the stored version still equals
        ``expected_version`` (and every field in ``guard`` still holds its
        previously observed value). On success the version is bumped and
        ``(True, new_version)`` is returned; otherwise nothing is written and
        ``(False, stored_version)`` is returned (``None`` if the row is gone).
        """
        conditions = {"pk": pk, "version": expected_version}
        if guard:
            conditions.update(guard)

        changes["version"] = expected_version + 1
        changes.setdefault("updated_at", timezone.now())

        updated = self.filter(**conditions).update(**changes)
        if updated:
            return True, expected_version + 1

        stored_version = self.filter(pk=pk).values_list("version", flat=True).first()
        return False, stored_version


OrderManager = models.Manager.from_queryset(OrderQuerySet)


class Order(models.Model):
    # --- Status Fields ---
    class OrderStatus(models.TextChoices):
        RECEIVED = "RECEIVED", _("Received")
        ACCEPTED = "ACCEPTED", _("Accepted")
        IN_PREPARATION = "IN_PREPARATION", _("In Preparation")
        READY = "READY", _("Ready")
        OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY", _("Out for Delivery")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")

    class OrderType(models.TextChoices):
        PICKUP = "PICKUP", _("Pickup")
        DELIVERY = "DELIVERY", _("Delivery")

    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PAID = "PAID", _("Paid")
        FAILED = "FAILED", _("Failed")
        REFUNDED = "REFUNDED", _("Refunded")

    class PaymentMethod(models.TextChoices):
        STRIPE = "STRIPE", _("Stripe")
        CASH_ON_DELIVERY = "CASH_ON_DELIVERY", _("Cash on Delivery")

    TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    order_number = models.CharField(max_length=32, unique=True, editable=False)
    idempotency_key = models.UUIDField(
        null=True,
        blank=True,
        unique=True,
        editable=False,
        help_text=_("Client-supplied key used to deduplicate retried submissions"),
    )

    # Guest orders have no customer and rely on the denormalized contact fields.
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    customer_phone = models.CharField(max_length=32, blank=True, default="")

    order_type = models.CharField(
        max_length=16, choices=OrderType.choices, default=OrderType.PICKUP
    )
    delivery_address = models.TextField(blank=True, default="")
    delivery_instructions = models.TextField(blank=True, default="")

    # --- Money (always derived by the pricing calculator) ---
    subtotal = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.RECEIVED, db_index=True
    )
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    payment_method = models.CharField(
        max_length=24, choices=PaymentMethod.choices, default=PaymentMethod.STRIPE
    )
    payment_reference = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # Optimistic concurrency token, bumped by every status or payment write.
    version = models.PositiveIntegerField(default=1)

    # --- Lifecycle timestamps ---
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)
    updated_at = models.DateTimeField(auto_now=True)
    estimated_delivery_time = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    accepted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="accepted_orders",
    )
    preparation_started_at = models.DateTimeField(null=True, blank=True)
    preparation_completed_at = models.DateTimeField(null=True, blank=True)
    actual_delivery_time = models.DateTimeField(null=True, blank=True)

    objects = OrderManager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(order_type="DELIVERY") | Q(delivery_fee=0),
                name="order_delivery_fee_only_for_delivery",
            ),
            # SQLite compares decimals as floats; half a cent absorbs the representation error
            models.CheckConstraint(
                condition=Q(total__gte=TOTAL_COMPONENTS - HALF_CENT) & Q(total__lte=TOTAL_COMPONENTS + HALF_CENT),
                name="order_total_is_sum_of_components",
            ),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.get_status_display()})"

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        instance._loaded_order_number = instance.__dict__.get("order_number")
        return instance

    def save(self, *args, **kwargs):
        loaded = getattr(self, "_loaded_order_number", None)
        if loaded and loaded != self.order_number:
            raise ValueError(f"Order number {loaded} is immutable.")
        super().save(*args, **kwargs)
        self._loaded_order_number = self.order_number

    def delete(self, *args, **kwargs):
        raise models.ProtectedError(
            "Orders are never deleted; cancel them through a status transition instead.",
            {self},
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def totals_reconcile(self) -> bool:
        return self.total == self.subtotal + self.delivery_fee + self.tax_amount

    @property
    def customer_display_name(self) -> str:
        if self.customer_id and self.customer:
            full_name = self.customer.get_full_name()
            return full_name or self.customer.get_username()
        return self.customer_name or "Guest"

    @property
    def preparation_time(self):
        if self.preparation_started_at and self.preparation_completed_at:
            return self.preparation_completed_at - self.preparation_started_at
        return None

    @property
    def total_processing_time(self):
        if self.accepted_at and self.actual_delivery_time:
            return self.actual_delivery_time - self.accepted_at
        return None


# --- Line sources ---


@dataclass(frozen=True)
class CatalogSource:
    """A line referencing a menu catalog item by id."""

    item_id: int


@dataclass(frozen=True)
class CustomSource:
    """A line for a build-your-own item; ``build`` is the captured composition."""

    build: Dict[str, Any] = field(default_factory=dict)


LineSource = Union[CatalogSource, CustomSource]


class OrderItem(models.Model):
    """
    A line of an order. Each line comes either from the catalog or from a
    custom build; ``source_type`` selects which of the two columns is set and
    a check constraint keeps the pair consistent. Code should go through
    ``OrderItem.source`` rather than the raw columns.
    """

    class SourceType(models.TextChoices):
        CATALOG = "CATALOG", _("Catalog Item")
        CUSTOM = "CUSTOM", _("Custom Build")

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    source_type = models.CharField(max_length=10, choices=SourceType.choices)
    catalog_item_id = models.PositiveIntegerField(null=True, blank=True)
    custom_build = models.JSONField(null=True, blank=True)
    name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    # Frozen at order time; later catalog price changes never touch it.
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(source_type="CATALOG", catalog_item_id__isnull=False, custom_build__isnull=True)
                    | Q(source_type="CUSTOM", catalog_item_id__isnull=True, custom_build__isnull=False)
                ),
                name="order_item_exactly_one_source",
            ),
            models.CheckConstraint(condition=Q(quantity__gt=0), name="order_item_positive_quantity"),
            models.CheckConstraint(condition=Q(unit_price__gt=0), name="order_item_positive_unit_price"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.name}"

    @classmethod
    def for_source(cls, source: LineSource, **fields) -> "OrderItem":
        if isinstance(source, CatalogSource):
            return cls(source_type=cls.SourceType.CATALOG, catalog_item_id=source.item_id, **fields)
        if isinstance(source, CustomSource):
            return cls(source_type=cls.SourceType.CUSTOM, custom_build=source.build, **fields)
        raise TypeError(f"Unsupported line source: {source!r}")

    @property
    def source(self) -> LineSource:
        if self.source_type == self.SourceType.CATALOG:
            return CatalogSource(item_id=self.catalog_item_id)
        return CustomSource(build=self.custom_build or {})

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class OrderStatusHistory(models.Model):
    """
    Append-only audit trail: one row per successful status transition.
    Rows are never updated or deleted.
    """

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="status_history")
    previous_status = models.CharField(max_length=20, choices=Order.OrderStatus.choices)
    new_status = models.CharField(max_length=20, choices=Order.OrderStatus.choices)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="order_status_changes",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = _("order status history")
        indexes = [models.Index(fields=["order", "created_at"], name="order_history_created_idx")]

    def __str__(self):
        return f"{self.order_id}: {self.previous_status} -> {self.new_status}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Order status history is append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Order status history is append-only.")
