from rest_framework import permissions


def is_staff_user(user) -> bool:
    return bool(user and user.is_authenticated and user.is_staff)


class IsStaff(permissions.BasePermission):
    """Restaurant staff (kitchen, counter, admins)."""

    message = "Only staff members can perform this action."

    def has_permission(self, request, view):
        return is_staff_user(request.user)


class IsStaffOrOrderOwner(permissions.BasePermission):
    """
    Custom permission that allows:
    - Staff users to access any order
    - Authenticated customers to access their own orders
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if is_staff_user(request.user):
            return True

        # Handle both Order and order-owned rows (items, history)
        order = obj.order if hasattr(obj, "order") else obj
        return order.customer_id is not None and order.customer_id == request.user.pk
