from django.dispatch import Signal

# Custom signals that other apps can listen to.
# All of them are sent from transaction.on_commit, so receivers only ever
# observe committed state.

# kwargs: order
order_created = Signal()

# kwargs: order, previous_status, new_status
order_status_changed = Signal()

# kwargs: order, previous_status, new_status
order_payment_status_changed = Signal()
