"""
Decorator utilities.
"""


def subscribe_event(*event_types: str):
    """
    Mark a BaseSystem method as an EventBus subscriber.

    The subscription is made when the system is initialized.

    Usage:
        @subscribe_event("storage:changed")
        def on_storage_changed(self, data):
            pass
    """
    def decorator(func):
        func._subscribed_events = list(event_types)
        return func
    return decorator
