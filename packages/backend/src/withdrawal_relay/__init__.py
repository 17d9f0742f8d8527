"""Withdrawal Relay — real-time fan-out for withdrawal requests.

Receives withdrawal events from the payment worker, persists them,
broadcasts updates to connected dashboards and mobile devices, and
notifies admins through Expo push notifications.
"""

__version__ = "0.1.0"
