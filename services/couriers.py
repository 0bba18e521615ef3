"""Courier lookups.

Each courier exposes ``track(tracking_number)`` returning the current
status, location, estimated delivery and the courier's own event timeline.
The bundled couriers return canned data until their live APIs are wired in.
"""

from core.imports import datetime, timedelta


class MockCourier:
    def __init__(self, name, base_url, current_location, eta_days, events):
        self.name = name
        self.base_url = base_url
        self.current_location = current_location
        self.eta_days = eta_days
        # (status, description, location, days_ago)
        self.events = events

    @property
    def tracking_url(self):
        return f"{self.base_url}/track"

    def track(self, tracking_number):
        now = datetime.utcnow()
        timeline = [
            {
                "status": status,
                "description": description,
                "location": location,
                "timestamp": (now - timedelta(days=days_ago)).isoformat(),
                "createdBy": "courier",
            }
            for status, description, location, days_ago in self.events
        ]
        return {
            "trackingNumber": tracking_number,
            "courier": self.name,
            "status": timeline[-1]["status"],
            "location": self.current_location,
            "estimatedDelivery": (now + timedelta(days=self.eta_days)).isoformat(),
            "timeline": timeline,
        }


def default_couriers():
    return {
        "delhivery": MockCourier(
            "delhivery",
            "https://api.delhivery.com",
            current_location="Mumbai",
            eta_days=2,
            events=[
                ("picked_up", "Package picked up from seller", "Delhi", 1),
                ("in_transit", "Package in transit", "Mumbai", 0),
            ],
        ),
        "bluedart": MockCourier(
            "bluedart",
            "https://api.bluedart.com",
            current_location="Bangalore",
            eta_days=1,
            events=[
                ("picked_up", "Package picked up from seller", "Delhi", 2),
                ("in_transit", "Package in transit", "Bangalore", 1),
                ("out_for_delivery", "Package out for delivery", "Bangalore", 0),
            ],
        ),
    }
