"""
OpenAPI tags for the Tix API documentation.
"""

tags_metadata = [
    {
        "name": "auth",
        "description": """
**Authentication**

Register, log in and log out. Login returns a JWT and also sets a signed
session cookie; either is accepted on protected routes.
        """,
    },
    {
        "name": "events",
        "description": """
**Event Catalog**

Discovery of published events, event authoring and ticket tiers.
Events are created as drafts and appear in discovery once published.
        """,
    },
    {
        "name": "tickets",
        "description": "Edit or remove ticket tiers of an event you organize.",
    },
    {
        "name": "bookings",
        "description": """
**Bookings**

Reserve tickets, list your bookings, cancel pending ones and download
a printable ticket once payment is confirmed.

**Lifecycle:** `pending` → `confirmed` → `refunded`, or `pending` → `cancelled`
        """,
    },
    {
        "name": "payments",
        "description": "Payment intents, client-side confirmation and processor webhooks.",
    },
    {
        "name": "dashboard",
        "description": "Organizer totals and event list.",
    },
    {
        "name": "admin",
        "description": "Platform-wide views. Requires the admin role.",
    },
    {
        "name": "uploads",
        "description": "Event and profile image uploads (JPEG, PNG, GIF up to 5 MB).",
    },
    {"name": "Health", "description": "Liveness and dependency health."},
    {"name": "Monitoring", "description": "Prometheus metrics."},
]

security_schemes = {
    "BearerAuth": {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
        "description": """
JWT authentication.

1. Log in via `/api/auth/login` to get a token
2. Send it as `Authorization: Bearer <token>`

Browser clients can rely on the session cookie set at login instead.
        """,
    }
}
