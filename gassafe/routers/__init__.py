"""
HTTP routers:

- public: renewal intake form and the booking-completion page
- admin: login/logout and the cookie-gated admin workspace
- api: JSON variants of the same operations
"""
