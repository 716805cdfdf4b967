"""
infrastructure - Concrete implementations of domain ports.

Contains all vendor-specific code: Gemini HTTP, Stripe SDK, PhonePe HTTP,
SQLite. Depends on domain/ only (implements ports). Never imported by
application/.
"""
