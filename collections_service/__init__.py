"""Collections Engine Service

This service drives the collections workflow for outstanding invoices:
- Tracks debts against customers and ages them into arrears tiers
- Selects tone-appropriate message templates per channel
- Dispatches reminders over email, SMS and chat
- Rolls delivery outcomes into A/B campaign metrics
"""

__version__ = "1.0.0"
