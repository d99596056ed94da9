"""Cleaning-service reservation wizard.

The derived-state engine behind the booking flow: room counts become
billable hours, hours become an invoice, and a step-gated session walks
the customer from service selection to a paid, persisted booking.
"""
