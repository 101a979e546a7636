"""Point-of-sale application for the hospital backend.

This package holds the prescription ledger, the payment and department
fulfillment workflow, and the API routes that expose them.
"""
