"""Payout settlement router with a gift-wrapped eCash fallback."""
