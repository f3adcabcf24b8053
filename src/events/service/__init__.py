"""Ticket inventory operations: decomposition, claims, capacity and admin inventory."""
