"""Casedeck core — slot table, board transitions, serial queues, effects."""
