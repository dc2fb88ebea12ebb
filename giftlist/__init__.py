"""
Gift list service.

A FastAPI application that tracks gift budgets for groups of people and
reports spending analytics, backed by Postgres (or an in-memory store for
local runs) with Redis pub/sub for change notifications.
"""
