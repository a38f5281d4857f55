"""BYOD portal catalog sync.

Keeps the portal's service registry in step with a Consul catalog:
 - long-poll watcher on the catalog index
 - resolution of catalog entries to known hosts
 - reconciliation that keeps host connections across service updates
 - a small HTTP API and CLI to connect, disconnect and inspect
"""
