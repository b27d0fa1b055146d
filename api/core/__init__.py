"""
Shared, cross-cutting code for the API.

`core/` holds small building blocks that multiple features use
(settings, errors, logging, the document store connection). Keep
feature-specific query building and business logic in the corresponding
feature package (e.g. `parcels/`).
"""
