"""
Core API Module

Query execution endpoints (routes) and the pure result transforms used to
shape query results for the data grid and dashboard widgets.

Endpoints:
- /api/v1/query/execute: Execute SQL
- /api/v1/query/state: Busy flag, current result and error
- /api/v1/query/history: Query history
- /api/v1/query/view: Sorted/paginated view of the current result
"""
