"""
dbexplorer - query execution and dashboard widget data layer.

Sits between the explorer UI and the SQL engine: runs queries, keeps
result/error/history state, persists dashboards and reshapes query
results into table, chart and KPI projections for widgets.
"""

__version__ = "1.0.0"
