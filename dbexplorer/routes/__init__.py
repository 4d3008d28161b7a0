"""HTTP routes for dashboards and database connections"""
