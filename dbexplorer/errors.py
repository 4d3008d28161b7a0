"""Error types raised across the explorer core"""


class ExplorerError(Exception):
    """Base class for explorer errors. ``message`` is shown to the user as-is."""
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def __str__(self) -> str:
        return self.message


class QueryError(ExplorerError):
    """The engine rejected or failed to execute a SQL statement"""


class DatabaseError(ExplorerError):
    """Opening, creating or inspecting a database failed"""


class PersistenceError(ExplorerError):
    """Reading or writing the application store failed"""


class RefreshError(ExplorerError):
    """A single widget could not be refreshed"""
    
    def __init__(self, widget_id: str, message: str):
        super().__init__(message)
        self.widget_id = widget_id
