from typing import Dict, List, Optional


class EntryError(Exception):
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class EntryValidationError(EntryError):
    status_code = 400


class EntryPermissionError(EntryError):
    status_code = 403
