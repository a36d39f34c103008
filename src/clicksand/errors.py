class ClicksandError(Exception):
    """Base error for the Clicksand service."""


class InvalidViewError(ClicksandError):
    def __init__(self, view: str):
        super().__init__(f"Unknown stats view: {view!r}")
        self.view = view


class InvalidCategoryError(ClicksandError):
    def __init__(self, category: str):
        super().__init__(f"Unknown category: {category!r}")
        self.category = category
