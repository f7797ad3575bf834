class InvalidInputError(ValueError):
    """Missing or malformed input (coordinates, required collections). Not retried."""


class TouristNotFoundError(LookupError):
    def __init__(self, dtid):
        super().__init__(f"Tourist {dtid} not found")
        self.dtid = dtid
