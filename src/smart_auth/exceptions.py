class SmartAuthException(Exception):
    def __init__(
        self,
        error: str,
        error_description: str | None = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(error, error_description)

        self.error = error
        self.error_description = error_description
        self.status_code = status_code

    @property
    def message(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"

        return self.error

    def __str__(self) -> str:
        return self.message
