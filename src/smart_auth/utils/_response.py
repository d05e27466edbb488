from typing import Self

from cross_web import Response as DuckResponse


class Response(DuckResponse):
    @classmethod
    def text(cls, body: str, status_code: int = 200) -> Self:
        return cls(
            status_code=status_code,
            body=body,
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    @classmethod
    def error(cls, message: str, status_code: int = 500) -> Self:
        return cls.text(message, status_code=status_code)
