from pydantic import BaseModel, Field


class Extension(BaseModel):
    url: str | None = None
    value_uri: str | None = Field(default=None, alias="valueUri")
    extension: list["Extension"] | None = None


class Security(BaseModel):
    extension: list[Extension] | None = None


class Rest(BaseModel):
    security: Security | None = None


class CapabilityStatement(BaseModel):
    """The security part of a FHIR CapabilityStatement.

    Everything else in the resource is ignored.
    """

    rest: list[Rest] | None = None

    def get_extension_uris(self, url: str) -> dict[str, str]:
        """Collect the `valueUri`s of the extension with the given url."""
        uris: dict[str, str] = {}

        for rest in self.rest or []:
            if rest.security is None:
                continue

            for extension in rest.security.extension or []:
                if extension.url != url:
                    continue

                for item in extension.extension or []:
                    if item.url and item.value_uri:
                        uris[item.url] = item.value_uri

        return uris
