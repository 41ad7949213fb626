from dataclasses import dataclass, field
from typing import Protocol

BASE_PATH = "/pks"
LOOKUP_PATH = BASE_PATH + "/lookup"
ADD_PATH = BASE_PATH + "/add"

MACHINE_READABLE = "mr"
NO_MODIFICATION = "nm"


@dataclass(frozen=True)
class LookupOptions:
    no_modification: bool = False

    def tokens(self):
        # Clients always ask for machine-readable output.
        tokens = [MACHINE_READABLE]
        if self.no_modification:
            tokens.append(NO_MODIFICATION)
        return tokens

    def format(self):
        return ",".join(self.tokens())

    @classmethod
    def parse(cls, s):
        tokens = {token.strip() for token in (s or "").split(",")}
        return cls(no_modification=NO_MODIFICATION in tokens)


@dataclass(frozen=True)
class LookupRequest:
    search: str
    options: LookupOptions = field(default_factory=LookupOptions)
    exact: bool = False

    def query(self, op):
        """Query parameters for a /pks/lookup request."""
        params = {
            "op": op,
            "search": self.search,
            "options": self.options.format(),
        }
        if self.exact:
            params["exact"] = "on"
        params["fingerprint"] = "on"
        return params

    @classmethod
    def from_query(cls, args):
        return cls(
            search=args.get("search", ""),
            options=LookupOptions.parse(args.get("options", "")),
            exact=args.get("exact") == "on",
        )


class Lookuper(Protocol):
    """Backend for /pks/lookup.

    ``get`` returns the matching entities and may raise NotFoundError;
    ``index`` returns a list of IndexKey.
    """

    def get(self, req: LookupRequest) -> list: ...
    def index(self, req: LookupRequest) -> list: ...


class Adder(Protocol):
    """Backend for /pks/add."""

    def add(self, entities: list) -> None: ...
