from dataclasses import dataclass
from typing import Union
from postbox import config


@dataclass(frozen=True)
class Store:
    name: str


@dataclass(frozen=True)
class PageNotFound:
    pass


@dataclass(frozen=True)
class MethodNotAllowed:
    allow: bytes = b"POST"


Outcome = Union[Store, PageNotFound, MethodNotAllowed]


@dataclass(frozen=True)
class Dispatch:
    outcome: Outcome
    timeout: float
    max_body: int


def classify(method: str, path: str) -> Dispatch:
    """Decide what to do with a request from its method and path alone.

    Only ``POST`` to a path longer than two bytes stores a file. The path is
    taken as sent: no percent-decoding and no dot-segment collapsing.
    """
    if path.startswith("/") and len(path.encode("utf-8")) > 2:
        if method == "POST":
            return Dispatch(Store(name=path[1:]), config.STORE_TIMEOUT_SECONDS, config.MAX_STORE_BODY)
        return Dispatch(MethodNotAllowed(allow=b"POST"), config.MINIMAL_TIMEOUT_SECONDS, config.MAX_MINIMAL_BODY)
    return Dispatch(PageNotFound(), config.MINIMAL_TIMEOUT_SECONDS, config.MAX_MINIMAL_BODY)
