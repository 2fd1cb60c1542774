"""Message protocol between the embedding pool and its workers.

Every request carries a correlation id; the matching response reuses it so a
worker can resolve the right pending future.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

_SEQUENCE = itertools.count(1)


def next_request_id(prefix: str) -> str:
    return f"{prefix}-{next(_SEQUENCE)}"


@dataclass(frozen=True, slots=True)
class InitRequest:
    id: str
    model_id: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EmbedRequest:
    id: str
    text: str


@dataclass(frozen=True, slots=True)
class EmbedBatchRequest:
    id: str
    texts: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class UnloadRequest:
    id: str


@dataclass(frozen=True, slots=True)
class ResultResponse:
    id: str
    payload: Any


@dataclass(frozen=True, slots=True)
class ProgressResponse:
    id: str
    percent: float
    status: str = "loading"


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    id: str
    error: str
    kind: str = "Exception"


WorkerRequest = Union[InitRequest, EmbedRequest, EmbedBatchRequest, UnloadRequest]
WorkerResponse = Union[ResultResponse, ProgressResponse, ErrorResponse]


__all__ = [
    "InitRequest",
    "EmbedRequest",
    "EmbedBatchRequest",
    "UnloadRequest",
    "ResultResponse",
    "ProgressResponse",
    "ErrorResponse",
    "WorkerRequest",
    "WorkerResponse",
    "next_request_id",
]
