"""
=============================================================================
MIDDLEWARE PIPELINE
=============================================================================

Layers wrapped around the router, outermost first:

    server.use(LoggingMiddleware())
    chain = pipeline.wrap(router.handle)

    request ──► LoggingMiddleware ──► ... ──► router.handle ──► UsersHandler
    response ◄── LoggingMiddleware ◄── ... ◄──┘

A layer gets the request plus `next`, the remainder of the chain. It can
answer by itself, or call `next` and adjust what comes back.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    One layer of the chain.

        class NoStore(Middleware):
            def __call__(self, request, next):
                return next(request).set_header("Cache-Control", "no-store")
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Produce a response, usually via next(request)."""

    @property
    def name(self) -> str:
        return type(self).__name__


class MiddlewarePipeline:
    """Registered layers, in the order a request meets them."""

    def __init__(self):
        self._layers: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._layers.append(middleware)
        logger.debug(f"Middleware registered: {middleware.name}")
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Compose the layers around `handler`.

            [A, B] + handler  →  A(B(handler))
        """
        chain = handler
        for layer in reversed(self._layers):
            chain = self._link(layer, chain)
        return chain

    @staticmethod
    def _link(layer: Middleware, inner: NextHandler) -> NextHandler:
        def call(request: HTTPRequest) -> HTTPResponse:
            return layer(request, inner)
        return call

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._layers)
