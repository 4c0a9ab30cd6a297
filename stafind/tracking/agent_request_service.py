"""Service for single-shot agent requests and their responses."""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from psycopg2.extras import Json

from stafind.shared.database import Database
from stafind.shared.errors import JobNotFoundError, TerminalStateError, ValidationError
from stafind.shared.models import (
    COMPLETED,
    FAILED,
    PENDING,
    PROCESSING,
    AgentRequest,
    AgentResponse,
)

from .queries import (
    GET_AGENT_REQUEST,
    INSERT_AGENT_REQUEST,
    INSERT_AGENT_RESPONSE,
    UPDATE_AGENT_REQUEST,
)

logger = logging.getLogger(__name__)

PROCESSING_TYPES = ["candidate_extraction", "search_analysis", "candidate_matching", "generic"]


class AgentRequestStore(Protocol):
    def get(self, request_id: str) -> AgentRequest | None: ...

    def insert(self, request: AgentRequest) -> AgentRequest: ...

    def update(self, request: AgentRequest) -> AgentRequest: ...

    def save_response(self, response: AgentResponse) -> None: ...


class InMemoryAgentRequestStore:
    """Process-local agent request store."""

    def __init__(self):
        self._requests: dict[str, AgentRequest] = {}
        self.responses: dict[str, AgentResponse] = {}
        self._lock = threading.Lock()

    def get(self, request_id: str) -> AgentRequest | None:
        with self._lock:
            request = self._requests.get(request_id)
            return copy.deepcopy(request) if request else None

    def insert(self, request: AgentRequest) -> AgentRequest:
        with self._lock:
            self._requests[request.id] = copy.deepcopy(request)
            return copy.deepcopy(request)

    def update(self, request: AgentRequest) -> AgentRequest:
        with self._lock:
            current = self._requests.get(request.id)
            if current is None:
                raise KeyError(request.id)
            if current.is_terminal:
                raise TerminalStateError(f"Agent request {request.id} is already {current.status}")
            self._requests[request.id] = copy.deepcopy(request)
            return copy.deepcopy(request)

    def save_response(self, response: AgentResponse) -> None:
        with self._lock:
            self.responses[response.request_id] = response


class PostgresAgentRequestStore:
    """Agent request store backed by ``ai_agent_requests``/``ai_agent_responses``."""

    def __init__(self, database: Database):
        if not database:
            raise ValueError("Database is required")
        self.db = database

    @staticmethod
    def _from_cursor(cur) -> AgentRequest | None:
        row = cur.fetchone()
        if not row:
            return None
        columns = [desc[0] for desc in cur.description]
        return AgentRequest(**dict(zip(columns, row)))

    def get(self, request_id: str) -> AgentRequest | None:
        with self.db.get_cursor() as cur:
            cur.execute(GET_AGENT_REQUEST, (request_id,))
            return self._from_cursor(cur)

    def insert(self, request: AgentRequest) -> AgentRequest:
        with self.db.get_cursor() as cur:
            cur.execute(
                INSERT_AGENT_REQUEST,
                (request.id, request.query, request.processing_type, request.status, request.created_at),
            )
            return self._from_cursor(cur) or request

    def update(self, request: AgentRequest) -> AgentRequest:
        with self.db.get_cursor() as cur:
            cur.execute(
                UPDATE_AGENT_REQUEST,
                (request.status, request.completed_at, request.error_message, request.id),
            )
            updated = self._from_cursor(cur)
        if updated is None:
            raise TerminalStateError(f"Agent request {request.id} is missing or already terminal")
        return updated

    def save_response(self, response: AgentResponse) -> None:
        with self.db.get_cursor() as cur:
            cur.execute(
                INSERT_AGENT_RESPONSE,
                (
                    response.request_id,
                    response.response_text,
                    Json({name: list(skills) for name, skills in response.skills.items()}),
                    Json([match.to_dict() for match in response.matches]),
                    response.created_at,
                ),
            )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentRequestService:
    """Lifecycle of agent requests: pending -> processing -> completed | failed."""

    def __init__(self, store: AgentRequestStore, clock: Callable[[], datetime] = _utcnow):
        if store is None:
            raise ValueError("Agent request store is required")
        self.store = store
        self._clock = clock

    def _require(self, request_id: str) -> AgentRequest:
        request = self.store.get(request_id)
        if request is None:
            raise JobNotFoundError(f"Agent request not found: {request_id}")
        if request.is_terminal:
            raise TerminalStateError(f"Agent request {request_id} is already {request.status}")
        return request

    def create(self, query: str, processing_type: str = "generic", request_id: str | None = None) -> AgentRequest:
        """
        Register a new pending request.

        Raises:
            ValidationError: If query is empty or processing_type is unknown
        """
        if not query or not query.strip():
            raise ValidationError("Query is required")
        if processing_type not in PROCESSING_TYPES:
            raise ValidationError(
                f"Invalid processing_type. Must be one of: {', '.join(PROCESSING_TYPES)}"
            )
        request = AgentRequest(
            id=request_id or str(uuid.uuid4()),
            query=query,
            processing_type=processing_type,
            status=PENDING,
            created_at=self._clock(),
        )
        return self.store.insert(request)

    def get(self, request_id: str) -> AgentRequest | None:
        return self.store.get(request_id)

    def start(self, request_id: str) -> AgentRequest:
        request = self._require(request_id)
        return self.store.update(replace(request, status=PROCESSING))

    def complete(
        self,
        request_id: str,
        response_text: str,
        skills: dict[str, Any] | None = None,
        matches: tuple = (),
    ) -> AgentResponse:
        """
        Store the response and mark the request completed.

        Returns:
            The stored AgentResponse
        """
        request = self._require(request_id)
        now = self._clock()
        response = AgentResponse(
            request_id=request_id,
            response_text=response_text,
            skills={name: tuple(values) for name, values in (skills or {}).items()},
            matches=tuple(matches),
            created_at=now,
        )
        self.store.save_response(response)
        self.store.update(replace(request, status=COMPLETED, completed_at=now))
        logger.info(f"Agent request {request_id} completed with {len(response.matches)} match(es)")
        return response

    def fail(self, request_id: str, error_message: str) -> AgentRequest:
        request = self._require(request_id)
        logger.warning(f"Agent request {request_id} failed: {error_message}")
        return self.store.update(
            replace(request, status=FAILED, completed_at=self._clock(), error_message=error_message)
        )
