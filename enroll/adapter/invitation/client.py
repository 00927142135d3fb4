"""Invitation backend client implementation.

Talks to the public invitation endpoints of the backend. Error bodies are
`{error, message?, status?}` and are translated into GatewayError.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

import httpx
import logfire
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from enroll.domain.error import GatewayError, GatewayUnavailableError
from enroll.domain.service.gateway import InvitationGateway
from enroll.domain.value import (
    InvitationInfo,
    InviteCode,
    OAuthLinkGrant,
    RequestStatus,
    RequestStatusRecord,
)


class InvitationClient(InvitationGateway):
    """Base class for invitation backend clients.

    Provides type distinction for dependency injection.
    """

    pass


class RealInvitationClient(InvitationClient):
    """HTTP client for the invitation backend."""

    def __init__(self, base_url: str, timeout: float = 10.0) -> None:
        """Initialize invitation client.

        Args:
            base_url: Backend API base URL
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def check_invitation(self, code: InviteCode) -> InvitationInfo:
        body = await self._request("GET", f"/invitations/{code}/check")
        return self._parse(InvitationInfo, body)

    async def fetch_status(
        self, code: InviteCode, email: str, username: str
    ) -> RequestStatusRecord:
        body = await self._request(
            "GET",
            f"/invitations/{code}/status",
            params={"email": email, "username": username},
        )
        return self._parse(RequestStatusRecord, body)

    async def submit_request(self, code: InviteCode, email: str, username: str) -> None:
        await self._request(
            "POST",
            f"/invitations/{code}/requests",
            json={"email": email, "username": username},
        )
        logfire.info("Invitation request submitted", code=str(code), username=username)

    async def generate_oauth_link(
        self, code: InviteCode, email: str, username: str
    ) -> OAuthLinkGrant:
        body = await self._request(
            "POST",
            f"/invitations/{code}/oauth",
            json={"email": email, "username": username},
        )
        return self._parse(OAuthLinkGrant, body)

    async def complete(
        self,
        code: InviteCode,
        email: str,
        username: str,
        auth_key: str,
        group_name: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {"email": email, "username": username, "authKey": auth_key}
        if group_name:
            payload["groupName"] = group_name
        await self._request("POST", f"/invitations/{code}/complete", json=payload)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON body.

        Raises:
            GatewayUnavailableError: If the backend cannot be reached
            GatewayError: If the backend answers with an error status
        """
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method, url, params=params, json=json, timeout=self.timeout
                )
        except httpx.HTTPError as e:
            logfire.warn("Invitation backend unreachable", url=url, error=str(e))
            raise GatewayUnavailableError(f"HTTP error calling {path}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400:
            code = body.get("error")
            message = body.get("message") or code or f"HTTP {response.status_code}"
            raise GatewayError(
                str(message),
                status_code=response.status_code,
                code=str(code) if code is not None else None,
                payload=body,
            )
        return body

    @staticmethod
    def _parse(model: type[BaseModel], body: dict[str, Any]) -> Any:
        try:
            return model.model_validate(body)
        except PydanticValidationError as e:
            raise GatewayError(f"Unexpected response from invitation backend: {e}") from e


class _FakeRequest(BaseModel):
    email: str
    username: str
    status: RequestStatus = RequestStatus.PENDING
    oauth_link: str | None = None
    oauth_code: str | None = None
    oauth_expires_at: datetime | None = None
    group_name: str | None = None


class MockInvitationClient(InvitationClient):
    """In-memory invitation backend for testing.

    Behaves like the real backend closely enough to drive the engine through
    whole scenarios: tests script administrator actions (accept, reject,
    issue or clear links) and inspect the calls the engine made.
    """

    def __init__(self, link_ttl: timedelta = timedelta(minutes=5)) -> None:
        self.link_ttl = link_ttl
        self._invitations: dict[str, InvitationInfo] = {}
        self._requests: dict[tuple[str, str, str], _FakeRequest] = {}
        self._errors: dict[str, list[GatewayError]] = {}
        self.provider_emails: dict[str, str] = {}
        self.complete_gate: asyncio.Event | None = None
        self.complete_calls: list[dict[str, Any]] = []
        self.status_calls = 0
        self.generate_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    # Scripting

    def add_invitation(
        self,
        code: str,
        is_active: bool = True,
        max_uses: int | None = None,
        current_uses: int = 0,
        expires_at: datetime | None = None,
    ) -> None:
        self._invitations[code] = InvitationInfo(
            is_active=is_active,
            max_uses=max_uses,
            current_uses=current_uses,
            expires_at=expires_at,
        )

    def fail_next(self, operation: str, error: GatewayError, times: int = 1) -> None:
        """Make the next call(s) of an operation raise an error.

        Args:
            operation: Gateway method name (e.g. "complete")
            error: Error to raise
            times: Number of calls to fail
        """
        self._errors.setdefault(operation, []).extend([error] * times)

    def request(self, code: str, email: str, username: str) -> _FakeRequest | None:
        return self._requests.get(self._key(code, email, username))

    def accept(self, code: str, email: str, username: str, group_name: str = "Family") -> None:
        request = self._require(code, email, username)
        request.status = RequestStatus.ACCEPTED
        request.group_name = group_name

    def reject(self, code: str, email: str, username: str) -> None:
        self._require(code, email, username).status = RequestStatus.REJECTED

    def issue_link(
        self,
        code: str,
        email: str,
        username: str,
        expires_at: datetime | None = None,
    ) -> OAuthLinkGrant:
        request = self._require(code, email, username)
        oauth_code = uuid4().hex[:6].upper()
        request.oauth_code = oauth_code
        request.oauth_link = f"https://link.stremio.com/?code={oauth_code}"
        request.oauth_expires_at = expires_at or datetime.now(timezone.utc) + self.link_ttl
        return OAuthLinkGrant(
            oauth_code=request.oauth_code,
            oauth_link=request.oauth_link,
            oauth_expires_at=request.oauth_expires_at,
        )

    def clear_link(self, code: str, email: str, username: str) -> None:
        request = self._require(code, email, username)
        request.oauth_link = None
        request.oauth_code = None
        request.oauth_expires_at = None

    def mark_completed(self, code: str, email: str, username: str) -> None:
        self._require(code, email, username).status = RequestStatus.COMPLETED

    def delete_request(self, code: str, email: str, username: str) -> None:
        self._requests.pop(self._key(code, email, username), None)

    # Gateway

    async def check_invitation(self, code: InviteCode) -> InvitationInfo:
        self._raise_scripted("check_invitation")
        invitation = self._invitations.get(str(code))
        if invitation is None:
            raise GatewayError("Invitation not found", status_code=404, code="Invitation not found")
        return invitation

    async def fetch_status(
        self, code: InviteCode, email: str, username: str
    ) -> RequestStatusRecord:
        self.status_calls += 1
        self._raise_scripted("fetch_status")
        request = self.request(str(code), email, username)
        if request is None:
            raise GatewayError("Request not found", status_code=404, code="Request not found")
        expired = (
            request.oauth_expires_at is not None
            and request.oauth_expires_at <= datetime.now(timezone.utc)
        )
        return RequestStatusRecord(
            status=request.status,
            oauth_link=None if expired else request.oauth_link,
            oauth_code=None if expired else request.oauth_code,
            oauth_expires_at=request.oauth_expires_at,
            group_name=request.group_name,
            email=request.email,
            username=request.username,
        )

    async def submit_request(self, code: InviteCode, email: str, username: str) -> None:
        self._raise_scripted("submit_request")
        invitation = self._invitations.get(str(code))
        if invitation is None:
            raise GatewayError("Invitation not found", status_code=404, code="Invitation not found")
        if not invitation.is_active:
            raise GatewayError(
                "Invitation is not active", status_code=400, code="Invitation is not active"
            )
        key = self._key(str(code), email, username)
        if key in self._requests:
            message = "A request already exists for this email and username"
            raise GatewayError(message, status_code=409, code=message)
        self._requests[key] = _FakeRequest(email=email.strip().lower(), username=username.strip())

    async def generate_oauth_link(
        self, code: InviteCode, email: str, username: str
    ) -> OAuthLinkGrant:
        self.generate_calls += 1
        self._raise_scripted("generate_oauth_link")
        request = self.request(str(code), email, username)
        if request is None or request.status != RequestStatus.ACCEPTED:
            raise GatewayError(
                "No accepted request found", status_code=404, code="No accepted request found"
            )
        return self.issue_link(str(code), email, username)

    async def complete(
        self,
        code: InviteCode,
        email: str,
        username: str,
        auth_key: str,
        group_name: str | None = None,
    ) -> None:
        self.complete_calls.append(
            {"code": str(code), "email": email, "username": username, "auth_key": auth_key}
        )
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.complete_gate is not None:
                await self.complete_gate.wait()
            self._raise_scripted("complete")
            request = self.request(str(code), email, username)
            if request is not None and request.status == RequestStatus.COMPLETED:
                return
            if request is None or request.status != RequestStatus.ACCEPTED:
                raise GatewayError(
                    "No accepted request found", status_code=404, code="No accepted request found"
                )
            provider_email = self.provider_emails.get(auth_key)
            if provider_email is not None and provider_email.lower() != request.email:
                raise GatewayError(
                    "The Stremio account email does not match the email used in your request",
                    status_code=400,
                    code="EMAIL_MISMATCH",
                )
            request.status = RequestStatus.COMPLETED
            request.oauth_link = None
            request.oauth_code = None
        finally:
            self.in_flight -= 1

    def _raise_scripted(self, operation: str) -> None:
        errors = self._errors.get(operation)
        if errors:
            raise errors.pop(0)

    def _require(self, code: str, email: str, username: str) -> _FakeRequest:
        request = self.request(code, email, username)
        if request is None:
            raise KeyError(f"No request for {email}/{username} on {code}")
        return request

    @staticmethod
    def _key(code: str, email: str, username: str) -> tuple[str, str, str]:
        return (code, email.strip().lower(), username.strip())
