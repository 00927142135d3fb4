#!/usr/bin/env python3
"""Follow an invitation request to completion from the command line.

Runs the same engine as the invitation page: polls the request status,
watches the Stremio link code once a link is issued and completes the
account when the user authorizes it.
"""

import asyncio
import sys

import logfire
import typer
from dishka import AsyncContainer

from enroll.application.flow import InvitationRequestFlow
from enroll.config import Settings
from enroll.domain.model import PageKind, PageState
from enroll.domain.value import InviteCode
from enroll.util.di.container import create_container
from enroll.util.logging import get_logger, setup_logging
from enroll.util.observability import configure_logfire, instrument_httpx

app = typer.Typer(help="Invitation request watcher")


# Pages after which nothing automated will happen any more. The request form
# is only final once there is nothing left to submit.
FINAL_PAGES = {
    PageKind.COMPLETED,
    PageKind.REJECTED,
    PageKind.EMAIL_MISMATCH,
    PageKind.NOT_FOUND,
    PageKind.INVITATION_DISABLED,
}


def describe(page: PageState) -> str:
    """One-line, human-readable description of a page."""
    if page.kind == PageKind.ACCEPTED and page.has_link:
        return f"accepted - authorize code {page.oauth_code} at {page.oauth_link}"
    if page.kind == PageKind.ACCEPTED:
        return "accepted - waiting for an OAuth link (run with --generate-link to request one)"
    if page.kind == PageKind.RENEWED:
        return "renewed - the previous link was revoked, a new one must be generated"
    if page.kind == PageKind.COMPLETED and page.group_name:
        return f"completed - account created in group {page.group_name}"
    return page.kind.value.replace("_", " ")


async def follow(
    code: InviteCode,
    email: str | None,
    username: str | None,
    generate_link: bool,
    container: AsyncContainer | None = None,
) -> PageKind:
    """Drive one request flow until it reaches a final page.

    Args:
        code: Invitation code
        email: Email to submit a new request with
        username: Username to submit a new request with
        generate_link: Request a new OAuth link when none is usable
        container: Container to build the flow from (closed afterwards)

    Returns:
        The kind of the last page shown
    """
    container = container or create_container()
    pending_submit = bool(email and username)
    try:
        async with container(context={InviteCode: code}) as scope:
            flow = await scope.get(InvitationRequestFlow)
            done = asyncio.Event()
            last: list[PageState] = []

            def on_page(page: PageState) -> None:
                last[:] = [page]
                typer.echo(f"[{code}] {describe(page)}")
                if page.kind in FINAL_PAGES or (
                    page.kind == PageKind.REQUEST_FORM and not pending_submit
                ):
                    done.set()

            flow.subscribe(on_page)
            page = await flow.start()

            if page.kind == PageKind.REQUEST_FORM and pending_submit:
                await flow.update_identity(email, username)
                response = await flow.submit()
                pending_submit = False
                for field, message in response.field_errors.items():
                    typer.echo(f"{field}: {message}", err=True)
                if response.message and not response.outcome.is_submitted:
                    typer.echo(response.message, err=True)
                if flow.page.kind == PageKind.REQUEST_FORM or flow.page.kind in FINAL_PAGES:
                    done.set()
            else:
                pending_submit = False

            generated = False
            while not done.is_set():
                current = last[0] if last else flow.page
                if generate_link and not generated and current.kind in (
                    PageKind.RENEWED,
                    PageKind.OAUTH_EXPIRED,
                ):
                    generated = True
                    await flow.generate_oauth_link()
                try:
                    await asyncio.wait_for(done.wait(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

            await flow.close()
            return flow.page.kind
    finally:
        await container.close()


@app.command()
def watch(
    code: str = typer.Argument(..., help="Invitation code"),
    email: str = typer.Option(None, help="Email to submit a new request with"),
    username: str = typer.Option(None, help="Username to submit a new request with"),
    generate_link: bool = typer.Option(
        False, "--generate-link", help="Request a new OAuth link when none is usable"
    ),
) -> None:
    """Watch the request for CODE until it completes or needs attention."""
    settings = Settings()
    setup_logging(settings)

    # Configure Logfire early to catch startup errors
    configure_logfire(settings)
    instrument_httpx()

    try:
        final = asyncio.run(
            follow(InviteCode(root=code), email, username, generate_link)
        )
    except Exception as e:
        logfire.error(
            "Invitation watcher failed",
            error=str(e),
            error_type=type(e).__name__,
            _exc_info=sys.exc_info(),
        )
        raise

    get_logger(__name__, code).info("Invitation watcher finished: %s", final.value)
    raise typer.Exit(code=0 if final == PageKind.COMPLETED else 1)


if __name__ == "__main__":
    app()
