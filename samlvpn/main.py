from concurrent.futures import Future, InvalidStateError
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from .vpn.models import Credential
from .logging_utility import logger


DEFAULT_USERNAME = "N/A"
templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))


def create_callback_app(delivery: Future, redirect_url: Optional[str] = None) -> FastAPI:
    """
    Build the app that receives the SAML callback from the browser.

    The first well-formed POST fulfils ``delivery``; everything after it is
    answered without touching the future.
    """
    app = FastAPI(title="samlvpn callback", docs_url=None, redoc_url=None, openapi_url=None)

    def _already_received(request: Request):
        logger.warning("Ignoring SAML callback, a result was already received")
        return templates.TemplateResponse(request, "callback.html", {
            "title": "Already authenticated",
            "message": "This login was already handled. You can close this window.",
        }, status_code=409)

    def _expired(request: Request):
        logger.warning("Ignoring SAML callback, the login attempt has expired")
        return templates.TemplateResponse(request, "callback.html", {
            "title": "Login expired",
            "message": "This login has expired, start a new one from samlvpn.",
        }, status_code=410)

    @app.post("/")
    async def saml_callback(request: Request):
        """Accept the SAML response posted by the browser"""
        if delivery.cancelled():
            return _expired(request)
        if delivery.done():
            return _already_received(request)

        try:
            form = await request.form()
        except Exception as e:
            logger.warning(f"Unreadable SAML callback body: {e}")
            raise HTTPException(status_code=400, detail="Unreadable callback body")

        secret = form.get("SAMLResponse")
        if not isinstance(secret, str) or not secret.strip():
            logger.warning("SAML callback without SAMLResponse, still waiting")
            raise HTTPException(status_code=400, detail="Missing SAMLResponse")
        # Base64 may arrive wrapped; the credentials file holds it on one line
        secret = "".join(secret.split())

        username = form.get("username")
        if not isinstance(username, str) or not username.strip():
            username = DEFAULT_USERNAME
        username = username.strip()
        if "\r" in username or "\n" in username:
            logger.warning("SAML callback with a multi-line username, still waiting")
            raise HTTPException(status_code=400, detail="username must be a single line")

        try:
            delivery.set_result(Credential(username=username, secret=secret))
        except InvalidStateError:
            if delivery.cancelled():
                return _expired(request)
            return _already_received(request)
        logger.info("SAML callback received")

        if redirect_url:
            return RedirectResponse(redirect_url, status_code=303)
        return templates.TemplateResponse(request, "callback.html", {
            "title": "Authenticated",
            "message": "Authentication succeeded, connecting to the VPN. You can close this window.",
        })

    return app
