"""
Inbound webhook: FastAPI app that turns POSTed signals into Decisions.
"""

from webhook.app import create_app

__all__ = ["create_app"]
