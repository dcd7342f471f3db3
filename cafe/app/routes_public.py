"""Public site routes: the home page listings and the contact form."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from .admin import AdminConsole, home_listing
from .domain.records import Message
from .routes_admin import get_console
from .utils.responses import ok

router = APIRouter()


class ContactIn(BaseModel):
    """Message left by a visitor on the contact page."""

    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    message: str = Field(..., min_length=1, max_length=2000)
    category: str = "general"


@router.get("/api/home")
async def get_home(console: AdminConsole = Depends(get_console)) -> dict:
    listing = await home_listing(console.store, console.featured_limits)
    return ok(
        {
            section: [record.model_dump(mode="json") for record in records]
            for section, records in listing.items()
        }
    )


@router.post("/api/contact", status_code=201)
async def post_contact(payload: ContactIn, console: AdminConsole = Depends(get_console)) -> dict:
    """Store the message; it shows up first in the admin message list."""

    message = await console["messages"].create(Message(**payload.model_dump()))
    return ok({"id": message.id})
