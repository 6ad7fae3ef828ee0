import enum
import secrets
import time
from dataclasses import dataclass
from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salon_booking.core.config import settings
from salon_booking.core.exceptions import BookingValidationError, NotFoundError
from salon_booking.models.appointment import Appointment
from salon_booking.models.client import Client
from salon_booking.models.user import User, UserRole
from salon_booking.schemas.appointment import AppointmentCreate, ClientContact

logger = structlog.get_logger(__name__)


class ResolutionKind(enum.Enum):
    FOUND = "found"
    CREATED_FOR_USER = "created_for_user"
    CREATED_FROM_EMAIL = "created_from_email"
    CREATED_PLACEHOLDER = "created_placeholder"


@dataclass(frozen=True)
class ClientResolution:
    """Outcome of attributing a booking to a client."""

    client: Client
    kind: ResolutionKind
    user_created: bool = False

    @property
    def client_id(self) -> int:
        return self.client.id


def placeholder_email() -> str:
    """Unique address for walk-ins booked without an email."""
    stamp = int(time.time() * 1000)
    return f"walkin-{stamp}-{secrets.token_hex(4)}@{settings.PLACEHOLDER_EMAIL_DOMAIN}"


def placeholder_credential() -> str:
    # Not a valid hash of anything, so the account cannot log in
    return "!" + secrets.token_urlsafe(32)


class ClientService:
    """Client lookup and lazy creation for the booking path.

    Creation only flushes; the caller commits together with the appointment so
    a failed booking leaves no stray user or client behind.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_or_create_client(
        self, request: AppointmentCreate
    ) -> ClientResolution:
        """Attribute a booking request to a client, creating one if needed.

        Priority: logged-in user, guest contact, admin-entered walk-in,
        explicit client id.
        """
        if request.user_id is not None:
            return await self._resolve_for_user(request.user_id)

        if request.is_guest:
            if not request.contact or not request.contact.email:
                raise BookingValidationError(
                    "Guest bookings require a contact email address"
                )
            return await self._resolve_by_email(request.contact, allow_placeholder=False)

        if request.is_admin_entry and request.contact and request.client_id is None:
            return await self._resolve_by_email(request.contact, allow_placeholder=True)

        if request.client_id is not None:
            return await self._resolve_by_client_id(request.client_id, request.contact)

        raise BookingValidationError(
            "A booking must be attributed to a client: provide a user, "
            "a client or contact details"
        )

    async def get_client(self, client_id: int) -> Client:
        result = await self.db.execute(
            select(Client)
            .options(selectinload(Client.user))
            .where(Client.id == client_id)
        )
        client = result.scalar_one_or_none()
        if not client:
            raise NotFoundError("Client", client_id)
        return client

    async def list_clients(self) -> List[Client]:
        result = await self.db.execute(
            select(Client)
            .options(selectinload(Client.user))
            .order_by(Client.created_at.desc(), Client.id.desc())
        )
        return list(result.scalars().all())

    async def delete_client(self, client_id: int) -> None:
        """Delete a client without appointment history, then its user.

        The user may still be referenced elsewhere (an employee account, for
        instance); failing to delete it is logged and ignored.
        """
        client = await self.get_client(client_id)

        appointment_count = (
            await self.db.execute(
                select(func.count(Appointment.id)).where(
                    Appointment.client_id == client_id
                )
            )
        ).scalar()
        if appointment_count:
            raise BookingValidationError(
                "Client has appointment history and cannot be deleted"
            )

        user_id = client.user_id
        await self.db.delete(client)
        await self.db.commit()
        logger.info("Client deleted", client_id=client_id, user_id=user_id)

        if user_id is None:
            return

        try:
            user = await self.db.get(User, user_id)
            if user:
                await self.db.delete(user)
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "Could not delete user of deleted client",
                client_id=client_id,
                user_id=user_id,
                error=str(e),
            )

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def _resolve_for_user(self, user_id: int) -> ClientResolution:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        client = await self._client_for_user(user.id)
        if client:
            return ClientResolution(client, ResolutionKind.FOUND)

        client = await self._create_client(user)
        return ClientResolution(client, ResolutionKind.CREATED_FOR_USER)

    async def _resolve_by_email(
        self, contact: ClientContact, allow_placeholder: bool
    ) -> ClientResolution:
        if not contact.email:
            if not allow_placeholder:
                raise BookingValidationError("A contact email address is required")
            user = await self._create_user(contact, email=placeholder_email(), placeholder=True)
            client = await self._create_client(user)
            return ClientResolution(
                client, ResolutionKind.CREATED_PLACEHOLDER, user_created=True
            )

        user = await self.find_user_by_email(contact.email)
        user_created = False
        if not user:
            user = await self._create_user(contact, email=contact.email)
            user_created = True

        client = await self._client_for_user(user.id)
        if client:
            return ClientResolution(client, ResolutionKind.FOUND)

        client = await self._create_client(user)
        return ClientResolution(
            client, ResolutionKind.CREATED_FROM_EMAIL, user_created=user_created
        )

    async def _resolve_by_client_id(
        self, client_id: int, contact: Optional[ClientContact]
    ) -> ClientResolution:
        client = await self.db.get(Client, client_id)
        if client:
            return ClientResolution(client, ResolutionKind.FOUND)

        # Unknown client: provision a login-less user for it
        contact = contact or ClientContact()
        user = None
        if contact.email:
            user = await self.find_user_by_email(contact.email)
        user_created = user is None
        if user is None:
            user = await self._create_user(
                contact, email=contact.email or placeholder_email(), placeholder=True
            )
        else:
            existing = await self._client_for_user(user.id)
            if existing:
                return ClientResolution(existing, ResolutionKind.FOUND)

        logger.warning(
            "Booking referenced unknown client, created a new one",
            requested_client_id=client_id,
            user_id=user.id,
        )
        client = await self._create_client(user)
        return ClientResolution(
            client, ResolutionKind.CREATED_PLACEHOLDER, user_created=user_created
        )

    async def _client_for_user(self, user_id: int) -> Optional[Client]:
        result = await self.db.execute(select(Client).where(Client.user_id == user_id))
        return result.scalar_one_or_none()

    async def _create_user(
        self, contact: ClientContact, email: str, placeholder: bool = False
    ) -> User:
        user = User(
            email=email,
            first_name=contact.first_name or "",
            last_name=contact.last_name or "",
            phone=contact.phone,
            role=UserRole.CLIENT.value,
            password_hash=placeholder_credential(),
            is_placeholder=placeholder,
        )
        self.db.add(user)
        await self.db.flush()
        logger.info("User created for booking", user_id=user.id, placeholder=placeholder)
        return user

    async def _create_client(self, user: User) -> Client:
        client = Client(user_id=user.id)
        self.db.add(client)
        await self.db.flush()
        logger.info("Client created", client_id=client.id, user_id=user.id)
        return client
